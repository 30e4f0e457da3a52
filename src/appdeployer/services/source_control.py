"""Local repository synchronization with transient token authentication."""

import base64
import os
from typing import Callable, Dict

from appdeployer.errors import DeployerError, SourceControlError
from appdeployer.errors_catalog import actionable_error
from appdeployer.models import ProjectIdentity


class TokenAuth:
    """Injects a personal access token into a single git invocation.

    The header travels through ``GIT_CONFIG_*`` environment variables, so it
    never reaches argv, ``.git/config`` or the remote URL.
    """

    def __init__(self, token: str):
        self._token = token

    def authorization_header(self) -> str:
        encoded = base64.b64encode(f":{self._token}".encode("utf-8")).decode("ascii")
        return f"Authorization: Basic {encoded}"

    def git_env(self) -> Dict[str, str]:
        return {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraheader",
            "GIT_CONFIG_VALUE_0": self.authorization_header(),
            "GIT_TERMINAL_PROMPT": "0",
        }

    def __repr__(self) -> str:
        return "TokenAuth(token='***')"


class SourceControlService:
    """Clones or updates the project workspace for a single branch."""

    def __init__(self, logger, console, run_cmd: Callable, filesystem_service):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.filesystem_service = filesystem_service

    @staticmethod
    def workspace_path(workspace_root: str, identity: ProjectIdentity) -> str:
        return os.path.join(os.path.abspath(workspace_root), identity.name)

    @staticmethod
    def workspace_exists(workspace: str) -> bool:
        return os.path.isdir(workspace)

    def checkout(self, repo_url: str, branch: str, workspace: str, auth: TokenAuth):
        self.console.print(f"[blue]Cloning {repo_url} (branch {branch})...[/blue]")
        self.logger.info("Cloning repository %s (branch %s) into %s", repo_url, branch, workspace)
        self.filesystem_service.ensure_dir(os.path.dirname(workspace))

        try:
            result = self.run_cmd(
                ["git", "clone", "--single-branch", "--branch", branch, repo_url, workspace],
                check=False,
                capture_output=True,
                extra_env=auth.git_env(),
            )
        except DeployerError as exc:
            self.filesystem_service.cleanup_dir(workspace)
            raise SourceControlError(str(exc)) from exc

        if result.returncode != 0:
            # A partial clone would turn the next run into an update.
            self.filesystem_service.cleanup_dir(workspace)
            raise SourceControlError(
                self._with_detail(actionable_error("clone_failed", url=repo_url), result)
            )

        self.console.print("[green]Repository cloned.[/green]")

    def update(self, branch: str, workspace: str, auth: TokenAuth):
        self.console.print(f"[blue]Repository exists. Pulling branch {branch}...[/blue]")
        self.logger.info("Updating workspace %s from branch %s", workspace, branch)

        commands = [
            [
                "git",
                "-C",
                workspace,
                "fetch",
                "--prune",
                "origin",
                f"+refs/heads/{branch}:refs/remotes/origin/{branch}",
            ],
            ["git", "-C", workspace, "checkout", "--force", "-B", branch, f"refs/remotes/origin/{branch}"],
        ]
        for cmd in commands:
            try:
                result = self.run_cmd(
                    cmd,
                    check=False,
                    capture_output=True,
                    extra_env=auth.git_env(),
                )
            except DeployerError as exc:
                raise SourceControlError(str(exc)) from exc

            if result.returncode != 0:
                raise SourceControlError(
                    self._with_detail(
                        actionable_error("pull_failed", branch=branch, path=workspace),
                        result,
                    )
                )

        self.console.print("[green]Repository updated.[/green]")

    @staticmethod
    def _with_detail(message: str, result) -> str:
        stderr = (result.stderr or "").strip()
        return f"{message}\n{stderr}" if stderr else message
