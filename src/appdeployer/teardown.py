"""Best-effort removal of a deployed project from the remote host."""

import logging
import shlex
from typing import List, Optional

from rich.console import Console

from .constants import REMOTE_UNIT_TIMEOUT, ExitCode
from .errors import DeployerError, ParameterError, TeardownError
from .errors_catalog import actionable_error
from .models import ProjectIdentity, RunResult, SshTarget, Stage, TeardownConfig, remote_path
from .services.command_runner import CommandRunner
from .services.container_deployer import stop_stack_commands
from .services.provisioner import privilege_check_step
from .services.remote_script import RemoteScript, RemoteStep
from .services.ssh_transport import SshTransport
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("appdeployer")


class ProjectTeardown:
    """Removes containers, proxy rule and files for one project.

    Needs only SSH credentials and the project name. Missing resources are
    skipped; only a failed remote channel (or a denied removal) is an error.
    """

    def __init__(self, config: TeardownConfig):
        self.config = config
        self.identity: Optional[ProjectIdentity] = None
        self.result: Optional[RunResult] = None

        self.target = SshTarget(user=config.ssh_user, host=config.host, key_path=config.ssh_key)
        self.command_runner = CommandRunner(logger=logger)
        self.validation_service = ValidationService()
        self.ssh_transport = SshTransport(
            target=self.target,
            run_cmd=self._run_cmd,
            logger=logger,
            stream_cmd=self.command_runner.stream,
        )

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def build_steps(self, identity: ProjectIdentity) -> List[RemoteStep]:
        project_dir = shlex.quote(remote_path(self.config.remote_base_dir, identity))
        rule_path = shlex.quote(identity.proxy_rule_path)
        return [
            privilege_check_step(),
            RemoteStep(
                "remove_containers",
                f"""
if command -v docker > /dev/null 2>&1; then
    log_remote "Stopping and removing containers for $PROJECT_NAME..."
{stop_stack_commands(identity)}
else
    log_remote "Docker is not installed; no containers to remove."
fi
""",
            ),
            RemoteStep(
                "remove_proxy_rule",
                f"""
log_remote "Removing Nginx config..."
sudo -n rm -f {rule_path} {shlex.quote(identity.proxy_rule_path + ".previous")}
""",
            ),
            RemoteStep(
                "reload_proxy",
                """
if command -v nginx > /dev/null 2>&1; then
    log_remote "Reloading Nginx..."
    { sudo -n nginx -t && sudo -n systemctl reload nginx; } || log_remote "Nginx reload skipped."
fi
""",
            ),
            RemoteStep(
                "remove_project_dir",
                f"""
log_remote "Removing project directory {project_dir}..."
sudo -n rm -rf {project_dir}
""",
            ),
        ]

    def execute(self):
        self.identity = ProjectIdentity(
            name=self.validation_service.validate_project_name(self.config.project_name)
        )
        self.validation_service.validate_ssh_key(self.config.ssh_key)

        console.print(f"[blue]Attempting remote cleanup on {self.config.host}...[/blue]")
        logger.info("Attempting remote cleanup of '%s' on %s", self.identity.name, self.config.host)

        script = RemoteScript(self.identity, self.build_steps(self.identity))
        try:
            result = self.ssh_transport.execute(script.render(), timeout=REMOTE_UNIT_TIMEOUT)
        except DeployerError as exc:
            raise TeardownError(str(exc)) from exc

        if result.returncode != 0:
            raise TeardownError(
                actionable_error(
                    "teardown_failed",
                    name=self.identity.name,
                    address=self.target.address,
                )
            )

    def _finalize(self, result: RunResult) -> int:
        self.result = result
        if result.succeeded:
            logger.info("Cleanup successful.")
        else:
            logger.error("Cleanup failed with exit code %s.", int(result.exit_code))
        logger.info("Script execution finished with exit code %s.", int(result.exit_code))
        return int(result.exit_code)

    def run(self) -> int:
        result = RunResult(ExitCode.UNEXPECTED_FAULT, Stage.TEARDOWN, "Run did not complete.")

        try:
            logger.info("Cleanup mode activated.")
            self.execute()
            console.print("[bold green]Cleanup successful.[/bold green]")
            result = RunResult(ExitCode.SUCCESS)
            return int(result.exit_code)
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.error("FATAL: Script interrupted by user.")
            result = RunResult(ExitCode.USER_INTERRUPT, Stage.TEARDOWN, "Operation cancelled by user.")
            return int(result.exit_code)
        except TeardownError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            result = RunResult(Stage.TEARDOWN.failure_code, Stage.TEARDOWN, str(exc))
            return int(result.exit_code)
        except ParameterError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            result = RunResult(ExitCode.MISSING_PARAMETER, Stage.TEARDOWN, str(exc))
            return int(result.exit_code)
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("FATAL: An unexpected error occurred.")
            result = RunResult(ExitCode.UNEXPECTED_FAULT, Stage.TEARDOWN, str(exc))
            return int(result.exit_code)
        finally:
            self._finalize(result)
