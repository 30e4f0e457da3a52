"""Shared domain models for AppDeployer."""

import hashlib
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import (
    DEFAULT_BRANCH,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_REMOTE_BASE_DIR,
    DEFAULT_SERVER_NAME,
    PROXY_CONF_DIR,
    REMOTE_LOG_TEMPLATE,
    ExitCode,
)

_STACK_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


@dataclass(frozen=True)
class DeploymentConfig:
    """Resolved deployment parameters, immutable for the lifetime of a run."""

    repo_url: str
    token: str
    ssh_user: str
    host: str
    ssh_key: str
    app_port: int
    branch: str = DEFAULT_BRANCH
    workspace_root: str = "."
    remote_base_dir: str = DEFAULT_REMOTE_BASE_DIR
    server_name: str = DEFAULT_SERVER_NAME
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __repr__(self) -> str:
        return (
            f"DeploymentConfig(repo_url={self.repo_url!r}, token='***', branch={self.branch!r}, "
            f"ssh_user={self.ssh_user!r}, host={self.host!r}, ssh_key={self.ssh_key!r}, "
            f"app_port={self.app_port!r})"
        )


@dataclass(frozen=True)
class TeardownConfig:
    """Parameters needed to remove a project from a host."""

    ssh_user: str
    host: str
    ssh_key: str
    project_name: str
    remote_base_dir: str = DEFAULT_REMOTE_BASE_DIR


@dataclass(frozen=True)
class SshTarget:
    user: str
    host: str
    key_path: str

    @property
    def address(self) -> str:
        return f"{self.user}@{self.host}"


@dataclass(frozen=True)
class ProjectIdentity:
    """Project name shared by the workspace, remote path and proxy rule."""

    name: str

    @property
    def stack_name(self) -> str:
        # Compose project names allow only lowercase alphanumerics, '-' and '_'.
        if _STACK_NAME_PATTERN.match(self.name):
            return self.name
        # Rewritten names keep a digest of the original so that "My.App" and
        # "my-app" never share containers.
        cleaned = re.sub(r"[^a-z0-9_-]", "-", self.name.lower()).strip("-_") or "app"
        digest = hashlib.sha1(self.name.encode("utf-8")).hexdigest()[:8]
        return f"{cleaned}-{digest}"

    @property
    def proxy_rule_path(self) -> str:
        return posixpath.join(PROXY_CONF_DIR, f"{self.name}.conf")

    @property
    def remote_log_path(self) -> str:
        return REMOTE_LOG_TEMPLATE.format(name=self.name)


def remote_path(base_dir: str, identity: ProjectIdentity) -> str:
    return posixpath.join(base_dir.rstrip("/") or "/", identity.name)


@dataclass(frozen=True)
class BuildDescriptor:
    """The build definition found in the workspace."""

    compose_file: Optional[str] = None
    has_dockerfile: bool = False

    @property
    def uses_compose(self) -> bool:
        return self.compose_file is not None


class Stage(Enum):
    PARAM_VALIDATION = ("param_validation", ExitCode.MISSING_PARAMETER)
    LOCAL_UPDATE = ("local_update", ExitCode.LOCAL_UPDATE_FAILED)
    LOCAL_CHECKOUT = ("local_checkout", ExitCode.LOCAL_CHECKOUT_FAILED)
    FILE_VERIFICATION = ("file_verification", ExitCode.MISSING_BUILD_DESCRIPTOR)
    CONNECTIVITY_CHECK = ("connectivity_check", ExitCode.CONNECTIVITY_FAILED)
    TRANSFER = ("transfer", ExitCode.TRANSFER_FAILED)
    REMOTE_EXECUTION = ("remote_execution", ExitCode.REMOTE_EXECUTION_FAILED)
    EXTERNAL_VALIDATION = ("external_validation", ExitCode.EXTERNAL_VALIDATION_FAILED)
    TEARDOWN = ("teardown", ExitCode.TEARDOWN_FAILED)

    def __init__(self, label: str, failure_code: ExitCode):
        self.label = label
        self.failure_code = failure_code


@dataclass(frozen=True)
class RunResult:
    """Terminal outcome of a deployment or teardown run."""

    exit_code: int
    stage: Optional[Stage] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS
