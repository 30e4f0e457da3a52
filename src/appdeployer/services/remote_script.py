"""Composition of remote steps into one transmitted shell script."""

import shlex
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from appdeployer.constants import (
    REMOTE_EXIT_NO_CONTAINERS,
    REMOTE_EXIT_PRIVILEGE,
    REMOTE_EXIT_PROXY_INVALID,
    REMOTE_EXIT_START_FAILED,
    SSH_CHANNEL_FAILURE,
    ExitCode,
)
from appdeployer.errors import (
    DeploymentHealthError,
    PrivilegeError,
    ProxyConfigError,
    RemoteExecutionError,
)
from appdeployer.errors_catalog import actionable_error
from appdeployer.models import ProjectIdentity

STEP_MARKER = "step: "

_HEADER = """\
set -euo pipefail
export DEBIAN_FRONTEND=noninteractive
PROJECT_NAME={project_name}
REMOTE_LOG={remote_log}

log_remote() {{
    local line
    line="[REMOTE $(date +'%Y-%m-%d %H:%M:%S')] $1"
    echo "$line" | sudo -n tee -a "$REMOTE_LOG" > /dev/null 2>&1 || true
    echo "$1"
}}

fail() {{
    log_remote "ERROR: $2"
    exit "$1"
}}

apt_get() {{
    sudo -n env DEBIAN_FRONTEND=noninteractive apt-get "$@"
}}

docker_cmd() {{
    sudo -n docker "$@"
}}
"""


@dataclass(frozen=True)
class RemoteStep:
    """A named, idempotent shell fragment executed on the target."""

    name: str
    body: str

    def render(self) -> str:
        return f'log_remote {shlex.quote(STEP_MARKER + self.name)}\n{self.body.strip()}\n'


class RemoteScript:
    """Sequential steps sent as a single SSH round trip.

    The script stops at the first failing step; the step markers it prints
    let the controller report where it stopped.
    """

    def __init__(self, identity: ProjectIdentity, steps: Iterable[RemoteStep]):
        self.identity = identity
        self.steps: List[RemoteStep] = list(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]

    def render(self) -> str:
        parts = [
            _HEADER.format(
                project_name=shlex.quote(self.identity.name),
                remote_log=shlex.quote(self.identity.remote_log_path),
            )
        ]
        parts.extend(step.render() for step in self.steps)
        parts.append('log_remote "Remote run completed successfully."\n')
        return "\n".join(parts)


def last_step(output: Optional[str]) -> Optional[str]:
    step = None
    for line in (output or "").splitlines():
        if line.startswith(STEP_MARKER):
            step = line[len(STEP_MARKER):].strip()
    return step


def _error_for_status(returncode: int) -> Tuple[type, Optional[int]]:
    if returncode == REMOTE_EXIT_PRIVILEGE:
        return PrivilegeError, None
    if returncode == REMOTE_EXIT_PROXY_INVALID:
        return ProxyConfigError, ExitCode.PROXY_VALIDATION_FAILED
    if returncode == REMOTE_EXIT_NO_CONTAINERS:
        return DeploymentHealthError, ExitCode.NO_RUNNING_CONTAINERS
    if returncode == REMOTE_EXIT_START_FAILED:
        return DeploymentHealthError, None
    return RemoteExecutionError, None


def raise_for_remote_exit(returncode: int, output: Optional[str], identity: ProjectIdentity):
    """Translate the remote script status into the controller-visible error.

    Only proxy validation and the running-container check keep their own exit
    codes; every other remote failure surfaces as the remote execution code.
    """
    if returncode == 0:
        return

    if returncode == SSH_CHANNEL_FAILURE:
        raise RemoteExecutionError(
            "SSH channel failed while running the remote deployment. "
            "Check connectivity and re-run the deployment."
        )

    error_cls, exit_code = _error_for_status(returncode)
    message = actionable_error(
        "remote_failed",
        step=last_step(output) or "<unknown>",
        log_path=identity.remote_log_path,
    )
    raise error_cls(f"{message} (remote exit status {returncode})", exit_code=exit_code)
