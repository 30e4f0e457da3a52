"""SSH transport: probe the target and run one script per round trip."""

import logging
import os
import shlex
import subprocess
from typing import Callable, List, Optional

from appdeployer.constants import SSH_CONNECT_TIMEOUT, SSH_PROBE_TIMEOUT
from appdeployer.errors import ConnectivityError, DeployerError
from appdeployer.errors_catalog import actionable_error
from appdeployer.models import SshTarget

remote_logger = logging.getLogger("appdeployer.remote")


def ssh_options(key_path: str, connect_timeout: Optional[int] = None) -> List[str]:
    """Build the non-interactive SSH options shared by ssh and rsync."""
    args = [
        "-i",
        os.path.expanduser(key_path),
        "-o",
        "BatchMode=yes",
        "-o",
        "StrictHostKeyChecking=accept-new",
        "-o",
        "ServerAliveInterval=60",
    ]
    if connect_timeout:
        args += ["-o", f"ConnectTimeout={connect_timeout}"]
    return args


def log_remote_line(line: str):
    remote_logger.info("[REMOTE] %s", line)


class SshTransport:
    """Runs commands on the deployment target over a single SSH channel."""

    def __init__(self, target: SshTarget, run_cmd: Callable, logger, stream_cmd: Callable = None):
        self.target = target
        self.run_cmd = run_cmd
        self.stream_cmd = stream_cmd
        self.logger = logger

    def base_args(self, connect_timeout: Optional[int] = None) -> List[str]:
        return ["ssh", "-n"] + ssh_options(self.target.key_path, connect_timeout) + [self.target.address]

    def probe(self):
        """Authenticate and run a no-op; unreachable and rejected look the same."""
        self.logger.info("Checking SSH connectivity to %s...", self.target.address)
        cmd = self.base_args(connect_timeout=SSH_CONNECT_TIMEOUT) + ["exit 0"]
        try:
            result = self.run_cmd(cmd, check=False, capture_output=True, timeout=SSH_PROBE_TIMEOUT)
        except DeployerError as exc:
            raise ConnectivityError(
                f"{actionable_error('ssh_unreachable', address=self.target.address)}\n{exc}"
            ) from exc

        if result.returncode != 0:
            raise ConnectivityError(actionable_error("ssh_unreachable", address=self.target.address))
        self.logger.info("SSH connectivity confirmed.")

    def execute(self, script: str, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Run ``script`` under bash on the target, logging its output as it arrives."""
        cmd = self.base_args(connect_timeout=SSH_CONNECT_TIMEOUT) + [f"bash -c {shlex.quote(script)}"]
        return self.stream_cmd(
            cmd,
            on_line=log_remote_line,
            timeout=timeout,
            log_command=" ".join(self.base_args()) + " bash -c <remote script>",
        )
