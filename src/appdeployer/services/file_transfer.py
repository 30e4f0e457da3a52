"""Incremental workspace transfer to the remote project path."""

import shlex
from typing import Callable, List

from appdeployer.constants import SSH_CONNECT_TIMEOUT, TRANSFER_EXCLUDES, TRANSFER_TIMEOUT
from appdeployer.errors import DeployerError, TransferError
from appdeployer.errors_catalog import actionable_error
from appdeployer.models import SshTarget
from appdeployer.services.ssh_transport import ssh_options


class FileTransferService:
    """Pushes the workspace with rsync; never deletes anything remotely."""

    def __init__(self, logger, console, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd

    @staticmethod
    def remote_rsync_path(target: SshTarget, remote_dir: str) -> str:
        # The project directory usually lives under a root-owned base path.
        quoted_dir = shlex.quote(remote_dir)
        return (
            f"{{ [ -w {quoted_dir} ] "
            f"|| sudo -n install -d -o {shlex.quote(target.user)} {quoted_dir} 2>/dev/null "
            f"|| mkdir -p {quoted_dir}; }} && rsync"
        )

    def build_command(self, target: SshTarget, workspace: str, remote_dir: str) -> List[str]:
        ssh_cmd = " ".join(
            ["ssh"] + [shlex.quote(arg) for arg in ssh_options(target.key_path, SSH_CONNECT_TIMEOUT)]
        )
        cmd = ["rsync", "-az", "--checksum"]
        for pattern in TRANSFER_EXCLUDES:
            cmd += ["--exclude", pattern]
        cmd += [
            "-e",
            ssh_cmd,
            "--rsync-path",
            self.remote_rsync_path(target, remote_dir),
            f"{workspace.rstrip('/')}/",
            f"{target.address}:{remote_dir.rstrip('/')}/",
        ]
        return cmd

    def transfer(self, target: SshTarget, workspace: str, remote_dir: str):
        destination = f"{target.address}:{remote_dir}"
        self.console.print(f"[blue]Transferring project files to {destination}...[/blue]")
        self.logger.info("Transferring %s to %s", workspace, destination)

        try:
            result = self.run_cmd(
                self.build_command(target, workspace, remote_dir),
                check=False,
                capture_output=True,
                timeout=TRANSFER_TIMEOUT,
            )
        except DeployerError as exc:
            raise TransferError(
                f"{actionable_error('transfer_failed', destination=destination)}\n{exc}"
            ) from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = actionable_error("transfer_failed", destination=destination)
            raise TransferError(f"{message}\n{stderr}" if stderr else message)

        self.logger.info("File transfer successful to %s", remote_dir)
        self.console.print("[green]File transfer complete.[/green]")
