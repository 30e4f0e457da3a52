"""Subprocess execution service for AppDeployer."""

import os
import subprocess
import threading
from typing import Callable, Dict, List, Optional

from appdeployer.errors import DeployerError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
        extra_env: Optional[Dict[str, str]] = None,
        log_command: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = log_command or " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        env = None
        if extra_env:
            env = dict(os.environ)
            env.update(extra_env)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise DeployerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise DeployerError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise DeployerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise DeployerError(message)

        self.logger.debug(message)
        return result

    def stream(
        self,
        cmd: List[str],
        on_line: Callable[[str], None],
        timeout: Optional[float] = None,
        extra_env: Optional[Dict[str, str]] = None,
        log_command: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run ``cmd`` and hand each output line to ``on_line`` as it arrives.

        stderr is merged into stdout. The collected output is returned in
        ``stdout``; a non-zero exit status is returned, not raised.
        """
        cmd_str = log_command or " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        env = None
        if extra_env:
            env = dict(os.environ)
            env.update(extra_env)

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                env=env,
            )
        except FileNotFoundError as exc:
            raise DeployerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except OSError as exc:
            raise DeployerError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        expired = threading.Event()

        def _expire():
            expired.set()
            process.kill()

        timer = threading.Timer(effective_timeout, _expire) if effective_timeout else None
        lines: List[str] = []
        with process:
            if timer:
                timer.start()
            try:
                for line in process.stdout:
                    cleaned = line.rstrip()
                    lines.append(cleaned)
                    if cleaned:
                        on_line(cleaned)
                process.wait()
            except BaseException:
                process.kill()
                raise
            finally:
                if timer:
                    timer.cancel()

        if expired.is_set():
            raise DeployerError(f"Command timed out after {effective_timeout}s: {cmd_str}")

        output = "\n".join(lines)
        if process.returncode != 0:
            self.logger.debug("Command failed (%s): %s", process.returncode, cmd_str)
        return subprocess.CompletedProcess(cmd, process.returncode, stdout=output, stderr="")
