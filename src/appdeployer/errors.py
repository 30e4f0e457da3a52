"""Domain errors for AppDeployer."""

from typing import Optional


class DeployerError(RuntimeError):
    """Raised when the deployment cannot continue safely.

    ``exit_code`` is only set for failures that carry their own stable code;
    otherwise the pipeline driver uses the failing stage's code.
    """

    exit_code: Optional[int] = None

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ParameterError(DeployerError):
    """A required parameter is missing or invalid."""


class SourceControlError(DeployerError):
    """Clone or pull failed (authentication, branch resolution, network)."""


class ValidationError(DeployerError):
    """The workspace has no recognized build descriptor."""


class ConnectivityError(DeployerError):
    """The remote host cannot be reached or rejected the credentials."""


class TransferError(DeployerError):
    """Syncing the workspace to the remote host failed."""


class RemoteExecutionError(DeployerError):
    """The remote execution unit failed."""


class PrivilegeError(RemoteExecutionError):
    """Passwordless sudo is not available on the remote host."""


class ProxyConfigError(RemoteExecutionError):
    """The generated proxy rule did not pass ``nginx -t``."""


class DeploymentHealthError(RemoteExecutionError):
    """The container stack did not start or has no running containers."""


class ExternalValidationError(DeployerError):
    """The application is not reachable through the public proxy port."""


class TeardownError(DeployerError):
    """The teardown script could not be executed on the remote host."""
