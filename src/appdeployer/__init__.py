"""
AppDeployer - idempotent Git-to-Docker deployment over SSH
"""

__version__ = "0.1.0"

from .core import AppDeployer
from .errors import DeployerError
from .teardown import ProjectTeardown

__all__ = ["AppDeployer", "DeployerError", "ProjectTeardown"]
