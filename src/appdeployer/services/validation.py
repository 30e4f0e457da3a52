"""Input and workspace validation helpers for AppDeployer."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from appdeployer.constants import COMPOSE_FILES, DOCKERFILE
from appdeployer.errors import ParameterError, ValidationError
from appdeployer.errors_catalog import actionable_error
from appdeployer.models import BuildDescriptor, DeploymentConfig, ProjectIdentity

_PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ValidationService:
    """Validates deployment parameters and the local workspace."""

    REQUIRED_FIELDS = ("repo_url", "token", "ssh_user", "host", "ssh_key")

    @staticmethod
    def parse_port(value: Any) -> int:
        if isinstance(value, bool):
            raise ParameterError(actionable_error("invalid_port", value=str(value)))

        text = str(value).strip() if value is not None else ""
        if not (text.isascii() and text.isdigit()):
            raise ParameterError(actionable_error("invalid_port", value=text))

        port = int(text)
        if not 1 <= port <= 65535:
            raise ParameterError(actionable_error("invalid_port", value=text))
        return port

    def require_parameters(self, values: Dict[str, Any], required=None):
        required = required or self.REQUIRED_FIELDS
        missing = [
            name for name in required if values.get(name) is None or not str(values[name]).strip()
        ]
        if missing:
            raise ParameterError(actionable_error("missing_parameter", names=", ".join(missing)))

    def validate_ssh_key(self, key_path: str):
        if not Path(os.path.expanduser(key_path)).is_file():
            raise ParameterError(f"SSH private key not found: {key_path}")

    def validate_deployment_config(self, config: DeploymentConfig) -> ProjectIdentity:
        self.require_parameters(
            {name: getattr(config, name) for name in self.REQUIRED_FIELDS}
        )
        self.parse_port(config.app_port)
        if not config.branch or not config.branch.strip():
            raise ParameterError(actionable_error("missing_parameter", names="branch"))
        self.validate_ssh_key(config.ssh_key)
        self.validate_server_name(config.server_name)
        return self.derive_project_identity(config.repo_url)

    @staticmethod
    def validate_server_name(server_name: str):
        # The rule is written through a heredoc; a line break would end it early.
        if not server_name or not server_name.strip() or not server_name.isprintable():
            raise ParameterError(f"Invalid server name {server_name!r}.")

    def derive_project_identity(self, repo_url: str) -> ProjectIdentity:
        path = urlparse(repo_url).path if "://" in repo_url else repo_url.split(":")[-1]
        name = path.rstrip("/").rsplit("/", 1)[-1]
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return ProjectIdentity(name=self.validate_project_name(name))

    @staticmethod
    def validate_project_name(name: Optional[str]) -> str:
        clean = (name or "").strip()
        if not clean or clean in {".", ".."} or not _PROJECT_NAME_PATTERN.match(clean):
            raise ParameterError(
                f"Invalid project name '{clean}'. Use letters, digits, '.', '_' or '-' only."
            )
        return clean

    def verify_build_descriptor(self, workspace: str) -> BuildDescriptor:
        root = Path(workspace)
        compose_file = next((name for name in COMPOSE_FILES if (root / name).is_file()), None)
        has_dockerfile = (root / DOCKERFILE).is_file()

        if compose_file is None and not has_dockerfile:
            raise ValidationError(actionable_error("missing_build_descriptor", path=workspace))

        return BuildDescriptor(compose_file=compose_file, has_dockerfile=has_dockerfile)
