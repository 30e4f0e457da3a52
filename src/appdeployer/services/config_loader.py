"""Configuration loader for AppDeployer."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from appdeployer.errors import ParameterError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "repo_url",
        "token",
        "branch",
        "ssh_user",
        "host",
        "ssh_key",
        "app_port",
        "project_name",
        "workspace_root",
        "remote_base_dir",
        "server_name",
        "http_timeout",
        "log_dir",
        "verbose",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ParameterError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ParameterError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ParameterError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ParameterError(f"Unknown configuration keys: {unknown_list}")

        return parsed
