"""Shared constants for AppDeployer."""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    UNEXPECTED_FAULT = 10
    USER_INTERRUPT = 11
    TEARDOWN_FAILED = 12
    MISSING_PARAMETER = 20
    LOCAL_UPDATE_FAILED = 21
    LOCAL_CHECKOUT_FAILED = 22
    MISSING_BUILD_DESCRIPTOR = 23
    CONNECTIVITY_FAILED = 24
    TRANSFER_FAILED = 25
    PROXY_VALIDATION_FAILED = 31
    NO_RUNNING_CONTAINERS = 32
    REMOTE_EXECUTION_FAILED = 33
    EXTERNAL_VALIDATION_FAILED = 40


# Exit statuses used inside the remote script. Only 31 and 32 are surfaced
# as-is; the rest collapse to REMOTE_EXECUTION_FAILED on the controller.
REMOTE_EXIT_PRIVILEGE = 30
REMOTE_EXIT_PROXY_INVALID = 31
REMOTE_EXIT_NO_CONTAINERS = 32
REMOTE_EXIT_START_FAILED = 34
SSH_CHANNEL_FAILURE = 255

DEFAULT_BRANCH = "main"
DEFAULT_REMOTE_BASE_DIR = "/opt/app"
DEFAULT_SERVER_NAME = "_"
DEFAULT_HTTP_TIMEOUT = 15.0
PROXY_CONF_DIR = "/etc/nginx/conf.d"
NGINX_DEFAULT_SITE = "/etc/nginx/sites-enabled/default"
REMOTE_LOG_TEMPLATE = "/tmp/deploy_{name}.log"
LOG_FILE_TEMPLATE = "deploy_{timestamp}.log"
DEFAULT_CONFIG_FILE = ".appdeployer.yml"
TOKEN_ENV_VAR = "APPDEPLOYER_TOKEN"

SSH_CONNECT_TIMEOUT = 5
SSH_PROBE_TIMEOUT = 30.0
TRANSFER_TIMEOUT = 1800.0
REMOTE_UNIT_TIMEOUT = 3600.0

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")
DOCKERFILE = "Dockerfile"
BASE_PACKAGES = ("ca-certificates", "curl", "gnupg", "lsb-release", "nginx", "rsync")
TRANSFER_EXCLUDES = (".git",)
