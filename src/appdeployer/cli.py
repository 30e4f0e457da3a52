import logging
import os
from datetime import datetime

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_BRANCH,
    DEFAULT_CONFIG_FILE,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_REMOTE_BASE_DIR,
    DEFAULT_SERVER_NAME,
    LOG_FILE_TEMPLATE,
    TOKEN_ENV_VAR,
    ExitCode,
)
from .core import AppDeployer
from .errors import DeployerError, ParameterError
from .models import DeploymentConfig, TeardownConfig
from .redact import SecretRedactingFilter, secret_variants
from .services.config_loader import ConfigLoader
from .services.validation import ValidationService
from .teardown import ProjectTeardown

redacting_filter = SecretRedactingFilter()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(redacting_filter)

logger = logging.getLogger("appdeployer")

DEPLOYMENT_KEYS = ("repo_url", "token", "ssh_user", "host", "ssh_key", "app_port")


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _resolve_or_prompt(cli_value, config, key, prompt_text, default="", hide_input=False):
    value = _resolve_option(cli_value, config, key)
    if value is not None:
        return str(value)
    return click.prompt(
        prompt_text,
        default=default,
        show_default=bool(default),
        hide_input=hide_input,
    )


def _port_value_proc(value):
    try:
        return ValidationService.parse_port(value)
    except ParameterError as exc:
        raise click.BadParameter(str(exc)) from exc


def _resolve_port(cli_value, config):
    value = _resolve_option(cli_value, config, "app_port")
    if value is not None:
        return ValidationService.parse_port(value)
    return click.prompt("Enter Internal Container Port (e.g., 8080)", value_proc=_port_value_proc)


def _configure_log_file(log_dir: str, verbose: bool) -> logging.FileHandler:
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(log_dir, LOG_FILE_TEMPLATE.format(timestamp=timestamp))

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    file_handler.addFilter(redacting_filter)
    logger.addHandler(file_handler)
    return file_handler


def _is_interactive(options, config_values) -> bool:
    """True when no deployment value came from an option, the environment or the config."""
    return all(
        _resolve_option(options[key], config_values, key) is None for key in DEPLOYMENT_KEYS
    )


def _collect_deployment_config(options, config_values) -> DeploymentConfig:
    interactive = _is_interactive(options, config_values)

    repo_url = _resolve_or_prompt(
        options["repo_url"],
        config_values,
        "repo_url",
        "Enter Git Repository URL (e.g., https://github.com/user/repo.git)",
    )
    token = _resolve_or_prompt(
        options["token"],
        config_values,
        "token",
        "Enter Git Personal Access Token (PAT)",
        hide_input=True,
    )
    redacting_filter.add_secrets(secret_variants(token))

    if interactive:
        branch = _resolve_or_prompt(
            options["branch"],
            config_values,
            "branch",
            "Enter Branch name",
            default=DEFAULT_BRANCH,
        )
    else:
        branch = str(
            _resolve_option(options["branch"], config_values, "branch", default=DEFAULT_BRANCH)
        )
    ssh_user = _resolve_or_prompt(
        options["ssh_user"], config_values, "ssh_user", "Enter Remote SSH Username"
    )
    host = _resolve_or_prompt(options["host"], config_values, "host", "Enter Remote Server IP")
    ssh_key = _resolve_or_prompt(
        options["ssh_key"], config_values, "ssh_key", "Enter Path to SSH Private Key"
    )
    app_port = _resolve_port(options["app_port"], config_values)

    return DeploymentConfig(
        repo_url=repo_url.strip(),
        token=token.strip(),
        branch=branch.strip() or DEFAULT_BRANCH,
        ssh_user=ssh_user.strip(),
        host=host.strip(),
        ssh_key=ssh_key.strip(),
        app_port=app_port,
        workspace_root=str(
            _resolve_option(options["workspace_root"], config_values, "workspace_root", default=".")
        ),
        remote_base_dir=str(
            _resolve_option(
                options["remote_base_dir"],
                config_values,
                "remote_base_dir",
                default=DEFAULT_REMOTE_BASE_DIR,
            )
        ),
        server_name=str(
            _resolve_option(
                options["server_name"], config_values, "server_name", default=DEFAULT_SERVER_NAME
            )
        ),
        http_timeout=_resolve_timeout(options["http_timeout"], config_values),
    )


def _resolve_timeout(cli_value, config) -> float:
    value = _resolve_option(cli_value, config, "http_timeout", default=DEFAULT_HTTP_TIMEOUT)
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ParameterError(f"Invalid HTTP timeout '{value}'.") from exc
    if timeout <= 0:
        raise ParameterError(f"Invalid HTTP timeout '{value}'.")
    return timeout


def _collect_teardown_config(options, config_values) -> TeardownConfig:
    ssh_user = _resolve_or_prompt(
        options["ssh_user"], config_values, "ssh_user", "Enter Remote SSH Username"
    )
    host = _resolve_or_prompt(options["host"], config_values, "host", "Enter Remote Server IP")
    ssh_key = _resolve_or_prompt(
        options["ssh_key"], config_values, "ssh_key", "Enter Path to SSH Private Key"
    )
    project_name = _resolve_or_prompt(
        options["project_name"],
        config_values,
        "project_name",
        "Enter Project Name (must match deployment name)",
    )
    ValidationService().require_parameters(
        {"ssh_user": ssh_user, "host": host, "ssh_key": ssh_key, "project_name": project_name},
        required=("ssh_user", "host", "ssh_key", "project_name"),
    )

    return TeardownConfig(
        ssh_user=ssh_user.strip(),
        host=host.strip(),
        ssh_key=ssh_key.strip(),
        project_name=project_name.strip(),
        remote_base_dir=str(
            _resolve_option(
                options["remote_base_dir"],
                config_values,
                "remote_base_dir",
                default=DEFAULT_REMOTE_BASE_DIR,
            )
        ),
    )


@click.command()
@click.option(
    "--cleanup",
    is_flag=True,
    default=False,
    help="Remove a deployed project (containers, proxy rule, remote files) instead of deploying.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--repo-url", required=False, help="HTTPS URL of the Git repository.")
@click.option(
    "--token",
    required=False,
    envvar=TOKEN_ENV_VAR,
    help=f"Git personal access token (or set {TOKEN_ENV_VAR}).",
)
@click.option("--branch", required=False, help=f"Branch to deploy (default: {DEFAULT_BRANCH}).")
@click.option("--ssh-user", required=False, help="SSH username on the remote host.")
@click.option("--host", required=False, help="Remote host address.")
@click.option("--ssh-key", required=False, type=click.Path(), help="Path to the SSH private key.")
@click.option("--app-port", required=False, help="Internal container port (1-65535).")
@click.option(
    "--project-name",
    required=False,
    help="Project name to remove (cleanup mode only).",
)
@click.option(
    "--workspace-root",
    required=False,
    type=click.Path(),
    help="Directory holding local project checkouts (default: current directory).",
)
@click.option(
    "--remote-base-dir",
    required=False,
    help=f"Base directory for projects on the remote host (default: {DEFAULT_REMOTE_BASE_DIR}).",
)
@click.option(
    "--server-name",
    required=False,
    help=f"Nginx server_name for the proxy rule (default: {DEFAULT_SERVER_NAME}).",
)
@click.option(
    "--http-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for the external HTTP check.",
)
@click.option(
    "--log-dir",
    required=False,
    type=click.Path(),
    help="Directory for the timestamped run log (default: current directory).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Validate parameters and print the deployment plan without touching Git, SSH or HTTP.",
)
def main(cleanup, config, verbose, log_dir, dry_run, **options):
    """Deploy a containerized application from Git to a remote host over SSH."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path
        config_values = ConfigLoader().load(resolved_config)
    except DeployerError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(int(ExitCode.MISSING_PARAMETER)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_dir = str(_resolve_option(log_dir, config_values, "log_dir", default=os.getcwd()))

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    file_handler = _configure_log_file(log_dir, verbose)
    logger.info("Starting appdeployer. Log file: %s", file_handler.baseFilename)

    try:
        exit_code = _execute(cleanup, dry_run, options, config_values)
    finally:
        logger.removeHandler(file_handler)
        file_handler.close()

    raise SystemExit(exit_code)


def _execute(cleanup, dry_run, options, config_values) -> int:
    try:
        if cleanup:
            teardown_config = _collect_teardown_config(options, config_values)
        else:
            deployment_config = _collect_deployment_config(options, config_values)
    except click.exceptions.Abort as exc:
        # click reports both Ctrl+C and end of input as Abort.
        if isinstance(exc.__context__, EOFError):
            logger.error("Input ended before all required parameters were provided.")
            logger.info(
                "Script execution finished with exit code %s.", int(ExitCode.MISSING_PARAMETER)
            )
            return int(ExitCode.MISSING_PARAMETER)
        logger.error("FATAL: Script interrupted by user.")
        logger.info("Script execution finished with exit code %s.", int(ExitCode.USER_INTERRUPT))
        return int(ExitCode.USER_INTERRUPT)
    except DeployerError as exc:
        logger.error(str(exc))
        logger.info("Script execution finished with exit code %s.", int(ExitCode.MISSING_PARAMETER))
        return int(ExitCode.MISSING_PARAMETER)

    if cleanup:
        return ProjectTeardown(teardown_config).run()

    return AppDeployer(deployment_config, dry_run=dry_run).run()


if __name__ == "__main__":
    main()
