"""Actionable error catalog for AppDeployer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_parameter": {
        "what": "Missing required parameter(s): {names}.",
        "next": "Provide them as options, in the config file, or at the prompt.",
    },
    "invalid_port": {
        "what": "Invalid port number '{value}'.",
        "next": "Enter a whole number between 1 and 65535.",
    },
    "pull_failed": {
        "what": "Failed to pull latest changes from branch {branch}.",
        "next": "Check the access token and branch name, or delete the local workspace {path}.",
    },
    "clone_failed": {
        "what": "Failed to clone repository {url}.",
        "next": "Check the repository URL, access token and branch name.",
    },
    "missing_build_descriptor": {
        "what": "Neither Dockerfile nor a compose file found in {path}.",
        "next": "Add a Dockerfile or docker-compose.yml to the repository root.",
    },
    "ssh_unreachable": {
        "what": "SSH connectivity check to {address} failed.",
        "next": "Check the host address, SSH user and private key path.",
    },
    "transfer_failed": {
        "what": "File transfer to {destination} failed.",
        "next": "Check that rsync is installed on both hosts and the remote user can write to {destination}.",
    },
    "remote_failed": {
        "what": "Remote deployment failed at step '{step}'.",
        "next": "Inspect {log_path} on the remote host.",
    },
    "external_validation_failed": {
        "what": "External validation of {url} failed: {reason}",
        "next": "Check that port 80 is open and Nginx proxies to the application port.",
    },
    "teardown_failed": {
        "what": "Remote cleanup of project '{name}' on {address} failed.",
        "next": "Check connectivity and passwordless sudo on the remote host.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
