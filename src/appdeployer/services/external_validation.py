"""HTTP reachability check run from the controller after the remote unit."""

import requests

from appdeployer.errors import ExternalValidationError
from appdeployer.errors_catalog import actionable_error


class ExternalValidationService:
    """Requests the public port 80 of the target and expects a 2xx/3xx."""

    def __init__(self, logger, console, requests_module=requests):
        self.logger = logger
        self.console = console
        self.requests = requests_module

    @staticmethod
    def build_url(host: str) -> str:
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"http://{host}/"

    def validate(self, host: str, timeout: float):
        url = self.build_url(host)
        self.console.print(f"[blue]External validation: requesting {url}...[/blue]")
        self.logger.info("External validation: testing application access via Nginx at %s", url)

        try:
            response = self.requests.get(url, timeout=timeout, allow_redirects=True)
            response.raise_for_status()
        except self.requests.RequestException as exc:
            raise ExternalValidationError(
                actionable_error("external_validation_failed", url=url, reason=str(exc))
            ) from exc

        self.logger.info("Deployment fully validated. Application is accessible at %s", url)
        self.console.print(f"[green]Application is accessible at {url}[/green]")
