"""Presence-guarded provisioning of Docker, Compose and Nginx on the target."""

import shlex
from typing import List

from appdeployer.constants import BASE_PACKAGES, NGINX_DEFAULT_SITE, REMOTE_EXIT_PRIVILEGE
from appdeployer.services.remote_script import RemoteStep


def privilege_check_step() -> RemoteStep:
    return RemoteStep(
        "check_privileges",
        f"""
if ! sudo -n true 2>/dev/null; then
    fail {REMOTE_EXIT_PRIVILEGE} "Cannot gain root privileges without a password. Aborting."
fi
""",
    )


class ProvisionerService:
    """Builds the remote steps that bring a fresh host to a deployable state.

    Every step checks before it changes anything, so re-running against an
    already provisioned host only refreshes the package index.
    """

    DOCKER_KEYRING = "/usr/share/keyrings/docker-archive-keyring.gpg"
    DOCKER_SOURCES_LIST = "/etc/apt/sources.list.d/docker.list"
    DEFAULT_SITE = NGINX_DEFAULT_SITE

    def build_steps(self) -> List[RemoteStep]:
        return [
            privilege_check_step(),
            RemoteStep("refresh_package_index", "apt_get update -y -q"),
            RemoteStep(
                "install_base_packages",
                f"apt_get install -y -q {' '.join(BASE_PACKAGES)}",
            ),
            self._default_site_step(),
            self._container_engine_step(),
            RemoteStep(
                "install_compose_plugin",
                """
if ! docker_cmd compose version > /dev/null 2>&1; then
    log_remote "Installing Docker Compose plugin..."
    apt_get install -y -q docker-compose-plugin
    log_remote "Docker Compose installed."
fi
""",
            ),
            RemoteStep(
                "ensure_docker_group",
                """
REMOTE_USER="$(id -un)"
if ! id -nG "$REMOTE_USER" | grep -qw docker; then
    log_remote "Adding user $REMOTE_USER to the docker group..."
    sudo -n usermod -aG docker "$REMOTE_USER"
fi
""",
            ),
            RemoteStep(
                "enable_services",
                """
log_remote "Ensuring Docker and Nginx services are enabled and running..."
sudo -n systemctl enable --now docker nginx
""",
            ),
        ]

    def _default_site_step(self) -> RemoteStep:
        # The packaged site claims default_server on port 80 and would answer
        # every request the project rules do not match by name.
        site = shlex.quote(self.DEFAULT_SITE)
        return RemoteStep(
            "disable_default_site",
            f"""
if [ -e {site} ] || [ -L {site} ]; then
    log_remote "Disabling the packaged Nginx default site..."
    sudo -n rm -f {site}
fi
""",
        )

    def _container_engine_step(self) -> RemoteStep:
        return RemoteStep(
            "install_container_engine",
            f"""
if ! command -v docker > /dev/null 2>&1; then
    log_remote "Installing Docker..."
    DISTRO_ID="$(. /etc/os-release; echo "$ID")"
    if [ ! -f {self.DOCKER_KEYRING} ]; then
        curl -fsSL "https://download.docker.com/linux/$DISTRO_ID/gpg" \\
            | sudo -n gpg --dearmor -o {self.DOCKER_KEYRING}
    fi
    echo "deb [arch=$(dpkg --print-architecture) signed-by={self.DOCKER_KEYRING}] https://download.docker.com/linux/$DISTRO_ID $(lsb_release -cs) stable" \\
        | sudo -n tee {self.DOCKER_SOURCES_LIST} > /dev/null
    apt_get update -y -q
    apt_get install -y -q docker-ce docker-ce-cli containerd.io
    log_remote "Docker installed."
fi
""",
        )
