"""Container stack redeploy and health steps for AppDeployer."""

import shlex
from typing import List

from appdeployer.constants import REMOTE_EXIT_NO_CONTAINERS, REMOTE_EXIT_START_FAILED
from appdeployer.models import BuildDescriptor, ProjectIdentity
from appdeployer.services.remote_script import RemoteStep

_WAIT_FOR_CONTAINER = """
for _ in $(seq 1 {attempts}); do
    if [ "$(docker_cmd inspect -f '{{{{.State.Running}}}}' {name} 2>/dev/null)" = "true" ]; then
        break
    fi
    sleep 2
done
"""


def stop_stack_commands(identity: ProjectIdentity) -> str:
    """Remove both deployment forms; absent stacks are not an error."""
    stack = shlex.quote(identity.stack_name)
    return (
        f"docker_cmd compose -p {stack} down --remove-orphans > /dev/null 2>&1 || true\n"
        f"docker_cmd rm -f {stack} > /dev/null 2>&1 || true"
    )


class ContainerDeployerService:
    """Builds the stop-then-start steps for the project's container stack."""

    READY_ATTEMPTS = 30

    def build_steps(
        self,
        identity: ProjectIdentity,
        descriptor: BuildDescriptor,
        remote_dir: str,
        app_port: int,
    ) -> List[RemoteStep]:
        return [
            RemoteStep(
                "stop_existing_stack",
                'log_remote "Stopping and removing existing containers for idempotency..."\n'
                + stop_stack_commands(identity),
            ),
            self._start_step(identity, descriptor, remote_dir, app_port),
        ]

    def _start_step(
        self,
        identity: ProjectIdentity,
        descriptor: BuildDescriptor,
        remote_dir: str,
        app_port: int,
    ) -> RemoteStep:
        stack = shlex.quote(identity.stack_name)
        directory = shlex.quote(remote_dir)

        if descriptor.uses_compose:
            compose_file = shlex.quote(descriptor.compose_file)
            body = f"""
log_remote "Building and starting containers with Docker Compose..."
cd {directory}
docker_cmd compose -p {stack} -f {compose_file} up -d --build --wait \\
    || fail {REMOTE_EXIT_START_FAILED} "Container stack did not reach a ready state. Check 'docker compose -p {identity.stack_name} logs'."
"""
        else:
            image = shlex.quote(f"{identity.stack_name}:latest")
            body = f"""
log_remote "Building image and starting container..."
docker_cmd build -t {image} {directory} \\
    || fail {REMOTE_EXIT_START_FAILED} "Image build failed."
docker_cmd run -d --name {stack} --restart unless-stopped -p 127.0.0.1:{app_port}:{app_port} {image} > /dev/null \\
    || fail {REMOTE_EXIT_START_FAILED} "Container failed to start."
""" + _WAIT_FOR_CONTAINER.format(attempts=self.READY_ATTEMPTS, name=stack)

        return RemoteStep("start_stack", body)

    def validation_step(self, identity: ProjectIdentity, descriptor: BuildDescriptor) -> RemoteStep:
        stack = shlex.quote(identity.stack_name)
        if descriptor.uses_compose:
            count_cmd = f"docker_cmd compose -p {stack} ps --status running -q | wc -l"
        else:
            count_cmd = f'docker_cmd ps -q --filter "name=^{identity.stack_name}$" --filter status=running | wc -l'

        return RemoteStep(
            "check_running_containers",
            f"""
log_remote "Validation: checking container health..."
RUNNING_COUNT="$({count_cmd})" || RUNNING_COUNT=0
if [ "$RUNNING_COUNT" -lt 1 ]; then
    fail {REMOTE_EXIT_NO_CONTAINERS} "Validation FAILED: no containers are running."
fi
log_remote "Validation SUCCESS: $RUNNING_COUNT container(s) running."
""",
        )
