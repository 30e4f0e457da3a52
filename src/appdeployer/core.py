import logging
from typing import Callable, List, Optional

import requests
from rich.console import Console

from .constants import COMPOSE_FILES, REMOTE_UNIT_TIMEOUT, ExitCode
from .errors import DeployerError
from .models import (
    BuildDescriptor,
    DeploymentConfig,
    ProjectIdentity,
    RunResult,
    SshTarget,
    Stage,
    remote_path,
)
from .services.command_runner import CommandRunner
from .services.container_deployer import ContainerDeployerService
from .services.external_validation import ExternalValidationService
from .services.file_transfer import FileTransferService
from .services.filesystem import FileSystemService
from .services.provisioner import ProvisionerService
from .services.proxy import ProxyConfiguratorService, ProxyRule
from .services.remote_script import RemoteScript, raise_for_remote_exit
from .services.source_control import SourceControlService, TokenAuth
from .services.ssh_transport import SshTransport
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("appdeployer")


class AppDeployer:
    PIPELINE = (
        Stage.PARAM_VALIDATION,
        Stage.LOCAL_UPDATE,
        Stage.LOCAL_CHECKOUT,
        Stage.FILE_VERIFICATION,
        Stage.CONNECTIVITY_CHECK,
        Stage.TRANSFER,
        Stage.REMOTE_EXECUTION,
        Stage.EXTERNAL_VALIDATION,
    )

    def __init__(self, config: DeploymentConfig, dry_run: bool = False):
        self.config = config
        self.dry_run = dry_run

        self.identity: Optional[ProjectIdentity] = None
        self.workspace: Optional[str] = None
        self.remote_dir: Optional[str] = None
        self.descriptor: Optional[BuildDescriptor] = None
        self.current_stage: Optional[Stage] = None
        self.result: Optional[RunResult] = None

        self.auth = TokenAuth(config.token)
        self.target = SshTarget(user=config.ssh_user, host=config.host, key_path=config.ssh_key)

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.validation_service = ValidationService()
        self.source_control_service = SourceControlService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
            filesystem_service=self.filesystem_service,
        )
        self.ssh_transport = SshTransport(
            target=self.target,
            run_cmd=self._run_cmd,
            logger=logger,
            stream_cmd=self.command_runner.stream,
        )
        self.file_transfer_service = FileTransferService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
        )
        self.provisioner_service = ProvisionerService()
        self.container_deployer_service = ContainerDeployerService()
        self.proxy_service = ProxyConfiguratorService()
        self.external_validation_service = ExternalValidationService(
            logger=logger,
            console=console,
            requests_module=requests,
        )

    def _run_step(self, stage: Stage, callback: Callable, *args, **kwargs):
        self.current_stage = stage
        logger.info("Stage '%s' started.", stage.label)
        result = callback(*args, **kwargs)
        logger.debug("Stage '%s' completed.", stage.label)
        self.current_stage = None
        return result

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def validate_parameters(self) -> ProjectIdentity:
        self.identity = self.validation_service.validate_deployment_config(self.config)
        self.workspace = self.source_control_service.workspace_path(
            self.config.workspace_root, self.identity
        )
        self.remote_dir = remote_path(self.config.remote_base_dir, self.identity)
        logger.debug("Resolved configuration: %r", self.config)
        logger.info(
            "Project '%s': workspace %s, remote path %s",
            self.identity.name,
            self.workspace,
            self.remote_dir,
        )
        return self.identity

    def select_sync_stage(self) -> Stage:
        if self.source_control_service.workspace_exists(self.workspace):
            return Stage.LOCAL_UPDATE
        return Stage.LOCAL_CHECKOUT

    def sync_repository(self, stage: Stage):
        if stage is Stage.LOCAL_UPDATE:
            self.source_control_service.update(self.config.branch, self.workspace, self.auth)
        else:
            self.source_control_service.checkout(
                self.config.repo_url,
                self.config.branch,
                self.workspace,
                self.auth,
            )

    def verify_build_descriptor(self) -> BuildDescriptor:
        self.descriptor = self.validation_service.verify_build_descriptor(self.workspace)
        if self.descriptor.uses_compose:
            logger.info("Using compose file %s", self.descriptor.compose_file)
        else:
            logger.info("No compose file found; deploying the Dockerfile as a single container.")
        return self.descriptor

    def check_connectivity(self):
        self.ssh_transport.probe()

    def transfer_files(self):
        self.file_transfer_service.transfer(self.target, self.workspace, self.remote_dir)

    def build_proxy_rule(self) -> ProxyRule:
        return ProxyRule(
            identity=self.identity,
            app_port=self.config.app_port,
            server_name=self.config.server_name,
        )

    def build_remote_script(self) -> RemoteScript:
        descriptor = self.descriptor or BuildDescriptor(compose_file=COMPOSE_FILES[0])
        steps = self.provisioner_service.build_steps()
        steps += self.container_deployer_service.build_steps(
            self.identity,
            descriptor,
            self.remote_dir,
            self.config.app_port,
        )
        steps += self.proxy_service.build_steps(self.build_proxy_rule())
        steps.append(self.container_deployer_service.validation_step(self.identity, descriptor))
        return RemoteScript(self.identity, steps)

    def execute_remote_unit(self):
        script = self.build_remote_script()
        console.print("[blue]Executing remote deployment commands...[/blue]")
        logger.info("Executing remote steps: %s", ", ".join(script.step_names))

        result = self.ssh_transport.execute(script.render(), timeout=REMOTE_UNIT_TIMEOUT)
        raise_for_remote_exit(result.returncode, result.stdout, self.identity)
        console.print("[green]Remote deployment completed.[/green]")

    def validate_external(self):
        self.external_validation_service.validate(self.config.host, self.config.http_timeout)

    def print_plan(self):
        console.print(f"[bold blue]Deployment plan for '{self.identity.name}'[/bold blue]")
        sync_stage = self.select_sync_stage()
        for stage in self.PIPELINE:
            if stage in (Stage.LOCAL_UPDATE, Stage.LOCAL_CHECKOUT) and stage is not sync_stage:
                continue
            console.print(f"  - {stage.label} (fails with exit code {int(stage.failure_code)})")
        console.print("[bold blue]Remote script[/bold blue] (assuming a compose file):")
        console.print(self.build_remote_script().render(), markup=False, highlight=False)

    def _finalize(self, result: RunResult) -> int:
        self.result = result
        if result.succeeded:
            logger.info("Deployment finished successfully.")
        else:
            stage_label = result.stage.label if result.stage else "run"
            logger.error(
                "Deployment failed at stage '%s' with exit code %s.",
                stage_label,
                int(result.exit_code),
            )
        logger.info("Script execution finished with exit code %s.", int(result.exit_code))
        return int(result.exit_code)

    def run(self) -> int:
        result = RunResult(ExitCode.UNEXPECTED_FAULT, message="Run did not complete.")

        try:
            logger.info("Starting deployment...")

            self._run_step(Stage.PARAM_VALIDATION, self.validate_parameters)

            if self.dry_run:
                self.print_plan()
                result = RunResult(ExitCode.SUCCESS, message="Dry run completed.")
                return int(result.exit_code)

            sync_stage = self.select_sync_stage()
            self._run_step(sync_stage, self.sync_repository, sync_stage)
            self._run_step(Stage.FILE_VERIFICATION, self.verify_build_descriptor)
            self._run_step(Stage.CONNECTIVITY_CHECK, self.check_connectivity)
            self._run_step(Stage.TRANSFER, self.transfer_files)
            self._run_step(Stage.REMOTE_EXECUTION, self.execute_remote_unit)
            self._run_step(Stage.EXTERNAL_VALIDATION, self.validate_external)

            console.print("[bold green]Deployment completed successfully.[/bold green]")
            result = RunResult(ExitCode.SUCCESS)
            return int(result.exit_code)

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.error("FATAL: Script interrupted by user.")
            result = RunResult(ExitCode.USER_INTERRUPT, self.current_stage, "Operation cancelled by user.")
            return int(result.exit_code)
        except DeployerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            stage = self.current_stage
            if exc.exit_code is not None:
                exit_code = exc.exit_code
            elif stage is not None:
                exit_code = stage.failure_code
            else:
                exit_code = ExitCode.UNEXPECTED_FAULT
            result = RunResult(exit_code, stage, str(exc))
            return int(result.exit_code)
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("FATAL: An unexpected error occurred.")
            result = RunResult(ExitCode.UNEXPECTED_FAULT, self.current_stage, str(exc))
            return int(result.exit_code)
        finally:
            self._finalize(result)
