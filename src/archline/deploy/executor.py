"""Build, synthesize and deploy a CDK project."""

from pathlib import Path

from archline.core.config import DeployConfig
from archline.core.errors import CommandFailed
from archline.core.log import logger
from archline.core.result import CommandResult, DeployResult, ErrorRecord
from archline.core.runner import Runner
from archline.deploy.overwrite import has_overwrite_conflict


class DeployExecutor:
    """Run the project's external toolchain commands.

    Every command runs with the project as its working directory; the
    process's own working directory is never changed.
    """

    def __init__(
        self,
        workdir: Path,
        config: DeployConfig | None = None,
        env: dict[str, str] | None = None,
    ):
        """Initialize deploy executor.

        Args:
            workdir: CDK project directory
            config: Command lines and limits
            env: Environment overrides (AWS_PROFILE, AWS_REGION)
        """
        self.workdir = workdir
        self.config = config or DeployConfig()
        self.env = env or {}
        self.runner = Runner()

    def run(self, command: str, check: bool = True) -> CommandResult:
        """Run one command in the project.

        Raises:
            CommandFailed: If check is True and the command exits
                non-zero
        """
        result = self.runner.capture(
            command,
            cwd=self.workdir,
            env=self.env,
            timeout=self.config.timeout,
        )
        if check and not result.success:
            raise CommandFailed(result.to_error())
        return result

    def build(self) -> CommandResult:
        """Compile the project, forcing a rebuild on overwrite errors."""
        result = self.run(self.config.build_command, check=False)
        if result.success:
            return result
        if has_overwrite_conflict(result.stderr):
            logger.warning(
                "Build failed due to overwrite protection. "
                "Trying with forced overwrite..."
            )
            return self.run(self.config.force_build_command)
        raise CommandFailed(result.to_error())

    def synth(self) -> CommandResult:
        return self.run(self.config.synth_command)

    def deploy(self, stack: str | None = None, all_stacks: bool = False) -> CommandResult:
        command = self.config.deploy_command
        if stack:
            command = f"{command} {stack}"
        elif all_stacks:
            command = f"{command} --all"
        return self.run(command)

    def bootstrap(self) -> CommandResult:
        return self.run(self.config.bootstrap_command)

    def list_exports(self) -> str | None:
        """Stack exports, or None when they cannot be listed."""
        result = self.run(self.config.list_exports_command, check=False)
        return result.stdout if result.success else None

    def run_pipeline(self) -> DeployResult:
        """Build, synth and deploy, stopping at the first failure.

        Returns:
            DeployResult carrying the ErrorRecord of the failed step
        """
        try:
            with logger.span("Deploying CDK project"):
                self.build()
                self.synth()
                logger.info("Synthesized successfully, now deploying...")
                result = self.deploy()
        except CommandFailed as e:
            return DeployResult(success=False, error=e.error)
        return DeployResult(success=True, output=result.stdout)

    def write_error_log(self, attempt: int, error: ErrorRecord) -> Path:
        """Save the failed attempt's output to the project directory."""
        log_file = self.workdir / self.config.error_log_template.format(
            attempt=attempt
        )
        log_file.write_text(
            f"STDOUT:\n{error.stdout}\n\nSTDERR:\n{error.stderr}",
            encoding="utf-8",
        )
        return log_file
