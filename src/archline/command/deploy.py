"""Deploy command - bootstrap and deploy without repairs."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_graph import End
from rich.prompt import Confirm

from archline.core.errors import FatalError
from archline.core.log import logger


class DeployCommand(BaseModel):
    """Bootstrap the AWS environment and deploy a CDK project once.

    Deploys every stack unless --stack names one. Stack outputs are
    printed after a successful deploy.
    """

    project: Path | None = Field(
        default=None,
        description="CDK project directory (default: config.project.dir)",
    )
    profile: str | None = Field(default=None, description="AWS profile")
    region: str | None = Field(default=None, description="AWS region")
    stack: str | None = Field(
        default=None,
        description="Deploy only this stack (default: all stacks)",
    )
    yes: bool = Field(
        default=False,
        description="Skip the confirmation prompt",
    )

    def confirm(self, state: "State") -> bool:
        """Ask before touching the AWS account unless --yes was given."""
        if self.yes:
            return True
        target = self.stack or "all stacks"
        return Confirm.ask(
            f"Deploy {target} from {state.config.project.dir} "
            f"to {state.config.aws.region}?",
            default=False,
        )

    async def run_workflow(self, state: "State") -> int:
        """Run the single deploy.

        Args:
            state: State instance

        Returns:
            Exit code (0=success, 1=failure or cancelled)
        """
        if self.project is not None:
            state.config.project.dir = self.project
        if self.profile is not None:
            state.config.aws.profile = self.profile
        if self.region is not None:
            state.config.aws.region = self.region
        state.runtime.deploy.stack = self.stack

        if not self.confirm(state):
            logger.info("Deployment cancelled")
            return 1

        from archline.workflow.graph import create_deploy_workflow
        from archline.workflow.nodes.deploy_once import DeployOnce

        workflow = create_deploy_workflow()

        try:
            async with workflow.iter(DeployOnce(), state=state) as run:
                async for node in run:
                    if isinstance(node, End):
                        return node.data
        except FatalError as e:
            logger.error(f"Error: {e}")
            return 1

        return 1
