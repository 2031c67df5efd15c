"""Debug command - deploy and repair until the project deploys."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_graph import End

from archline.core.errors import FatalError
from archline.core.log import logger


class DebugCommand(BaseModel):
    """Deploy a CDK project, asking a model to fix each failure.

    Runs build, synth and deploy. When a step fails the relevant
    project files and the error output are sent to the model, the
    returned files are written back, and the deploy is retried until
    it succeeds or max-attempts is reached.
    """

    model_config = ConfigDict(populate_by_name=True)

    project: Path | None = Field(
        default=None,
        description="CDK project directory (default: config.project.dir)",
    )
    diagram: Path | None = Field(
        default=None,
        description="PlantUML diagram the project was generated from",
    )
    profile: str | None = Field(
        default=None,
        description="AWS profile to deploy with",
    )
    region: str | None = Field(
        default=None,
        description="AWS region to deploy to",
    )
    max_attempts: int | None = Field(
        default=None,
        alias="max-attempts",
        ge=1,
        description="Maximum number of deploy attempts",
    )

    def apply(self, state: "State") -> None:
        """Copy flags given on the command line into config."""
        config = state.config
        if self.project is not None:
            config.project.dir = self.project
        if self.diagram is not None:
            config.project.diagram = self.diagram
        if self.profile is not None:
            config.aws.profile = self.profile
        if self.region is not None:
            config.aws.region = self.region
        if self.max_attempts is not None:
            config.deploy.max_attempts = self.max_attempts

    async def run_workflow(self, state: "State") -> int:
        """Run the deploy-and-repair workflow.

        Args:
            state: State instance with config loaded and runtime initialized

        Returns:
            Exit code (0=deployed, 1=exhausted or fatal error)
        """
        self.apply(state)
        logger.info(
            f"Debugging CDK project at {state.config.project.dir}",
            max_attempts=state.config.deploy.max_attempts,
        )

        from archline.workflow.graph import create_workflow
        from archline.workflow.nodes.validate import Validate

        workflow = create_workflow()

        try:
            async with workflow.iter(Validate(), state=state) as run:
                async for node in run:
                    if isinstance(node, End):
                        return node.data
        except FatalError as e:
            logger.error(f"Error: {e}")
            return 1

        logger.error("Debug failed - workflow ended unexpectedly")
        return 1
