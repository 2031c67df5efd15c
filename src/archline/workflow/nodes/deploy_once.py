"""DeployOnce node - bootstrap and deploy without the repair loop."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from archline.core.config import State
from archline.core.errors import CommandFailed
from archline.core.log import logger
from archline.deploy.executor import DeployExecutor
from archline.deploy.project import command_env, validate_project


@dataclass
class DeployOnce(BaseNode[State, None, int]):
    """Bootstrap the environment and deploy the selected stacks."""

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        """Run cdk bootstrap and cdk deploy.

        Returns:
            End[int]: 0 on success, 1 if a command failed
        """
        config = ctx.state.config
        deploy = ctx.state.runtime.deploy

        project_dir = validate_project(
            config.project.dir,
            ["package.json", *config.project.required_files],
        )
        executor = DeployExecutor(
            project_dir, config.deploy, command_env(config.aws)
        )

        deploy.status = "deploying"
        try:
            with logger.span("Bootstrapping CDK environment"):
                executor.bootstrap()
            target = deploy.stack or "all stacks"
            with logger.span(f"Deploying {target}"):
                result = executor.deploy(
                    stack=deploy.stack, all_stacks=deploy.stack is None
                )
        except CommandFailed as e:
            deploy.status = "failed"
            logger.error(f"Deployment failed: {e.error.message}")
            if e.error.stderr:
                logger.error(e.error.stderr)
            return End(1)

        deploy.status = "succeeded"
        logger.debug(f"Deployment output:\n{result.stdout}")
        logger.info("Deployment completed successfully!")

        exports = executor.list_exports()
        if exports:
            logger.info(f"Stack outputs:\n{exports}")
        return End(0)
