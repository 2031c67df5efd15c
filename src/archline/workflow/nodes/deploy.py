"""Deploy node - run build, synth and deploy once."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from archline.core.config import State
from archline.core.log import logger


@dataclass
class Deploy(BaseNode[State]):
    """Run the deploy pipeline and route on the result."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> "Fix | Finalize":
        """Deploy and decide whether to fix, retry or stop.

        Returns:
            Finalize: On success, or when attempts are exhausted
            Fix: On failure with attempts remaining
        """
        debug = ctx.state.runtime.debug
        max_attempts = ctx.state.config.deploy.max_attempts

        debug.attempt += 1
        debug.status = "deploying"
        logger.info(
            f"Attempt {debug.attempt}/{max_attempts} to deploy CDK project"
        )

        result = debug.executor.run_pipeline()

        from archline.workflow.nodes.finalize import Finalize

        if result.success:
            debug.status = "succeeded"
            debug.deploy_output = result.output
            logger.info("Deployment successful!")
            logger.debug(f"Deployment output:\n{result.output}")
            return Finalize()

        debug.last_error = result.error
        logger.error(
            "Deployment failed",
            message=result.error.message,
            stderr=result.error.stderr[-2000:],
        )
        try:
            log_file = debug.executor.write_error_log(
                debug.attempt, result.error
            )
            logger.warning(f"Error details saved to: {log_file}")
        except OSError as e:
            logger.warning(f"Could not save deployment error log: {e}")

        if debug.attempt < max_attempts:
            logger.info("Will attempt fix and retry deployment...")
            from archline.workflow.nodes.fix import Fix
            return Fix()

        debug.status = "exhausted"
        return Finalize()
