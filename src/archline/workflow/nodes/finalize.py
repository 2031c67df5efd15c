"""Finalize node - save history and report the result."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from archline.core.config import State
from archline.core.log import logger
from archline.state.attempt import save_history


@dataclass
class Finalize(BaseNode[State, None, int]):
    """Persist fix history and end the loop with an exit code."""

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        """Write fix-history.json and report.

        Returns:
            End[int]: 0 if the last deploy succeeded, 1 otherwise
        """
        config = ctx.state.config
        debug = ctx.state.runtime.debug
        succeeded = debug.status == "succeeded"

        if debug.history:
            path = config.project.dir / config.deploy.history_file
            try:
                save_history(debug.history, path)
                logger.info(f"Fix history saved to: {path}")
            except OSError as e:
                logger.warning(f"Could not save fix history: {e}")

        if succeeded:
            self._remember_fix(ctx)
            exports = debug.executor.list_exports()
            if exports:
                logger.info(f"Stack outputs:\n{exports}")
            logger.info(
                f"✨ CDK project deployed successfully after "
                f"{debug.attempt} attempt(s)"
            )
            debug.exit_code = 0
        else:
            logger.error(
                f"❌ Failed to deploy CDK project after "
                f"{debug.attempt} attempts"
            )
            logger.error(
                "Please check the error logs and fix-history.json "
                "for manual intervention"
            )
            debug.exit_code = 1

        return End(debug.exit_code)

    def _remember_fix(self, ctx: GraphRunContext[State]) -> None:
        """Record the last applied fix in the registry."""
        debug = ctx.state.runtime.debug
        if debug.registry is None or not debug.history:
            return
        last = debug.history[-1]
        if last.outcome != "success" or debug.last_error is None:
            return
        debug.registry.record(
            debug.last_error,
            last.summary or "",
            last.filenames,
            ctx.state.config.project.dir,
        )
