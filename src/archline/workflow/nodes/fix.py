"""Fix node - ask the model for corrected files and apply them."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from archline.core.config import State
from archline.core.errors import FilesystemError
from archline.core.log import logger
from archline.deploy.apply import apply_fixes
from archline.deploy.context import extract_relevant_files
from archline.deploy.overwrite import (
    clear_overwrite_conflicts,
    has_overwrite_conflict,
)
from archline.state.attempt import Attempt, AttemptError, append_attempt
from archline.state.registry import error_fingerprint


@dataclass
class Fix(BaseNode[State]):
    """Repair the project after a failed deploy."""

    async def run(self, ctx: GraphRunContext[State]) -> "Deploy":
        """Request a fix for the last error and write it to disk.

        A failed request or write is recorded in history and the loop
        goes on to the next deploy regardless.

        Returns:
            Deploy: Next deploy attempt

        Raises:
            MissingCredential: If no API key is configured
            ConfigurationError: If the configured model is unusable
        """
        config = ctx.state.config
        debug = ctx.state.runtime.debug
        project_dir = config.project.dir
        error = debug.last_error
        fix_number = len(debug.history) + 1

        debug.status = "fixing"
        logger.info(f"Analyzing deployment errors (fix {fix_number})...")

        if has_overwrite_conflict(error.stderr):
            logger.warning(
                "Detected TypeScript 'overwrite input file' error; "
                "clearing compiled outputs before fixing"
            )
            clear_overwrite_conflicts(error.stderr, project_dir)

        error_hash = error_fingerprint(error, project_dir)
        if debug.history and debug.history[-1].error_hash == error_hash:
            logger.warning(
                "Same error as the previous attempt; "
                "asking for a different approach"
            )

        files = extract_relevant_files(error.text, project_dir, config.extract)
        logger.info(
            f"Found {len(files)} relevant files to fix",
            files=[f.path for f in files],
        )

        known_fixes = []
        if debug.registry is not None:
            known_fixes = debug.registry.find_by_error(error, project_dir)[
                : config.registry.max_hints
            ]
            if known_fixes:
                logger.info(f"Found {len(known_fixes)} similar fixes in registry")

        with logger.span("Requesting fix", attempt=fix_number):
            outcome = await debug.requestor.request(
                error,
                files,
                history=debug.history,
                diagram=debug.diagram or None,
                attempt=fix_number,
                known_fixes=known_fixes,
            )

        attempt = {
            "attempt": fix_number,
            "error": AttemptError.from_record(error),
            "error_hash": error_hash,
        }
        if outcome.ok:
            logger.info(f"Fix summary: {outcome.result.summary}")
            try:
                fixed = apply_fixes(outcome.result.files, project_dir)
            except FilesystemError as e:
                logger.warning(f"Could not apply fix: {e}")
                attempt.update(
                    summary=outcome.result.summary,
                    fixed_files=tuple(e.written),
                    fix_error=str(e),
                )
            else:
                for f in fixed:
                    logger.info(f"Updated file: {f.filename}")
                attempt.update(
                    summary=outcome.result.summary,
                    fixed_files=tuple(fixed),
                    outcome="success",
                )
        else:
            logger.warning(f"Fix attempt {fix_number} failed: {outcome.error}")
            attempt.update(fix_error=outcome.error)

        debug.history = append_attempt(debug.history, Attempt(**attempt))

        from archline.workflow.nodes.deploy import Deploy
        return Deploy()
