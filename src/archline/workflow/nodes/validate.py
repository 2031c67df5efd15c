"""Validate node - check the project and prepare the repair loop."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from archline.core.audit import AuditLogger
from archline.core.config import State
from archline.core.log import logger
from archline.deploy.executor import DeployExecutor
from archline.deploy.project import command_env, read_diagram, validate_project
from archline.model.fixer import FixRequestor
from archline.state.registry import FixRegistry


@dataclass
class Validate(BaseNode[State]):
    """Validate the CDK project and set up collaborators."""

    async def run(self, ctx: GraphRunContext[State]) -> "Deploy":
        """Check the project directory and wire up the loop.

        Collaborators already present in runtime state (tests inject
        fakes this way) are left alone.

        Returns:
            Deploy: First deploy attempt

        Raises:
            ValidationError: If the directory is not a CDK project
            MissingCredential: If no API key is configured
        """
        config = ctx.state.config
        debug = ctx.state.runtime.debug

        with logger.span("Validating CDK project"):
            project_dir = validate_project(
                config.project.dir, config.project.required_files
            )
        config.project.dir = project_dir
        logger.info("CDK project validated", project=str(project_dir))

        debug.diagram = read_diagram(config.project.diagram)
        debug.env = command_env(config.aws)

        if debug.executor is None:
            debug.executor = DeployExecutor(
                project_dir, config.deploy, debug.env
            )
        if debug.requestor is None:
            audit = AuditLogger(
                project_dir, config.audit.dir_name, config.audit.enabled
            )
            debug.requestor = FixRequestor(
                config.llm,
                audit,
                system_prompt=config.prompts.get("fixer", {}).get("system"),
            )
        if debug.registry is None and config.registry.enabled:
            debug.registry = FixRegistry(config.registry.path)

        debug.requestor.require_credential()

        debug.status = "deploying"

        from archline.workflow.nodes.deploy import Deploy
        return Deploy()
