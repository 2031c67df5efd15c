"""Workflow nodes for graph state machine."""

from archline.workflow.nodes.deploy import Deploy
from archline.workflow.nodes.deploy_once import DeployOnce
from archline.workflow.nodes.finalize import Finalize
from archline.workflow.nodes.fix import Fix
from archline.workflow.nodes.validate import Validate

__all__ = [
    "Validate",
    "Deploy",
    "Fix",
    "Finalize",
    "DeployOnce",
]
