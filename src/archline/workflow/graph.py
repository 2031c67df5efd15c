"""Graph workflow definitions."""

from pydantic_graph import Graph

from archline.core.config import State
from archline.core.log import logger


def create_workflow():
    """Create the deploy-and-repair graph.

    Validate → Deploy → [Finalize, or Fix → Deploy ...]

    Returns:
        Graph workflow with State as state_type
    """
    logger.debug("Building workflow graph")

    # Import nodes (lazy to avoid circular imports)
    from archline.workflow.nodes.deploy import Deploy
    from archline.workflow.nodes.finalize import Finalize
    from archline.workflow.nodes.fix import Fix
    from archline.workflow.nodes.validate import Validate

    workflow = Graph(
        nodes=(
            Validate,
            Deploy,
            Fix,
            Finalize,
        ),
        state_type=State
    )

    return workflow


def create_deploy_workflow():
    """Create the single-node graph for a plain deploy."""
    from archline.workflow.nodes.deploy_once import DeployOnce

    return Graph(nodes=(DeployOnce,), state_type=State)
