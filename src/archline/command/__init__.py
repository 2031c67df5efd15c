"""CLI command modules for archline."""

from archline.command.debug import DebugCommand
from archline.command.deploy import DeployCommand

__all__ = ["DebugCommand", "DeployCommand"]
