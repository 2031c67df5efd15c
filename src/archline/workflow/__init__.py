"""Workflow graphs for archline commands."""
