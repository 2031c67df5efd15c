"""LLM fix requests and response parsing."""

from archline.model.fixer import FixOutcome, FixRequestor
from archline.model.parser import FileEdit, FixResult, parse_fix_response

__all__ = [
    "FixRequestor",
    "FixOutcome",
    "FixResult",
    "FileEdit",
    "parse_fix_response",
]
