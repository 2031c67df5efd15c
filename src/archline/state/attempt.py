"""Fix attempt tracking."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from archline.core.result import SNIPPET_LENGTH, ErrorRecord


class FixedFile(BaseModel):
    """File written by a fix, identified by content checksum."""

    model_config = ConfigDict(frozen=True)

    filename: str
    checksum: str


class AttemptError(BaseModel):
    """Error that triggered a fix attempt, trimmed for history."""

    model_config = ConfigDict(frozen=True)

    message: str
    snippet: str
    stdout_snippet: str = ""

    @classmethod
    def from_record(cls, error: ErrorRecord) -> AttemptError:
        return cls(
            message=error.message,
            snippet=error.snippet,
            stdout_snippet=error.stdout[:SNIPPET_LENGTH],
        )


class Attempt(BaseModel):
    """Record of a single fix attempt. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    attempt: int = Field(ge=1)
    error: AttemptError
    fixed_files: tuple[FixedFile, ...] = Field(
        default=(), serialization_alias="fixedFiles"
    )
    summary: str | None = None
    outcome: Literal["success", "failure"] = "failure"
    fix_error: str | None = None
    error_hash: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def filenames(self) -> list[str]:
        return [f.filename for f in self.fixed_files]


AttemptHistory = tuple[Attempt, ...]


def append_attempt(history: AttemptHistory, attempt: Attempt) -> AttemptHistory:
    """Return a new history with attempt added at the end."""
    return (*history, attempt)


def save_history(history: AttemptHistory, path: Path) -> Path:
    """Write the history as a JSON array.

    Args:
        history: Attempts in order
        path: Destination file

    Returns:
        The path written
    """
    data = [
        attempt.model_dump(mode="json", by_alias=True)
        for attempt in history
    ]
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
