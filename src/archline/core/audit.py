"""Per-attempt audit trail of what was sent to and received from the model."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from archline.core.log import logger
from archline.core.result import ErrorRecord


class AuditRecord(BaseModel):
    """Everything needed to replay one fix request by hand."""

    attempt: int
    timestamp: datetime = Field(default_factory=datetime.now)
    error: ErrorRecord
    relevant_files: list[str] = Field(default_factory=list)
    prompt: str = ""
    raw_response: str | None = None
    response: dict[str, Any] | None = None
    parse_error: str | None = None
    api_error: str | None = None
    success: bool = False


class AuditLogger:
    """Writes one JSON and one Markdown file per fix attempt."""

    def __init__(self, project_dir: Path, dir_name: str = ".archline-audit", enabled: bool = True):
        self.audit_dir = project_dir / dir_name
        self.enabled = enabled

    def write(self, record: AuditRecord) -> Path | None:
        """Persist record; failures are logged, never raised.

        Returns:
            Path of the JSON file, or None if nothing was written
        """
        if not self.enabled:
            return None

        stamp = record.timestamp.strftime("%Y%m%d-%H%M%S-%f")
        base = f"fix-attempt-{record.attempt}-{stamp}"
        json_file = self.audit_dir / f"{base}.json"
        text_file = self.audit_dir / f"{base}.md"

        try:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
            json_file.write_text(
                record.model_dump_json(indent=2), encoding="utf-8"
            )
            text_file.write_text(render_markdown(record), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not save audit log: {e}")
            return None

        logger.info(f"Audit log saved to: {json_file}")
        return json_file


def render_markdown(record: AuditRecord) -> str:
    """Human-readable rendering of an audit record."""
    response = record.response or {}
    files = response.get("files") or []
    files_modified = "\n".join(
        f"- {f.get('filename')}" for f in files if isinstance(f, dict)
    )
    analyzed = "\n".join(f"- {p}" for p in record.relevant_files)
    problem = record.parse_error or record.api_error or ""

    sections = [
        f"# Fix Attempt {record.attempt} - "
        f"{record.timestamp:%Y-%m-%d %H:%M:%S}",
        "## Error",
        f"```\n{record.error.message}\n{record.error.stderr}\n```",
        "## Files Analyzed",
        analyzed or "(none)",
        "## Prompt",
        f"```\n{record.prompt}\n```",
        "## Raw Response",
        f"```\n{record.raw_response or ''}\n```",
        "## Parsed Response",
        f"```json\n{json.dumps(record.response, indent=2)}\n```",
        "## Fix Summary",
        response.get("summary") or "(none)",
        "## Files Modified",
        files_modified or "(none)",
    ]
    if problem:
        sections += ["## Problem", problem]
    sections += ["## Result", "SUCCESS" if record.success else "FAILED"]
    return "\n\n".join(sections) + "\n"
