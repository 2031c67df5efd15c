"""Registry of fixes that preceded a successful deploy.

The registry outlives a single run. When an error pattern seen before
reappears, the fixes recorded for it are offered to the model as hints.
"""

from __future__ import annotations

import hashlib
import json
import re
import uuid
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from archline.core.log import logger
from archline.core.result import ErrorRecord

COMMON_COMPONENTS = [
    'Lambda', 'S3', 'DynamoDB', 'API Gateway', 'CloudFront',
    'EventBridge', 'SNS', 'SQS', 'EC2', 'VPC', 'IAM',
    'CloudFormation', 'CloudWatch', 'ECS', 'EKS', 'RDS',
]

CONSTRUCT_HINTS = {
    'lambda': 'Lambda',
    'bucket': 'S3',
    'table': 'DynamoDB',
    'api': 'API Gateway',
    'distribution': 'CloudFront',
    'rule': 'EventBridge',
    'topic': 'SNS',
    'queue': 'SQS',
    'instance': 'EC2',
    'vpc': 'VPC',
    'role': 'IAM',
}

ERROR_PATTERNS = [
    re.compile(r"is not authorized to perform: (\S+) on resource"),
    re.compile(r'Resource handler returned message: "([^"]+)"'),
    re.compile(r"ValidationError: ([^\n]+)"),
    re.compile(r"Error: ([^\n]+)"),
    re.compile(r"Cannot ([^\n:]+)"),
]


class RegisteredFix(BaseModel):
    """One remembered fix."""

    id: str = Field(default_factory=lambda: f"fix-{uuid.uuid4().hex[:12]}")
    error_pattern: str
    error_hash: str
    components: list[str] = Field(default_factory=list)
    summary: str = ""
    files: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.now)


class RegistryData(BaseModel):
    version: str = "1.0"
    last_updated: datetime = Field(default_factory=datetime.now)
    fixes: list[RegisteredFix] = Field(default_factory=list)


def extract_error_pattern(error: ErrorRecord) -> str:
    """Most specific one-line description of the error."""
    text = error.stderr or error.message
    for pattern in ERROR_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    lines = text.strip().splitlines()
    return lines[0].strip()[:100] if lines else ""


def extract_components(error: ErrorRecord) -> list[str]:
    """AWS services the error text mentions."""
    text = f"{error.stdout} {error.stderr} {error.message}"
    lowered = text.lower()
    found = []
    for component in COMMON_COMPONENTS:
        if component.lower() in lowered and component not in found:
            found.append(component)
    for hint, component in CONSTRUCT_HINTS.items():
        if hint in text and component not in found:
            found.append(component)
    return found


def clean_error_text(text: str, project_dir: Path | None = None) -> str:
    """Strip the parts of an error that change from run to run."""
    text = re.sub(
        r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z?", "TIMESTAMP", text
    )
    text = re.sub(
        r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
        "UUID", text, flags=re.IGNORECASE,
    )
    text = re.sub(
        r"request id: [a-z0-9-]+", "request id: REQUEST_ID", text,
        flags=re.IGNORECASE,
    )
    if project_dir is not None:
        text = text.replace(str(project_dir), "PROJECT_DIR")
    text = re.sub(r"\.ts\(\d+,\d+\)", ".ts(LINE,COL)", text)
    text = re.sub(r"\.ts:\d+:\d+", ".ts:LINE:COL", text)
    return re.sub(r"\s+", " ", text).strip()


def error_fingerprint(error: ErrorRecord, project_dir: Path | None = None) -> str:
    """Stable hash of an error with volatile parts removed."""
    text = f"{error.stderr}\n{error.stdout}\n{error.message}"
    cleaned = clean_error_text(text, project_dir)
    return hashlib.sha256(cleaned.encode("utf-8")).hexdigest()[:16]


class FixRegistry:
    """JSON-file backed registry of successful fixes."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> RegistryData:
        """Read the registry, starting fresh if it is absent or broken."""
        if not self.path.is_file():
            return RegistryData()
        try:
            return RegistryData.model_validate_json(
                self.path.read_text(encoding="utf-8")
            )
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading fix registry: {e}")
            return RegistryData()

    def save(self, data: RegistryData) -> bool:
        data.last_updated = datetime.now()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Error saving fix registry: {e}")
            return False
        return True

    def add_fix(self, fix: RegisteredFix) -> str:
        data = self.load()
        data.fixes.append(fix)
        self.save(data)
        return fix.id

    def update_fix(self, fix_id: str, **changes) -> RegisteredFix:
        """Update fields of a stored fix.

        Raises:
            KeyError: If no fix has that id
        """
        data = self.load()
        for index, fix in enumerate(data.fixes):
            if fix.id == fix_id:
                updated = fix.model_copy(
                    update={**changes, "last_updated": datetime.now()}
                )
                data.fixes[index] = updated
                self.save(data)
                return updated
        raise KeyError(f"Fix with ID {fix_id} not found")

    def find_by_error(
        self, error: ErrorRecord, project_dir: Path | None = None
    ) -> list[RegisteredFix]:
        """Fixes recorded for the same fingerprint or error pattern."""
        fingerprint = error_fingerprint(error, project_dir)
        text = error.text + "\n" + error.message
        return [
            fix for fix in self.load().fixes
            if fix.error_hash == fingerprint
            or (fix.error_pattern and fix.error_pattern in text)
        ]

    def find_by_components(self, components: list[str]) -> list[RegisteredFix]:
        return [
            fix for fix in self.load().fixes
            if any(c in components for c in fix.components)
        ]

    def record(
        self,
        error: ErrorRecord,
        summary: str,
        files: list[str],
        project_dir: Path | None = None,
    ) -> str:
        """Remember the fix that resolved error."""
        fix = RegisteredFix(
            error_pattern=extract_error_pattern(error),
            error_hash=error_fingerprint(error, project_dir),
            components=extract_components(error),
            summary=summary,
            files=files,
        )
        logger.info(f"Recorded fix in registry: {fix.id}")
        return self.add_fix(fix)
