"""Recover the source files a build or deploy error points at."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePosixPath

from pydantic import BaseModel

from archline.core.config import ExtractConfig
from archline.core.log import logger

# Scanned in order; the first capture group is the candidate path.
ERROR_PATTERNS = [
    re.compile(r"Error at ([^:\n]+):"),
    re.compile(r"([^\s:'\"()]+\.ts)\b(?::\d+)?"),
    re.compile(r"([^\s:'\"()]+\.js)\b(?::\d+)?"),
    re.compile(r"Cannot find module ['\"]([^'\"]+)['\"]"),
    re.compile(
        r"ENOENT: no such file or directory, open ['\"]([^'\"]+)['\"]"
    ),
    re.compile(r"from (/[^:\n]+):"),
    re.compile(r"at (?:[^\n(]*\()?([^\s():]+):\d+:\d+"),
    re.compile(r"Cannot write file ['\"]([^'\"]+)['\"]"),
]


class RelevantFile(BaseModel):
    """Project file sent to the model as context."""

    path: str
    content: str


class ContextExtractor:
    """Map error text to the project files worth showing the model."""

    def __init__(self, project_dir: Path, config: ExtractConfig | None = None):
        """
        Args:
            project_dir: Project root; all returned paths are relative
                to it
            config: Extraction rules (defaults when None)
        """
        self.project_dir = project_dir.resolve()
        self.config = config or ExtractConfig()

    def candidates(self, error_text: str) -> list[str]:
        """Raw path captures in pattern scan order."""
        found = []
        for pattern in ERROR_PATTERNS:
            for match in pattern.finditer(error_text):
                found.append(match.group(1).strip())
        return found

    def is_ignored(self, path: str) -> bool:
        """True for dependency-install and runtime-internal paths."""
        parts = PurePosixPath(path.replace("\\", "/")).parts
        if any(d in parts for d in self.config.ignored_dirs):
            return True
        if path == "module.js":
            return True
        return any(path.startswith(p) for p in self.config.runtime_prefixes)

    def normalize(self, path: str) -> str | None:
        """Make a captured path project-relative.

        Absolute paths inside the root become relative; absolute paths
        outside fall back to their base name. Returns None for paths
        that climb out of the root.
        """
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                rel = candidate.resolve().relative_to(self.project_dir)
            except ValueError:
                return candidate.name
            return rel.as_posix()

        rel = posixpath.normpath(path.replace("\\", "/"))
        if rel == ".." or rel.startswith("../"):
            return None
        return rel

    def to_source(self, path: str) -> str:
        """Map a build-output path to the source it was compiled from."""
        prefix = self.config.build_output_dir.rstrip("/") + "/"
        if not path.startswith(prefix):
            return path
        source = path[len(prefix):]
        for suffix in self.config.compiled_suffixes:
            if source.endswith(suffix):
                return source[: -len(suffix)] + self.config.source_suffix
        return source

    def read(self, path: str) -> RelevantFile | None:
        """Load a project file, or None with a warning."""
        full_path = self.project_dir / path
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.warning(f"Mentioned file not found: {path}")
            return None
        return RelevantFile(path=path, content=content)

    def extract(self, error_text: str) -> list[RelevantFile]:
        """Return the readable files referenced by error_text.

        Each resolved path is read at most once. When nothing is found
        the configured fallback file is tried.
        """
        relevant = []
        seen = set()

        for raw in self.candidates(error_text):
            if self.is_ignored(raw):
                continue

            path = self.normalize(raw)
            if path is None or path == ".":
                continue
            path = self.to_source(path)
            if self.is_ignored(path) or path in seen:
                continue
            seen.add(path)

            found = self.read(path)
            if found:
                relevant.append(found)

        if not relevant:
            logger.warning(
                "Could not identify specific files from error. "
                "Using general fix approach."
            )
            fallback = self.config.fallback_file
            if fallback not in seen:
                found = self.read(fallback)
                if found:
                    relevant.append(found)

        logger.info(
            f"Identified {len(relevant)} files that may need fixes",
            files=[f.path for f in relevant],
        )
        return relevant


def extract_relevant_files(
    error_text: str,
    project_dir: Path,
    config: ExtractConfig | None = None,
) -> list[RelevantFile]:
    """Convenience wrapper around ContextExtractor.extract()."""
    return ContextExtractor(project_dir, config).extract(error_text)
