"""Write model-supplied file contents into the project."""

import hashlib
from pathlib import Path

from archline.core.errors import FilesystemError
from archline.core.log import logger
from archline.model.parser import FileEdit
from archline.state.attempt import FixedFile


def checksum(content: str) -> str:
    """Deterministic short fingerprint of file content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def resolve_in_project(project_dir: Path, filename: str) -> Path:
    """Resolve a project-relative filename, refusing paths that escape.

    Raises:
        FilesystemError: If filename points outside project_dir
    """
    root = project_dir.resolve()
    target = (root / filename).resolve()
    if target != root and root not in target.parents:
        raise FilesystemError(
            f"Refusing to write outside the project: {filename}"
        )
    return target


def apply_fixes(files: list[FileEdit], project_dir: Path) -> list[FixedFile]:
    """Overwrite each file with the content the model returned.

    Content is written verbatim; nothing is validated or merged. Every
    target is checked before the first write, so a rejected path leaves
    the project untouched.

    Args:
        files: Edits in the order returned by the model
        project_dir: Project root

    Returns:
        FixedFile entries in input order

    Raises:
        FilesystemError: If a path escapes the project, or a file cannot
            be written; in the latter case .written holds the files
            changed before the failure
    """
    targets = [resolve_in_project(project_dir, edit.filename) for edit in files]

    written = []
    logger.info(f"Applying fixes to {len(files)} files")
    for edit, target in zip(files, targets):
        logger.info(f"Updating {edit.filename}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(edit.content, encoding="utf-8")
        except OSError as e:
            raise FilesystemError(
                f"Could not write {edit.filename}: {e}", written=written
            ) from e
        written.append(
            FixedFile(filename=edit.filename, checksum=checksum(edit.content))
        )
    return written
