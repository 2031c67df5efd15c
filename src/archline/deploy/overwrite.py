"""Clear write protection the TypeScript compiler trips over.

When tsc reports "Cannot write file '...' because it would overwrite
input file", the offending outputs are made writable, and removed if
that is not enough, before the regular fix step runs.
"""

import contextlib
import os
import re
import stat
from pathlib import Path

from archline.core.log import logger

OVERWRITE_SIGNATURE = "overwrite input file"
CANNOT_WRITE = re.compile(r"Cannot write file ['\"]([^'\"]+)['\"]")


def has_overwrite_conflict(stderr: str) -> bool:
    return OVERWRITE_SIGNATURE in stderr


def clear_overwrite_conflicts(stderr: str, project_dir: Path) -> list[Path]:
    """Make files named in overwrite errors writable or delete them.

    Args:
        stderr: Standard error of the failed build
        project_dir: Base for relative paths in the message

    Returns:
        Files whose protection was changed or that were removed
    """
    if not has_overwrite_conflict(stderr):
        return []

    logger.warning("Detected file overwrite errors. Fixing specific files...")
    handled = []
    for match in CANNOT_WRITE.finditer(stderr):
        path = Path(match.group(1))
        if not path.is_absolute():
            path = project_dir / path
        if not path.exists():
            continue

        try:
            logger.info(f"Setting write permissions for: {path}")
            path.chmod(
                stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IWGRP
                | stat.S_IROTH | stat.S_IWOTH
            )
            if not os.access(path, os.W_OK):
                logger.info(f"Removing file to allow overwrite: {path}")
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
            handled.append(path)
        except OSError as e:
            logger.warning(f"Could not fix permissions for file: {path} ({e})")
    return handled
