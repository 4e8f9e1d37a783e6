"""Artifact pattern resolution.

Manifest entries name artifacts either by exact path or by a name prefix,
which gives glob-like entries such as ``target/myapp-`` without real
globbing. When several files share the prefix, the first directory entry
wins; with ``sort_entries`` enabled that is the lexicographically smallest.
"""

from __future__ import annotations

import os
from pathlib import Path

from drovah.logging import get_logger

logger = get_logger(__name__)


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` resolves (following symlinks) to a location inside ``root``."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


class ArtifactMatcher:
    """Resolves an artifact pattern to a single existing path.

    Attributes:
        sort_entries: Sort directory entries before prefix matching so the
            result does not depend on filesystem listing order.
    """

    def __init__(self, sort_entries: bool = True) -> None:
        self.sort_entries = sort_entries

    def match(self, pattern: str | Path) -> Path | None:
        """Resolve ``pattern`` to a real path.

        Args:
            pattern: Exact file path, or a path whose final segment is a
                name prefix.

        Returns:
            The pattern itself if it names a regular file, otherwise the
            first entry of the parent directory whose name starts with the
            final segment, or None.
        """
        candidate = Path(pattern)
        if candidate.is_file():
            return candidate

        prefix = candidate.name
        parent = candidate.parent

        try:
            names = os.listdir(parent)
        except OSError as e:
            logger.debug("artifact_parent_unreadable", parent=str(parent), error=str(e))
            return None

        if self.sort_entries:
            names.sort()

        for name in names:
            if name.startswith(prefix):
                return parent / name

        logger.debug("artifact_not_matched", pattern=str(pattern))
        return None
