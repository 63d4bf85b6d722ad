"""Release of file resources owned by sessions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from session_rag.errors import ResourceCleanupError

logger = logging.getLogger(__name__)


def _delete(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        raise ResourceCleanupError(f"Could not delete {path}: {exc}") from exc


def release_paths(paths: Iterable[str | Path]) -> int:
    """Delete every file in *paths* and return how many were handled.

    Files that are already gone count as released.  Failures are logged and
    never raised; a session is always removed from the registry regardless
    of what happens to its files.
    """
    released = 0
    for path in paths:
        try:
            _delete(Path(path))
            released += 1
        except ResourceCleanupError as exc:
            logger.warning("%s", exc)
    return released
