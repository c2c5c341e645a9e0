# toggle.py
"""Completion toggle shared by the database backend and the local document."""
import logging
from typing import Any, Callable, Optional

from errors import ConflictError

logger = logging.getLogger(__name__)


def toggle(
    lookup: Callable[[], Optional[Any]],
    add: Callable[[], Any],
    remove: Callable[[Any], Any],
) -> bool:
    """
    Flip the completion found by ``lookup``: remove it if present, add it
    otherwise. Returns the resulting state (True = completed).

    ``add`` raising ConflictError means a concurrent caller inserted the same
    completion between our lookup and our insert. We re-read once; if the
    completion is there the requested state already holds, otherwise the
    insert is tried one more time and a second conflict propagates.
    """
    existing = lookup()
    if existing is not None:
        remove(existing)
        return False

    try:
        add()
    except ConflictError:
        logger.info("[toggle] lost insert race, re-reading")
        if lookup() is not None:
            return True
        add()
    return True
