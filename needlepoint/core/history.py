"""Snapshot-based undo/redo with stroke batching."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..models.pattern import Pattern
from ..settings import MAX_HISTORY_SIZE

logger = logging.getLogger(__name__)


class History:
    """Two bounded stacks of full pattern snapshots.

    ``history`` is the undo stack (oldest first) and ``future`` the redo
    stack (next redo first). While a stroke is open, point edits call
    :meth:`record` which is a no-op, so the whole stroke undoes as one unit.
    Undo and redo close any open stroke.
    """

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        if max_size < 1:
            raise ValueError("History size must be at least 1")
        self.max_size = max_size
        self.history: List[Pattern] = []
        self.future: List[Pattern] = []
        self.in_stroke = False

    # -----------------------------------------------------------------
    def push_snapshot(self, pattern: Optional[Pattern]) -> None:
        if pattern is None:
            return
        self.history.append(pattern.snapshot())
        if len(self.history) > self.max_size:
            del self.history[: len(self.history) - self.max_size]
        self.future.clear()
        logger.debug("History snapshot pushed (undo=%d)", len(self.history))

    def record(self, pattern: Optional[Pattern]) -> None:
        """Snapshot before a point edit unless a stroke already did."""

        if not self.in_stroke:
            self.push_snapshot(pattern)

    def begin_stroke(self, pattern: Optional[Pattern]) -> None:
        if self.in_stroke or pattern is None:
            return
        self.push_snapshot(pattern)
        self.in_stroke = True

    def end_stroke(self) -> None:
        self.in_stroke = False

    # -----------------------------------------------------------------
    def undo(self, current: Optional[Pattern]) -> Optional[Pattern]:
        self.in_stroke = False
        if not self.history or current is None:
            return None
        previous = self.history.pop()
        self.future.insert(0, current.snapshot())
        logger.debug("Undo (undo=%d, redo=%d)", len(self.history), len(self.future))
        return previous

    def redo(self, current: Optional[Pattern]) -> Optional[Pattern]:
        self.in_stroke = False
        if not self.future or current is None:
            return None
        following = self.future.pop(0)
        self.history.append(current.snapshot())
        if len(self.history) > self.max_size:
            del self.history[0]
        logger.debug("Redo (undo=%d, redo=%d)", len(self.history), len(self.future))
        return following

    def can_undo(self) -> bool:
        return len(self.history) > 0

    def can_redo(self) -> bool:
        return len(self.future) > 0

    def set_max_size(self, size: int) -> None:
        if size < 1:
            raise ValueError("History size must be at least 1")
        self.max_size = size
        if len(self.history) > size:
            del self.history[: len(self.history) - size]

    def clear(self) -> None:
        self.history.clear()
        self.future.clear()
        self.in_stroke = False
