"""Snapshot-based undo/redo for a Library."""

from __future__ import annotations

import logging

from bib_librarian.model import Library

logger = logging.getLogger(__name__)


class History:
    """Two stacks of whole-library snapshots.

    ``push`` is called before every mutation. It does not touch the redo
    stack. Loading a new document calls ``clear``.
    """

    def __init__(self) -> None:
        self.undo_stack: list[Library] = []
        self.redo_stack: list[Library] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def push(self, library: Library) -> None:
        self.undo_stack.append(library.copy())

    def discard_last(self) -> None:
        """Drop the snapshot just pushed by an operation that changed nothing."""
        if self.undo_stack:
            self.undo_stack.pop()

    def undo(self, current: Library) -> Library | None:
        """Return the previous library, or None when there is nothing to undo."""
        if not self.undo_stack:
            logger.warning("Nothing to undo.")
            return None
        previous = self.undo_stack.pop()
        self.redo_stack.append(current.copy())
        return previous

    def redo(self, current: Library) -> Library | None:
        """Return the next library, or None when there is nothing to redo."""
        if not self.redo_stack:
            logger.warning("Nothing to redo.")
            return None
        following = self.redo_stack.pop()
        self.undo_stack.append(current.copy())
        return following

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()
