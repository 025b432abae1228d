"""Stateful cursor over the live focus queue.

The cursor owns one integer (``index``) and its own view of the queue. It
never blocks on external effects: resolving an item hands it to the resolver
and drops it from the live queue at once, so the next item slides up under
the same index.

Bounds invariant, after every operation:
    len > 0  ->  0 <= index < len
    len == 0 ->  index == 0

Exports:
    FocusResolver: Protocol the cursor resolves items through.
    FocusCursor: Cursor with next/prev/skip/done/snooze.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import structlog

from src.crm_inbox.inbox.schemas import FocusItem

logger = structlog.get_logger(__name__)


class FocusResolver(Protocol):
    """Side-effect boundary used by FocusCursor (EffectDispatcher implements it)."""

    def resolve(self, item: FocusItem) -> object:
        """Complete an engagement or accept a suggestion."""
        ...

    def defer(self, item: FocusItem) -> object:
        """Reschedule an engagement or snooze a suggestion."""
        ...

    def skipped(self, item: FocusItem) -> None:
        """Report that the user moved past an item without resolving it."""
        ...


class FocusCursor:
    """Pointer into the composed focus queue.

    Args:
        resolver: Receives done/snooze/skip actions.
        queue: Initial focus queue.
    """

    def __init__(
        self,
        resolver: FocusResolver,
        queue: Sequence[FocusItem] = (),
    ) -> None:
        self._resolver = resolver
        self._queue: list[FocusItem] = list(queue)
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def queue(self) -> list[FocusItem]:
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def set_queue(self, queue: Sequence[FocusItem]) -> None:
        """Replace the live queue and clamp the index into range."""
        self._queue = list(queue)
        if self._index >= len(self._queue):
            self._index = max(0, len(self._queue) - 1)

    def current(self) -> FocusItem | None:
        if not self._queue:
            return None
        return self._queue[self._index]

    def next(self) -> FocusItem | None:
        if self._index < len(self._queue) - 1:
            self._index += 1
        return self.current()

    def prev(self) -> FocusItem | None:
        if self._index > 0:
            self._index -= 1
        return self.current()

    def skip(self) -> FocusItem | None:
        """Move on without resolving the current item."""
        item = self.current()
        if item is None:
            return None
        self.next()
        self._resolver.skipped(item)
        return self.current()

    def done(self) -> FocusItem | None:
        """Resolve the current item. Returns it, or None on an empty queue."""
        item = self.current()
        if item is None:
            return None
        was_last = self._index >= len(self._queue) - 1
        self._resolver.resolve(item)
        self._reconcile(item, was_last)
        return item

    def snooze(self) -> FocusItem | None:
        """Defer the current item. Returns it, or None on an empty queue."""
        item = self.current()
        if item is None:
            return None
        was_last = self._index >= len(self._queue) - 1
        self._resolver.defer(item)
        self._reconcile(item, was_last)
        return item

    def _reconcile(self, resolved: FocusItem, was_last: bool) -> None:
        # The resolver may already have pushed a recomposed queue without the item.
        self._queue = [
            i for i in self._queue
            if (i.kind, i.id) != (resolved.kind, resolved.id)
        ]
        new_length = len(self._queue)
        if was_last:
            self._index = max(0, new_length - 2)
        elif self._index >= new_length:
            self._index = max(0, new_length - 1)
        logger.debug(
            "focus_cursor.reconciled",
            item_id=resolved.id,
            index=self._index,
            length=new_length,
        )


__all__ = ["FocusCursor", "FocusResolver"]
