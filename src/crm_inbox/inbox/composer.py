"""Focus-queue composition with fixed priority bands.

Merges classified engagements and derived suggestions into one strictly
ordered sequence. Each band reserves a contiguous rank range:

    band 0: overdue engagements               rank 0   + i
    band 1: high-tier suggestions             rank 100 + i
    band 2: today's meetings (CALL, MEETING)  rank 200 + i
    band 3: today's tasks                     rank 300 + i
    band 4: medium and low-tier suggestions   rank 400 + i

Upcoming engagements stay in the list view only; they never enter the focus
queue. If one band outgrows the band width, the width is widened to the next
multiple of the base width so ranks stay unique and bands stay ordered.

Exports:
    QueueComposer: Builds the ranked focus queue.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.crm_inbox.inbox.schemas import (
    ClassifiedEngagements,
    Engagement,
    EngagementItem,
    FocusItem,
    PriorityTier,
    Suggestion,
    SuggestionItem,
)


class QueueComposer:
    """Assign band ranks and produce the focus queue.

    Args:
        band_width: Rank range reserved per band.
    """

    def __init__(self, *, band_width: int = 100) -> None:
        if band_width < 1:
            raise ValueError("band_width must be positive")
        self._band_width = band_width

    def compose(
        self,
        classified: ClassifiedEngagements,
        suggestions: Sequence[Suggestion],
    ) -> list[FocusItem]:
        """Build the focus queue sorted by rank ascending.

        Args:
            classified: Output of the temporal classifier.
            suggestions: Output of the suggestion deriver, already tier-sorted.

        Returns:
            FocusItem list; ranks are unique and lower means more urgent.
        """
        high = [s for s in suggestions if s.priority_tier == PriorityTier.HIGH]
        rest = [s for s in suggestions if s.priority_tier != PriorityTier.HIGH]

        bands: list[Sequence[Engagement] | Sequence[Suggestion]] = [
            classified.overdue,
            high,
            classified.today_meetings,
            classified.today_tasks,
            rest,
        ]
        width = self._effective_width(max(len(band) for band in bands))

        items: list[FocusItem] = []
        for band_index, band in enumerate(bands):
            base = band_index * width
            for i, entry in enumerate(band):
                items.append(self._item(entry, base + i))

        return sorted(items, key=lambda item: item.rank)

    def _effective_width(self, largest_band: int) -> int:
        if largest_band <= self._band_width:
            return self._band_width
        multiples = -(-largest_band // self._band_width)
        return multiples * self._band_width

    @staticmethod
    def _item(entry: Engagement | Suggestion, rank: int) -> FocusItem:
        if isinstance(entry, Engagement):
            return EngagementItem(id=entry.id, rank=rank, payload=entry)
        return SuggestionItem(id=entry.id, rank=rank, payload=entry)


__all__ = ["QueueComposer"]
