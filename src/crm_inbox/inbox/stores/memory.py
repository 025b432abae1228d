"""In-memory store backends and notification sinks.

Used for local development, demos and tests. Each store keeps entities in a
dict keyed by id, in insertion order, and hands out copies so callers never
mutate store state through a snapshot.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

import structlog

from src.crm_inbox.inbox.schemas import (
    ContactSnapshot,
    DealDraft,
    DealSnapshot,
    DealUpdate,
    Engagement,
    EngagementDraft,
    EngagementUpdate,
    NotificationLevel,
)
from src.crm_inbox.inbox.stores.adapter import (
    ActivityStore,
    ContactStore,
    DealStore,
    EntityNotFoundError,
    NotificationSink,
)

logger = structlog.get_logger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class InMemoryActivityStore(ActivityStore):
    """Engagements held in process memory."""

    def __init__(self, engagements: list[Engagement] | None = None) -> None:
        self._items: dict[str, Engagement] = {e.id: e for e in engagements or []}

    async def list(self) -> list[Engagement]:
        return [e.model_copy() for e in self._items.values()]

    async def create(self, draft: EngagementDraft) -> Engagement:
        engagement = Engagement(id=_new_id(), **draft.model_dump())
        self._items[engagement.id] = engagement
        logger.info("memory_store.engagement_created", engagement_id=engagement.id)
        return engagement.model_copy()

    async def update(self, engagement_id: str, data: EngagementUpdate) -> None:
        current = self._items.get(engagement_id)
        if current is None:
            raise EntityNotFoundError(f"Engagement {engagement_id} not found")
        self._items[engagement_id] = data.apply(current)

    async def delete(self, engagement_id: str) -> None:
        if self._items.pop(engagement_id, None) is None:
            raise EntityNotFoundError(f"Engagement {engagement_id} not found")


class InMemoryDealStore(DealStore):
    """Deals held in process memory.

    Args:
        deals: Initial deals.
        clock: Source of "now" for created/updated deals.
    """

    def __init__(
        self,
        deals: list[DealSnapshot] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._items: dict[str, DealSnapshot] = {d.id: d for d in deals or []}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def list(self) -> list[DealSnapshot]:
        return [d.model_copy() for d in self._items.values()]

    async def create(self, draft: DealDraft) -> DealSnapshot:
        deal = DealSnapshot(
            id=_new_id(),
            title=draft.title,
            value=draft.value,
            lifecycle_status="open",
            is_won=draft.is_won,
            is_lost=draft.is_lost,
            last_updated_at=self._clock(),
            contact_id=draft.contact_id,
            company_id=draft.company_id,
        )
        self._items[deal.id] = deal
        logger.info("memory_store.deal_created", deal_id=deal.id)
        return deal.model_copy()

    async def update(self, deal_id: str, data: DealUpdate) -> None:
        current = self._items.get(deal_id)
        if current is None:
            raise EntityNotFoundError(f"Deal {deal_id} not found")
        changes = data.model_dump(exclude_none=True)
        changes.setdefault("last_updated_at", self._clock())
        self._items[deal_id] = current.model_copy(update=changes)


class InMemoryContactStore(ContactStore):
    """Contacts held in process memory."""

    def __init__(self, contacts: list[ContactSnapshot] | None = None) -> None:
        self._items = list(contacts or [])

    async def list(self) -> list[ContactSnapshot]:
        return [c.model_copy() for c in self._items]


class LoggingNotificationSink(NotificationSink):
    """Default sink: emits every status string as a structlog event."""

    def notify(
        self, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> None:
        log_method = logger.warning if level == NotificationLevel.ERROR else logger.info
        log_method("inbox.notification", message=message, level=level.value)


class RecordingNotificationSink(NotificationSink):
    """Keeps every (level, message) pair it receives, in order."""

    def __init__(self) -> None:
        self.messages: list[tuple[NotificationLevel, str]] = []

    def notify(
        self, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> None:
        self.messages.append((level, message))

    def by_level(self, level: NotificationLevel) -> list[str]:
        return [m for lvl, m in self.messages if lvl == level]
