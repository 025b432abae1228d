"""Store interfaces -- the external collaborators the inbox reads and drives.

Every backend (in-memory, PostgreSQL, a hosted CRM API) implements these ABCs.
The engine only lists snapshots and requests mutations; it never constructs
entity ids and never awaits a mutation before moving the focus cursor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

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


class EntityNotFoundError(LookupError):
    """Raised by a store when asked to mutate an id it does not hold."""


class ActivityStore(ABC):
    """Owner of engagements (calls, meetings, tasks, emails...).

    Methods:
        list: All engagements visible to the current user.
        create: Create an engagement from a draft, return it with its id.
        update: Apply a partial update by id.
        delete: Remove an engagement by id.
    """

    @abstractmethod
    async def list(self) -> list[Engagement]:
        ...

    @abstractmethod
    async def create(self, draft: EngagementDraft) -> Engagement:
        ...

    @abstractmethod
    async def update(self, engagement_id: str, data: EngagementUpdate) -> None:
        ...

    @abstractmethod
    async def delete(self, engagement_id: str) -> None:
        ...


class DealStore(ABC):
    """Owner of deals."""

    @abstractmethod
    async def list(self) -> list[DealSnapshot]:
        ...

    @abstractmethod
    async def create(self, draft: DealDraft) -> DealSnapshot:
        ...

    @abstractmethod
    async def update(self, deal_id: str, data: DealUpdate) -> None:
        ...


class ContactStore(ABC):
    """Read-only source of contacts."""

    @abstractmethod
    async def list(self) -> list[ContactSnapshot]:
        ...


class NotificationSink(ABC):
    """Fire-and-forget receiver of short human-readable status strings."""

    @abstractmethod
    def notify(
        self, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> None:
        ...
