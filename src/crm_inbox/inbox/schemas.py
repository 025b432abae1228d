"""Pydantic schemas for the inbox -- engagements, snapshots, suggestions, queue items.

Defines all structured types for the work-queue engine:
- Enums: EngagementKind, SuggestionType, PriorityTier, ViewMode, NotificationLevel
- External entities: Engagement, DealSnapshot, ContactSnapshot (+ drafts/updates)
- Derived: Suggestion, RadarScan, ClassifiedEngagements
- Focus queue: EngagementItem, SuggestionItem, FocusItem (discriminated union)
- Session state: DismissalSet
- Views: InboxStats, InboxListView, DispatchFailure

External entities are owned by the stores; this package only reads them and
requests mutations through drafts and partial updates.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


# ── Enums ───────────────────────────────────────────────────────────────────


class EngagementKind(str, Enum):
    """Kind of a scheduled engagement."""

    CALL = "CALL"
    MEETING = "MEETING"
    EMAIL = "EMAIL"
    TASK = "TASK"
    NOTE = "NOTE"
    STATUS_CHANGE = "STATUS_CHANGE"


MEETING_KINDS: frozenset[EngagementKind] = frozenset(
    {EngagementKind.CALL, EngagementKind.MEETING}
)


class SuggestionType(str, Enum):
    """Business rule that produced a suggestion."""

    UPSELL = "UPSELL"
    STALLED = "STALLED"
    BIRTHDAY = "BIRTHDAY"


class PriorityTier(str, Enum):
    """Suggestion urgency tier. Sorts high < medium < low."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def order(self) -> int:
        return _TIER_ORDER[self]


_TIER_ORDER = {PriorityTier.HIGH: 0, PriorityTier.MEDIUM: 1, PriorityTier.LOW: 2}


class ViewMode(str, Enum):
    """How the inbox is being consumed."""

    LIST = "list"
    FOCUS = "focus"


class NotificationLevel(str, Enum):
    """Severity of a status string sent to the notification sink."""

    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


# ── Engagements ─────────────────────────────────────────────────────────────


class Engagement(BaseModel):
    """A scheduled, time-stamped unit of work tied to a deal."""

    id: str
    deal_id: str = ""
    deal_title: str = ""
    kind: EngagementKind
    title: str
    description: str | None = None
    scheduled_at: datetime
    completed: bool = False


class EngagementDraft(BaseModel):
    """Payload for creating an engagement (the store assigns the id)."""

    title: str
    kind: EngagementKind = EngagementKind.TASK
    description: str = ""
    scheduled_at: datetime
    deal_id: str = ""
    deal_title: str = ""
    completed: bool = False


class EngagementUpdate(BaseModel):
    """Partial engagement update. Unset fields are left untouched."""

    completed: bool | None = None
    scheduled_at: datetime | None = None

    def apply(self, engagement: Engagement) -> Engagement:
        """Return a copy of ``engagement`` with this update applied."""
        return engagement.model_copy(update=self.model_dump(exclude_none=True))

    def merge(self, other: EngagementUpdate) -> EngagementUpdate:
        """Combine two updates; fields set on ``other`` win."""
        return EngagementUpdate(
            **{**self.model_dump(exclude_none=True), **other.model_dump(exclude_none=True)}
        )


# ── Deals & Contacts ────────────────────────────────────────────────────────


class DealSnapshot(BaseModel):
    """Read-only projection of a deal."""

    id: str
    title: str
    company_name: str = ""
    value: float = 0.0
    lifecycle_status: str = ""
    is_won: bool = False
    is_lost: bool = False
    last_updated_at: datetime
    contact_id: str | None = None
    company_id: str | None = None


class DealDraft(BaseModel):
    """Payload for creating a deal (the store assigns the id)."""

    title: str
    value: int
    probability: int = Field(default=10, ge=0, le=100)
    priority: Literal["low", "medium", "high"] = "medium"
    contact_id: str | None = None
    company_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_won: bool = False
    is_lost: bool = False
    source_deal_id: str | None = None


class DealUpdate(BaseModel):
    """Partial deal update. Unset fields are left untouched."""

    last_updated_at: datetime | None = None
    lifecycle_status: str | None = None


_DATE_PATTERN = re.compile(r"^(?:\d{4}-)?(\d{1,2})-(\d{1,2})")


class MonthDay(BaseModel):
    """A calendar day without a year."""

    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)


class ContactSnapshot(BaseModel):
    """Read-only projection of a contact."""

    id: str
    name: str
    birth_date: MonthDay | None = None

    @field_validator("birth_date", mode="before")
    @classmethod
    def _parse_birth_date(cls, value: Any) -> Any:
        """Accept ``YYYY-MM-DD`` / ``MM-DD`` strings as stored by CRMs."""
        if isinstance(value, str):
            if not value.strip():
                return None
            match = _DATE_PATTERN.match(value.strip())
            if match is None:
                raise ValueError(f"Unrecognized birth date: {value!r}")
            return {"month": int(match.group(1)), "day": int(match.group(2))}
        return value


# ── Suggestions ─────────────────────────────────────────────────────────────


def suggestion_id(suggestion_type: SuggestionType, source_id: str) -> str:
    """Deterministic suggestion id: ``"{type}-{sourceEntityId}"``.

    The same underlying condition always yields the same id, which is what
    lets a dismissal suppress re-derivation.
    """
    return f"{suggestion_type.value.lower()}-{source_id}"


class SuggestionPayload(BaseModel):
    """Source entity the suggestion was derived from."""

    deal: DealSnapshot | None = None
    contact: ContactSnapshot | None = None


class Suggestion(BaseModel):
    """A derived, ephemeral recommendation. Never persisted by the engine."""

    id: str
    type: SuggestionType
    title: str
    description: str
    priority_tier: PriorityTier
    payload: SuggestionPayload = Field(default_factory=SuggestionPayload)
    created_at: datetime


class RadarScan(BaseModel):
    """Raw rule hits before dismissal filtering."""

    upsell_deals: list[DealSnapshot] = Field(default_factory=list)
    stalled_deals: list[DealSnapshot] = Field(default_factory=list)
    birthday_contacts: list[ContactSnapshot] = Field(default_factory=list)


class ClassifiedEngagements(BaseModel):
    """Pending engagements bucketed relative to a reference day."""

    today: datetime
    tomorrow: datetime
    overdue: list[Engagement] = Field(default_factory=list)
    today_all: list[Engagement] = Field(default_factory=list)
    today_meetings: list[Engagement] = Field(default_factory=list)
    today_tasks: list[Engagement] = Field(default_factory=list)
    upcoming: list[Engagement] = Field(default_factory=list)


# ── Focus Queue ─────────────────────────────────────────────────────────────


class EngagementItem(BaseModel):
    """Focus-queue element wrapping an engagement."""

    kind: Literal["engagement"] = "engagement"
    id: str
    rank: int
    payload: Engagement


class SuggestionItem(BaseModel):
    """Focus-queue element wrapping a suggestion."""

    kind: Literal["suggestion"] = "suggestion"
    id: str
    rank: int
    payload: Suggestion


FocusItem = Annotated[
    Union[EngagementItem, SuggestionItem], Field(discriminator="kind")
]


# ── Session State ───────────────────────────────────────────────────────────


class DismissalSet:
    """Suggestion ids resolved or deferred in the current session.

    Grows monotonically through explicit user actions. Passed explicitly to
    the deriver so several sessions can coexist.
    """

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set(ids)

    def add(self, suggestion_id: str) -> bool:
        """Record a dismissal. Returns False if the id was already present."""
        if suggestion_id in self._ids:
            return False
        self._ids.add(suggestion_id)
        return True

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._ids)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DismissalSet):
            return self._ids == other._ids
        if isinstance(other, (set, frozenset)):
            return self._ids == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"DismissalSet({sorted(self._ids)!r})"


# ── Views ───────────────────────────────────────────────────────────────────


class InboxStats(BaseModel):
    """Pending-work counters shown above the inbox."""

    overdue_count: int = 0
    today_count: int = 0
    suggestions_count: int = 0
    total_pending: int = 0

    @property
    def is_inbox_zero(self) -> bool:
        return self.total_pending == 0


class InboxListView(BaseModel):
    """Categorized list consumption mode."""

    overdue: list[Engagement] = Field(default_factory=list)
    today_meetings: list[Engagement] = Field(default_factory=list)
    today_tasks: list[Engagement] = Field(default_factory=list)
    upcoming: list[Engagement] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    stats: InboxStats = Field(default_factory=InboxStats)
    briefing: str | None = None


class DispatchFailure(BaseModel):
    """A store call that failed after the cursor had already moved on."""

    action: str
    target_id: str
    error: str
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
