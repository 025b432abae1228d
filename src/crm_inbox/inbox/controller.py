"""Inbox session controller.

Owns one user's inbox session: the latest store snapshots, the session
DismissalSet, the focus cursor and the effect dispatcher. Every derived view
(classified engagements, suggestions, focus queue, stats) is recomputed from
the snapshots on each change; nothing derived is cached across changes.

Flow::

    refresh() -> snapshots -> recompose() -> classifier + deriver
              -> composer -> cursor.set_queue()
    focus_done()/list handlers -> dispatcher (fire-and-forget)
              -> recompose() now, refresh() once the store call settles

Exports:
    InboxController: Session facade over the inbox engine.
    build_inbox_controller: Wire a controller from Settings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.crm_inbox.config import Settings, get_settings
from src.crm_inbox.inbox.briefing import BriefingGenerator
from src.crm_inbox.inbox.classifier import TemporalClassifier
from src.crm_inbox.inbox.composer import QueueComposer
from src.crm_inbox.inbox.cursor import FocusCursor
from src.crm_inbox.inbox.dispatcher import EffectDispatcher
from src.crm_inbox.inbox.schemas import (
    ClassifiedEngagements,
    ContactSnapshot,
    DealSnapshot,
    DismissalSet,
    Engagement,
    EngagementDraft,
    FocusItem,
    InboxListView,
    InboxStats,
    Suggestion,
    ViewMode,
)
from src.crm_inbox.inbox.stores.adapter import (
    ActivityStore,
    ContactStore,
    DealStore,
    NotificationSink,
)
from src.crm_inbox.inbox.stores.memory import LoggingNotificationSink
from src.crm_inbox.inbox.suggestions import SuggestionDeriver

logger = structlog.get_logger(__name__)


class InboxController:
    """One user's inbox session.

    Args:
        activity_store: Engagement owner.
        deal_store: Deal owner.
        contact_store: Contact source.
        notifier: Status string sink. Defaults to a structlog-backed sink.
        settings: Thresholds and dispatch policy. Defaults to get_settings().
        briefing: Daily briefing generator. Defaults to one without an LLM.
        clock: Source of "now". Defaults to UTC wall-clock time.
        dismissals: Session DismissalSet. A fresh one is created if omitted.
    """

    def __init__(
        self,
        activity_store: ActivityStore,
        deal_store: DealStore,
        contact_store: ContactStore,
        notifier: NotificationSink | None = None,
        *,
        settings: Settings | None = None,
        briefing: BriefingGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
        dismissals: DismissalSet | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._activities = activity_store
        self._deals_store = deal_store
        self._contacts_store = contact_store
        self._notifier = notifier or LoggingNotificationSink()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._briefing_generator = (
            briefing if briefing is not None else BriefingGenerator()
        )
        self._dismissals = dismissals if dismissals is not None else DismissalSet()

        self._classifier = TemporalClassifier()
        self._deriver = SuggestionDeriver(
            upsell_after_days=settings.INBOX_UPSELL_AFTER_DAYS,
            stalled_after_days=settings.INBOX_STALLED_AFTER_DAYS,
        )
        self._composer = QueueComposer(band_width=settings.INBOX_BAND_WIDTH)
        self._dispatcher = EffectDispatcher(
            activity_store,
            deal_store,
            self._notifier,
            self._dismissals,
            snooze_days=settings.INBOX_SNOOZE_DAYS,
            upsell_value_multiplier=settings.INBOX_UPSELL_VALUE_MULTIPLIER,
            upsell_probability=settings.INBOX_UPSELL_PROBABILITY,
            max_attempts=settings.INBOX_DISPATCH_MAX_ATTEMPTS,
            retry_wait_seconds=settings.INBOX_DISPATCH_RETRY_WAIT_SECONDS,
            clock=self._clock,
            on_settled=self.refresh,
        )
        self._cursor = FocusCursor(self._dispatcher)

        self._engagements: list[Engagement] = []
        self._deals: list[DealSnapshot] = []
        self._contacts: list[ContactSnapshot] = []
        self._view_mode = ViewMode.LIST
        self._briefing: str | None = None

        self.recompose()

    # ── Snapshots ────────────────────────────────────────────────────────

    async def refresh(self) -> None:
        """Reload all three stores and recompose every derived view."""
        engagements, deals, contacts = await asyncio.gather(
            self._activities.list(),
            self._deals_store.list(),
            self._contacts_store.list(),
        )
        self._engagements = list(engagements)
        self._deals = list(deals)
        self._contacts = list(contacts)
        self.recompose()
        logger.debug(
            "inbox.refreshed",
            engagements=len(self._engagements),
            deals=len(self._deals),
            contacts=len(self._contacts),
        )

    def recompose(self) -> None:
        """Recompute classification, suggestions, focus queue and stats."""
        now = self._clock()
        engagements = self._dispatcher.apply_overrides(self._engagements)
        self._classified = self._classifier.classify(engagements, now)
        self._suggestions = self._deriver.derive(
            self._deals, self._contacts, now, self._dismissals
        )
        self._cursor.set_queue(
            self._composer.compose(self._classified, self._suggestions)
        )
        overdue = len(self._classified.overdue)
        today = len(self._classified.today_all)
        self._stats = InboxStats(
            overdue_count=overdue,
            today_count=today,
            suggestions_count=len(self._suggestions),
            total_pending=overdue + today + len(self._suggestions),
        )

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def classified(self) -> ClassifiedEngagements:
        return self._classified

    @property
    def suggestions(self) -> list[Suggestion]:
        return list(self._suggestions)

    @property
    def focus_queue(self) -> list[FocusItem]:
        return self._cursor.queue

    @property
    def focus_index(self) -> int:
        return self._cursor.index

    @property
    def current_focus_item(self) -> FocusItem | None:
        return self._cursor.current()

    @property
    def stats(self) -> InboxStats:
        return self._stats

    @property
    def is_inbox_zero(self) -> bool:
        return self._stats.is_inbox_zero

    @property
    def view_mode(self) -> ViewMode:
        return self._view_mode

    @property
    def dismissals(self) -> DismissalSet:
        return self._dismissals

    @property
    def dispatcher(self) -> EffectDispatcher:
        return self._dispatcher

    @property
    def briefing(self) -> str | None:
        return self._briefing

    def set_view_mode(self, mode: ViewMode | str) -> None:
        self._view_mode = ViewMode(mode)

    def list_view(self) -> InboxListView:
        """Categorized list mode. Includes upcoming engagements."""
        return InboxListView(
            overdue=self._classified.overdue,
            today_meetings=self._classified.today_meetings,
            today_tasks=self._classified.today_tasks,
            upcoming=self._classified.upcoming,
            suggestions=self._suggestions,
            stats=self._stats,
            briefing=self._briefing,
        )

    # ── Focus Mode ───────────────────────────────────────────────────────

    def focus_next(self) -> FocusItem | None:
        return self._cursor.next()

    def focus_prev(self) -> FocusItem | None:
        return self._cursor.prev()

    def focus_skip(self) -> FocusItem | None:
        return self._cursor.skip()

    def focus_done(self) -> FocusItem | None:
        """Resolve the current item and return it."""
        item = self._cursor.done()
        if item is not None:
            self.recompose()
        return item

    def focus_snooze(self) -> FocusItem | None:
        """Defer the current item and return it."""
        item = self._cursor.snooze()
        if item is not None:
            self.recompose()
        return item

    # ── List Mode ────────────────────────────────────────────────────────

    def complete_engagement(self, engagement_id: str) -> bool:
        """Toggle completion of an engagement by id."""
        engagement = self._find_engagement(engagement_id)
        if engagement is None:
            return False
        self._dispatcher.toggle_engagement(engagement)
        self.recompose()
        return True

    def snooze_engagement(self, engagement_id: str, days: int | None = None) -> bool:
        engagement = self._find_engagement(engagement_id)
        if engagement is None:
            return False
        self._dispatcher.snooze_engagement(engagement, days)
        self.recompose()
        return True

    def discard_engagement(self, engagement_id: str) -> bool:
        if self._find_engagement(engagement_id) is None:
            return False
        self._dispatcher.discard_engagement(engagement_id)
        self.recompose()
        return True

    def create_engagement(self, draft: EngagementDraft) -> None:
        self._dispatcher.create_engagement(draft)

    def accept_suggestion(self, suggestion_id: str) -> bool:
        suggestion = self._find_suggestion(suggestion_id)
        if suggestion is None:
            return False
        self._dispatcher.accept_suggestion(suggestion)
        self.recompose()
        return True

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        added = self._dispatcher.dismiss_suggestion(suggestion_id)
        self.recompose()
        return added

    def snooze_suggestion(self, suggestion_id: str) -> bool:
        added = self._dispatcher.snooze_suggestion(suggestion_id)
        self.recompose()
        return added

    # ── Briefing ─────────────────────────────────────────────────────────

    async def load_briefing(self) -> str:
        """Generate the daily briefing once per session."""
        if self._briefing is None:
            radar = self._deriver.scan(self._deals, self._contacts, self._clock())
            self._briefing = await self._briefing_generator.generate(
                radar, len(self._classified.overdue)
            )
        return self._briefing

    # ── Lookup ───────────────────────────────────────────────────────────

    def _find_engagement(self, engagement_id: str) -> Engagement | None:
        for engagement in self._dispatcher.apply_overrides(self._engagements):
            if engagement.id == engagement_id:
                return engagement
        logger.warning("inbox.unknown_engagement", engagement_id=engagement_id)
        return None

    def _find_suggestion(self, suggestion_id: str) -> Suggestion | None:
        for suggestion in self._suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        logger.warning("inbox.unknown_suggestion", suggestion_id=suggestion_id)
        return None


def build_inbox_controller(
    activity_store: ActivityStore,
    deal_store: DealStore,
    contact_store: ContactStore,
    notifier: NotificationSink | None = None,
    *,
    settings: Settings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> InboxController:
    """Build a controller, wiring the LLM service when a provider is configured."""
    settings = settings or get_settings()
    llm_service = None
    if settings.has_llm_provider():
        from src.crm_inbox.services.llm import LLMService

        llm_service = LLMService(settings)
    else:
        logger.info("inbox.briefing_llm_disabled")

    return InboxController(
        activity_store,
        deal_store,
        contact_store,
        notifier,
        settings=settings,
        briefing=BriefingGenerator(llm_service),
        clock=clock,
    )


__all__ = ["InboxController", "build_inbox_controller"]
