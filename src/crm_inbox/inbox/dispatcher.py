"""Side effects of inbox actions, dispatched fire-and-forget.

Translates accept / complete / snooze / dismiss / discard actions into calls
on the external stores. Local session state changes first and synchronously:

- Suggestions: the id joins the DismissalSet before any store call.
- Engagements: an optimistic EngagementUpdate override is recorded so the
  queue reflects the change immediately.

Store calls then run as background asyncio tasks, retried with tenacity. A
call that still fails is logged, recorded and reported exactly once to the
notification sink. Nothing is rolled back: the DismissalSet entry, the
override and the cursor position all stay where the user left them.

Exports:
    EffectDispatcher: Executes inbox side effects; implements FocusResolver.
    DispatchError: Raised when an effect is requested without an event loop.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone

import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from src.crm_inbox.inbox.schemas import (
    DealDraft,
    DealUpdate,
    DismissalSet,
    DispatchFailure,
    Engagement,
    EngagementDraft,
    EngagementItem,
    EngagementKind,
    EngagementUpdate,
    FocusItem,
    NotificationLevel,
    Suggestion,
    SuggestionType,
)
from src.crm_inbox.inbox.stores.adapter import (
    ActivityStore,
    DealStore,
    NotificationSink,
)

logger = structlog.get_logger(__name__)


class DispatchError(RuntimeError):
    """Raised when a store effect is requested outside a running event loop."""


class EffectDispatcher:
    """Executes inbox side effects against the external stores.

    Args:
        activity_store: Engagement owner.
        deal_store: Deal owner.
        notifier: Receives status strings (success, skip, snooze, errors).
        dismissals: Session DismissalSet, shared with the suggestion deriver.
        snooze_days: Default days an engagement snooze advances it by.
        upsell_value_multiplier: Value factor for deals created from upsells.
        upsell_probability: Probability set on deals created from upsells.
        max_attempts: Store call attempts before a failure is reported.
        retry_wait_seconds: Base of the exponential wait between attempts.
        clock: Source of "now".
        on_settled: Coroutine run after every successful store call
            (typically the session's snapshot refresh).
    """

    def __init__(
        self,
        activity_store: ActivityStore,
        deal_store: DealStore,
        notifier: NotificationSink,
        dismissals: DismissalSet,
        *,
        snooze_days: int = 1,
        upsell_value_multiplier: float = 1.2,
        upsell_probability: int = 30,
        max_attempts: int = 3,
        retry_wait_seconds: float = 0.5,
        clock: Callable[[], datetime] | None = None,
        on_settled: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._activities = activity_store
        self._deals = deal_store
        self._notifier = notifier
        self._dismissals = dismissals
        self._snooze_days = snooze_days
        self._upsell_multiplier = upsell_value_multiplier
        self._upsell_probability = upsell_probability
        self._max_attempts = max(1, max_attempts)
        self._retry_wait = retry_wait_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.on_settled = on_settled

        self._tasks: set[asyncio.Task] = set()
        self._failures: list[DispatchFailure] = []
        self._overrides: dict[str, tuple[int, EngagementUpdate]] = {}
        self._discarded: dict[str, int] = {}
        self._seq = 0

    # ── State ────────────────────────────────────────────────────────────

    @property
    def dismissals(self) -> DismissalSet:
        return self._dismissals

    @property
    def pending(self) -> int:
        """Number of store calls still in flight."""
        return len(self._tasks)

    @property
    def failures(self) -> list[DispatchFailure]:
        return list(self._failures)

    def apply_overrides(self, engagements: Iterable[Engagement]) -> list[Engagement]:
        """Overlay optimistic changes onto an engagement snapshot."""
        result = []
        for engagement in engagements:
            if engagement.id in self._discarded:
                continue
            override = self._overrides.get(engagement.id)
            result.append(override[1].apply(engagement) if override else engagement)
        return result

    async def drain(self) -> None:
        """Wait until every in-flight store call has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── FocusResolver ────────────────────────────────────────────────────

    def resolve(self, item: FocusItem) -> object:
        """Complete an engagement or accept a suggestion."""
        if isinstance(item, EngagementItem):
            return self.toggle_engagement(item.payload)
        return self.accept_suggestion(item.payload)

    def defer(self, item: FocusItem) -> object:
        """Snooze an engagement by the default days, or snooze a suggestion."""
        if isinstance(item, EngagementItem):
            return self.snooze_engagement(item.payload)
        return self.snooze_suggestion(item.payload.id)

    def skipped(self, item: FocusItem) -> None:
        logger.debug("inbox.item_skipped", item_id=item.id, kind=item.kind)
        self._notify("Skipped to the next item", NotificationLevel.INFO)

    # ── Suggestions ──────────────────────────────────────────────────────

    def accept_suggestion(self, suggestion: Suggestion) -> asyncio.Task | None:
        """Act on a suggestion and mark it resolved for the session.

        UPSELL creates a renewal deal, STALLED touches the source deal,
        BIRTHDAY creates an outreach task for today.

        Returns:
            The background task issuing the store call, or None when the
            suggestion carries no source entity to act on or its draft is
            rejected (reported like a failed store call).
        """
        loop = self._require_loop()
        self._dismissals.add(suggestion.id)
        payload = suggestion.payload
        now = self._clock()

        if suggestion.type == SuggestionType.UPSELL and payload.deal is not None:
            deal = payload.deal
            try:
                draft = DealDraft(
                    title=f"Renewal/Upsell: {deal.title}",
                    value=math.floor(deal.value * self._upsell_multiplier + 0.5),
                    probability=self._upsell_probability,
                    priority="medium",
                    contact_id=deal.contact_id,
                    company_id=deal.company_id,
                    tags=["Upsell"],
                    source_deal_id=deal.id,
                )
            except ValidationError as exc:
                self._record_failure("create_upsell_deal", deal.id, exc)
                return None
            return self._spawn(
                loop,
                action="create_upsell_deal",
                target_id=deal.id,
                call=lambda: self._deals.create(draft),
                success_message="Upsell opportunity created!",
            )

        if suggestion.type == SuggestionType.STALLED and payload.deal is not None:
            deal_id = payload.deal.id
            return self._spawn(
                loop,
                action="reactivate_deal",
                target_id=deal_id,
                call=lambda: self._deals.update(deal_id, DealUpdate(last_updated_at=now)),
                success_message="Deal reactivated!",
            )

        if suggestion.type == SuggestionType.BIRTHDAY and payload.contact is not None:
            contact = payload.contact
            draft = EngagementDraft(
                title=f"Send birthday wishes to {contact.name}",
                kind=EngagementKind.TASK,
                description="Birthday spotted by the inbox",
                scheduled_at=now,
            )
            return self._spawn(
                loop,
                action="create_birthday_task",
                target_id=contact.id,
                call=lambda: self._activities.create(draft),
                success_message="Task created: send birthday wishes",
            )

        logger.warning(
            "inbox.suggestion_without_source",
            suggestion_id=suggestion.id,
            suggestion_type=suggestion.type.value,
        )
        return None

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        """Drop a suggestion for the session. Returns False if already dismissed."""
        added = self._dismissals.add(suggestion_id)
        if added:
            self._notify("Suggestion dismissed", NotificationLevel.INFO)
        return added

    def snooze_suggestion(self, suggestion_id: str) -> bool:
        """Defer a suggestion for the session. Returns False if already dismissed."""
        added = self._dismissals.add(suggestion_id)
        if added:
            self._notify("Suggestion snoozed until tomorrow", NotificationLevel.INFO)
        return added

    # ── Engagements ──────────────────────────────────────────────────────

    def toggle_engagement(self, engagement: Engagement) -> asyncio.Task:
        """Flip ``completed``: completing a completed engagement reopens it."""
        loop = self._require_loop()
        update = EngagementUpdate(completed=not engagement.completed)
        token = self._override(engagement.id, update)
        message = (
            "Engagement reopened" if engagement.completed else "Engagement completed!"
        )
        return self._spawn(
            loop,
            action="toggle_engagement",
            target_id=engagement.id,
            call=lambda: self._activities.update(engagement.id, update),
            success_message=message,
            token=token,
        )

    def snooze_engagement(
        self, engagement: Engagement, days: int | None = None
    ) -> asyncio.Task:
        """Push ``scheduled_at`` forward by ``days`` (default: snooze_days)."""
        loop = self._require_loop()
        days = self._snooze_days if days is None else days
        new_date = engagement.scheduled_at + timedelta(days=days)
        update = EngagementUpdate(scheduled_at=new_date)
        token = self._override(engagement.id, update)
        return self._spawn(
            loop,
            action="snooze_engagement",
            target_id=engagement.id,
            call=lambda: self._activities.update(engagement.id, update),
            success_message=f"Snoozed until {new_date:%Y-%m-%d}",
            token=token,
        )

    def discard_engagement(self, engagement_id: str) -> asyncio.Task:
        """Delete an engagement; it disappears from the queue immediately."""
        loop = self._require_loop()
        self._seq += 1
        self._discarded[engagement_id] = self._seq
        return self._spawn(
            loop,
            action="discard_engagement",
            target_id=engagement_id,
            call=lambda: self._activities.delete(engagement_id),
            success_message="Engagement removed",
            level=NotificationLevel.INFO,
        )

    def create_engagement(self, draft: EngagementDraft) -> asyncio.Task:
        loop = self._require_loop()
        return self._spawn(
            loop,
            action="create_engagement",
            target_id=draft.deal_id or draft.title,
            call=lambda: self._activities.create(draft),
            success_message=f"Engagement created: {draft.title}",
        )

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _require_loop() -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise DispatchError(
                "Inbox effects need a running event loop"
            ) from exc

    def _override(self, engagement_id: str, update: EngagementUpdate) -> int:
        self._seq += 1
        previous = self._overrides.get(engagement_id)
        merged = previous[1].merge(update) if previous else update
        self._overrides[engagement_id] = (self._seq, merged)
        return self._seq

    def _settle_local_state(self, target_id: str, token: int | None) -> None:
        # Only the newest override for an id may be cleared.
        if token is not None:
            current = self._overrides.get(target_id)
            if current is not None and current[0] == token:
                del self._overrides[target_id]

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        *,
        action: str,
        target_id: str,
        call: Callable[[], Awaitable[object]],
        success_message: str,
        level: NotificationLevel = NotificationLevel.SUCCESS,
        token: int | None = None,
    ) -> asyncio.Task:
        task = loop.create_task(
            self._run(action, target_id, call, success_message, level, token),
            name=f"inbox_effect_{action}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        action: str,
        target_id: str,
        call: Callable[[], Awaitable[object]],
        success_message: str,
        level: NotificationLevel,
        token: int | None,
    ) -> bool:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._retry_wait, max=self._retry_wait * 8),
                reraise=True,
            ):
                with attempt:
                    await call()
        except Exception as exc:
            self._record_failure(action, target_id, exc, attempts=self._max_attempts)
            return False

        logger.info("inbox.dispatch_applied", action=action, target_id=target_id)
        self._notify(success_message, level)

        if self.on_settled is not None:
            try:
                await self.on_settled()
            except Exception:
                logger.warning(
                    "inbox.refresh_after_dispatch_failed",
                    action=action,
                    exc_info=True,
                )

        self._settle_local_state(target_id, token)
        if action == "discard_engagement":
            self._discarded.pop(target_id, None)
        return True

    def _record_failure(
        self, action: str, target_id: str, exc: Exception, attempts: int = 0
    ) -> None:
        logger.warning(
            "inbox.dispatch_failed",
            action=action,
            target_id=target_id,
            error=str(exc),
            error_type=type(exc).__name__,
            attempts=attempts,
        )
        self._failures.append(
            DispatchFailure(
                action=action,
                target_id=target_id,
                error=str(exc),
                failed_at=self._clock(),
            )
        )
        self._notify(
            f"Could not complete {action.replace('_', ' ')}: {exc}",
            NotificationLevel.ERROR,
        )

    def _notify(self, message: str, level: NotificationLevel) -> None:
        try:
            self._notifier.notify(message, level)
        except Exception:
            logger.warning("inbox.notification_failed", message=message, exc_info=True)


__all__ = ["DispatchError", "EffectDispatcher"]
