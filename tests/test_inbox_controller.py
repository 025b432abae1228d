"""End-to-end tests for InboxController over the in-memory stores.

Exercises the full loop: store snapshots -> classification + derivation ->
focus queue -> cursor action -> dispatched store effect -> refresh.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.crm_inbox.config import Settings
from src.crm_inbox.inbox.briefing import NOT_CONFIGURED_BRIEFING, BriefingGenerator
from src.crm_inbox.inbox.controller import InboxController, build_inbox_controller
from src.crm_inbox.inbox.schemas import (
    ContactSnapshot,
    DealSnapshot,
    Engagement,
    EngagementDraft,
    EngagementKind,
    NotificationLevel,
    ViewMode,
)
from src.crm_inbox.inbox.stores import (
    InMemoryActivityStore,
    InMemoryContactStore,
    InMemoryDealStore,
    RecordingNotificationSink,
)


NOW = datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)


# ── Fixtures ─────────────────────────────────────────────────────────────────


class _FailingActivityStore(InMemoryActivityStore):
    """Activity store whose writes always fail."""

    async def update(self, engagement_id, data):
        raise RuntimeError("store offline")


def _make_engagement(
    engagement_id: str,
    days: float = 0,
    hours: float = 0,
    kind: EngagementKind = EngagementKind.TASK,
    completed: bool = False,
) -> Engagement:
    return Engagement(
        id=engagement_id,
        deal_id="deal-1",
        deal_title="Acme",
        kind=kind,
        title=f"Engagement {engagement_id}",
        scheduled_at=NOW + timedelta(days=days, hours=hours),
        completed=completed,
    )


def _make_deal(deal_id: str, days_idle: float, is_won: bool = False) -> DealSnapshot:
    return DealSnapshot(
        id=deal_id,
        title=f"Deal {deal_id}",
        company_name="Acme",
        value=10000,
        lifecycle_status="won" if is_won else "open",
        is_won=is_won,
        last_updated_at=NOW - timedelta(days=days_idle),
    )


def _make_controller(
    settings: Settings,
    engagements=(),
    deals=(),
    contacts=(),
    activity_store=None,
    briefing=None,
):
    activities = activity_store or InMemoryActivityStore(list(engagements))
    deal_store = InMemoryDealStore(list(deals), clock=lambda: NOW)
    notifier = RecordingNotificationSink()
    controller = InboxController(
        activities,
        deal_store,
        InMemoryContactStore(list(contacts)),
        notifier,
        settings=settings,
        briefing=briefing,
        clock=lambda: NOW,
    )
    return controller, activities, deal_store, notifier


def _queue_ids(controller: InboxController) -> list[str]:
    return [item.id for item in controller.focus_queue]


# ── Views ────────────────────────────────────────────────────────────────────


class TestViews:
    @pytest.mark.asyncio
    async def test_refresh_builds_queue_and_stats(self, settings):
        controller, *_ = _make_controller(
            settings,
            engagements=[
                _make_engagement("late", days=-1),
                _make_engagement("meeting", hours=2, kind=EngagementKind.MEETING),
                _make_engagement("task", hours=3),
                _make_engagement("later", days=3),
                _make_engagement("done", days=-2, completed=True),
            ],
            deals=[_make_deal("d1", 10)],
        )

        await controller.refresh()

        assert _queue_ids(controller) == ["late", "stalled-d1", "meeting", "task"]
        stats = controller.stats
        assert stats.overdue_count == 1
        assert stats.today_count == 2
        assert stats.suggestions_count == 1
        assert stats.total_pending == 4
        assert controller.is_inbox_zero is False

        view = controller.list_view()
        assert [e.id for e in view.upcoming] == ["later"]
        assert [e.id for e in view.today_meetings] == ["meeting"]
        assert [s.id for s in view.suggestions] == ["stalled-d1"]

    @pytest.mark.asyncio
    async def test_empty_stores_are_inbox_zero(self, settings):
        controller, *_ = _make_controller(settings)

        await controller.refresh()

        assert controller.is_inbox_zero is True
        assert controller.current_focus_item is None
        assert controller.focus_done() is None

    def test_view_mode(self, settings):
        controller, *_ = _make_controller(settings)
        assert controller.view_mode == ViewMode.LIST

        controller.set_view_mode("focus")

        assert controller.view_mode == ViewMode.FOCUS


# ── Focus Mode ───────────────────────────────────────────────────────────────


class TestFocusMode:
    @pytest.mark.asyncio
    async def test_done_on_last_item_reconciles_to_zero(self, settings):
        controller, activities, _, _ = _make_controller(
            settings,
            engagements=[_make_engagement(f"e{i}", days=-3 + i) for i in range(3)],
        )
        await controller.refresh()
        controller.focus_next()
        controller.focus_next()
        assert controller.focus_index == 2

        resolved = controller.focus_done()

        assert resolved.id == "e2"
        assert len(controller.focus_queue) == 2
        assert controller.focus_index == 0

        await controller.dispatcher.drain()

        stored = {e.id: e for e in await activities.list()}
        assert stored["e2"].completed is True
        assert _queue_ids(controller) == ["e0", "e1"]
        assert controller.focus_index == 0

    @pytest.mark.asyncio
    async def test_done_mid_queue_slides_next_item_up(self, settings):
        controller, *_ = _make_controller(
            settings,
            engagements=[_make_engagement(f"e{i}", days=-3 + i) for i in range(3)],
        )
        await controller.refresh()
        controller.focus_next()

        controller.focus_done()

        assert controller.focus_index == 1
        assert controller.current_focus_item.id == "e2"

    @pytest.mark.asyncio
    async def test_accepting_upsell_creates_deal(self, settings):
        controller, _, deal_store, notifier = _make_controller(
            settings, deals=[_make_deal("won-1", 45, is_won=True)]
        )
        await controller.refresh()
        assert _queue_ids(controller) == ["upsell-won-1"]

        controller.focus_done()

        assert controller.is_inbox_zero is True
        await controller.dispatcher.drain()

        deals = await deal_store.list()
        created = [d for d in deals if d.id != "won-1"]
        assert len(created) == 1
        assert created[0].value == 12000
        assert created[0].title == "Renewal/Upsell: Deal won-1"
        assert "upsell-won-1" in controller.dismissals
        assert controller.is_inbox_zero is True
        assert notifier.by_level(NotificationLevel.SUCCESS) == ["Upsell opportunity created!"]

    @pytest.mark.asyncio
    async def test_accepting_upsell_on_negative_value_deal(self, settings):
        deal = _make_deal("refund", 45, is_won=True).model_copy(update={"value": -500.0})
        controller, _, deal_store, _ = _make_controller(settings, deals=[deal])
        await controller.refresh()

        resolved = controller.focus_done()

        assert resolved.id == "upsell-refund"
        assert controller.focus_queue == []
        assert controller.suggestions == []
        await controller.dispatcher.drain()

        created = [d for d in await deal_store.list() if d.id != "refund"]
        assert [d.value for d in created] == [-600]

    @pytest.mark.asyncio
    async def test_rejected_upsell_keeps_queue_consistent(self):
        settings = Settings(
            ANTHROPIC_API_KEY="",
            OPENAI_API_KEY="",
            INBOX_UPSELL_PROBABILITY=150,
            INBOX_DISPATCH_RETRY_WAIT_SECONDS=0,
        )
        controller, _, _, notifier = _make_controller(
            settings,
            engagements=[_make_engagement("late", days=-1)],
            deals=[_make_deal("won-1", 45, is_won=True)],
        )
        await controller.refresh()
        controller.focus_next()

        assert controller.focus_done().id == "upsell-won-1"

        assert _queue_ids(controller) == ["late"]
        assert controller.focus_index == 0
        assert len(notifier.by_level(NotificationLevel.ERROR)) == 1

    @pytest.mark.asyncio
    async def test_snoozed_task_moves_to_upcoming(self, settings):
        controller, *_ = _make_controller(
            settings, engagements=[_make_engagement("task", hours=1)]
        )
        await controller.refresh()

        controller.focus_snooze()

        assert controller.focus_queue == []
        assert [e.id for e in controller.list_view().upcoming] == ["task"]
        await controller.dispatcher.drain()
        assert [e.id for e in controller.list_view().upcoming] == ["task"]

    @pytest.mark.asyncio
    async def test_skip_notifies_and_keeps_item(self, settings):
        controller, _, _, notifier = _make_controller(
            settings,
            engagements=[_make_engagement("a", days=-2), _make_engagement("b", days=-1)],
        )
        await controller.refresh()

        assert controller.focus_skip().id == "b"

        assert len(controller.focus_queue) == 2
        assert notifier.by_level(NotificationLevel.INFO) == ["Skipped to the next item"]
        assert controller.focus_prev().id == "a"


# ── List Mode ────────────────────────────────────────────────────────────────


class TestListMode:
    @pytest.mark.asyncio
    async def test_dismiss_suggestion_updates_stats(self, settings):
        controller, *_ = _make_controller(settings, deals=[_make_deal("d1", 10)])
        await controller.refresh()

        assert controller.dismiss_suggestion("stalled-d1") is True
        assert controller.dismiss_suggestion("stalled-d1") is False

        assert controller.suggestions == []
        assert controller.stats.suggestions_count == 0

    @pytest.mark.asyncio
    async def test_snooze_birthday_suggestion(self, settings):
        controller, *_ = _make_controller(
            settings, contacts=[ContactSnapshot(id="c1", name="Ana", birth_date="1990-03-20")]
        )
        await controller.refresh()
        assert [s.id for s in controller.suggestions] == ["birthday-c1"]

        controller.snooze_suggestion("birthday-c1")
        await controller.refresh()

        assert controller.suggestions == []

    @pytest.mark.asyncio
    async def test_accept_stalled_reactivates_deal(self, settings):
        controller, _, deal_store, _ = _make_controller(settings, deals=[_make_deal("d1", 10)])
        await controller.refresh()

        assert controller.accept_suggestion("stalled-d1") is True
        await controller.dispatcher.drain()

        deal = (await deal_store.list())[0]
        assert deal.last_updated_at == NOW

    @pytest.mark.asyncio
    async def test_complete_and_discard_by_id(self, settings):
        controller, activities, _, _ = _make_controller(
            settings,
            engagements=[_make_engagement("a", days=-1), _make_engagement("b", days=-1)],
        )
        await controller.refresh()

        assert controller.complete_engagement("a") is True
        assert controller.discard_engagement("b") is True
        assert controller.stats.overdue_count == 0

        await controller.dispatcher.drain()

        assert [(e.id, e.completed) for e in await activities.list()] == [("a", True)]

    @pytest.mark.asyncio
    async def test_create_engagement_appears_after_refresh(self, settings):
        controller, *_ = _make_controller(settings)
        await controller.refresh()

        controller.create_engagement(
            EngagementDraft(title="Send proposal", scheduled_at=NOW + timedelta(hours=2))
        )
        await controller.dispatcher.drain()

        assert [e.title for e in controller.classified.today_tasks] == ["Send proposal"]

    @pytest.mark.asyncio
    async def test_unknown_ids_are_noops(self, settings):
        controller, _, _, notifier = _make_controller(settings)
        await controller.refresh()

        assert controller.complete_engagement("missing") is False
        assert controller.snooze_engagement("missing") is False
        assert controller.discard_engagement("missing") is False
        assert controller.accept_suggestion("upsell-missing") is False
        assert notifier.messages == []


# ── Failures ─────────────────────────────────────────────────────────────────


class TestDispatchFailure:
    @pytest.mark.asyncio
    async def test_failed_completion_is_not_rolled_back(self, settings):
        activities = _FailingActivityStore(
            [_make_engagement("a", days=-2), _make_engagement("b", days=-1)]
        )
        controller, _, _, notifier = _make_controller(settings, activity_store=activities)
        await controller.refresh()

        controller.focus_done()
        await controller.dispatcher.drain()
        await controller.refresh()

        assert _queue_ids(controller) == ["b"]
        assert len(notifier.by_level(NotificationLevel.ERROR)) == 1
        assert len(controller.dispatcher.failures) == 1
        assert controller.focus_next().id == "b"


# ── Briefing ─────────────────────────────────────────────────────────────────


class TestBriefing:
    @pytest.mark.asyncio
    async def test_without_llm_uses_static_string(self, settings):
        controller, *_ = _make_controller(settings)
        await controller.refresh()

        assert await controller.load_briefing() == NOT_CONFIGURED_BRIEFING
        assert controller.list_view().briefing == NOT_CONFIGURED_BRIEFING

    @pytest.mark.asyncio
    async def test_generated_once_per_session(self, settings):
        generator = MagicMock(spec=BriefingGenerator)
        generator.generate = AsyncMock(return_value="Focus on the stalled deal.")
        controller, *_ = _make_controller(
            settings,
            engagements=[_make_engagement("late", days=-1)],
            deals=[_make_deal("d1", 10)],
            briefing=generator,
        )
        await controller.refresh()

        assert await controller.load_briefing() == "Focus on the stalled deal."
        assert await controller.load_briefing() == "Focus on the stalled deal."

        generator.generate.assert_awaited_once()
        radar, overdue = generator.generate.await_args.args
        assert [d.id for d in radar.stalled_deals] == ["d1"]
        assert overdue == 1


class TestFactory:
    def test_without_llm_keys(self, settings):
        with patch("src.crm_inbox.services.llm.LLMService") as MockService:
            controller = build_inbox_controller(
                InMemoryActivityStore(),
                InMemoryDealStore(),
                InMemoryContactStore(),
                settings=settings,
            )

        MockService.assert_not_called()
        assert isinstance(controller, InboxController)

    def test_with_llm_key(self):
        settings = Settings(ANTHROPIC_API_KEY="sk-test", OPENAI_API_KEY="")
        with patch("src.crm_inbox.services.llm.LLMService") as MockService:
            build_inbox_controller(
                InMemoryActivityStore(),
                InMemoryDealStore(),
                InMemoryContactStore(),
                settings=settings,
            )

        MockService.assert_called_once_with(settings)
