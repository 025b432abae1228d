"""Temporal bucketing of pending engagements.

Splits open engagements into Overdue / Today / Upcoming relative to the
midnight of a reference instant, and Today further into meeting-like (CALL,
MEETING) and task-like engagements. Pure and deterministic: re-run whenever
engagement data or the wall-clock day changes.

Exports:
    classify_engagements: Bucket engagements for a reference instant.
    TemporalClassifier: Injectable wrapper around classify_engagements.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from src.crm_inbox.inbox.schemas import (
    MEETING_KINDS,
    ClassifiedEngagements,
    Engagement,
)


def start_of_day(now: datetime) -> datetime:
    """Midnight of ``now``'s calendar day, keeping its tzinfo."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def classify_engagements(
    engagements: Iterable[Engagement],
    now: datetime,
) -> ClassifiedEngagements:
    """Bucket open engagements into overdue, today and upcoming.

    Completed engagements land in no bucket. Every bucket is sorted
    ascending by ``scheduled_at`` (oldest first); the sort is stable so
    equal timestamps keep their input order.

    Args:
        engagements: Engagement snapshots.
        now: Reference instant. Must be comparable with ``scheduled_at``
            (both naive or both aware).

    Returns:
        ClassifiedEngagements with all five buckets.
    """
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)

    pending = sorted(
        (e for e in engagements if not e.completed),
        key=lambda e: e.scheduled_at,
    )

    overdue = [e for e in pending if e.scheduled_at < today]
    today_all = [e for e in pending if today <= e.scheduled_at < tomorrow]
    upcoming = [e for e in pending if e.scheduled_at >= tomorrow]

    return ClassifiedEngagements(
        today=today,
        tomorrow=tomorrow,
        overdue=overdue,
        today_all=today_all,
        today_meetings=[e for e in today_all if e.kind in MEETING_KINDS],
        today_tasks=[e for e in today_all if e.kind not in MEETING_KINDS],
        upcoming=upcoming,
    )


class TemporalClassifier:
    """Stateless classifier; exists so the controller can take it as a dependency."""

    def classify(
        self,
        engagements: Iterable[Engagement],
        now: datetime,
    ) -> ClassifiedEngagements:
        return classify_engagements(engagements, now)


__all__ = ["TemporalClassifier", "classify_engagements", "start_of_day"]
