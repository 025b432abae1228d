"""Rule-based suggestion derivation from deal and contact snapshots.

Three fixed business rules, each producing a suggestion with a deterministic
id so a dismissal keeps suppressing the same condition on every re-run:

    Upsell:   won deal untouched for more than upsell_after_days  -> medium
    Stalled:  open deal untouched for more than stalled_after_days -> high
    Birthday: contact whose birthday falls in the current month     -> low

Deterministic Python only -- no LLM involvement in deciding what to suggest.

Exports:
    SuggestionDeriver: Configurable rule engine producing ordered suggestions.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from src.crm_inbox.inbox.schemas import (
    ContactSnapshot,
    DealSnapshot,
    DismissalSet,
    PriorityTier,
    RadarScan,
    Suggestion,
    SuggestionPayload,
    SuggestionType,
    suggestion_id,
)


class SuggestionDeriver:
    """Derive UPSELL / STALLED / BIRTHDAY suggestions.

    Output is stable-sorted by tier (high < medium < low). Within a tier the
    encounter order is kept: upsell deals, then stalled deals, then birthday
    contacts, each in input order. No secondary key is applied.

    Args:
        upsell_after_days: Days since the last update of a won deal after
            which an upsell is suggested (strictly greater).
        stalled_after_days: Days since the last update of an open deal after
            which it counts as stalled (strictly greater).
    """

    def __init__(
        self,
        *,
        upsell_after_days: int = 30,
        stalled_after_days: int = 7,
    ) -> None:
        self._upsell_after = timedelta(days=upsell_after_days)
        self._stalled_after = timedelta(days=stalled_after_days)
        self._upsell_after_days = upsell_after_days
        self._stalled_after_days = stalled_after_days

    # ── Rules ────────────────────────────────────────────────────────────

    def is_upsell_candidate(self, deal: DealSnapshot, now: datetime) -> bool:
        return deal.is_won and now - deal.last_updated_at > self._upsell_after

    def is_stalled(self, deal: DealSnapshot, now: datetime) -> bool:
        return (
            not deal.is_won
            and not deal.is_lost
            and now - deal.last_updated_at > self._stalled_after
        )

    @staticmethod
    def has_birthday_this_month(contact: ContactSnapshot, now: datetime) -> bool:
        return contact.birth_date is not None and contact.birth_date.month == now.month

    def scan(
        self,
        deals: Iterable[DealSnapshot],
        contacts: Iterable[ContactSnapshot],
        now: datetime,
    ) -> RadarScan:
        """Apply the rules without dismissal filtering."""
        deals = list(deals)
        return RadarScan(
            upsell_deals=[d for d in deals if self.is_upsell_candidate(d, now)],
            stalled_deals=[d for d in deals if self.is_stalled(d, now)],
            birthday_contacts=[
                c for c in contacts if self.has_birthday_this_month(c, now)
            ],
        )

    # ── Derivation ───────────────────────────────────────────────────────

    def derive(
        self,
        deals: Iterable[DealSnapshot],
        contacts: Iterable[ContactSnapshot],
        now: datetime,
        dismissals: DismissalSet | frozenset[str] = frozenset(),
    ) -> list[Suggestion]:
        """Build the ordered suggestion list, excluding dismissed ids.

        Args:
            deals: Deal snapshots.
            contacts: Contact snapshots.
            now: Reference instant.
            dismissals: Ids already resolved or deferred this session.

        Returns:
            Suggestions sorted by tier, encounter order within a tier.
        """
        radar = self.scan(deals, contacts, now)
        candidates = [
            *(self._upsell(d, now) for d in radar.upsell_deals),
            *(self._stalled(d, now) for d in radar.stalled_deals),
            *(self._birthday(c, now) for c in radar.birthday_contacts),
        ]
        suggestions = [s for s in candidates if s.id not in dismissals]
        return sorted(suggestions, key=lambda s: s.priority_tier.order)

    def _upsell(self, deal: DealSnapshot, now: datetime) -> Suggestion:
        company = deal.company_name or deal.title
        return Suggestion(
            id=suggestion_id(SuggestionType.UPSELL, deal.id),
            type=SuggestionType.UPSELL,
            title="Upsell opportunity",
            description=(
                f"{company} closed more than {self._upsell_after_days} days ago. "
                "Time to renew?"
            ),
            priority_tier=PriorityTier.MEDIUM,
            payload=SuggestionPayload(deal=deal),
            created_at=now,
        )

    def _stalled(self, deal: DealSnapshot, now: datetime) -> Suggestion:
        return Suggestion(
            id=suggestion_id(SuggestionType.STALLED, deal.id),
            type=SuggestionType.STALLED,
            title="Stalled deal",
            description=(
                f"{deal.title} has not moved in more than "
                f"{self._stalled_after_days} days. Risk of losing it!"
            ),
            priority_tier=PriorityTier.HIGH,
            payload=SuggestionPayload(deal=deal),
            created_at=now,
        )

    @staticmethod
    def _birthday(contact: ContactSnapshot, now: datetime) -> Suggestion:
        day = contact.birth_date.day if contact.birth_date else "??"
        return Suggestion(
            id=suggestion_id(SuggestionType.BIRTHDAY, contact.id),
            type=SuggestionType.BIRTHDAY,
            title="Birthday",
            description=f"{contact.name} has a birthday on day {day}. Send your wishes!",
            priority_tier=PriorityTier.LOW,
            payload=SuggestionPayload(contact=contact),
            created_at=now,
        )


__all__ = ["SuggestionDeriver"]
