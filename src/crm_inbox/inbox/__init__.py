"""Inbox module -- prioritization and focus-navigation engine for pending work.

Merges scheduled engagements (calls, meetings, tasks) and rule-derived
suggestions (upsell, stalled deal, birthday) into one ranked focus queue,
navigated with a cursor whose done/snooze actions dispatch store effects
fire-and-forget. InboxController wires the pieces into a user session.
"""

from src.crm_inbox.inbox.briefing import BriefingGenerator
from src.crm_inbox.inbox.classifier import TemporalClassifier, classify_engagements
from src.crm_inbox.inbox.composer import QueueComposer
from src.crm_inbox.inbox.controller import InboxController, build_inbox_controller
from src.crm_inbox.inbox.cursor import FocusCursor, FocusResolver
from src.crm_inbox.inbox.dispatcher import DispatchError, EffectDispatcher
from src.crm_inbox.inbox.schemas import (
    ClassifiedEngagements,
    ContactSnapshot,
    DealSnapshot,
    DismissalSet,
    Engagement,
    EngagementItem,
    EngagementKind,
    FocusItem,
    InboxStats,
    PriorityTier,
    Suggestion,
    SuggestionItem,
    SuggestionType,
    ViewMode,
)
from src.crm_inbox.inbox.suggestions import SuggestionDeriver

__all__ = [
    "BriefingGenerator",
    "ClassifiedEngagements",
    "ContactSnapshot",
    "DealSnapshot",
    "DismissalSet",
    "DispatchError",
    "EffectDispatcher",
    "Engagement",
    "EngagementItem",
    "EngagementKind",
    "FocusCursor",
    "FocusItem",
    "FocusResolver",
    "InboxController",
    "InboxStats",
    "PriorityTier",
    "QueueComposer",
    "Suggestion",
    "SuggestionDeriver",
    "SuggestionItem",
    "SuggestionType",
    "TemporalClassifier",
    "ViewMode",
    "build_inbox_controller",
    "classify_engagements",
]
