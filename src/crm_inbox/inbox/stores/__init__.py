"""Store layer -- pluggable backends for engagements, deals and contacts.

Provides abstract interfaces with in-memory implementations:
- ActivityStore / DealStore / ContactStore: async CRUD boundaries
- NotificationSink: fire-and-forget status strings
- InMemory*: process-local backends for development and tests
"""

from src.crm_inbox.inbox.stores.adapter import (
    ActivityStore,
    ContactStore,
    DealStore,
    EntityNotFoundError,
    NotificationSink,
)
from src.crm_inbox.inbox.stores.memory import (
    InMemoryActivityStore,
    InMemoryContactStore,
    InMemoryDealStore,
    LoggingNotificationSink,
    RecordingNotificationSink,
)

__all__ = [
    "ActivityStore",
    "ContactStore",
    "DealStore",
    "EntityNotFoundError",
    "NotificationSink",
    "InMemoryActivityStore",
    "InMemoryContactStore",
    "InMemoryDealStore",
    "LoggingNotificationSink",
    "RecordingNotificationSink",
]
