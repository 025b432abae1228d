"""Shared test fixtures for the inbox engine.

Provides:
- Settings with no LLM keys and zero retry wait, so failing store calls
  settle immediately and no test reaches a real provider
"""

from __future__ import annotations

import pytest

from src.crm_inbox.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings with no LLM keys and instant retries."""
    return Settings(
        ANTHROPIC_API_KEY="",
        OPENAI_API_KEY="",
        INBOX_DISPATCH_MAX_ATTEMPTS=2,
        INBOX_DISPATCH_RETRY_WAIT_SECONDS=0,
    )
