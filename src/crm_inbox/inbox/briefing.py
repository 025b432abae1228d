"""Daily briefing text for the top of the inbox.

The briefing is the only natural-language output of the inbox and the only
place an LLM is involved. The text-generation collaborator is optional:
without one, or when it fails, a static string is returned. This module
never raises to its caller.

Exports:
    BriefingGenerator: Summarize today's radar scan in a few sentences.
    build_briefing_prompt: Chat messages for the briefing completion call.
    NOT_CONFIGURED_BRIEFING / FALLBACK_BRIEFING: Static fallback strings.
"""

from __future__ import annotations

import structlog

from src.crm_inbox.inbox.schemas import RadarScan

logger = structlog.get_logger(__name__)

NOT_CONFIGURED_BRIEFING = (
    "Daily briefing unavailable: no text-generation provider is configured."
)
FALLBACK_BRIEFING = "Good morning! Let's focus on clearing today's pending work."

BRIEFING_SYSTEM_PROMPT = (
    "You are a senior sales manager reviewing a CRM pipeline. "
    "Write a short, motivating morning briefing for the salesperson. "
    "Speak in the first person (\"I noticed that...\", \"I suggest...\"). "
    "If there are risks, focus on them. If everything is clear, congratulate them. "
    "At most 3 sentences."
)


def build_briefing_prompt(radar: RadarScan, overdue_count: int) -> list[dict]:
    """Build the chat messages for a briefing completion."""
    user_content = (
        "Today's data:\n"
        f"- Birthdays this month: {len(radar.birthday_contacts)}\n"
        f"- Stalled deals (at risk): {len(radar.stalled_deals)}\n"
        f"- Overdue activities: {overdue_count}\n"
        f"- Upsell opportunities: {len(radar.upsell_deals)}"
    )
    return [
        {"role": "system", "content": BRIEFING_SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


class BriefingGenerator:
    """Generate the daily briefing through an optional LLM service.

    Args:
        llm_service: LLMService instance, or None (typed as object to avoid
            importing litellm where no provider is wanted).
    """

    def __init__(self, llm_service: object | None = None) -> None:
        self._llm_service = llm_service

    @property
    def enabled(self) -> bool:
        if self._llm_service is None:
            return False
        return bool(getattr(self._llm_service, "available", True))

    async def generate(self, radar: RadarScan, overdue_count: int) -> str:
        """Return briefing text, or a static fallback string.

        Args:
            radar: Raw rule hits (before dismissal filtering).
            overdue_count: Number of overdue engagements.
        """
        if not self.enabled:
            logger.info("briefing.not_configured")
            return NOT_CONFIGURED_BRIEFING

        try:
            response = await self._llm_service.completion(
                messages=build_briefing_prompt(radar, overdue_count),
                model="fast",
                max_tokens=256,
                temperature=0.7,
            )
        except Exception as exc:
            logger.warning("briefing.generation_failed", error=str(exc))
            return FALLBACK_BRIEFING

        content = (response or {}).get("content") or ""
        content = content.strip()
        if not content:
            logger.warning("briefing.empty_response")
            return FALLBACK_BRIEFING

        logger.info("briefing.generated", model=response.get("model"))
        return content


__all__ = [
    "BriefingGenerator",
    "FALLBACK_BRIEFING",
    "NOT_CONFIGURED_BRIEFING",
    "build_briefing_prompt",
]
