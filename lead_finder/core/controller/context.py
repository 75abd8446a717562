"""
Per-execution context handed to every step handler.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ...text.contacts import ContactExtractor
from ...text.matcher import KeywordMatcher
from ..settings import settings


@dataclass
class Timings:
    click_settle_ms: int = settings.click_settle_ms
    click_delay_ms: int = settings.click_delay_ms
    wait_for_timeout_ms: int = settings.wait_for_timeout_ms
    poll_interval_ms: int = settings.poll_interval_ms

    @classmethod
    def instant(cls) -> "Timings":
        """No settle/click delays; bounded waits still poll."""
        return cls(click_settle_ms=0, click_delay_ms=0, wait_for_timeout_ms=0, poll_interval_ms=1)


@dataclass
class RunContext:
    """
    Shared by the steps of one execution:
    - driver / ctx: the page being worked on
    - records: execution-wide record list, appended to by extraction steps
    - oracle: batch relevance assessor used by delegate-to-ai (optional)
    - ai_scraper: strategy oracle front-end used by ai-strategy (optional)
    - user_goal: what the strategy oracle is asked to find (ai-strategy)
    """

    driver: Any
    ctx: Any
    records: list[dict[str, Any]] = field(default_factory=list)
    contacts: ContactExtractor = field(default_factory=ContactExtractor)
    matcher: Optional[KeywordMatcher] = None
    oracle: Any = None
    ai_scraper: Any = None
    ai_prompt: str = ""
    user_goal: str = ""
    goal_id: str = ""
    timings: Timings = field(default_factory=Timings)

    async def pause(self, ms: int) -> None:
        await asyncio.sleep(max(0, ms) / 1000)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def stamp(record: dict[str, Any], index: int) -> dict[str, Any]:
    record["_index"] = index
    record["_timestamp"] = now_iso()
    return record
