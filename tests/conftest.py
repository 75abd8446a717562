from pathlib import Path
from typing import Any

import pytest

from lead_finder.core.controller.context import Timings
from lead_finder.io.static_driver import StaticPageDriver
from lead_finder.io.store import JsonLeadStore, MemoryConfigStore
from lead_finder.scanner.scanner import Scanner
from lead_finder.scanner.session import ScanTimings

FIXTURES = Path(__file__).parent / "fixtures"
FEED_URL = "https://www.linkedin.com/feed/"


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def notify(self, title: str, message: str) -> None:
        self.sent.append((title, message))


@pytest.fixture
def feed_html() -> str:
    return (FIXTURES / "feed.html").read_text(encoding="utf-8")


@pytest.fixture
def leads(tmp_path: Path) -> JsonLeadStore:
    return JsonLeadStore(tmp_path / "leads.json")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_scanner(feed_html: str, leads: JsonLeadStore, notifier: RecordingNotifier) -> Any:
    async def factory(
        config: dict[str, Any] | None = None,
        *,
        pages: dict[str, str] | None = None,
        url: str = FEED_URL,
        **kwargs: Any,
    ) -> Scanner:
        driver = StaticPageDriver({FEED_URL: feed_html, **(pages or {})})
        ctx = await driver.new_context()
        await driver.goto(ctx, url)
        scanner = Scanner(
            driver,
            ctx,
            config=MemoryConfigStore(config or {}),
            leads=kwargs.pop("leads", leads),
            notifier=notifier,
            timings=ScanTimings.instant(),
            step_timings=Timings.instant(),
            step_delay_ms=0,
            **kwargs,
        )
        await scanner.load()
        return scanner

    return factory
