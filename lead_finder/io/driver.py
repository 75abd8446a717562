"""
Page driver protocol (abstraction).

This Protocol defines the minimal document surface that page analysis,
step handlers and the scanner rely on. It allows plugging different
backends (Playwright for a live browser, BeautifulSoup for saved HTML and
tests) without changing the extraction logic.

Notes:
- `ctx` represents one page. In the Playwright implementation it is a `Page`
  created via `new_context()`; in the static implementation a `StaticPage`.
- Element handles are opaque and only valid for the `ctx` that produced them.
- Lookups never raise for absent elements: `query` returns None and
  `query_all` returns an empty list.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, Sequence


class PageDriver(Protocol):
    # -------- lifecycle --------
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    async def new_context(self) -> Any: ...
    async def close_context(self, ctx: Any) -> None: ...

    # -------- navigation & document --------
    async def goto(self, ctx: Any, url: str, *, timeout_ms: int | None = None) -> None: ...
    async def current_url(self, ctx: Any) -> str: ...
    async def title(self, ctx: Any) -> str: ...
    async def content(self, ctx: Any) -> str: ...
    async def visible_text(self, ctx: Any) -> str: ...

    # -------- queries --------
    async def query(self, ctx: Any, selector: str, *, root: Any = None) -> Any | None: ...
    async def query_all(self, ctx: Any, selector: str, *, root: Any = None) -> list[Any]: ...
    async def closest(self, ctx: Any, element: Any, selector: str) -> Any | None: ...

    # -------- element access --------
    async def element_text(self, ctx: Any, element: Any) -> str: ...
    async def element_attr(self, ctx: Any, element: Any, name: str) -> str | None: ...
    async def element_html(self, ctx: Any, element: Any) -> str: ...
    async def is_visible(self, ctx: Any, element: Any) -> bool: ...

    # -------- interactions --------
    async def scroll_into_view(self, ctx: Any, element: Any) -> None: ...
    async def click_element(self, ctx: Any, element: Any) -> None: ...
    async def scroll_by_viewport(self, ctx: Any, fraction: float) -> None: ...
    async def scroll_to_top(self, ctx: Any) -> None: ...
    async def type_text(self, ctx: Any, selector: str, text: str) -> None: ...
    async def press(self, ctx: Any, selector: str, key: str) -> None: ...
    async def trigger_download(self, ctx: Any, href: str, filename: str) -> None: ...

    # -------- utilities --------
    async def screenshot(self, ctx: Any, path: str, *, full_page: bool = True) -> None: ...


async def query_first(
    driver: PageDriver, ctx: Any, selectors: Sequence[str], *, root: Any = None
) -> Any | None:
    """First element matched by any selector, tried in order."""
    for selector in selectors:
        el = await driver.query(ctx, selector, root=root)
        if el is not None:
            return el
    return None


async def wait_for_any(
    driver: PageDriver,
    ctx: Any,
    selectors: Sequence[str],
    *,
    timeout_ms: int = 5000,
    poll_interval_ms: int = 200,
) -> Any | None:
    """
    Bounded poll for the first element matching any selector.
    Resolves to None once the timeout elapses instead of raising.
    """
    deadline = time.monotonic() + max(0, timeout_ms) / 1000
    while True:
        el = await query_first(driver, ctx, selectors)
        if el is not None:
            return el
        if time.monotonic() >= deadline:
            return None
        await asyncio.sleep(max(1, poll_interval_ms) / 1000)
