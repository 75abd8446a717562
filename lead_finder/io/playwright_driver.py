"""
Playwright-based PageDriver implementation.

Conforms to io/driver.py's PageDriver Protocol:
- start() / stop()
- new_context() / close_context(ctx)
- goto / current_url / title / content / visible_text
- query / query_all (optionally scoped to an element) / closest
- element_text / element_attr / element_html / is_visible
- scroll_into_view / click_element / scroll_by_viewport / scroll_to_top
- type_text / press / trigger_download / screenshot

Visibility follows the layout-parent rule: an element is visible iff its
`offsetParent` is not null.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Error as PwError,
    Page,
    Playwright,
    async_playwright,
)

_SCROLL_BY_JS = "f => window.scrollBy({top: window.innerHeight * f, behavior: 'smooth'})"
_SCROLL_TOP_JS = "() => window.scrollTo({top: 0, behavior: 'smooth'})"
_VISIBLE_JS = "e => e.offsetParent !== null"
_CLOSEST_JS = "(e, s) => e.closest(s)"
_DOWNLOAD_JS = """([href, name]) => {
    const a = document.createElement('a');
    a.href = href;
    a.download = name;
    document.body.appendChild(a);
    a.click();
    a.remove();
}"""


class PlaywrightDriver:
    """
    A concrete PageDriver based on Playwright Chromium.
    - `ctx` in this implementation is a Playwright `Page`.
    - Each `new_context()` creates a BrowserContext + a new Page, optionally
      seeded with a storage-state file (logged-in session cookies).
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        slow_mo_ms: int = 0,
        default_timeout_ms: int = 30_000,
        storage_state: str | None = None,
    ) -> None:
        self.headless = headless
        self.slow_mo_ms = slow_mo_ms
        self.default_timeout_ms = default_timeout_ms
        self.storage_state = storage_state

        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page_to_context: Dict[Page, BrowserContext] = {}

    # ---------------- lifecycle ----------------

    async def start(self) -> None:
        """Launch Playwright and a Chromium browser once."""
        if self._browser is not None:
            return
        pw = await async_playwright().start()
        self._pw = pw
        self._browser = await pw.chromium.launch(headless=self.headless, slow_mo=self.slow_mo_ms)

    async def stop(self) -> None:
        """Close all contexts and stop Playwright."""
        try:
            for page, ctx in list(self._page_to_context.items()):
                try:
                    await page.close()
                except PwError:
                    pass
                try:
                    await ctx.close()
                except PwError:
                    pass
            self._page_to_context.clear()
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._pw is not None:
                await self._pw.stop()
            self._pw = None
            self._browser = None

    async def new_context(self) -> Page:
        self._ensure_started()
        assert self._browser is not None
        if self.storage_state and Path(self.storage_state).exists():
            ctx = await self._browser.new_context(storage_state=self.storage_state, accept_downloads=True)
        else:
            ctx = await self._browser.new_context(accept_downloads=True)
        ctx.set_default_timeout(self.default_timeout_ms)
        page = await ctx.new_page()
        self._page_to_context[page] = ctx
        return page

    async def close_context(self, ctx: Any) -> None:
        page = self._as_page(ctx)
        context = self._page_to_context.pop(page, None)
        try:
            await page.close()
        finally:
            if context is not None:
                try:
                    await context.close()
                except PwError:
                    pass

    # ---------------- document ----------------

    async def goto(self, ctx: Any, url: str, *, timeout_ms: Optional[int] = None) -> None:
        page = self._as_page(ctx)
        await page.goto(url, timeout=timeout_ms or self.default_timeout_ms, wait_until="load")

    async def current_url(self, ctx: Any) -> str:
        return self._as_page(ctx).url

    async def title(self, ctx: Any) -> str:
        return await self._as_page(ctx).title()

    async def content(self, ctx: Any) -> str:
        return await self._as_page(ctx).content()

    async def visible_text(self, ctx: Any) -> str:
        page = self._as_page(ctx)
        try:
            return await page.inner_text("body", timeout=self.default_timeout_ms)
        except PwError:
            return ""

    # ---------------- queries ----------------

    async def query(self, ctx: Any, selector: str, *, root: Any = None) -> Optional[ElementHandle]:
        scope = root if root is not None else self._as_page(ctx)
        try:
            return await scope.query_selector(selector)
        except PwError:
            return None

    async def query_all(self, ctx: Any, selector: str, *, root: Any = None) -> list[ElementHandle]:
        scope = root if root is not None else self._as_page(ctx)
        try:
            return await scope.query_selector_all(selector)
        except PwError:
            return []

    async def closest(self, ctx: Any, element: Any, selector: str) -> Optional[ElementHandle]:
        try:
            handle = await element.evaluate_handle(_CLOSEST_JS, selector)
        except PwError:
            return None
        return handle.as_element()

    # ---------------- elements ----------------

    async def element_text(self, ctx: Any, element: Any) -> str:
        text = await element.text_content()
        return text.strip() if text else ""

    async def element_attr(self, ctx: Any, element: Any, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def element_html(self, ctx: Any, element: Any) -> str:
        return await element.inner_html()

    async def is_visible(self, ctx: Any, element: Any) -> bool:
        try:
            return bool(await element.evaluate(_VISIBLE_JS))
        except PwError:
            return False

    # ---------------- interactions ----------------

    async def scroll_into_view(self, ctx: Any, element: Any) -> None:
        await element.scroll_into_view_if_needed()

    async def click_element(self, ctx: Any, element: Any) -> None:
        await element.click()

    async def scroll_by_viewport(self, ctx: Any, fraction: float) -> None:
        await self._as_page(ctx).evaluate(_SCROLL_BY_JS, fraction)

    async def scroll_to_top(self, ctx: Any) -> None:
        await self._as_page(ctx).evaluate(_SCROLL_TOP_JS)

    async def type_text(self, ctx: Any, selector: str, text: str) -> None:
        locator = self._as_page(ctx).locator(selector).first
        await locator.wait_for(state="visible", timeout=self.default_timeout_ms)
        await locator.fill(text)

    async def press(self, ctx: Any, selector: str, key: str) -> None:
        await self._as_page(ctx).locator(selector).first.press(key)

    async def trigger_download(self, ctx: Any, href: str, filename: str) -> None:
        await self._as_page(ctx).evaluate(_DOWNLOAD_JS, [href, filename])

    async def screenshot(self, ctx: Any, path: str, *, full_page: bool = True) -> None:
        page = self._as_page(ctx)
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=path, full_page=full_page)

    # ---------------- internals ----------------

    def _ensure_started(self) -> None:
        if self._browser is None:
            raise RuntimeError("Browser not started. Call start() first.")

    @staticmethod
    def _as_page(ctx: Any) -> Page:
        if not isinstance(ctx, Page):
            raise TypeError("ctx must be a Playwright Page (returned by new_context()).")
        return ctx
