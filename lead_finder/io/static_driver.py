"""
BeautifulSoup-backed PageDriver for saved HTML.

Used for offline analysis (`lead-finder analyze --html page.html`) and as the
document double in tests. Interactions are recorded in `StaticPage.events`
instead of being simulated; `on_click` hooks let a caller mutate the
document when a matching element is clicked (e.g. remove a "load more"
button).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup, Tag
from bs4.element import NavigableString, PreformattedString

ClickHook = Callable[["StaticPage", Tag], None]

_DISPLAY_NONE = re.compile(r"display\s*:\s*none", re.I)
_NON_RENDERED = {"script", "style", "noscript", "template", "head", "title", "meta"}


@dataclass
class StaticPage:
    url: str = "about:blank"
    soup: BeautifulSoup = field(default_factory=lambda: BeautifulSoup("", "html.parser"))
    events: list[tuple[Any, ...]] = field(default_factory=list)
    click_hooks: list[tuple[str, ClickHook]] = field(default_factory=list)

    @classmethod
    def from_html(cls, html: str, url: str = "about:blank") -> "StaticPage":
        return cls(url=url, soup=BeautifulSoup(html, "html.parser"))

    def load(self, html: str, url: str) -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.url = url

    def on_click(self, selector: str, hook: ClickHook) -> None:
        self.click_hooks.append((selector, hook))

    def events_of(self, kind: str) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e and e[0] == kind]


class StaticPageDriver:
    """
    PageDriver over in-memory HTML.
    - `pages` maps URL -> HTML; `goto()` loads the mapped document, or an
      empty one for unknown URLs.
    """

    def __init__(self, pages: Optional[dict[str, str]] = None) -> None:
        self.pages: dict[str, str] = dict(pages or {})

    # ---------------- lifecycle ----------------

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def new_context(self) -> StaticPage:
        return StaticPage()

    async def close_context(self, ctx: Any) -> None:
        return None

    # ---------------- document ----------------

    async def goto(self, ctx: Any, url: str, *, timeout_ms: Optional[int] = None) -> None:
        page = self._as_page(ctx)
        if url in self.pages:
            page.load(self.pages[url], url)
        elif Path(url).exists():
            page.load(Path(url).read_text(encoding="utf-8"), url)
        else:
            page.load("<html><body></body></html>", url)
        page.events.append(("goto", url))

    async def current_url(self, ctx: Any) -> str:
        return self._as_page(ctx).url

    async def title(self, ctx: Any) -> str:
        soup = self._as_page(ctx).soup
        return soup.title.get_text(strip=True) if soup.title else ""

    async def content(self, ctx: Any) -> str:
        return str(self._as_page(ctx).soup)

    async def visible_text(self, ctx: Any) -> str:
        soup = self._as_page(ctx).soup
        root = soup.body or soup
        return _rendered_text(root)

    # ---------------- queries ----------------

    async def query(self, ctx: Any, selector: str, *, root: Any = None) -> Optional[Tag]:
        scope = root if root is not None else self._as_page(ctx).soup
        return scope.select_one(selector)

    async def query_all(self, ctx: Any, selector: str, *, root: Any = None) -> list[Tag]:
        scope = root if root is not None else self._as_page(ctx).soup
        return list(scope.select(selector))

    async def closest(self, ctx: Any, element: Any, selector: str) -> Optional[Tag]:
        node: Any = element
        while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
            if node.css.match(selector):
                return node
            node = node.parent
        return None

    # ---------------- elements ----------------

    async def element_text(self, ctx: Any, element: Any) -> str:
        return _rendered_text(element)

    async def element_attr(self, ctx: Any, element: Any, name: str) -> Optional[str]:
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def element_html(self, ctx: Any, element: Any) -> str:
        return element.decode_contents()

    async def is_visible(self, ctx: Any, element: Any) -> bool:
        node: Any = element
        while node is not None:
            if isinstance(node, BeautifulSoup):
                return True
            if node.has_attr("hidden") or node.get("aria-hidden") == "true":
                return False
            if _DISPLAY_NONE.search(node.get("style") or ""):
                return False
            node = node.parent
        # detached from the document
        return False

    # ---------------- interactions ----------------

    async def scroll_into_view(self, ctx: Any, element: Any) -> None:
        self._as_page(ctx).events.append(("scroll_into_view", element))

    async def click_element(self, ctx: Any, element: Any) -> None:
        page = self._as_page(ctx)
        page.events.append(("click", element))
        for selector, hook in list(page.click_hooks):
            if any(el is element for el in page.soup.select(selector)):
                hook(page, element)

    async def scroll_by_viewport(self, ctx: Any, fraction: float) -> None:
        self._as_page(ctx).events.append(("scroll_by", fraction))

    async def scroll_to_top(self, ctx: Any) -> None:
        self._as_page(ctx).events.append(("scroll_top",))

    async def type_text(self, ctx: Any, selector: str, text: str) -> None:
        page = self._as_page(ctx)
        el = page.soup.select_one(selector)
        if el is not None:
            el["value"] = text
        page.events.append(("type", selector, text))

    async def press(self, ctx: Any, selector: str, key: str) -> None:
        self._as_page(ctx).events.append(("press", selector, key))

    async def trigger_download(self, ctx: Any, href: str, filename: str) -> None:
        self._as_page(ctx).events.append(("download", href, filename))

    async def screenshot(self, ctx: Any, path: str, *, full_page: bool = True) -> None:
        """No pixels to capture; writes the current markup instead."""
        p = Path(path).with_suffix(".html")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(str(self._as_page(ctx).soup), encoding="utf-8")

    # ---------------- internals ----------------

    @staticmethod
    def _as_page(ctx: Any) -> StaticPage:
        if not isinstance(ctx, StaticPage):
            raise TypeError("ctx must be a StaticPage (returned by new_context()).")
        return ctx


def _rendered_text(root: Any) -> str:
    parts: list[str] = []
    for s in root.descendants:
        if not isinstance(s, NavigableString) or isinstance(s, PreformattedString):
            continue
        if s.parent is not None and s.parent.name in _NON_RENDERED:
            continue
        text = s.strip()
        if text:
            parts.append(text)
    return " ".join(parts)
