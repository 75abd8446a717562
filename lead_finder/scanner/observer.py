"""
New-post detection by polling.

`PostObserver.new_posts()` yields every post that shows up in the document
and has not been yielded before. A post is found through the feed post
selectors, normalised to its closest post root (so nested matches collapse
onto one post) and identified by its DOM id or, failing that, its text.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, Optional

from loguru import logger

from ..actions.sites.linkedin import DEFAULT_SELECTORS, LinkedInSelectors
from ..reporting.schemas import post_lead_id

PostPredicate = Callable[[str], bool]

_ID_ATTRS = ("data-urn", "data-id", "id")


async def get_post_id(driver: Any, ctx: Any, element: Any) -> str:
    for name in _ID_ATTRS:
        value = await driver.element_attr(ctx, element, name)
        if value:
            return value
    return post_lead_id(None, await driver.element_text(ctx, element))


async def normalize_post(
    driver: Any, ctx: Any, element: Any, selectors: LinkedInSelectors = DEFAULT_SELECTORS
) -> Any:
    for root in selectors.post_roots:
        found = await driver.closest(ctx, element, root)
        if found is not None:
            return found
    return element


async def collect_posts(
    driver: Any, ctx: Any, selectors: LinkedInSelectors = DEFAULT_SELECTORS, *, root: Any = None
) -> list[tuple[str, Any]]:
    """(post id, post element) pairs in document order, one per post."""
    matches = await driver.query_all(ctx, ", ".join(selectors.posts), root=root)
    posts: list[tuple[str, Any]] = []
    seen: set[str] = set()
    for el in matches:
        post = await normalize_post(driver, ctx, el, selectors)
        post_id = await get_post_id(driver, ctx, post)
        if not post_id or post_id in seen:
            continue
        seen.add(post_id)
        posts.append((post_id, post))
    return posts


class PostObserver:
    def __init__(
        self,
        driver: Any,
        ctx: Any,
        *,
        selectors: LinkedInSelectors = DEFAULT_SELECTORS,
        predicate: Optional[PostPredicate] = None,
        interval_ms: int = 1000,
    ) -> None:
        self.driver = driver
        self.ctx = ctx
        self.selectors = selectors
        self.predicate = predicate
        self.interval_ms = interval_ms
        self._seen: set[str] = set()
        self._stop = asyncio.Event()

    def reset(self) -> None:
        """Forget yielded posts; the next poll reports every current post again."""
        self._seen.clear()

    def stop(self) -> None:
        self._stop.set()

    def resume(self) -> None:
        self._stop.clear()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def poll(self) -> list[tuple[str, Any]]:
        fresh: list[tuple[str, Any]] = []
        for post_id, el in await collect_posts(self.driver, self.ctx, self.selectors):
            if post_id in self._seen:
                continue
            if self.predicate is not None and not self.predicate(post_id):
                continue
            self._seen.add(post_id)
            fresh.append((post_id, el))
        if fresh:
            logger.debug("{} new posts", len(fresh))
        return fresh

    async def new_posts(self) -> AsyncIterator[tuple[str, Any]]:
        while not self._stop.is_set():
            for item in await self.poll():
                yield item
                if self._stop.is_set():
                    return
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(1, self.interval_ms) / 1000)
            except asyncio.TimeoutError:
                pass
