# lead_finder/actions/sites/linkedin.py
"""
LinkedIn site adapter: the selectors the feed scanner relies on.

Feed markup changes often; every lookup is a list of candidates tried in
order, so a new class name can be added in front without code changes.
"""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

BASE_URL = "https://www.linkedin.com"


class LinkedInSelectors(BaseModel):
    """Selector candidates for the feed / search surfaces."""

    model_config = ConfigDict(frozen=True)

    posts: tuple[str, ...] = (
        'article[data-id^="urn:li:activity"]',
        'article[data-urn^="urn:li:activity"]',
        'div[data-id^="urn:li:activity"]',
        'div[data-urn^="urn:li:activity"]',
        ".feed-shared-update-v2",
        ".feed-update",
        'div[data-test-id="main-feed-activity-card"]',
    )
    # Closest-ancestor candidates used to normalise a nested node to its post.
    post_roots: tuple[str, ...] = (
        'article[data-id^="urn:li:activity"]',
        'article[data-urn^="urn:li:activity"]',
        'div[data-id^="urn:li:activity"]',
        'div[data-urn^="urn:li:activity"]',
        "article",
    )
    post_content: tuple[str, ...] = (
        ".feed-shared-update-v2__description",
        ".feed-shared-text",
        '[data-test-id="main-feed-activity-card__commentary"]',
        ".update-components-text",
    )
    author: tuple[str, ...] = (
        ".feed-shared-actor__name",
        '[data-test-id="main-feed-activity-card__actor"]',
        ".update-components-actor__name",
    )
    post_link: tuple[str, ...] = (
        'a[href*="/feed/update/"]',
        'a[data-test-id="main-feed-activity-card__link"]',
    )
    profile_link: str = 'a[href*="/in/"]'
    see_more: tuple[str, ...] = (
        "button.feed-shared-inline-show-more-text__see-more-less-toggle",
        "button.inline-show-more-text__button",
        'button[aria-label*="see more" i]',
        'button[aria-label*="show more" i]',
        ".feed-shared-inline-show-more-text button",
        ".inline-show-more-text button",
    )
    search_input: tuple[str, ...] = (
        'input[placeholder="Search"]',
        'input[aria-label="Search"]',
        ".search-global-typeahead__input",
        "input.search-global-typeahead__input",
    )


DEFAULT_SELECTORS = LinkedInSelectors()


def absolute_url(href: str | None, base_url: str = BASE_URL) -> str:
    if not href:
        return ""
    return href if href.startswith("http") else f"{base_url}{href}"


def content_search_url(keyword: str, base_url: str = BASE_URL) -> str:
    return (
        f"{base_url}/search/results/content/?keywords={quote(keyword, safe='')}"
        "&origin=GLOBAL_SEARCH_HEADER"
    )
