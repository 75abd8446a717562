"""
Page classification and landmark detection.

`detect_page_type` is a pure function of the URL path (first matching rule
wins). `PageAnalyzer.analyze_page` then inspects the landmarks registered
for that page type and reports which fields a strategy could pull from
them. Missing landmarks are simply left out of the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlparse

from loguru import logger

from ..core.strategy import ExtractableElement, PageAnalysis, PageType
from ..io.driver import PageDriver


def _path_rules() -> list[tuple[Callable[[str, str], bool], PageType]]:
    return [
        (lambda u, p: "/jobs/view/" in p or "/jobs/collections/" in p, PageType.JOB_LISTING),
        (lambda u, p: "/jobs/search/" in p or p == "/jobs/", PageType.JOB_SEARCH),
        (lambda u, p: p in ("/feed/", "/"), PageType.FEED),
        (lambda u, p: "/posts/" in p or "/feed/update/" in u, PageType.POST_DETAIL),
        (lambda u, p: "/in/" in p, PageType.PROFILE),
        (lambda u, p: "/search/results/content/" in p, PageType.SEARCH_RESULTS),
        (lambda u, p: "/search/results/people/" in p, PageType.PEOPLE_SEARCH),
        (lambda u, p: "/company/" in p, PageType.COMPANY_PAGE),
        (lambda u, p: "/messaging/" in p, PageType.MESSAGING),
    ]


_RULES = _path_rules()


def detect_page_type(url: str, pathname: str | None = None) -> PageType:
    """Classify by URL path. Accepts a full URL or a bare path; never raises."""
    url = url or ""
    if pathname is None:
        try:
            pathname = urlparse(url).path or "/"
        except ValueError:
            return PageType.UNKNOWN
    for predicate, page_type in _RULES:
        if predicate(url, pathname):
            return page_type
    return PageType.UNKNOWN


@dataclass(frozen=True)
class Landmark:
    type: str
    selectors: tuple[str, ...]
    extractable: tuple[str, ...]
    counted: bool = False


LANDMARKS: dict[PageType, tuple[Landmark, ...]] = {
    PageType.JOB_LISTING: (
        Landmark(
            "applicant_count",
            (".jobs-unified-top-card__applicant-count",),
            ("applicant_count", "applicant_list"),
        ),
        Landmark(
            "applicant_access",
            ('button[aria-label*="applicant" i]', 'button[aria-label*="application" i]'),
            ("applicant_profiles", "resumes"),
        ),
        Landmark(
            "job_metadata",
            (".jobs-unified-top-card__job-title", ".jobs-unified-top-card__company-name"),
            ("job_title", "company_name", "location", "job_description"),
        ),
    ),
    PageType.JOB_SEARCH: (
        Landmark(
            "job_listings",
            (".job-card-container", ".jobs-search-results__list-item"),
            ("job_list", "bulk_job_data"),
            counted=True,
        ),
    ),
    PageType.FEED: (
        Landmark(
            "posts",
            ('[data-id^="urn:li:activity"]', ".feed-shared-update-v2"),
            ("post_content", "post_authors", "post_engagement", "comments"),
            counted=True,
        ),
    ),
    PageType.POST_DETAIL: (
        Landmark(
            "post_content",
            (".feed-shared-update-v2__description", '[data-test-id="main-feed-activity-card__commentary"]'),
            ("author", "content", "engagement"),
        ),
        Landmark(
            "comments",
            (".comments-comment-item", '[data-test-id="comment"]'),
            ("comment_authors", "comment_content", "comment_contacts"),
            counted=True,
        ),
        Landmark("expandable_comments", ('button[aria-label*="more comment" i]',), ("all_comments",)),
    ),
    PageType.PROFILE: (
        Landmark(
            "contact_info",
            ("#top-card-text-details-contact-info", '[data-test-id="top-card-text-details-contact-info"]'),
            ("email", "phone", "website", "social_links"),
        ),
        Landmark("about", (".pv-about-section", '[data-test-id="about-section"]'), ("bio", "contact_info_from_bio")),
        Landmark(
            "experience",
            (".experience-section", '[data-test-id="experience-section"]'),
            ("work_history", "companies"),
        ),
    ),
    PageType.SEARCH_RESULTS: (
        Landmark(
            "search_results",
            (".search-results__list li", '[data-test-id="search-result"]'),
            ("result_posts", "result_authors", "result_content"),
            counted=True,
        ),
    ),
    PageType.PEOPLE_SEARCH: (
        Landmark(
            "people_results",
            (".entity-result", ".reusable-search__result-container"),
            ("profiles", "names", "titles", "companies", "locations"),
            counted=True,
        ),
    ),
    PageType.COMPANY_PAGE: (
        Landmark(
            "company_info",
            (".org-top-card", '[data-test-id="org-top-card"]'),
            ("company_name", "website", "industry", "size", "location"),
        ),
        Landmark(
            "employees",
            (".org-people-bar", '[data-test-id="org-people-bar"]'),
            ("employee_list", "employee_count"),
        ),
        Landmark(
            "company_posts",
            ('[data-id^="urn:li:activity"]',),
            ("post_content", "engagement"),
            counted=True,
        ),
    ),
}

RECOMMENDED_STRATEGY: dict[PageType, str] = {
    PageType.JOB_LISTING: "job_applicant_extraction",
    PageType.JOB_SEARCH: "job_listing_extraction",
    PageType.FEED: "post_based_lead_generation",
    PageType.POST_DETAIL: "comment_contact_extraction",
    PageType.PROFILE: "profile_contact_extraction",
    PageType.SEARCH_RESULTS: "content_based_extraction",
    PageType.PEOPLE_SEARCH: "people_list_extraction",
    PageType.COMPANY_PAGE: "company_contact_extraction",
}

EXTRACTION_SELECTORS: dict[str, tuple[str, ...]] = {
    "comments": (
        ".comments-comment-item",
        '[data-test-id="comment"]',
        ".comment-item",
        'article[data-id*="comment"]',
    ),
    "comment_author": (".comments-post-meta__name-text", '[data-test-id="comment-author"]', ".comment-author"),
    "comment_content": (
        ".comments-comment-item__main-content",
        '[data-test-id="comment-content"]',
        ".comment-text",
    ),
    "job_cards": (".job-card-container", ".jobs-search-results__list-item", "[data-job-id]"),
    "applicant_button": (
        'button[aria-label*="applicant" i]',
        'button[aria-label*="application" i]',
        ".job-details-jobs-unified-top-card__applicants-button",
    ),
    "profile_cards": (".entity-result", ".reusable-search__result-container", '[data-test-id="search-result"]'),
    "profile_name": (".entity-result__title-text", '[data-test-id="profile-name"]', ".actor-name"),
    "profile_headline": (".entity-result__primary-subtitle", '[data-test-id="profile-headline"]'),
    "contact_section": ("#top-card-text-details-contact-info", '[data-test-id="contact-info"]', ".pv-contact-info"),
    "email_link": ('a[href^="mailto:"]', '[data-test-id="email"]'),
    "phone_link": ('a[href^="tel:"]', '[data-test-id="phone"]'),
}


def get_extraction_selectors(data_type: str) -> tuple[str, ...]:
    return EXTRACTION_SELECTORS.get(data_type, ())


class PageAnalyzer:
    """Read-only: never mutates the document and never performs network I/O."""

    def __init__(self, driver: PageDriver) -> None:
        self.driver = driver

    async def analyze_page(self, ctx: Any) -> PageAnalysis:
        url = await self.driver.current_url(ctx)
        page_type = detect_page_type(url)
        elements = await self._detect_landmarks(ctx, LANDMARKS.get(page_type, ()))
        analysis = PageAnalysis(
            page_type=page_type,
            url=url,
            extractable_elements=tuple(elements),
            recommended_strategy=RECOMMENDED_STRATEGY.get(page_type),
        )
        logger.debug("page analysed: {} ({} landmarks)", page_type.value, len(elements))
        return analysis

    async def _detect_landmarks(self, ctx: Any, landmarks: tuple[Landmark, ...]) -> list[ExtractableElement]:
        found: list[ExtractableElement] = []
        for landmark in landmarks:
            if landmark.counted:
                count = await self._count(ctx, landmark.selectors)
                if count:
                    found.append(
                        ExtractableElement(
                            type=landmark.type, count=count, extractable=frozenset(landmark.extractable)
                        )
                    )
                continue
            for selector in landmark.selectors:
                if await self.driver.query(ctx, selector) is not None:
                    found.append(ExtractableElement(type=landmark.type, extractable=frozenset(landmark.extractable)))
                    break
        return found

    async def _count(self, ctx: Any, selectors: tuple[str, ...]) -> int:
        """Distinct elements matched by the union of selectors."""
        return len(await self.driver.query_all(ctx, ", ".join(selectors)))
