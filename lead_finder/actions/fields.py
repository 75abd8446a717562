"""
Field -> candidate selectors table used by the list/comment/page extraction steps.

Candidates are tried in order inside one matched element; a selector that
targets an `href` yields the attribute value, any other selector the stripped
text. Fields without a hit fall back to contact extraction over the element's
full text (email / phone only).
"""

from __future__ import annotations

from typing import Any, Mapping

from ..text.contacts import ContactExtractor

FIELD_SELECTORS: Mapping[str, tuple[str, ...]] = {
    "name": (
        ".entity-result__title-text",
        '[data-test-id="profile-name"]',
        ".actor-name",
        "h2",
        "h3",
    ),
    "title": (".entity-result__primary-subtitle", ".artdeco-entity-lockup__subtitle", '[data-test-id="title"]'),
    "headline": (
        ".entity-result__primary-subtitle",
        '[data-test-id="profile-headline"]',
        ".actor-headline",
    ),
    "profile_url": ('a[href*="/in/"]', 'a[href*="/company/"]'),
    "location": (
        ".entity-result__secondary-subtitle",
        '[data-test-id="location"]',
        ".actor-location",
    ),
    "mutual_connections": (".entity-result__simple-insight-text", '[data-test-id="mutual-connections"]'),
    "author_name": (".comments-post-meta__name-text", ".actor-name"),
    "author_profile": ('a[href*="/in/"]',),
    "comment_text": (".comments-comment-item__main-content", ".comment-text"),
    "timestamp": ("time", ".comments-comment-item__timestamp"),
    "email": ('a[href^="mailto:"]', '[data-test-id="email"]'),
    "phone": ('a[href^="tel:"]', '[data-test-id="phone"]'),
    "website": ('a[data-test-id="website"]', 'a[href*="http"]'),
    "company_name": (".org-top-card-summary__title", '[data-test-id="company-name"]'),
    "industry": (".org-top-card-summary-info-list__info-item", '[data-test-id="industry"]'),
    "size": ('[data-test-id="company-size"]', ".org-about-company-module__company-size-definition-text"),
    "headquarters": ('[data-test-id="headquarters"]', ".org-top-card-summary-info-list__info-item"),
    "job_title": (".jobs-unified-top-card__job-title", '[data-test-id="job-title"]'),
    "resume_url": ('a[href*="resume"]', "a[download]"),
    "application_date": ("time", '[data-test-id="application-date"]'),
    "tenure": ('[data-test-id="tenure"]', ".artdeco-entity-lockup__caption"),
    "author": (".feed-shared-actor__name", ".update-components-actor__name", ".actor-name"),
    "content": (
        ".feed-shared-update-v2__description",
        ".feed-shared-text",
        ".update-components-text",
    ),
    "url": ('a[href*="/feed/update/"]', 'a[data-test-id="main-feed-activity-card__link"]'),
}

# Fields that can be recovered from free text when no selector hits.
CONTACT_FALLBACK_FIELDS = frozenset({"email", "phone"})


def selectors_for(field: str) -> tuple[str, ...]:
    return tuple(FIELD_SELECTORS.get(field, ()))


def reads_href(selector: str) -> bool:
    return "[href" in selector


async def extract_field(
    driver: Any,
    ctx: Any,
    element: Any,
    field: str,
    contacts: ContactExtractor,
) -> str:
    """First non-empty value for `field` inside `element`, or "" when nothing matches."""
    for selector in selectors_for(field):
        el = await driver.query(ctx, selector, root=element)
        if el is None:
            continue
        if reads_href(selector):
            href = await driver.element_attr(ctx, el, "href")
            if href:
                return href
            continue
        text = await driver.element_text(ctx, el)
        if text:
            return text

    if field in CONTACT_FALLBACK_FIELDS:
        full_text = await driver.element_text(ctx, element)
        found = contacts.extract_emails(full_text) if field == "email" else contacts.extract_phones(full_text)
        return found[0] if found else ""
    return ""
