"""
Step handlers, one per StepKind.

Each handler:
  1) Receives the RunContext (driver + ctx + shared record list) and a validated Step
  2) Returns StepResult.success(...) / StepResult.failure(...)
  3) Only raises for conditions the caller must see (oracle / strategy parse errors)

Not-found is a failure only where the step enumerates elements for bulk
extraction (or needs a single target to act on); bounded waits resolve to
"not found" instead of raising.
"""

# @file purpose: Implement and register step handlers.
from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

from ..core.registry import handler
from ..core.result import StepResult
from ..core.controller.context import stamp
from ..io.driver import query_first, wait_for_any
from .fields import extract_field
from .params import (
    AIStrategyStep,
    ClickStep,
    DelegateToAIStep,
    DetectCountStep,
    DownloadStep,
    ExpandStep,
    ExtractCommentsStep,
    ExtractContactSectionStep,
    ExtractContactsStep,
    ExtractListStep,
    ExtractPageFieldsStep,
    ExtractSocialStep,
    NavigateStep,
    ScanKeywordsStep,
    ScrollStep,
    ScrollToStep,
    StepKind,
    WaitStep,
)

if TYPE_CHECKING:
    from ..core.controller.context import RunContext

_FIRST_NUMBER = re.compile(r"\d[\d,]*")


# ------------------------------------------------------------------------------
# helpers
# ------------------------------------------------------------------------------


async def _first_visible(run: "RunContext", selectors: tuple[str, ...]) -> tuple[Any, str] | tuple[None, None]:
    for selector in selectors:
        for el in await run.driver.query_all(run.ctx, selector):
            if await run.driver.is_visible(run.ctx, el):
                return el, selector
    return None, None


async def _all_matches(run: "RunContext", selectors: tuple[str, ...]) -> list[Any]:
    """Union of matches across selectors in document order; one selector list, so no element twice."""
    return await run.driver.query_all(run.ctx, ", ".join(selectors))


async def _click(run: "RunContext", el: Any) -> None:
    await run.driver.scroll_into_view(run.ctx, el)
    await run.pause(run.timings.click_settle_ms)
    await run.driver.click_element(run.ctx, el)


async def _extract_records(
    run: "RunContext", selectors: tuple[str, ...], data_fields: tuple[str, ...]
) -> StepResult:
    elements = await _all_matches(run, selectors)
    if not elements:
        return StepResult.failure("no elements found", selector=", ".join(selectors))

    records: list[dict[str, Any]] = []
    for index, el in enumerate(elements):
        record = {f: await extract_field(run.driver, run.ctx, el, f, run.contacts) for f in data_fields}
        records.append(stamp(record, index))

    run.records.extend(records)
    logger.debug("extracted {} items", len(records))
    return StepResult.success(records, count=len(records))


# ------------------------------------------------------------------------------
# interaction steps
# ------------------------------------------------------------------------------


@handler(StepKind.CLICK)
async def click(run: "RunContext", step: ClickStep) -> StepResult:
    if step.repeat_until_gone:
        clicked = 0
        for _ in range(step.max_attempts):
            el, _sel = await _first_visible(run, step.selectors)
            if el is None:
                break
            await _click(run, el)
            clicked += 1
            await run.pause(run.timings.click_delay_ms)
        logger.debug("{}: clicked {} times", step.name, clicked)
        return StepResult.success(count=clicked)

    el, selector = await _first_visible(run, step.selectors)
    if el is None:
        return StepResult.failure("element not found or not visible", selector=", ".join(step.selectors))

    await _click(run, el)
    if step.wait_for:
        appeared = await wait_for_any(
            run.driver,
            run.ctx,
            [step.wait_for],
            timeout_ms=run.timings.wait_for_timeout_ms,
            poll_interval_ms=run.timings.poll_interval_ms,
        )
        return StepResult.success(selector=selector, wait_for=step.wait_for, appeared=appeared is not None)

    await run.pause(run.timings.click_delay_ms)
    return StepResult.success(selector=selector)


@handler(StepKind.EXPAND)
async def expand(run: "RunContext", step: ExpandStep) -> StepResult:
    expanded = 0
    for el in await _all_matches(run, step.selectors):
        if not await run.driver.is_visible(run.ctx, el):
            continue
        text = (await run.driver.element_text(run.ctx, el)).lower()
        if "more" in text and "less" not in text:
            await run.driver.click_element(run.ctx, el)
            expanded += 1
            await run.pause(300)
    return StepResult.success(count=expanded)


@handler(StepKind.SCROLL)
async def scroll(run: "RunContext", step: ScrollStep) -> StepResult:
    for _ in range(step.scroll_cycles):
        await run.driver.scroll_by_viewport(run.ctx, step.viewport_fraction)
        await run.pause(step.scroll_delay_ms)
    await run.driver.scroll_to_top(run.ctx)
    return StepResult.success(count=step.scroll_cycles)


@handler(StepKind.SCROLL_TO)
async def scroll_to(run: "RunContext", step: ScrollToStep) -> StepResult:
    el = await query_first(run.driver, run.ctx, step.selectors)
    if el is None:
        return StepResult.failure("element not found", selector=", ".join(step.selectors))
    await run.driver.scroll_into_view(run.ctx, el)
    await run.pause(run.timings.click_delay_ms)
    return StepResult.success()


@handler(StepKind.WAIT)
async def wait(run: "RunContext", step: WaitStep) -> StepResult:
    if step.selector:
        el = await wait_for_any(
            run.driver,
            run.ctx,
            [step.selector],
            timeout_ms=step.duration_ms,
            poll_interval_ms=run.timings.poll_interval_ms,
        )
        return StepResult.success(selector=step.selector, appeared=el is not None)
    await run.pause(step.duration_ms)
    return StepResult.success()


@handler(StepKind.DOWNLOAD)
async def download(run: "RunContext", step: DownloadStep) -> StepResult:
    anchors = await _all_matches(run, step.selectors)
    if not anchors:
        return StepResult.failure("no download links found", selector=", ".join(step.selectors))

    downloaded = 0
    for el in anchors:
        href = await run.driver.element_attr(run.ctx, el, "href")
        if not href:
            continue
        filename = await run.driver.element_attr(run.ctx, el, "download") or f"resume_{int(time.time() * 1000)}.pdf"
        await run.driver.trigger_download(run.ctx, href, filename)
        downloaded += 1
        await run.pause(run.timings.click_delay_ms)

    logger.info("downloaded {} files", downloaded)
    return StepResult.success(count=downloaded)


@handler(StepKind.NAVIGATE)
async def navigate(run: "RunContext", step: NavigateStep) -> StepResult:
    current = await run.driver.current_url(run.ctx)
    parts = urlsplit(current)
    base_path = parts.path.rstrip("/")
    target_path = "/" + step.path.strip("/")

    if base_path.endswith(target_path):
        return StepResult.success(already_there=True, url=current)

    new_url = urlunsplit((parts.scheme, parts.netloc, base_path + step.path, "", ""))
    await run.driver.goto(run.ctx, new_url)
    return StepResult.success({"navigated_to": new_url}, url=new_url)


# ------------------------------------------------------------------------------
# extraction steps
# ------------------------------------------------------------------------------


@handler(StepKind.DETECT_COUNT)
async def detect_count(run: "RunContext", step: DetectCountStep) -> StepResult:
    if step.count_from == "elements":
        count = len(await _all_matches(run, step.selectors))
        if not count:
            return StepResult.failure("no elements found", selector=", ".join(step.selectors))
        return StepResult.success({"count": count}, count=count)

    el = await query_first(run.driver, run.ctx, step.selectors)
    if el is None:
        return StepResult.failure("count element not found", selector=", ".join(step.selectors))
    text = await run.driver.element_text(run.ctx, el)
    m = _FIRST_NUMBER.search(text)
    count = int(m.group(0).replace(",", "")) if m else 0
    logger.info("{}: found {}", step.name, count)
    return StepResult.success({"count": count}, count=count)


@handler(StepKind.EXTRACT_LIST)
async def extract_list(run: "RunContext", step: ExtractListStep) -> StepResult:
    return await _extract_records(run, step.selectors, step.data_fields)


@handler(StepKind.EXTRACT_SOCIAL)
async def extract_social(run: "RunContext", step: ExtractSocialStep) -> StepResult:
    return await _extract_records(run, step.selectors, step.data_fields)


@handler(StepKind.EXTRACT_COMMENTS)
async def extract_comments(run: "RunContext", step: ExtractCommentsStep) -> StepResult:
    comments = await _all_matches(run, step.selectors)
    if not comments:
        return StepResult.failure("no comments found", selector=", ".join(step.selectors))

    records: list[dict[str, Any]] = []
    for index, el in enumerate(comments):
        record: dict[str, Any] = {
            f: await extract_field(run.driver, run.ctx, el, f, run.contacts) for f in step.data_fields
        }
        found = await run.contacts.extract_from_element(run.driver, run.ctx, el)
        record["emails"] = found.emails
        record["phones"] = found.phones
        records.append(stamp(record, index))

    run.records.extend(records)
    return StepResult.success(records, count=len(records))


@handler(StepKind.EXTRACT_PAGE_FIELDS)
async def extract_page_fields(run: "RunContext", step: ExtractPageFieldsStep) -> StepResult:
    body = await run.driver.query(run.ctx, "body")
    record: dict[str, Any] = {}
    for f in step.data_fields:
        value = await extract_field(run.driver, run.ctx, body, f, run.contacts) if body is not None else ""
        if value:
            record[f] = value
    run.records.append(record)
    return StepResult.success(record, count=len(record))


@handler(StepKind.EXTRACT_CONTACTS)
async def extract_contacts(run: "RunContext", step: ExtractContactsStep) -> StepResult:
    text = await run.driver.visible_text(run.ctx)
    found = run.contacts.extract_all(text)
    logger.info("found {} emails, {} phones", len(found.emails), len(found.phones))
    return StepResult.success(found.model_dump(), count=len(found.emails) + len(found.phones))


@handler(StepKind.EXTRACT_CONTACT_SECTION)
async def extract_contact_section(run: "RunContext", step: ExtractContactSectionStep) -> StepResult:
    section = await query_first(run.driver, run.ctx, step.selectors)
    if section is None:
        return StepResult.failure("contact section not found", selector=", ".join(step.selectors))

    found = await run.contacts.extract_from_element(run.driver, run.ctx, section)
    emails, phones = list(found.emails), list(found.phones)
    for link in await run.driver.query_all(run.ctx, 'a[href^="mailto:"]', root=section):
        email = (await run.driver.element_attr(run.ctx, link, "href") or "").removeprefix("mailto:")
        if email and email not in emails:
            emails.append(email)
    for link in await run.driver.query_all(run.ctx, 'a[href^="tel:"]', root=section):
        phone = (await run.driver.element_attr(run.ctx, link, "href") or "").removeprefix("tel:")
        if phone and phone not in phones:
            phones.append(phone)

    record = stamp({"emails": emails, "phones": phones}, len(run.records))
    run.records.append(record)
    return StepResult.success(record, count=len(emails) + len(phones))


@handler(StepKind.SCAN_KEYWORDS)
async def scan_keywords(run: "RunContext", step: ScanKeywordsStep) -> StepResult:
    if run.matcher is None or not run.matcher.keywords:
        return StepResult.failure("no keywords configured")

    posts = await _all_matches(run, step.selectors)
    if not posts:
        return StepResult.failure("no posts found", selector=", ".join(step.selectors))

    records: list[dict[str, Any]] = []
    for index, post in enumerate(posts):
        text = await run.driver.element_text(run.ctx, post)
        result = run.matcher.match(text)
        if not result.matched:
            continue
        record: dict[str, Any] = {}
        for f in step.data_fields:
            if f == "keywords_matched":
                record[f] = list(result.keywords)
            else:
                record[f] = await extract_field(run.driver, run.ctx, post, f, run.contacts)
        if not record.get("content") and "content" in step.data_fields:
            record["content"] = text
        found = run.contacts.extract_all(text)
        record["emails"] = found.emails
        record["phones"] = found.phones
        records.append(stamp(record, index))

    run.records.extend(records)
    logger.info("{} of {} posts matched keywords", len(records), len(posts))
    return StepResult.success(records, count=len(records))


# ------------------------------------------------------------------------------
# oracle-backed steps
# ------------------------------------------------------------------------------


@handler(StepKind.DELEGATE_TO_AI)
async def delegate_to_ai(run: "RunContext", step: DelegateToAIStep) -> StepResult:
    if run.oracle is None:
        return StepResult.failure("no relevance oracle configured")
    if not run.records:
        return StepResult.success(count=0)

    results = await run.oracle.assess_batch(run.records, run.ai_prompt, task=step.ai_task)
    if not results:
        return StepResult.failure("AI analysis failed")

    analysed = 0
    for record, verdict in zip(run.records, results):
        if not verdict:
            continue
        record["_aiRelevant"] = verdict.get("relevant")
        record["_aiPriority"] = verdict.get("priority")
        record["_aiReason"] = verdict.get("reason")
        analysed += 1
    return StepResult.success(count=analysed, task=step.ai_task)


@handler(StepKind.AI_STRATEGY)
async def ai_strategy(run: "RunContext", step: AIStrategyStep) -> StepResult:
    if run.ai_scraper is None:
        return StepResult.failure("no strategy oracle configured")

    context = await run.ai_scraper.capture_page_context(run.driver, run.ctx)
    # StrategyParseError / OracleError propagate to the executor's caller
    plan = await run.ai_scraper.generate_extraction_strategy(run.user_goal, context)
    records = await run.ai_scraper.execute_strategy(run.driver, run.ctx, plan, max_items=step.max_items)
    run.records.extend(records)
    return StepResult.success(records, count=len(records), page_type=plan.page_type)
