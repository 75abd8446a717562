"""
Feed scanner and orchestrator.

Pipelines:
- keyword: every post on the page (and every post that appears later) is
  expanded, matched against the keyword list, checked for contacts,
  optionally vetted by the relevance oracle, and saved as a Lead
- auto-search: cycle through the keywords, search each one, scroll and scan
  the results, wait, move on; the cursor lives in the config store
- intelligent: classify the page, pick a goal, compile a strategy and run it
  through the StrategyExecutor; extracted records become Leads

All loops are cooperative. stop() lets an in-flight step or post finish and
keeps the next iteration from starting. Per-post and per-iteration errors
are logged and never end a loop.
"""
# @file purpose: Keyword scanning, auto-search and goal-driven extraction over one page.

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

from loguru import logger
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..actions.sites.linkedin import DEFAULT_SELECTORS, LinkedInSelectors, absolute_url, content_search_url
from ..core.controller.context import Timings
from ..core.controller.executor import StrategyExecutor
from ..core.errors import OracleError, PageNotReadyError, StrategyParseError
from ..core.result import ExecutionResult, ExecutionState
from ..core.settings import settings
from ..core.strategy import PageAnalysis, Strategy
from ..io.driver import query_first, wait_for_any
from ..io.notify import LogNotifier
from ..io.oracle import Assessment
from ..io.store import Change
from ..planning.ai_scraper import AIScraper
from ..planning.goals import GoalEngine
from ..planning.page_analyzer import PageAnalyzer
from ..reporting.schemas import INTELLIGENT_KEYWORD, Lead, strategy_lead_id
from ..text.contacts import ContactExtractor, ContactSet
from ..text.matcher import KeywordMatcher
from .observer import PostObserver, collect_posts, get_post_id
from .session import (
    AUTO_SEARCH_KEY,
    KEYWORDS_KEY,
    SETTINGS_KEY,
    STATS_KEY,
    AutoSearchState,
    ScanSession,
    ScanTimings,
    Stats,
    validate_keywords,
)

READY_TIMEOUT_MS = 10_000
START_ATTEMPTS = 3
START_RETRY_WAIT_S = 2.0


class PostData(BaseModel):
    content: str = ""
    author: str = "Unknown"
    url: str = ""
    author_profile: str = ""


class Scanner:
    def __init__(
        self,
        driver: Any,
        ctx: Any,
        *,
        config: Any,
        leads: Any,
        oracle: Any = None,
        notifier: Any = None,
        exporter: Any = None,
        session: Optional[ScanSession] = None,
        selectors: LinkedInSelectors = DEFAULT_SELECTORS,
        executor: Optional[StrategyExecutor] = None,
        timings: Optional[ScanTimings] = None,
        step_timings: Optional[Timings] = None,
        step_delay_ms: Optional[int] = None,
        base_url: str = settings.base_url,
    ) -> None:
        self.driver = driver
        self.ctx = ctx
        self.config = config
        self.leads = leads
        self.oracle = oracle
        self.notifier = notifier or LogNotifier()
        self.exporter = exporter
        self.session = session or ScanSession()
        self.selectors = selectors
        self.timings = timings or ScanTimings()
        self.step_delay_ms = settings.step_delay_ms if step_delay_ms is None else step_delay_ms
        self.base_url = base_url

        self.contacts = ContactExtractor()
        self.matcher = KeywordMatcher(
            self.session.keywords,
            case_sensitive=self.session.settings.case_sensitive,
            whole_word=self.session.settings.whole_word,
        )
        self.analyzer = PageAnalyzer(driver)
        self.goals = GoalEngine()
        self.ai_scraper = AIScraper(oracle, timings=step_timings)
        self.executor = executor or StrategyExecutor(
            driver,
            contacts=self.contacts,
            matcher=self.matcher,
            oracle=oracle,
            ai_scraper=self.ai_scraper,
            step_delay_ms=self.step_delay_ms,
            timings=step_timings,
        )
        self.observer = PostObserver(
            driver,
            ctx,
            selectors=selectors,
            predicate=lambda post_id: post_id not in self.session.scanned_posts,
            interval_ms=self.timings.poll_interval_ms,
        )

        self.leads_found = 0
        self._in_flight: set[str] = set()
        self._export_pending = False
        self._active = False
        self._stopped = asyncio.Event()
        self._rescan = asyncio.Event()
        self._auto_task: Optional[asyncio.Task[None]] = None
        self._unsubscribe: Any = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    async def load(self) -> ScanSession:
        """Read keywords/settings/stats/cursor from the config store and start listening for changes."""
        fresh = await ScanSession.load(self.config)
        self.session.keywords = fresh.keywords
        self.session.settings = fresh.settings
        self.session.stats = fresh.stats
        self.session.auto_search = fresh.auto_search
        self._apply_matcher_options()
        self.matcher.set_keywords(self.session.keywords)
        if self._unsubscribe is None:
            self._unsubscribe = self.config.subscribe(self._on_config_change)
        logger.info(
            "loaded config: {} keywords, scan mode {}", len(self.session.keywords), self.session.settings.scan_mode
        )
        return self.session

    def use_keywords(self, keywords: Iterable[str]) -> list[str]:
        """Match against `keywords` for this session only (not persisted)."""
        cleaned = validate_keywords(keywords)
        self.session.keywords = cleaned
        self.matcher.set_keywords(cleaned)
        self.session.forget_scanned()
        self.observer.reset()
        return cleaned

    async def run(self, *, duration_s: Optional[float] = None) -> int:
        """
        Initial scan, then the periodic rescan, the new-post watcher and (when
        enabled) auto-search, until stop() or `duration_s` elapses.
        Returns the number of leads saved.
        """
        await self.load()
        self._stopped.clear()
        self.observer.resume()
        self._active = True
        await self.run_scan_if_ready()

        tasks = [
            asyncio.create_task(self.run_periodic_scan()),
            asyncio.create_task(self.watch_new_posts()),
        ]
        await self.ensure_auto_search_monitor()
        try:
            if duration_s is None:
                await self._stopped.wait()
            else:
                await self._pause(int(duration_s * 1000))
        finally:
            self.stop()
            if self._auto_task is not None:
                tasks.append(self._auto_task)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._active = False
        return self.leads_found

    def stop(self) -> None:
        self._stopped.set()
        self._rescan.set()
        self.observer.stop()
        self.executor.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _pause(self, ms: int) -> None:
        """Sleep that returns early once stop() is called."""
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=max(0, ms) / 1000)
        except asyncio.TimeoutError:
            pass

    def _notify(self, title: str, message: str) -> None:
        try:
            self.notifier.notify(title, message)
        except Exception:  # noqa: BLE001
            logger.debug("notification dropped: {}", title)

    # ------------------------------------------------------------------
    # config changes
    # ------------------------------------------------------------------

    def _apply_matcher_options(self) -> None:
        self.matcher.set_options(
            case_sensitive=self.session.settings.case_sensitive,
            whole_word=self.session.settings.whole_word,
        )

    async def _on_config_change(self, changes: dict[str, Change]) -> None:
        if KEYWORDS_KEY in changes:
            self.session.keywords = list(changes[KEYWORDS_KEY].new_value or [])
            self.matcher.set_keywords(self.session.keywords)
            self.session.forget_scanned()
            self.observer.reset()
            logger.info("keywords changed: {}", self.session.keywords)
            self._rescan.set()
            await self.ensure_auto_search_monitor()

        if SETTINGS_KEY in changes:
            self.session.settings = self.session.settings.merged(changes[SETTINGS_KEY].new_value)
            self._apply_matcher_options()
            self._rescan.set()
            await self.ensure_auto_search_monitor()

    # ------------------------------------------------------------------
    # keyword pipeline
    # ------------------------------------------------------------------

    async def run_scan_if_ready(self) -> int:
        s = self.session
        if not s.has_keywords:
            logger.info("no keywords configured; waiting for keywords")
            return 0
        if s.settings.scan_mode == "manual" and not s.settings.auto_search_enabled:
            logger.info("manual scan mode; automatic scanning skipped")
            return 0
        if s.scanning or self.executor.is_running:
            logger.debug("scan already in progress")
            return 0

        s.scanning = True
        try:
            return await self.scan_existing_posts()
        except Exception:  # noqa: BLE001
            logger.exception("error during scan")
            return 0
        finally:
            s.scanning = False

    async def scan_existing_posts(self) -> int:
        posts = await collect_posts(self.driver, self.ctx, self.selectors)
        logger.info("found {} posts to scan", len(posts))
        saved = 0
        for post_id, post in posts:
            if self.stopped:
                break
            if await self.scan_post(post, post_id=post_id) is not None:
                saved += 1
        return saved

    async def scan_post(self, post: Any, *, post_id: Optional[str] = None) -> Optional[Lead]:
        """Returns the saved Lead, or None when the post was skipped, unmatched or rejected."""
        try:
            post_id = post_id or await self.get_post_id(post)
            if not post_id or post_id in self.session.scanned_posts or post_id in self._in_flight:
                return None
            self._in_flight.add(post_id)
            try:
                return await self._scan_new_post(post, post_id)
            finally:
                self._in_flight.discard(post_id)
        except Exception:  # noqa: BLE001
            logger.exception("error scanning post")
            return None

    async def _scan_new_post(self, post: Any, post_id: str) -> Optional[Lead]:
        await self.expand_post_content(post)

        data = await self.extract_post_data(post)
        if data is None or not data.content:
            return None

        match = self.matcher.match(data.content)
        if not match.matched:
            self.session.scanned_posts.add(post_id)
            return None
        logger.info("match found: {} in post {}", match.keywords, post_id[:60])

        found = self.contacts.extract_all(data.content)
        lead = Lead(
            id=post_id,
            source_url=data.url,
            author_name=data.author,
            author_profile_url=data.author_profile,
            matched_keywords=match.keywords,
            body_text=data.content,
            emails=found.emails,
            phones=found.phones,
        )

        decision = await self.evaluate_lead_with_ai(lead)
        self.session.scanned_posts.add(post_id)
        if not decision.relevant:
            logger.info("lead filtered by AI relevance check: {}", decision.reason or "no reason provided")
            return None
        lead.ai_decision = decision.model_dump(exclude_none=True)

        if not await self.save_lead(lead):
            return None
        if self.session.settings.enable_notifications and found.has_contacts:
            self._notify(
                "New Lead Found!", f"Found {len(found.emails)} email(s) and {len(found.phones)} phone(s)"
            )
        await self._update_stats(found)
        return lead

    async def get_post_id(self, post: Any) -> str:
        return await get_post_id(self.driver, self.ctx, post)

    async def extract_post_data(self, post: Any) -> Optional[PostData]:
        d, ctx, sel = self.driver, self.ctx, self.selectors
        try:
            content_el = await query_first(d, ctx, sel.post_content, root=post)
            content = await d.element_text(ctx, content_el if content_el is not None else post)

            author_el = await query_first(d, ctx, sel.author, root=post)
            author = (await d.element_text(ctx, author_el)).strip() if author_el is not None else ""

            url = await d.current_url(ctx)
            link = await query_first(d, ctx, sel.post_link, root=post)
            if link is not None:
                url = absolute_url(await d.element_attr(ctx, link, "href"), self.base_url) or url

            profile = ""
            profile_el = await d.query(ctx, sel.profile_link, root=post)
            if profile_el is not None:
                profile = absolute_url(await d.element_attr(ctx, profile_el, "href"), self.base_url)

            return PostData(
                content=(content or "").strip(),
                author=author or "Unknown",
                url=url,
                author_profile=profile,
            )
        except Exception:  # noqa: BLE001
            logger.exception("error extracting post data")
            return None

    async def expand_post_content(self, post: Any) -> int:
        """Click every visible "see more" toggle in the post; returns how many were clicked."""
        d, ctx = self.driver, self.ctx
        clicked = 0
        try:
            buttons = await d.query_all(ctx, ", ".join(self.selectors.see_more), root=post)
            for button in buttons:
                if not await d.is_visible(ctx, button):
                    continue
                label = (await d.element_text(ctx, button)) or (await d.element_attr(ctx, button, "aria-label")) or ""
                label = label.lower()
                if "more" in label and "less" not in label:
                    await d.click_element(ctx, button)
                    clicked += 1
                    await asyncio.sleep(self.timings.expand_pause_ms / 1000)
        except Exception as e:  # noqa: BLE001
            logger.warning("failed to expand post content: {}", e)
        return clicked

    async def evaluate_lead_with_ai(self, lead: Lead) -> Assessment:
        s = self.session.settings
        if not s.ai_relevance_enabled:
            return Assessment(relevant=True, reason="AI filter disabled")
        if self.oracle is None:
            return Assessment(relevant=True, reason="AI unreachable, defaulting to true")
        try:
            return await self.oracle.assess(lead.model_dump(), s.company_profile, s.open_router_model)
        except Exception as e:  # noqa: BLE001
            logger.warning("AI relevance check failed: {}", e)
            return Assessment(relevant=True, reason="AI unreachable, defaulting to true")

    async def save_lead(self, lead: Lead) -> bool:
        """Append unless a lead with the same id is already stored."""
        try:
            if await self.leads.has(lead.id):
                logger.debug("lead {} already stored", lead.id[:60])
                return False
            await self.leads.append_one(lead)
        except Exception:  # noqa: BLE001
            logger.exception("error saving lead")
            return False
        self.leads_found += 1
        self._export_pending = True
        logger.info("lead saved: {} ({})", lead.author_name, lead.id[:60])
        return True

    async def _update_stats(self, found: ContactSet) -> None:
        stored = (await self.config.get([STATS_KEY])).get(STATS_KEY) or {}
        stats = Stats.model_validate(stored)
        stats.total_leads += 1
        stats.emails_found += len(found.emails)
        stats.phones_found += len(found.phones)
        await self.config.set({STATS_KEY: stats.to_store()})
        self.session.stats = stats

    async def _maybe_sync(self) -> None:
        if not (self._export_pending and self.exporter is not None and self.session.settings.auto_sync):
            return
        self._export_pending = False
        result = await self.exporter.export()
        if not result.ok:
            logger.warning("auto-sync failed: {}", result.error)

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------

    async def run_periodic_scan(self) -> None:
        """Rescan every scanIntervalMs, or right away after a keyword/settings change."""
        while not self.stopped:
            interval = self.session.settings.scan_interval_ms or 15000
            try:
                await asyncio.wait_for(self._rescan.wait(), timeout=interval / 1000)
            except asyncio.TimeoutError:
                pass
            self._rescan.clear()
            if self.stopped:
                break
            await self.run_scan_if_ready()
            try:
                await self._maybe_sync()
            except Exception:  # noqa: BLE001
                logger.exception("auto-sync error")

    async def watch_new_posts(self) -> None:
        async for post_id, post in self.observer.new_posts():
            if self.stopped:
                break
            if not self.session.has_keywords or self.session.scanning:
                continue
            await self.scan_post(post, post_id=post_id)

    # ------------------------------------------------------------------
    # auto-search
    # ------------------------------------------------------------------

    async def ensure_auto_search_monitor(self, force_stop: bool = False) -> None:
        s = self.session
        if force_stop or not s.settings.auto_search_enabled or not s.has_keywords:
            await self.stop_auto_search()
            return
        if s.processing_auto_search or not self._active:
            return
        if self._auto_task is None or self._auto_task.done():
            self._auto_task = asyncio.create_task(self.run_auto_search())

    async def stop_auto_search(self) -> None:
        self.session.processing_auto_search = False
        self.session.auto_search = None
        await self.config.remove([AUTO_SEARCH_KEY])

    async def run_auto_search(self) -> None:
        while not self.stopped:
            delay = await self.process_auto_search_state()
            if delay is None:
                return
            await self._pause(delay)

    async def process_auto_search_state(self) -> Optional[int]:
        """
        One auto-search transition. Returns the delay before the next one in
        ms, or None when auto-search is off or hit an error.
        """
        s = self.session
        if not s.settings.auto_search_enabled or not s.has_keywords:
            await self.stop_auto_search()
            return None

        s.processing_auto_search = True
        try:
            stored = (await self.config.get([AUTO_SEARCH_KEY])).get(AUTO_SEARCH_KEY)
            state = AutoSearchState.model_validate(stored) if isinstance(stored, dict) else None
            if state is None or not state.running:
                state = AutoSearchState(running=True, keyword_index=0, should_navigate=True)
            if state.keyword_index >= len(s.keywords):
                state.keyword_index = 0

            keyword = s.keywords[state.keyword_index % len(s.keywords)]
            if state.should_navigate:
                await self._save_auto_search(
                    state.model_copy(update={"running": True, "should_navigate": False, "current_keyword": keyword})
                )
                await self.navigate_to_keyword(keyword)
                return 0

            await self.auto_scroll_and_scan()

            if not s.has_keywords:
                await self.stop_auto_search()
                return None
            next_index = (state.keyword_index + 1) % len(s.keywords)
            keep_running = s.settings.auto_search_enabled
            await self._save_auto_search(
                AutoSearchState(
                    running=keep_running,
                    keyword_index=next_index,
                    should_navigate=keep_running,
                    current_keyword=s.keywords[next_index] if keep_running else None,
                )
            )
            if not keep_running:
                await self.stop_auto_search()
                return None
            return s.settings.auto_search_delay or 20000
        except Exception:  # noqa: BLE001
            logger.exception("failed to process auto search state")
            return None
        finally:
            s.processing_auto_search = False

    async def _save_auto_search(self, state: AutoSearchState) -> None:
        self.session.auto_search = state
        await self.config.set({AUTO_SEARCH_KEY: state.to_store()})

    async def auto_scroll_and_scan(self) -> int:
        s = self.session.settings
        saved = 0
        for _ in range(max(1, s.auto_scroll_cycles or 1)):
            if self.stopped:
                break
            saved += await self.run_scan_if_ready()
            if s.auto_scroll_enabled:
                await self.driver.scroll_by_viewport(self.ctx, 0.9)
                await self._pause(s.auto_scroll_delay or 1500)
        await self.driver.scroll_to_top(self.ctx)
        return saved

    async def navigate_to_keyword(self, keyword: str) -> str:
        """Search through the page's search box; go to the content search URL when that does not land on results."""
        logger.info("auto-search navigating to: {}", keyword)
        fallback = content_search_url(keyword, self.base_url)
        d, ctx = self.driver, self.ctx

        found = await wait_for_any(
            d,
            ctx,
            self.selectors.search_input,
            timeout_ms=self.timings.search_input_timeout_ms,
            poll_interval_ms=self.timings.poll_interval_ms,
        )
        selector = await self._first_present(self.selectors.search_input) if found is not None else None
        if selector is None:
            await d.goto(ctx, fallback)
            return fallback

        await d.type_text(ctx, selector, keyword)
        await d.press(ctx, selector, "Enter")
        await asyncio.sleep(self.timings.search_fallback_ms / 1000)
        current = await d.current_url(ctx)
        if "/search/results" not in urlsplit(current).path:
            await d.goto(ctx, fallback)
            return fallback
        return current

    async def _first_present(self, selectors: Iterable[str]) -> Optional[str]:
        for selector in selectors:
            if await self.driver.query(self.ctx, selector) is not None:
                return selector
        return None

    async def start_extraction(self, ready_timeout_ms: int = READY_TIMEOUT_MS) -> int:
        """Scan the current page once posts show up; raises PageNotReadyError when none do."""
        found = await wait_for_any(
            self.driver,
            self.ctx,
            self.selectors.posts,
            timeout_ms=ready_timeout_ms,
            poll_interval_ms=self.timings.poll_interval_ms,
        )
        if found is None:
            raise PageNotReadyError(f"no posts on {await self.driver.current_url(self.ctx)}")
        return await self.auto_scroll_and_scan()

    # ------------------------------------------------------------------
    # intelligent mode
    # ------------------------------------------------------------------

    async def analyze_current_page(self) -> PageAnalysis:
        analysis = await self.analyzer.analyze_page(self.ctx)
        self.session.current_analysis = analysis
        recommended = self.goals.recommend_goal(analysis)
        logger.info("page type {}; recommended goal: {}", analysis.page_type.value, recommended.name)
        return analysis

    async def start_intelligent_mode(self, goal_id: str, custom_instructions: str = "") -> bool:
        if not self.goals.set_goal(goal_id, custom_instructions):
            logger.error("failed to set goal {}", goal_id)
            return False

        s = self.session
        s.current_goal = self.goals.current_goal
        s.intelligent_mode = True
        if s.current_analysis is None:
            await self.analyze_current_page()

        strategy = self.goals.generate_strategy(s.current_goal, s.current_analysis)
        logger.info("extraction strategy: {} ({} steps)", strategy.goal_name, len(strategy.steps))
        self._notify("Intelligent Mode Active", f"Goal: {strategy.goal_name}\nPage: {strategy.page_type.value}")

        if s.settings.autopilot_enabled:
            await self.execute_intelligent_strategy(strategy)
        return True

    def stop_intelligent_mode(self) -> None:
        self.session.intelligent_mode = False
        self.executor.stop()
        self._notify("Intelligent Mode Stopped", "Extraction has been stopped")

    async def execute_intelligent_strategy(self, strategy: Strategy) -> ExecutionResult:
        logger.info("executing strategy {}", strategy.goal_id)
        try:
            result = await self.executor.execute_strategy(self.ctx, strategy, step_delay_ms=self.step_delay_ms)
        except (OracleError, StrategyParseError) as e:
            logger.error("extraction failed: {}", e)
            self._notify("Extraction Failed", str(e))
            return ExecutionResult(ok=False, state=ExecutionState.FAILED, error=str(e))

        if result.records:
            await self.process_intelligent_data(result.records, strategy=strategy)

        if result.ok:
            self._notify("Extraction Complete", f"Successfully extracted {result.count} leads")
        elif result.error != "already running":
            self._notify("Extraction Failed", result.error or "Unknown error occurred")

        if result.navigated_to:
            await self.handle_page_change()
        return result

    async def process_intelligent_data(
        self, records: list[dict[str, Any]], *, strategy: Optional[Strategy] = None
    ) -> int:
        s = self.session
        goal_id = strategy.goal_id if strategy else (s.current_goal.id if s.current_goal else "")
        goal_name = strategy.goal_name if strategy else (s.current_goal.name if s.current_goal else "Unknown")
        page_type = s.current_analysis.page_type.value if s.current_analysis else "unknown"
        fallback_url = await self.driver.current_url(self.ctx)
        logger.info("processing {} extracted items", len(records))

        saved = 0
        for item in records:
            profile = item.get("profile_url") or item.get("author_profile") or ""
            name = item.get("name") or item.get("author_name") or item.get("author") or "Unknown"
            body = item.get("comment_text") or item.get("headline") or item.get("content") or ""
            when = {"timestamp": item["_timestamp"]} if item.get("_timestamp") else {}
            try:
                lead = Lead(
                    id=strategy_lead_id(goal_id, profile or name, body),
                    **when,
                    source_url=profile or item.get("url") or fallback_url,
                    author_name=name,
                    author_profile_url=profile,
                    matched_keywords=list(item.get("keywords_matched") or [INTELLIGENT_KEYWORD]),
                    body_text=body,
                    emails=list(item.get("emails") or []),
                    phones=list(item.get("phones") or []),
                    goal_name=goal_name,
                    page_type=page_type,
                    ai_relevant=item.get("_aiRelevant"),
                    ai_priority=item.get("_aiPriority"),
                    ai_reason=item.get("_aiReason"),
                    extracted_fields=item,
                )
            except ValidationError as e:
                logger.warning("skipping malformed record: {}", e.errors()[0].get("msg", e))
                continue
            if await self.save_lead(lead):
                saved += 1
                await self._update_stats(ContactSet(emails=lead.emails, phones=lead.phones))
        return saved

    async def handle_page_change(self) -> Optional[ExecutionResult]:
        """Re-analyse after navigation and carry on with the active goal when it still fits the page."""
        s = self.session
        if not s.intelligent_mode or not s.settings.autopilot_enabled:
            return None

        analysis = await self.analyze_current_page()
        if s.current_goal is None:
            return None
        if not self.goals.is_goal_compatible(s.current_goal.id, analysis.page_type):
            logger.info("goal {} does not apply to {} pages", s.current_goal.id, analysis.page_type.value)
            return None
        strategy = self.goals.generate_strategy(s.current_goal, analysis)
        return await self.execute_intelligent_strategy(strategy)


# ----------------------------------------------------------------------
# multi-keyword automation
# ----------------------------------------------------------------------


async def run_keywords(
    driver: Any,
    keywords: Iterable[str],
    *,
    config: Any,
    leads: Any,
    oracle: Any = None,
    notifier: Any = None,
    attempts: int = START_ATTEMPTS,
    retry_wait_s: float = START_RETRY_WAIT_S,
    ready_timeout_ms: int = READY_TIMEOUT_MS,
    timings: Optional[ScanTimings] = None,
    base_url: str = settings.base_url,
) -> dict[str, int]:
    """
    Open a fresh page per keyword on its content search, scan it and close it.
    Starting the scan is retried when the page shows no posts yet; a page that
    never does is given up on. Returns leads saved per keyword.
    """
    cleaned = validate_keywords(keywords)
    results: dict[str, int] = {}
    for keyword in cleaned:
        ctx = await driver.new_context()
        scanner: Optional[Scanner] = None
        try:
            await driver.goto(ctx, content_search_url(keyword, base_url))
            scanner = Scanner(
                driver, ctx, config=config, leads=leads, oracle=oracle, notifier=notifier, timings=timings, base_url=base_url
            )
            await scanner.load()
            scanner.use_keywords(cleaned)

            retrying = AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_fixed(retry_wait_s),
                retry=retry_if_exception_type(PageNotReadyError),
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    results[keyword] = await scanner.start_extraction(ready_timeout_ms)
            logger.info("{!r}: {} leads", keyword, results[keyword])
        except PageNotReadyError as e:
            logger.warning("giving up on {!r}: {}", keyword, e)
            results[keyword] = 0
        except Exception:  # noqa: BLE001
            logger.exception("keyword {!r} failed", keyword)
            results[keyword] = 0
        finally:
            if scanner is not None:
                scanner.stop()
            await driver.close_context(ctx)
    return results
