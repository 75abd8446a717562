"""
Oracle-sourced strategies.

Instead of a compiled goal, the page markup (cleaned and trimmed) is sent to
a language model that answers with a JSON plan: which fields exist, their
selectors, and a few preparation steps. The plan is parsed into `AIStrategy`
(fail closed: anything unparseable raises StrategyParseError), its
preparation steps are mapped onto the regular Step union and run through the
same handlers as compiled strategies, then each declared field is read per
matched element.
"""
# @file purpose: Capture page context, ask the strategy oracle, run its plan.

from __future__ import annotations

import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup, Comment
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..actions import impl as _handlers  # noqa: F401  (registers step handlers)
from ..actions.params import ClickStep, ScrollStep, ScrollToStep, Step, WaitStep
from ..core import registry
from ..core.controller.context import RunContext, Timings, now_iso
from ..core.errors import OracleError, StepExecutionError, StrategyParseError
from ..core.result import StepResult
from ..core.settings import settings

TRIM_MARKER = "\n...[trimmed]...\n"
HEAD_CHARS = 5000
BODY_CHARS = 40000
VISIBLE_TEXT_CHARS = 2000
REQUIRED_KEYS = ("pageType", "dataAvailable", "extractionSteps")

_WS = re.compile(r"\s+")
_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class PageContext(BaseModel):
    url: str
    title: str = ""
    html: str = ""
    visible_text: str = ""
    html_size: int = 0
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ------------------------------------------------------------------------------
# strategy document
# ------------------------------------------------------------------------------


class _Wire(BaseModel):
    """camelCase on the wire; unknown keys are preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class DataField(_Wire):
    field: str
    selector: Optional[str] = None
    extraction_method: str = Field("textContent", alias="extractionMethod")
    attribute_name: Optional[str] = Field(None, alias="attributeName")
    found: bool = False
    estimated_count: Optional[int] = Field(None, alias="estimatedCount")


class ExtractionStep(_Wire):
    step: Optional[int] = None
    action: str
    description: str = ""
    selector: Optional[str] = None
    required: bool = False
    wait_after_ms: Optional[int] = Field(None, alias="waitAfterMs")


class AIStrategy(_Wire):
    page_type: str = Field(alias="pageType")
    confidence: Any = None
    data_available: list[DataField] = Field(alias="dataAvailable")
    extraction_steps: list[ExtractionStep] = Field(alias="extractionSteps")
    recommendations: Any = None
    limitations: Any = None

    def to_json_dict(self) -> dict[str, Any]:
        """Same shape the oracle sent (aliases, nothing the oracle left out)."""
        return self.model_dump(by_alias=True, exclude_unset=True)


def parse_ai_response(text: str) -> AIStrategy:
    """
    Fenced ```json block first, else the greedy outermost {...}.
    Raises StrategyParseError on bad JSON or missing top-level keys.
    """
    if not text or not text.strip():
        raise StrategyParseError("Failed to parse AI strategy: empty response", raw=text)

    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        obj = _JSON_OBJECT.search(text)
        candidate = obj.group(0) if obj else text

    try:
        doc = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise StrategyParseError(f"Failed to parse AI strategy: {e}", raw=text) from e

    if not isinstance(doc, dict):
        raise StrategyParseError("Failed to parse AI strategy: not a JSON object", raw=text)
    missing = [k for k in REQUIRED_KEYS if doc.get(k) in (None, "")]
    if missing:
        raise StrategyParseError(
            f"Invalid strategy format: missing required fields ({', '.join(missing)})", raw=text
        )

    try:
        return AIStrategy.model_validate(doc)
    except ValidationError as e:
        raise StrategyParseError(f"Invalid strategy format: {e.error_count()} validation errors", raw=text) from e


# ------------------------------------------------------------------------------
# html preparation
# ------------------------------------------------------------------------------


def intelligent_trim(html: str) -> str:
    """Head verbatim, then main content from the first <main (else <body)."""
    head_end = min(HEAD_CHARS, len(html))
    head = html[:head_end]

    main_at = html.find("<main")
    body_start = main_at if main_at > 0 else html.find("<body")
    if body_start > 0:
        body = html[body_start : body_start + BODY_CHARS]
    else:
        body = html[head_end : head_end + BODY_CHARS]
    return head + TRIM_MARKER + body


def _strip_noise(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        for name in [a for a in tag.attrs if a == "style" or a.startswith("data-")]:
            del tag[name]


def clean_html(html: str, max_size: int = settings.max_html_size) -> str:
    """Scripts, styles, comments, inline styles and data-* attributes removed; whitespace collapsed."""
    soup = BeautifulSoup(html, "html.parser")
    _strip_noise(soup)
    cleaned = _WS.sub(" ", str(soup))
    if len(cleaned) > max_size:
        cleaned = intelligent_trim(cleaned)
    return cleaned


ANALYSIS_PROMPT = """You are a web scraping expert. Analyze this LinkedIn page and generate an extraction strategy.

**User's Goal:**
{user_goal}

**Page URL:**
{url}

**Page Title:**
{title}

**Visible Content Preview:**
{visible_text}

**HTML Structure:**
```html
{html}
```

**Your Task:**
Analyze the HTML and determine:
1. What type of LinkedIn page this is (job listing, feed, profile, search results, etc.)
2. What data can be extracted to fulfill the user's goal
3. Specific CSS selectors to target those elements
4. Step-by-step extraction instructions

**Return your response as a JSON object with this exact structure:**
```json
{{
  "pageType": "job_listing | feed | profile | search_results | post | company | other",
  "confidence": 0.95,
  "dataAvailable": [
    {{
      "field": "email",
      "selector": ".contact-info email",
      "extractionMethod": "textContent | attribute | innerHTML",
      "attributeName": "href",
      "found": true,
      "estimatedCount": 5
    }}
  ],
  "extractionSteps": [
    {{
      "step": 1,
      "action": "click | scroll | wait | extract",
      "description": "Click 'See more' button to expand content",
      "selector": ".see-more-button",
      "required": false,
      "waitAfterMs": 1000
    }}
  ],
  "recommendations": "Additional suggestions or warnings",
  "limitations": "What cannot be extracted or requires user action"
}}
```

**Important:**
- Be precise with CSS selectors (inspect the actual HTML provided)
- Consider dynamic content loading
- Handle multiple items (lists, search results)
- Suggest scroll/click actions if content is hidden
- Be realistic about what can be extracted

Return ONLY valid JSON, no other text."""


def build_analysis_prompt(user_goal: str, context: PageContext) -> str:
    return ANALYSIS_PROMPT.format(
        user_goal=user_goal,
        url=context.url,
        title=context.title,
        visible_text=context.visible_text,
        html=context.html,
    )


def to_step(s: ExtractionStep, index: int) -> Step | None:
    """
    Map one oracle step onto the Step union. `extract` steps return None:
    field extraction runs after the preparation steps.
    """
    name = f"ai_step_{s.step if s.step is not None else index}"
    common: dict[str, Any] = {"name": name, "description": s.description, "required": s.required}
    action = s.action.lower()
    if action == "click" and s.selector:
        return ClickStep(selectors=(s.selector,), wait_after_ms=s.wait_after_ms, **common)
    if action == "scroll":
        if s.selector:
            return ScrollToStep(selectors=(s.selector,), wait_after_ms=s.wait_after_ms, **common)
        return ScrollStep(scroll_cycles=1, wait_after_ms=s.wait_after_ms, **common)
    if action == "wait":
        return WaitStep(duration_ms=s.wait_after_ms or 1000, selector=s.selector, wait_after_ms=0, **common)
    if action == "extract":
        return None
    raise ValueError(f"unknown action: {s.action}")


class AIScraper:
    def __init__(
        self,
        oracle: Any = None,
        *,
        max_html_size: int = settings.max_html_size,
        timings: Timings | None = None,
    ) -> None:
        self.oracle = oracle
        self.max_html_size = max_html_size
        self.timings = timings or Timings()
        self.last_strategy: Optional[AIStrategy] = None

    async def capture_page_context(self, driver: Any, ctx: Any) -> PageContext:
        html = await driver.content(ctx)
        cleaned = clean_html(html, self.max_html_size)
        text = await driver.visible_text(ctx)
        return PageContext(
            url=await driver.current_url(ctx),
            title=await driver.title(ctx),
            html=cleaned,
            visible_text=text[:VISIBLE_TEXT_CHARS],
            html_size=len(cleaned),
        )

    async def generate_extraction_strategy(self, user_goal: str, context: PageContext) -> AIStrategy:
        if self.oracle is None:
            raise OracleError("no strategy oracle configured")
        logger.info("asking oracle for an extraction strategy ({} chars of html)", context.html_size)
        prompt = build_analysis_prompt(user_goal, context)
        raw = await self.oracle.generate(user_goal, context, prompt)
        strategy = parse_ai_response(raw)
        self.last_strategy = strategy
        logger.info(
            "oracle strategy: page={} fields={} steps={}",
            strategy.page_type,
            len(strategy.data_available),
            len(strategy.extraction_steps),
        )
        return strategy

    async def execute_strategy(
        self,
        driver: Any,
        ctx: Any,
        strategy: AIStrategy,
        *,
        max_items: int = 100,
        step_delay_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        delay = settings.step_delay_ms if step_delay_ms is None else step_delay_ms
        run = RunContext(driver=driver, ctx=ctx, timings=self.timings)

        for index, raw_step in enumerate(strategy.extraction_steps, start=1):
            try:
                step = to_step(raw_step, index)
            except ValueError as e:
                logger.warning("skipping oracle step {}: {}", index, e)
                if raw_step.required:
                    break
                continue
            if step is None:
                continue
            res = await self._run_step(run, step)
            if not res.ok:
                logger.warning("oracle step failed: {} ({})", step.description or step.name, res.error)
                if step.required:
                    break
            wait_ms = step.wait_after_ms if step.wait_after_ms is not None else delay
            await asyncio.sleep(wait_ms / 1000)

        url = await driver.current_url(ctx)
        by_index: dict[int, dict[str, Any]] = {}
        for data_field in strategy.data_available:
            if not data_field.found or not data_field.selector:
                continue
            try:
                values = await self._read_field(driver, ctx, data_field, max_items)
            except Exception:  # noqa: BLE001
                logger.exception("skipping field {} (selector {!r})", data_field.field, data_field.selector)
                continue
            for index, value in enumerate(values):
                if not value:
                    continue
                record = by_index.setdefault(index, {"id": f"item-{index}", "timestamp": now_iso(), "sourceUrl": url})
                record[data_field.field] = value

        records = [by_index[i] for i in sorted(by_index)]
        logger.info("extracted {} items", len(records))
        return records

    @staticmethod
    async def _run_step(run: RunContext, step: Step) -> StepResult:
        try:
            return await registry.get_handler(step.kind)(run, step)
        except (StrategyParseError, OracleError):
            raise
        except StepExecutionError as e:
            return StepResult.failure(str(e))
        except Exception as e:  # noqa: BLE001
            logger.exception("oracle step {} raised", step.name)
            return StepResult.failure(f"{type(e).__name__}: {e}")

    async def _read_field(
        self, driver: Any, ctx: Any, data_field: DataField, max_items: int
    ) -> list[Optional[str]]:
        """One value per matched element, in document order; a value may be None or empty."""
        elements = await driver.query_all(ctx, data_field.selector)
        logger.debug("found {} elements for {}", len(elements), data_field.field)
        return [await self._read(driver, ctx, el, data_field) for el in elements[:max_items]]

    @staticmethod
    async def _read(driver: Any, ctx: Any, el: Any, data_field: DataField) -> Optional[str]:
        if data_field.extraction_method == "attribute":
            return await driver.element_attr(ctx, el, data_field.attribute_name or "href")
        if data_field.extraction_method == "innerHTML":
            return await driver.element_html(ctx, el)
        return await driver.element_text(ctx, el)
