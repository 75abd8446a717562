import json
from typing import Any

import pytest

from lead_finder.actions.params import ClickStep, ScrollStep, ScrollToStep
from lead_finder.core.controller.context import Timings
from lead_finder.core.errors import OracleError, StrategyParseError
from lead_finder.io.static_driver import StaticPageDriver
from lead_finder.planning.ai_scraper import (
    TRIM_MARKER,
    AIScraper,
    ExtractionStep,
    clean_html,
    parse_ai_response,
    to_step,
)

STRATEGY_DOC: dict[str, Any] = {
    "pageType": "search_results",
    "confidence": 0.8,
    "dataAvailable": [
        {"field": "name", "selector": ".result .name", "extractionMethod": "textContent", "found": True},
        {
            "field": "profile",
            "selector": ".result a.profile",
            "extractionMethod": "attribute",
            "attributeName": "href",
            "found": True,
            "estimatedCount": 3,
        },
        {"field": "email", "selector": ".result .email", "found": False},
    ],
    "extractionSteps": [
        {"step": 1, "action": "click", "description": "open filters", "selector": ".filters", "required": False},
        {"step": 2, "action": "extract", "description": "read the cards"},
        {"step": 3, "action": "teleport", "description": "not a real action"},
    ],
    "recommendations": "scroll first for more results",
    "limitations": "emails are hidden",
}


def test_parse_round_trip() -> None:
    parsed = parse_ai_response(json.dumps(STRATEGY_DOC))
    assert parsed.to_json_dict() == STRATEGY_DOC


def test_parse_prefers_fenced_block() -> None:
    text = "Here you go:\n```json\n" + json.dumps(STRATEGY_DOC) + "\n```\nand {not json}"
    assert parse_ai_response(text).page_type == "search_results"


def test_parse_falls_back_to_outer_object() -> None:
    text = "Sure! " + json.dumps(STRATEGY_DOC) + " Hope that helps."
    assert len(parse_ai_response(text).data_available) == 3


@pytest.mark.parametrize(
    "text",
    [
        "",
        "no json at all",
        "{broken: json",
        json.dumps({"pageType": "feed", "dataAvailable": []}),
        json.dumps([1, 2, 3]),
    ],
)
def test_parse_failures(text: str) -> None:
    with pytest.raises(StrategyParseError) as exc:
        parse_ai_response(text)
    assert exc.value.raw == text


def test_to_step_mapping() -> None:
    assert isinstance(to_step(ExtractionStep(action="click", selector=".x"), 1), ClickStep)
    assert isinstance(to_step(ExtractionStep(action="scroll", selector=".x"), 1), ScrollToStep)
    scroll = to_step(ExtractionStep(action="Scroll"), 4)
    assert isinstance(scroll, ScrollStep) and scroll.name == "ai_step_4" and scroll.scroll_cycles == 1
    assert to_step(ExtractionStep(action="extract"), 1) is None
    with pytest.raises(ValueError):
        to_step(ExtractionStep(action="dance"), 1)


def test_clean_html_strips_noise() -> None:
    raw = '<div data-x="1" style="color:red">a   b</div><!-- c --><script>var a = 1</script><style>p{}</style>'
    assert clean_html(raw) == "<div>a b</div>"


def test_clean_html_trims_large_documents() -> None:
    raw = "<html><head>" + "h" * 6000 + "</head><body><main>" + "x" * 50000 + "</main></body></html>"
    out = clean_html(raw, max_size=1000)
    head, body = out.split(TRIM_MARKER)
    assert head == raw[:5000]
    assert body.startswith("<main>")
    assert len(body) == 40000


RESULTS_URL = "https://www.linkedin.com/search/results/all/?keywords=ml"
RESULTS_HTML = """
<html><head><title>Search</title></head><body>
  <div class="result"><span class="name">Ann</span><a class="profile" href="/in/ann/">Ann</a></div>
  <div class="result"><span class="name">Bob</span></div>
  <div class="result"><span class="name">Cid</span><a class="profile" href="/in/cid/">Cid</a></div>
</body></html>
"""


class StubStrategyOracle:
    def __init__(self, answer: str) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    async def generate(self, user_goal: str, context: Any, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


@pytest.mark.asyncio
async def test_generate_and_execute_oracle_plan() -> None:
    d = StaticPageDriver({RESULTS_URL: RESULTS_HTML})
    ctx = await d.new_context()
    await d.goto(ctx, RESULTS_URL)
    oracle = StubStrategyOracle("```json\n" + json.dumps(STRATEGY_DOC) + "\n```")
    scraper = AIScraper(oracle, timings=Timings.instant())

    context = await scraper.capture_page_context(d, ctx)
    assert context.title == "Search"
    assert "Ann" in context.visible_text

    plan = await scraper.generate_extraction_strategy("find ML people", context)
    assert scraper.last_strategy is plan
    assert "find ML people" in oracle.prompts[0]
    assert RESULTS_URL in oracle.prompts[0]

    records = await scraper.execute_strategy(d, ctx, plan, step_delay_ms=0)
    assert [r["name"] for r in records] == ["Ann", "Bob", "Cid"]
    # attribute values line up by match position, not by card
    assert records[0]["profile"] == "/in/ann/"
    assert records[1]["profile"] == "/in/cid/"
    assert "profile" not in records[2]
    assert all(r["sourceUrl"] == RESULTS_URL for r in records)
    assert [r["id"] for r in records] == ["item-0", "item-1", "item-2"]

    limited = await scraper.execute_strategy(d, ctx, plan, max_items=1, step_delay_ms=0)
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_generate_without_oracle_fails_closed() -> None:
    d = StaticPageDriver()
    ctx = await d.new_context()
    scraper = AIScraper(None)
    context = await scraper.capture_page_context(d, ctx)
    with pytest.raises(OracleError):
        await scraper.generate_extraction_strategy("anything", context)


def test_parse_keeps_list_valued_notes() -> None:
    doc = {
        "pageType": "feed",
        "confidence": "high",
        "dataAvailable": [],
        "extractionSteps": [],
        "recommendations": ["scroll first", "expand comments"],
        "limitations": ["emails are hidden"],
    }
    parsed = parse_ai_response(json.dumps(doc))
    assert parsed.recommendations == ["scroll first", "expand comments"]
    assert parsed.to_json_dict() == doc


def test_clean_html_handles_any_attribute_quoting() -> None:
    raw = (
        "<div class=\"c\" style='display:none' data-tracking='x1' data-v2=\"y\">hi"
        "<!-- x --><SCRIPT type=x>var a = 1</SCRIPT></div>"
    )
    assert clean_html(raw) == '<div class="c">hi</div>'


TEAM_URL = "https://www.linkedin.com/company/engines/people/"
TEAM_HTML = """
<html><body>
  <div class="r"><span class="name">Ada</span><span class="role">CTO</span></div>
</body></html>
"""


@pytest.mark.asyncio
async def test_bad_oracle_selectors_are_skipped() -> None:
    d = StaticPageDriver({TEAM_URL: TEAM_HTML})
    ctx = await d.new_context()
    await d.goto(ctx, TEAM_URL)
    plan = parse_ai_response(
        json.dumps(
            {
                "pageType": "company",
                "dataAvailable": [
                    {"field": "name", "selector": ".r .name", "found": True},
                    {"field": "title", "selector": "span:has-text('CTO')", "found": True},
                ],
                "extractionSteps": [
                    {"step": 1, "action": "click", "selector": "button:has-text('More')", "required": False},
                    {"step": 2, "action": "scroll", "selector": "div[[", "required": True},
                    {"step": 3, "action": "click", "selector": ".r", "required": False},
                ],
            }
        )
    )
    records = await AIScraper(None, timings=Timings.instant()).execute_strategy(d, ctx, plan, step_delay_ms=0)

    assert [{k: v for k, v in r.items() if k != "timestamp"} for r in records] == [
        {"id": "item-0", "sourceUrl": TEAM_URL, "name": "Ada"}
    ]
    # the failed required step ends the preparation steps
    assert ctx.events_of("click") == []
