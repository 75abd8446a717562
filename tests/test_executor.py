# @file purpose: StrategyExecutor sequencing, abort, stop and concurrency rules.
import asyncio
import json
from typing import Any, Iterator

import pytest
from pydantic import ValidationError

from lead_finder.actions.params import (
    AIStrategyStep,
    ClickStep,
    DelegateToAIStep,
    ExtractListStep,
    ExtractSocialStep,
    StepKind,
    WaitStep,
)
from lead_finder.core import registry
from lead_finder.core.controller.context import Timings
from lead_finder.core.controller.executor import StrategyExecutor
from lead_finder.core.errors import StrategyParseError
from lead_finder.core.result import ExecutionState, StepResult
from lead_finder.core.strategy import PageAnalysis, PageType, Strategy
from lead_finder.io.static_driver import StaticPageDriver
from lead_finder.planning.ai_scraper import AIScraper
from lead_finder.planning.goals import GOAL_CATALOG, GoalEngine

PEOPLE_URL = "https://www.linkedin.com/search/results/people/?keywords=cto"
PEOPLE_HTML = """
<html><body>
  <div class="entity-result">
    <span class="entity-result__title-text">Ada Lovelace</span>
    <div class="entity-result__primary-subtitle">CTO at Engines</div>
    <a href="https://www.linkedin.com/in/ada/">profile</a>
  </div>
  <div class="entity-result">
    <span class="entity-result__title-text">Grace Hopper</span>
    <div class="entity-result__primary-subtitle">Rear Admiral</div>
    <a href="https://www.linkedin.com/in/grace/">profile</a>
  </div>
</body></html>
"""

EXTRACT_PEOPLE = ExtractListStep(
    name="extract_people",
    selectors=(".entity-result",),
    data_fields=("name", "headline", "profile_url"),
)


def _strategy(*steps: Any, ai_prompt: str = "") -> Strategy:
    return Strategy(goal_name="Test", goal_id="test", page_type=PageType.UNKNOWN, steps=steps, ai_prompt=ai_prompt)


async def _page(url: str = PEOPLE_URL, html: str = PEOPLE_HTML) -> tuple[StaticPageDriver, Any]:
    d = StaticPageDriver({url: html})
    ctx = await d.new_context()
    await d.goto(ctx, url)
    return d, ctx


def _executor(driver: StaticPageDriver, **kwargs: Any) -> StrategyExecutor:
    return StrategyExecutor(driver, step_delay_ms=0, timings=Timings.instant(), **kwargs)


@pytest.fixture
def restore_registry() -> Iterator[None]:
    table = registry.snapshot()
    try:
        yield
    finally:
        registry.restore(table)


def test_every_step_kind_has_a_handler() -> None:
    assert registry.missing_handlers() == []


@pytest.mark.asyncio
async def test_extract_list_records() -> None:
    d, ctx = await _page()
    result = await _executor(d).execute_strategy(ctx, _strategy(EXTRACT_PEOPLE))
    assert result.ok and result.state == ExecutionState.SUCCEEDED
    assert [r["name"] for r in result.records] == ["Ada Lovelace", "Grace Hopper"]
    assert result.records[0]["headline"] == "CTO at Engines"
    assert result.records[1]["profile_url"] == "https://www.linkedin.com/in/grace/"
    assert [r["_index"] for r in result.records] == [0, 1]


@pytest.mark.asyncio
async def test_required_failure_halts_later_steps(restore_registry: None) -> None:
    calls: list[str] = []

    async def spy(run: Any, step: Any) -> StepResult:
        calls.append(step.name)
        return StepResult.success()

    registry.register(StepKind.EXTRACT_SOCIAL, spy)

    d, ctx = await _page()
    strategy = _strategy(
        EXTRACT_PEOPLE,
        ClickStep(name="open_modal", selectors=("button.missing",), required=True),
        ExtractSocialStep(name="never_runs", selectors=(".entity-result",), data_fields=("name",)),
    )
    ex = _executor(d)
    first = await _executor(d).execute_strategy(ctx, _strategy(EXTRACT_PEOPLE))
    result = await ex.execute_strategy(ctx, strategy)

    assert calls == []
    assert not result.ok and result.state == ExecutionState.FAILED
    assert result.error == "required step failed: open_modal"
    assert [s.name for s in result.steps] == ["extract_people", "open_modal"]
    strip = lambda rs: [{k: v for k, v in r.items() if k != "_timestamp"} for r in rs]  # noqa: E731
    assert strip(result.records) == strip(first.records)


@pytest.mark.asyncio
async def test_optional_failure_continues_on_job_listing() -> None:
    url = "https://www.linkedin.com/jobs/view/12345"
    d, ctx = await _page(url, "<body><h1>Some job</h1></body>")
    analysis = PageAnalysis(page_type=PageType.JOB_LISTING, url=url)
    strategy = GoalEngine.generate_strategy(GOAL_CATALOG["job_applicants"], analysis)
    # detect count + open applicants; the scroll step would only add wall time
    strategy = strategy.model_copy(update={"steps": strategy.steps[:2]})

    result = await _executor(d).execute_strategy(ctx, strategy)
    assert result.state == ExecutionState.SUCCEEDED
    assert [s.name for s in result.steps] == ["detect_applicant_count", "click_view_applicants"]
    assert not result.steps[0].ok
    assert result.steps[0].detail == "count element not found"


@pytest.mark.asyncio
async def test_second_call_while_running_is_rejected() -> None:
    d, ctx = await _page()
    ex = _executor(d)
    slow = _strategy(WaitStep(name="hold", duration_ms=200), EXTRACT_PEOPLE)

    first = asyncio.create_task(ex.execute_strategy(ctx, slow))
    await asyncio.sleep(0)
    assert ex.is_running

    second = await ex.execute_strategy(ctx, _strategy(EXTRACT_PEOPLE))
    assert not second.ok
    assert second.error == "already running"
    assert second.steps == []

    done = await first
    assert done.ok and done.count == 2
    assert not ex.is_running


@pytest.mark.asyncio
async def test_stop_takes_effect_at_step_boundary() -> None:
    d, ctx = await _page()
    ex = _executor(d)
    task = asyncio.create_task(ex.execute_strategy(ctx, _strategy(WaitStep(name="hold", duration_ms=100), EXTRACT_PEOPLE)))
    await asyncio.sleep(0)
    ex.stop()

    result = await task
    assert result.state == ExecutionState.STOPPED
    assert [s.name for s in result.steps] == ["hold"]
    assert result.records == []


@pytest.mark.asyncio
async def test_navigate_ends_the_execution() -> None:
    url = "https://www.linkedin.com/company/acme/"
    html = '<body><h1 class="org-top-card-summary__title">Acme</h1></body>'
    d, ctx = await _page(url, html)
    analysis = PageAnalysis(page_type=PageType.COMPANY_PAGE, url=url)
    strategy = GoalEngine.generate_strategy(GOAL_CATALOG["company_intel"], analysis)

    result = await _executor(d).execute_strategy(ctx, strategy)
    assert result.ok
    assert result.navigated_to == "https://www.linkedin.com/company/acme/people/"
    assert [s.name for s in result.steps] == ["extract_company_info", "navigate_to_people"]
    assert result.records == [{"company_name": "Acme"}]
    assert ("goto", "https://www.linkedin.com/company/acme/people/") in ctx.events


class FakeBatchOracle:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def assess_batch(self, records: Any, prompt: str, *, task: str = "") -> list[dict[str, Any]]:
        self.prompts.append(prompt)
        return [{"relevant": i == 0, "priority": 90 - i * 50, "reason": task} for i, _ in enumerate(records)]


@pytest.mark.asyncio
async def test_delegate_annotates_records() -> None:
    d, ctx = await _page()
    oracle = FakeBatchOracle()
    strategy = _strategy(
        EXTRACT_PEOPLE,
        DelegateToAIStep(name="filter_by_role", ai_task="role_filter"),
        ai_prompt="find CTOs",
    )
    result = await _executor(d, oracle=oracle).execute_strategy(ctx, strategy)

    assert oracle.prompts == ["find CTOs"]
    assert [r["_aiRelevant"] for r in result.records] == [True, False]
    assert [r["_aiPriority"] for r in result.records] == [90, 40]
    assert result.records[0]["_aiReason"] == "role_filter"


@pytest.mark.asyncio
async def test_delegate_without_oracle_is_a_step_failure() -> None:
    d, ctx = await _page()
    result = await _executor(d).execute_strategy(ctx, _strategy(EXTRACT_PEOPLE, DelegateToAIStep(name="assess")))
    assert result.ok
    assert not result.steps[1].ok
    assert "_aiRelevant" not in result.records[0]


class GarbageStrategyOracle:
    async def generate(self, user_goal: str, context: Any, prompt: str) -> str:
        return "I could not find anything useful here."


@pytest.mark.asyncio
async def test_unparseable_ai_strategy_propagates() -> None:
    d, ctx = await _page()
    ex = _executor(d, ai_scraper=AIScraper(GarbageStrategyOracle(), timings=Timings.instant()))
    with pytest.raises(StrategyParseError):
        await ex.execute_strategy(ctx, _strategy(AIStrategyStep(name="analyze_with_ai")))
    assert not ex.is_running
    assert ex.state == ExecutionState.FAILED


class RecordingStrategyOracle:
    def __init__(self) -> None:
        self.goals: list[str] = []

    async def generate(self, user_goal: str, context: Any, prompt: str) -> str:
        self.goals.append(user_goal)
        return json.dumps(
            {
                "pageType": "search_results",
                "dataAvailable": [
                    {"field": "name", "selector": ".entity-result__title-text", "found": True},
                ],
                "extractionSteps": [],
            }
        )


@pytest.mark.asyncio
async def test_ai_strategy_asks_with_the_user_goal() -> None:
    d, ctx = await _page()
    engine = GoalEngine()
    engine.set_goal("custom", "find CTOs")
    analysis = PageAnalysis(page_type=PageType.PEOPLE_SEARCH, url=PEOPLE_URL)
    strategy = engine.generate_strategy(engine.current_goal, analysis)
    oracle = RecordingStrategyOracle()

    ex = _executor(d, ai_scraper=AIScraper(oracle, timings=Timings.instant()))
    result = await ex.execute_strategy(ctx, strategy)

    assert oracle.goals == ["find CTOs"]
    assert result.steps[0].ok
    assert [r["name"] for r in result.records] == ["Ada Lovelace", "Grace Hopper"]


@pytest.mark.parametrize("fields", [None, ()])
def test_extract_steps_need_data_fields(fields: Any) -> None:
    kwargs = {} if fields is None else {"data_fields": fields}
    with pytest.raises(ValidationError):
        ExtractListStep(name="people", selectors=(".entity-result",), **kwargs)
    with pytest.raises(ValidationError):
        ExtractSocialStep(name="reactors", selectors=(".entity-result",), **kwargs)
