# lead_finder/core/controller/executor.py
"""
Sequential strategy executor.

Responsibilities:
- Dispatch each Step to its registered handler (closed StepKind table)
- Inter-step delay: the step's wait_after_ms, else the configured default
- Required-step failure aborts with the partial records; others are logged and skipped
- One execution at a time; a concurrent call is rejected, not queued
- stop() is honoured at the next step boundary
- On failure: save a screenshot artifact (if artifacts_dir is set)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .. import registry
from ..errors import OracleError, StepExecutionError, StrategyParseError
from ..result import ExecutionResult, ExecutionState, StepOutcome, StepResult
from ..settings import settings
from ..strategy import Strategy
from ...actions import impl as _handlers  # noqa: F401  (registers step handlers)
from ...text.contacts import ContactExtractor
from ...text.matcher import KeywordMatcher
from .context import RunContext, Timings


class StrategyExecutor:
    def __init__(
        self,
        driver: Any,
        *,
        contacts: ContactExtractor | None = None,
        matcher: KeywordMatcher | None = None,
        oracle: Any = None,
        ai_scraper: Any = None,
        step_delay_ms: int | None = None,
        timings: Timings | None = None,
        artifacts_dir: Path | None = None,
    ) -> None:
        self.driver = driver
        self.contacts = contacts or ContactExtractor()
        self.matcher = matcher
        self.oracle = oracle
        self.ai_scraper = ai_scraper
        self.step_delay_ms = settings.step_delay_ms if step_delay_ms is None else step_delay_ms
        self.timings = timings or Timings()
        self.artifacts_dir = artifacts_dir
        if self.artifacts_dir:
            self.artifacts_dir.mkdir(parents=True, exist_ok=True)

        self.state = ExecutionState.IDLE
        self._running = False
        self._stop_requested = False
        self._records: list[dict[str, Any]] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def records(self) -> list[dict[str, Any]]:
        return list(self._records)

    def clear(self) -> None:
        self._records = []

    def stop(self) -> None:
        """Halt at the next step boundary; the step in flight is allowed to finish."""
        if self._running:
            self._stop_requested = True

    async def execute_strategy(
        self, ctx: Any, strategy: Strategy, *, step_delay_ms: int | None = None
    ) -> ExecutionResult:
        # checked and set before the first await: a concurrent caller sees the flag
        if self._running:
            logger.warning("extraction already in progress")
            return ExecutionResult(ok=False, state=self.state, error="already running")

        missing = registry.missing_handlers()
        if missing:
            raise RuntimeError(f"no handler for step kinds: {', '.join(k.value for k in missing)}")

        self._running = True
        self._stop_requested = False
        self.state = ExecutionState.RUNNING
        self._records = []
        delay_default = self.step_delay_ms if step_delay_ms is None else step_delay_ms

        run = RunContext(
            driver=self.driver,
            ctx=ctx,
            records=self._records,
            contacts=self.contacts,
            matcher=self.matcher,
            oracle=self.oracle,
            ai_scraper=self.ai_scraper,
            ai_prompt=strategy.ai_prompt,
            user_goal=strategy.user_goal,
            goal_id=strategy.goal_id,
            timings=self.timings,
        )
        outcomes: list[StepOutcome] = []
        logger.info("starting strategy {} ({} steps)", strategy.goal_id, len(strategy.steps))

        try:
            for i, step in enumerate(strategy.steps, start=1):
                if self._stop_requested:
                    logger.info("strategy {} stopped before step {}", strategy.goal_id, i)
                    return self._finish(ExecutionState.STOPPED, outcomes, error="stopped")

                res = await self._run_step(run, step)
                outcomes.append(self._outcome(i, step, res))

                if not res.ok:
                    logger.warning("step failed: {} ({})", step.name, res.error)
                    await self._on_failure(ctx, i, step.name)
                    if step.required:
                        return self._finish(
                            ExecutionState.FAILED, outcomes, error=f"required step failed: {step.name}"
                        )

                navigated_to = (res.data or {}).get("navigated_to") if isinstance(res.data, dict) else None
                if navigated_to:
                    return self._finish(ExecutionState.SUCCEEDED, outcomes, navigated_to=navigated_to)

                if i < len(strategy.steps):
                    delay = step.wait_after_ms if step.wait_after_ms is not None else delay_default
                    await asyncio.sleep(delay / 1000)

            return self._finish(ExecutionState.SUCCEEDED, outcomes)
        except (StrategyParseError, OracleError):
            self._finish(ExecutionState.FAILED, outcomes)
            raise
        finally:
            self._running = False
            self._stop_requested = False

    async def _run_step(self, run: RunContext, step: Any) -> StepResult:
        fn = registry.get_handler(step.kind)
        logger.debug("executing step: {} [{}]", step.name, step.kind)
        try:
            return await fn(run, step)
        except (StrategyParseError, OracleError):
            raise
        except StepExecutionError as e:
            return StepResult.failure(str(e))
        except Exception as e:  # noqa: BLE001
            logger.exception("step {} raised", step.name)
            return StepResult.failure(f"{type(e).__name__}: {e}")

    def _finish(
        self,
        state: ExecutionState,
        outcomes: list[StepOutcome],
        *,
        error: Optional[str] = None,
        navigated_to: Optional[str] = None,
    ) -> ExecutionResult:
        self.state = state
        self._running = False
        result = ExecutionResult(
            ok=state == ExecutionState.SUCCEEDED,
            state=state,
            records=list(self._records),
            error=error,
            steps=outcomes,
            navigated_to=navigated_to,
        )
        logger.info("strategy finished: {} with {} records", state.value, result.count)
        return result

    @staticmethod
    def _outcome(index: int, step: Any, res: StepResult) -> StepOutcome:
        if not res.ok:
            detail = res.error or "failed"
        elif "url" in res.meta:
            detail = str(res.meta["url"])
        elif "selector" in res.meta:
            detail = f'selector="{res.meta["selector"]}"'
        else:
            detail = "-"
        return StepOutcome(index=index, name=step.name, kind=str(step.kind), ok=res.ok, detail=detail, count=res.count)

    async def _on_failure(self, ctx: Any, index: int, name: str) -> str | None:
        """Best-effort failure artifact (screenshot)."""
        if not self.artifacts_dir:
            return None
        png = self.artifacts_dir / f"fail-{index:02d}-{name}.png"
        try:
            await self.driver.screenshot(ctx, str(png), full_page=True)
            return str(png)
        except Exception as e:  # noqa: BLE001
            logger.debug("could not save failure artifact: {}", e)
            return None
