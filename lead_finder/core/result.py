"""
Structured results reported by step handlers and by a whole strategy run.
"""
# @file purpose: Define StepResult / ExecutionResult models.

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class StepResult(BaseModel):
    """
    Uniform step handler return value:
    - ok: whether the step achieved its purpose
    - data: records or a payload the step produced (records, counts, contact sets)
    - error: human-readable reason when ok is False
    - meta: diagnostics (selector, url, counts) for logs and the CLI
    """

    ok: bool = True
    data: Any = None
    error: Optional[str] = None
    count: Optional[int] = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, data: Any = None, *, count: int | None = None, **meta: Any) -> "StepResult":
        return cls(ok=True, data=data, count=count, meta=meta)

    @classmethod
    def failure(cls, error: str, **meta: Any) -> "StepResult":
        return cls(ok=False, error=error, meta=meta)


class ExecutionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


class StepOutcome(BaseModel):
    """One executed step, kept for CLI rendering and reports."""

    index: int
    name: str
    kind: str
    ok: bool
    detail: str = "-"
    count: Optional[int] = None


class ExecutionResult(BaseModel):
    ok: bool
    state: ExecutionState
    records: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    steps: list[StepOutcome] = Field(default_factory=list)
    navigated_to: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.records)
