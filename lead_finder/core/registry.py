"""
Step handler registry:
- one async handler per StepKind, registered with the @handler decorator
- missing_handlers() lets the executor refuse to run with an incomplete table
- the Step union is closed, so a kind without a handler is a programming error
"""
# @file purpose: Provide the StepKind -> handler registry.

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from ..actions.params import StepKind

# Standard handler signature (async): (run_context, step) -> StepResult
HandlerFn = Callable[[Any, Any], Awaitable[Any]]

_REGISTRY: Dict[StepKind, HandlerFn] = {}


def handler(kind: StepKind | str) -> Callable[[HandlerFn], HandlerFn]:
    """
    Decorator: bind a handler to a step kind.
        @handler(StepKind.CLICK)
        async def click(run, step): ...
    """

    def deco(fn: HandlerFn) -> HandlerFn:
        register(kind, fn)
        return fn

    return deco


def register(kind: StepKind | str, fn: HandlerFn) -> None:
    """Non-decorator form, for tests and dynamic wiring."""
    _REGISTRY[StepKind(kind)] = fn


def get_handler(kind: StepKind | str) -> HandlerFn:
    try:
        return _REGISTRY[StepKind(kind)]
    except (KeyError, ValueError) as e:
        raise KeyError(f"No handler registered for step kind: {kind}") from e


def list_handlers() -> Dict[StepKind, HandlerFn]:
    return dict(_REGISTRY)


def missing_handlers() -> list[StepKind]:
    return [kind for kind in StepKind if kind not in _REGISTRY]


def snapshot() -> Dict[StepKind, HandlerFn]:
    return dict(_REGISTRY)


def restore(table: Dict[StepKind, HandlerFn]) -> None:
    _REGISTRY.clear()
    _REGISTRY.update(table)


# Test-only: reset the registry
def _reset_registry_for_tests() -> None:
    _REGISTRY.clear()
