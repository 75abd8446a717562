"""
Project-level exception types with a single capture boundary.
- LeadFinderError: base class of every custom error
- StepExecutionError: a step handler hit an unexpected condition (script error, detached element)
- StrategyParseError: oracle text could not be turned into a strategy
- OracleError: the language-model service was unreachable or answered with an error
- SinkError: the spreadsheet sink refused an append
- ConfigError: keywords or settings outside the accepted limits
- PageNotReadyError: a page opened for automation had nothing to scan
"""
# @file purpose: Define error taxonomy for lead-finder.

from typing import Any


class LeadFinderError(Exception):
    """Base class for all custom errors in lead-finder."""


class StepExecutionError(LeadFinderError):
    """
    Raised when a step fails in a way its handler cannot express as a result.
    Carries enough context for the CLI and logs to print a uniform diagnostic.
    """

    def __init__(
        self,
        step: str,
        message: str,
        *,
        selector: str | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.step: str = step
        self.selector: str | None = selector
        self.url: str | None = url
        self.details: dict[str, Any] = details or {}
        self.cause: BaseException | None = cause

    def __str__(self) -> str:
        parts = [f"[{self.step}] {super().__str__()}"]
        if self.selector:
            parts.append(f"selector={self.selector}")
        if self.url:
            parts.append(f"url={self.url}")
        if self.details:
            kv = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            parts.append(f"details={{ {kv} }}")
        return " | ".join(parts)


class StrategyParseError(LeadFinderError):
    """Raised when an oracle response is not a well-formed extraction strategy."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class OracleError(LeadFinderError):
    """Raised when the language-model service cannot produce a usable answer."""


class SinkError(LeadFinderError):
    """Raised when the spreadsheet sink rejects a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(LeadFinderError):
    """Raised on invalid keywords or settings."""


class PageNotReadyError(LeadFinderError):
    """Raised when a freshly opened page never shows anything to scan."""
