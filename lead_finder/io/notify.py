"""
Best-effort notifications. Publishing never fails the caller and having no
subscriber is not an error.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None: ...


class LogNotifier:
    def notify(self, title: str, message: str) -> None:
        logger.info("{}: {}", title, message)


class NullNotifier:
    def notify(self, title: str, message: str) -> None:
        return None
