"""
Key/value configuration store and lead store.

ConfigStore:
- get(keys) -> {key: value} for the keys present
- set(mapping) / remove(keys)
- subscribe(callback): every mutation is delivered as {key: Change(old, new)},
  whichever writer caused it

LeadStore:
- append-only list of leads; uniqueness is the caller's job (stable ids)
"""
# @file purpose: JSON-file and in-memory stores.

from __future__ import annotations

import inspect
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Protocol, Union

from loguru import logger

from ..reporting.schemas import Lead

_MISSING = object()


@dataclass(frozen=True)
class Change:
    old_value: Any = None
    new_value: Any = None


Listener = Callable[[dict[str, Change]], Union[None, Awaitable[None]]]


class ConfigStore(Protocol):
    async def get(self, keys: Iterable[str]) -> dict[str, Any]: ...
    async def set(self, values: Mapping[str, Any]) -> None: ...
    async def remove(self, keys: Iterable[str]) -> None: ...
    def subscribe(self, listener: Listener) -> Callable[[], None]: ...


class LeadStore(Protocol):
    async def get_all(self) -> list[Lead]: ...
    async def has(self, lead_id: str) -> bool: ...
    async def append_one(self, lead: Lead) -> None: ...
    async def update_by_id(self, lead_id: str, patch: Mapping[str, Any]) -> bool: ...
    async def get_unexported(self) -> list[Lead]: ...
    async def mark_exported(self, ids: Iterable[str]) -> int: ...


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    os.replace(tmp, path)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    text = path.read_text(encoding="utf-8")
    return json.loads(text) if text.strip() else default


# ------------------------------------------------------------------------------
# config
# ------------------------------------------------------------------------------


class MemoryConfigStore:
    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})
        self._listeners: list[Listener] = []

    # storage hooks, overridden by the file-backed store
    def _load(self) -> dict[str, Any]:
        return self._data

    def _save(self, data: dict[str, Any]) -> None:
        self._data = data

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        data = self._load()
        return {k: data[k] for k in keys if k in data}

    async def set(self, values: Mapping[str, Any]) -> None:
        data = dict(self._load())
        changes: dict[str, Change] = {}
        for key, value in values.items():
            old = data.get(key, _MISSING)
            data[key] = value
            changes[key] = Change(None if old is _MISSING else old, value)
        self._save(data)
        await self._emit(changes)

    async def remove(self, keys: Iterable[str]) -> None:
        data = dict(self._load())
        changes = {k: Change(data.pop(k), None) for k in list(keys) if k in data}
        if not changes:
            return
        self._save(data)
        await self._emit(changes)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, changes: dict[str, Change]) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(changes)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("config listener failed")


class JsonConfigStore(MemoryConfigStore):
    """One JSON object per file; every read is a fresh snapshot from disk."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        data = _read_json(self.path, {})
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        _write_json(self.path, data)


# ------------------------------------------------------------------------------
# leads
# ------------------------------------------------------------------------------


class JsonLeadStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> list[dict[str, Any]]:
        data = _read_json(self.path, [])
        return data if isinstance(data, list) else []

    async def get_all(self) -> list[Lead]:
        return [Lead.model_validate(item) for item in self._load()]

    async def has(self, lead_id: str) -> bool:
        return any(item.get("id") == lead_id for item in self._load())

    async def append_one(self, lead: Lead) -> None:
        items = self._load()
        items.append(lead.to_store())
        _write_json(self.path, items)

    async def update_by_id(self, lead_id: str, patch: Mapping[str, Any]) -> bool:
        items = self._load()
        for item in items:
            if item.get("id") == lead_id:
                item.update(patch)
                _write_json(self.path, items)
                return True
        return False

    async def get_unexported(self) -> list[Lead]:
        return [lead for lead in await self.get_all() if not lead.exported]

    async def mark_exported(self, ids: Iterable[str]) -> int:
        wanted = set(ids)
        at = datetime.now(timezone.utc).isoformat()
        items = self._load()
        marked = 0
        for item in items:
            if item.get("id") in wanted and not item.get("exported"):
                item["exported"] = True
                item["exportedAt"] = at
                marked += 1
        if marked:
            _write_json(self.path, items)
        return marked
