"""
Google Sheets sink and the lead exporter on top of it.

The sink is not idempotent: a lead is submitted once and marked exported
only after its append came back 2xx.
"""
# @file purpose: Append leads to a spreadsheet over the Sheets REST API.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import BaseModel

from ..core.errors import SinkError
from ..core.settings import settings
from ..reporting.schemas import sheet_row
from ..reporting.writer import SHEET_HEADERS

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
HEADER_RANGE = "A1:H1"
APPEND_RANGE = "Sheet1"
EXPORT_BATCH_SIZE = 50


class GoogleSheetsSink:
    def __init__(
        self,
        token: str | None = None,
        sheet_id: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = SHEETS_API,
    ) -> None:
        self.token = token if token is not None else settings.google_token
        self.sheet_id = sheet_id if sheet_id is not None else settings.sheet_id
        self.base_url = base_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _check_configured(self) -> None:
        if not self.token:
            raise SinkError("Not authenticated")
        if not self.sheet_id:
            raise SinkError("No sheet configured")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        self._check_configured()
        try:
            response = await self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise SinkError(f"Sheets request failed: {e}") from e
        if response.status_code == 401:
            raise SinkError("Authentication expired", status_code=401)
        if not response.is_success:
            raise SinkError(f"API Error: {response.text[:200]}", status_code=response.status_code)
        return response.json() if response.content else {}

    async def test_connection(self) -> str:
        data = await self._request("GET", f"{self.base_url}/{self.sheet_id}")
        return str((data.get("properties") or {}).get("title", ""))

    async def read_range(self, range_: str = HEADER_RANGE) -> list[list[Any]]:
        data = await self._request("GET", f"{self.base_url}/{self.sheet_id}/values/{quote(range_)}")
        return data.get("values") or []

    async def append_rows(self, rows: list[list[Any]], range_: str = APPEND_RANGE) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"{self.base_url}/{self.sheet_id}/values/{quote(range_)}:append",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )


class ExportResult(BaseModel):
    ok: bool
    count: int = 0
    error: Optional[str] = None
    message: Optional[str] = None


class LeadExporter:
    def __init__(self, leads: Any, sink: Any, *, config: Any = None, batch_size: int = EXPORT_BATCH_SIZE) -> None:
        self.leads = leads
        self.sink = sink
        self.config = config
        self.batch_size = max(1, batch_size)
        self._exporting = False

    async def ensure_headers(self) -> None:
        try:
            has_headers = bool(await self.sink.read_range(HEADER_RANGE))
        except SinkError as e:
            logger.warning("header check failed: {}", e)
            has_headers = False
        if not has_headers:
            await self.sink.append_rows([list(SHEET_HEADERS)])

    async def export(self) -> ExportResult:
        if self._exporting:
            return ExportResult(ok=False, error="Export already in progress")

        self._exporting = True
        exported = 0
        try:
            pending = await self.leads.get_unexported()
            if not pending:
                return ExportResult(ok=True, count=0, message="No new leads to export")

            logger.info("exporting {} leads", len(pending))
            await self.ensure_headers()
            for start in range(0, len(pending), self.batch_size):
                batch = pending[start : start + self.batch_size]
                await self.sink.append_rows([sheet_row(lead) for lead in batch])
                exported += await self.leads.mark_exported([lead.id for lead in batch])

            await self._record_sync(exported)
            logger.info("exported {} leads", exported)
            return ExportResult(ok=True, count=exported)
        except SinkError as e:
            logger.error("export failed after {} leads: {}", exported, e)
            if exported:
                await self._record_sync(exported)
            return ExportResult(ok=False, count=exported, error=str(e))
        finally:
            self._exporting = False

    async def _record_sync(self, count: int) -> None:
        if self.config is None:
            return
        stats = dict((await self.config.get(["stats"])).get("stats") or {})
        stats["exportedCount"] = int(stats.get("exportedCount") or 0) + count
        stats["lastSync"] = datetime.now(timezone.utc).isoformat()
        await self.config.set({"stats": stats})
