"""
Lead data model and id derivation.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

INTELLIGENT_KEYWORD = "intelligent_extraction"
SHEET_CONTENT_LIMIT = 500

_WS = re.compile(r"\s")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Lead(BaseModel):
    """
    The unit handed to the sink. Serialised with camelCase keys, the layout
    the lead store keeps on disk.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    timestamp: str = Field(default_factory=_now)
    source_url: str = Field("", alias="postUrl")
    author_name: str = Field("Unknown", alias="authorName")
    author_profile_url: str = Field("", alias="authorProfile")
    matched_keywords: List[str] = Field(default_factory=list, alias="keywordMatched")
    body_text: str = Field("", alias="postContent")
    emails: List[str] = Field(default_factory=list)
    phones: List[str] = Field(default_factory=list)
    exported: bool = False
    exported_at: Optional[str] = Field(None, alias="exportedAt")

    # strategy-derived leads
    goal_name: Optional[str] = Field(None, alias="goal")
    page_type: Optional[str] = Field(None, alias="pageType")
    ai_relevant: Optional[bool] = Field(None, alias="aiRelevant")
    ai_priority: Optional[float] = Field(None, alias="aiPriority")
    ai_reason: Optional[str] = Field(None, alias="aiReason")
    ai_decision: Optional[Dict[str, Any]] = Field(None, alias="aiDecision")
    extracted_fields: Optional[Dict[str, Any]] = Field(None, alias="extractedFields")

    @property
    def has_contacts(self) -> bool:
        return bool(self.emails or self.phones)

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def post_lead_id(dom_id: str | None, text: str | None) -> str:
    """DOM identifier when present, else the first 100 chars of the text with whitespace removed."""
    if dom_id:
        return dom_id
    return _WS.sub("", (text or "")[:100])


def strategy_lead_id(goal_id: str, profile: str | None, body: str | None) -> str:
    """Content hash; the same element extracted again yields the same id."""
    digest = hashlib.sha1(f"{goal_id}\x1f{profile or ''}\x1f{body or ''}".encode("utf-8")).hexdigest()
    return f"intelligent_{digest[:16]}"


def sheet_row(lead: Lead) -> list[str]:
    return [
        lead.timestamp,
        lead.source_url or "",
        lead.author_name or "",
        ", ".join(lead.matched_keywords),
        (lead.body_text or "")[:SHEET_CONTENT_LIMIT],
        ", ".join(lead.emails),
        ", ".join(lead.phones),
        "New",
    ]
