"""
Scanner session state.

Everything the scanning loops read between iterations lives on one
`ScanSession` object instead of module globals. The persisted parts
(keywords, settings, stats, auto-search cursor) round-trip through the
config store with the camelCase keys the stored JSON uses.
"""
# @file purpose: Serialisable scanner state and user-facing scanner settings.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ConfigError
from ..core.settings import settings
from ..core.strategy import ActiveGoal, PageAnalysis

KEYWORDS_KEY = "keywords"
SETTINGS_KEY = "settings"
STATS_KEY = "stats"
AUTO_SEARCH_KEY = "autoSearchState"

MAX_KEYWORD_LENGTH = 100
MAX_KEYWORDS = 50


class _Stored(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ScannerSettings(_Stored):
    case_sensitive: bool = Field(False, alias="caseSensitive")
    whole_word: bool = Field(False, alias="wholeWord")
    auto_sync: bool = Field(True, alias="autoSync")
    scan_mode: str = Field("auto", alias="scanMode")
    enable_notifications: bool = Field(True, alias="enableNotifications")
    highlight_posts: bool = Field(True, alias="highlightPosts")
    scan_comments: bool = Field(False, alias="scanComments")
    scan_interval_ms: int = Field(15000, alias="scanIntervalMs")
    auto_search_enabled: bool = Field(False, alias="autoSearchEnabled")
    auto_search_delay: int = Field(20000, alias="autoSearchDelay")
    auto_scroll_enabled: bool = Field(True, alias="autoScrollEnabled")
    auto_scroll_cycles: int = Field(6, alias="autoScrollCycles")
    auto_scroll_delay: int = Field(1500, alias="autoScrollDelay")
    ai_relevance_enabled: bool = Field(False, alias="aiRelevanceEnabled")
    company_profile: str = Field("", alias="companyProfile")
    open_router_model: str = Field(settings.openrouter_model, alias="openRouterModel")
    intelligent_mode: bool = Field(False, alias="intelligentMode")
    current_goal_id: Optional[str] = Field(None, alias="currentGoalId")
    autopilot_enabled: bool = Field(False, alias="autopilotEnabled")

    def merged(self, patch: Mapping[str, Any] | None) -> "ScannerSettings":
        """Stored values over the current ones; keys missing from `patch` keep their value."""
        return ScannerSettings.model_validate({**self.to_store(), **dict(patch or {})})


class AutoSearchState(_Stored):
    running: bool = True
    keyword_index: int = Field(0, alias="keywordIndex")
    should_navigate: bool = Field(True, alias="shouldNavigate")
    current_keyword: Optional[str] = Field(None, alias="currentKeyword")


class Stats(_Stored):
    total_leads: int = Field(0, alias="totalLeads")
    emails_found: int = Field(0, alias="emailsFound")
    phones_found: int = Field(0, alias="phonesFound")
    exported_count: int = Field(0, alias="exportedCount")
    last_sync: Optional[str] = Field(None, alias="lastSync")


def validate_keywords(keywords: Iterable[str] | None) -> list[str]:
    """Strip, drop blanks and duplicates; raises ConfigError past the length/count limits."""
    cleaned: list[str] = []
    for raw in keywords or []:
        kw = str(raw).strip()
        if not kw or kw in cleaned:
            continue
        if len(kw) > MAX_KEYWORD_LENGTH:
            raise ConfigError(f"keyword longer than {MAX_KEYWORD_LENGTH} characters: {kw[:20]}...")
        cleaned.append(kw)
    if len(cleaned) > MAX_KEYWORDS:
        raise ConfigError(f"at most {MAX_KEYWORDS} keywords are allowed (got {len(cleaned)})")
    return cleaned


@dataclass
class ScanTimings:
    expand_pause_ms: int = 200
    search_input_timeout_ms: int = 4000
    search_fallback_ms: int = 1500
    poll_interval_ms: int = settings.poll_interval_ms

    @classmethod
    def instant(cls) -> "ScanTimings":
        return cls(expand_pause_ms=0, search_input_timeout_ms=0, search_fallback_ms=0, poll_interval_ms=1)


@dataclass
class ScanSession:
    """
    Live scanner state. `keywords`/`settings` are replaced wholesale when the
    config store reports a change; loops read them fresh every cycle.
    """

    keywords: list[str] = field(default_factory=list)
    settings: ScannerSettings = field(default_factory=ScannerSettings)
    stats: Stats = field(default_factory=Stats)
    auto_search: Optional[AutoSearchState] = None
    scanned_posts: set[str] = field(default_factory=set)

    # guards
    scanning: bool = False
    processing_auto_search: bool = False

    # intelligent mode
    intelligent_mode: bool = False
    current_goal: Optional[ActiveGoal] = None
    current_analysis: Optional[PageAnalysis] = None

    @classmethod
    async def load(cls, config: Any) -> "ScanSession":
        data = await config.get([KEYWORDS_KEY, SETTINGS_KEY, STATS_KEY, AUTO_SEARCH_KEY])
        state = data.get(AUTO_SEARCH_KEY)
        return cls(
            keywords=list(data.get(KEYWORDS_KEY) or []),
            settings=ScannerSettings().merged(data.get(SETTINGS_KEY)),
            stats=Stats.model_validate(data.get(STATS_KEY) or {}),
            auto_search=AutoSearchState.model_validate(state) if isinstance(state, dict) else None,
        )

    @property
    def has_keywords(self) -> bool:
        return bool(self.keywords)

    def forget_scanned(self) -> None:
        self.scanned_posts.clear()
