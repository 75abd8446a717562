import pytest

from lead_finder.core.errors import ConfigError
from lead_finder.io.store import MemoryConfigStore
from lead_finder.scanner.session import (
    MAX_KEYWORDS,
    AutoSearchState,
    ScannerSettings,
    ScanSession,
    validate_keywords,
)


def test_validate_keywords() -> None:
    assert validate_keywords([" hiring ", "", "hiring", "python"]) == ["hiring", "python"]
    assert validate_keywords(None) == []
    with pytest.raises(ConfigError):
        validate_keywords(["x" * 101])
    with pytest.raises(ConfigError):
        validate_keywords([f"kw{i}" for i in range(MAX_KEYWORDS + 1)])


def test_settings_merge_keeps_unpatched_values() -> None:
    base = ScannerSettings(scan_interval_ms=5000)
    merged = base.merged({"wholeWord": True, "futureFlag": 1})
    assert merged.whole_word
    assert merged.scan_interval_ms == 5000
    assert merged.to_store()["futureFlag"] == 1
    assert base.merged(None) == base


def test_auto_search_state_aliases() -> None:
    state = AutoSearchState.model_validate({"keywordIndex": 2, "shouldNavigate": False})
    assert state.running and state.keyword_index == 2 and not state.should_navigate
    assert state.to_store() == {"running": True, "keywordIndex": 2, "shouldNavigate": False, "currentKeyword": None}


@pytest.mark.asyncio
async def test_session_load() -> None:
    config = MemoryConfigStore(
        {
            "keywords": ["a", "b"],
            "settings": {"scanMode": "manual"},
            "stats": {"totalLeads": 3},
            "autoSearchState": "garbage",
        }
    )
    session = await ScanSession.load(config)
    assert session.keywords == ["a", "b"]
    assert session.settings.scan_mode == "manual"
    assert session.settings.auto_sync
    assert session.stats.total_leads == 3
    assert session.auto_search is None
    assert session.has_keywords
