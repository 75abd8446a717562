import asyncio
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lead_finder.cli.main import app
from lead_finder.core.settings import settings
from lead_finder.io.store import JsonConfigStore

FEED_HTML = Path(__file__).parent / "fixtures" / "feed.html"
FEED_URL = "https://www.linkedin.com/feed/"

runner = CliRunner()


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    monkeypatch.setattr(settings, "openrouter_api_key", None)
    return tmp_path / "data"


def test_doctor() -> None:
    result = runner.invoke(app, ["doctor"])
    assert result.exit_code == 0
    assert "lead-finder" in result.output


def test_analyze_saved_html() -> None:
    result = runner.invoke(app, ["--log-level", "ERROR", "analyze", FEED_URL, "--html", str(FEED_HTML)])
    assert result.exit_code == 0, result.output
    assert "recommended goal: comment_mining" in result.output


def test_plan_prints_strategy_json() -> None:
    result = runner.invoke(
        app, ["--log-level", "ERROR", "plan", "keyword_hunting", "--url", FEED_URL, "--html", str(FEED_HTML)]
    )
    assert result.exit_code == 0, result.output
    assert '"goal_id": "keyword_hunting"' in result.output
    assert '"kind": "scan-keywords"' in result.output


def test_plan_unknown_goal() -> None:
    result = runner.invoke(app, ["plan", "nope", "--html", str(FEED_HTML)])
    assert result.exit_code == 2


def test_missing_html_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", "--html", str(tmp_path / "missing.html")])
    assert result.exit_code == 2


def test_run_goal_then_list_leads(data_dir: Path, tmp_path: Path) -> None:
    asyncio.run(JsonConfigStore(data_dir / "config.json").set({"keywords": ["hiring"]}))

    result = runner.invoke(
        app,
        [
            "--log-level",
            "ERROR",
            "run-goal",
            "keyword_hunting",
            "--url",
            FEED_URL,
            "--html",
            str(FEED_HTML),
            "--step-delay-ms",
            "0",
            "--artifacts-dir",
            str(tmp_path / "artifacts"),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "leads saved: 2" in result.output
    # the relevance step has no oracle here; its failure leaves a snapshot behind
    assert list((tmp_path / "artifacts").glob("fail-03-*.html"))

    out_dir = tmp_path / "out"
    listed = runner.invoke(app, ["leads", "--out-dir", str(out_dir)])
    assert listed.exit_code == 0, listed.output
    assert "Leads (2)" in listed.output
    assert len(json.loads((out_dir / "leads.json").read_text(encoding="utf-8"))) == 2
