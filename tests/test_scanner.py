# @file purpose: Keyword pipeline, auto-search and goal-driven runs over saved HTML.
from typing import Any

import pytest

from lead_finder.actions.sites.linkedin import content_search_url
from lead_finder.io.oracle import Assessment
from lead_finder.io.static_driver import StaticPageDriver
from lead_finder.io.store import JsonLeadStore, MemoryConfigStore
from lead_finder.reporting.schemas import INTELLIGENT_KEYWORD
from lead_finder.scanner.scanner import run_keywords
from lead_finder.scanner.session import ScanTimings

from conftest import FEED_URL, RecordingNotifier


@pytest.mark.asyncio
async def test_keyword_match_creates_lead_without_denylisted_email(
    make_scanner: Any, leads: JsonLeadStore, notifier: RecordingNotifier
) -> None:
    scanner = await make_scanner({"keywords": ["hiring"]})

    saved = await scanner.run_scan_if_ready()

    assert saved == 2
    stored = {lead.id: lead for lead in await leads.get_all()}
    dana = stored["urn:li:activity:1001"]
    assert dana.matched_keywords == ["hiring"]
    assert dana.emails == []
    assert dana.author_name == "Dana Scully"
    assert dana.author_profile_url == "https://www.linkedin.com/in/dana-scully/"
    assert dana.source_url == "https://www.linkedin.com/feed/update/urn:li:activity:1001/"
    assert dana.ai_decision == {"relevant": True, "reason": "AI filter disabled"}

    walter = stored["urn:li:activity:1003"]
    assert walter.emails == ["walter@fbi.gov"]
    assert walter.phones == ["415-555-0199"]
    assert walter.source_url == FEED_URL

    # unmatched posts are remembered too
    assert scanner.session.scanned_posts == {"urn:li:activity:1001", "urn:li:activity:1002", "urn:li:activity:1003"}
    stats = (await scanner.config.get(["stats"]))["stats"]
    assert stats == {"totalLeads": 2, "emailsFound": 1, "phonesFound": 1, "exportedCount": 0, "lastSync": None}
    assert notifier.sent == [("New Lead Found!", "Found 1 email(s) and 1 phone(s)")]
    # the "see more" toggle inside the third post was expanded
    assert len(scanner.ctx.events_of("click")) == 1


@pytest.mark.asyncio
async def test_rescan_and_second_session_do_not_duplicate(make_scanner: Any, leads: JsonLeadStore) -> None:
    first = await make_scanner({"keywords": ["hiring"]})
    assert await first.scan_existing_posts() == 2
    assert await first.scan_existing_posts() == 0

    second = await make_scanner({"keywords": ["hiring"]})
    assert await second.scan_existing_posts() == 0
    assert len(await leads.get_all()) == 2


@pytest.mark.asyncio
async def test_scan_guards(make_scanner: Any) -> None:
    empty = await make_scanner({})
    assert await empty.run_scan_if_ready() == 0

    manual = await make_scanner({"keywords": ["hiring"], "settings": {"scanMode": "manual"}})
    assert await manual.run_scan_if_ready() == 0
    assert manual.session.scanned_posts == set()


class VerdictOracle:
    def __init__(self, verdict: Assessment | None = None) -> None:
        self.verdict = verdict
        self.calls: list[tuple[dict[str, Any], str, str]] = []

    async def assess(self, record: dict[str, Any], profile: str, model: str) -> Assessment:
        self.calls.append((record, profile, model))
        if self.verdict is None:
            raise RuntimeError("network down")
        return self.verdict


AI_ON = {"aiRelevanceEnabled": True, "companyProfile": "Staffing agency", "openRouterModel": "test/model"}


@pytest.mark.asyncio
async def test_ai_rejection_skips_save_but_marks_scanned(make_scanner: Any, leads: JsonLeadStore) -> None:
    oracle = VerdictOracle(Assessment(relevant=False, reason="recruiter spam"))
    scanner = await make_scanner({"keywords": ["hiring"], "settings": AI_ON}, oracle=oracle)

    assert await scanner.scan_existing_posts() == 0
    assert await leads.get_all() == []
    assert "urn:li:activity:1001" in scanner.session.scanned_posts
    record, profile, model = oracle.calls[0]
    assert record["author_name"] == "Dana Scully"
    assert (profile, model) == ("Staffing agency", "test/model")


@pytest.mark.asyncio
async def test_ai_failure_fails_open(make_scanner: Any, leads: JsonLeadStore) -> None:
    scanner = await make_scanner({"keywords": ["hiring"], "settings": AI_ON}, oracle=VerdictOracle(None))

    assert await scanner.scan_existing_posts() == 2
    lead = (await leads.get_all())[0]
    assert lead.ai_decision == {"relevant": True, "reason": "AI unreachable, defaulting to true"}


@pytest.mark.asyncio
async def test_keyword_change_forgets_scanned_posts(make_scanner: Any, leads: JsonLeadStore) -> None:
    scanner = await make_scanner({"keywords": ["rocket"]})
    assert await scanner.run_scan_if_ready() == 0
    assert len(scanner.session.scanned_posts) == 3

    await scanner.config.set({"keywords": ["hiring"]})
    assert scanner.session.keywords == ["hiring"]
    assert scanner.session.scanned_posts == set()
    assert scanner.matcher.keywords == ["hiring"]

    assert await scanner.run_scan_if_ready() == 2


@pytest.mark.asyncio
async def test_settings_change_updates_matcher(make_scanner: Any) -> None:
    scanner = await make_scanner({"keywords": ["Hiring"]})
    await scanner.config.set({"settings": {"caseSensitive": True, "wholeWord": True}})
    assert scanner.matcher.case_sensitive and scanner.matcher.whole_word
    assert scanner.session.settings.scan_mode == "auto"

    # only the capitalised occurrence in the third post matches now
    assert await scanner.run_scan_if_ready() == 1


@pytest.mark.asyncio
async def test_run_until_duration_elapses(make_scanner: Any) -> None:
    scanner = await make_scanner({"keywords": ["hiring"]})
    assert await scanner.run(duration_s=0.05) == 2
    assert scanner.stopped
    assert scanner.observer.stopped


AUTO = {
    "keywords": ["hiring", "python"],
    "settings": {"autoSearchEnabled": True, "autoScrollEnabled": False, "autoScrollCycles": 1, "autoSearchDelay": 5},
}


@pytest.mark.asyncio
async def test_auto_search_navigates_then_scans(make_scanner: Any, feed_html: str) -> None:
    search_url = content_search_url("hiring")
    scanner = await make_scanner(AUTO, pages={search_url: feed_html})

    # no search box on the page: straight to the content search URL
    assert await scanner.process_auto_search_state() == 0
    assert ("goto", search_url) in scanner.ctx.events
    state = (await scanner.config.get(["autoSearchState"]))["autoSearchState"]
    assert state == {"running": True, "keywordIndex": 0, "shouldNavigate": False, "currentKeyword": "hiring"}

    assert await scanner.process_auto_search_state() == 5
    assert scanner.leads_found == 2
    assert scanner.ctx.events[-1] == ("scroll_top",)
    state = (await scanner.config.get(["autoSearchState"]))["autoSearchState"]
    assert state == {"running": True, "keywordIndex": 1, "shouldNavigate": True, "currentKeyword": "python"}


@pytest.mark.asyncio
async def test_auto_search_types_into_search_box(make_scanner: Any) -> None:
    home = "https://www.linkedin.com/"
    scanner = await make_scanner(AUTO, pages={home: '<body><input aria-label="Search"></body>'}, url=home)

    target = await scanner.navigate_to_keyword("python")

    selector = 'input[aria-label="Search"]'
    events = scanner.ctx.events
    assert ("type", selector, "python") in events
    assert ("press", selector, "Enter") in events
    # Enter did not land on a results page
    assert target == content_search_url("python")
    assert events[-1] == ("goto", target)


@pytest.mark.asyncio
async def test_auto_search_disabled_clears_cursor(make_scanner: Any) -> None:
    scanner = await make_scanner(
        {"keywords": ["hiring"], "autoSearchState": {"running": True, "keywordIndex": 0, "shouldNavigate": True}}
    )
    assert await scanner.process_auto_search_state() is None
    assert await scanner.config.get(["autoSearchState"]) == {}


@pytest.mark.asyncio
async def test_run_keywords_retries_then_gives_up(feed_html: str, leads: JsonLeadStore) -> None:
    driver = StaticPageDriver(
        {content_search_url("hiring"): feed_html, content_search_url("nothing"): "<body><p>No results</p></body>"}
    )
    config = MemoryConfigStore({"settings": {"autoScrollEnabled": False, "autoScrollCycles": 1}})

    results = await run_keywords(
        driver,
        ["hiring", " nothing ", "hiring"],
        config=config,
        leads=leads,
        notifier=RecordingNotifier(),
        attempts=2,
        retry_wait_s=0,
        ready_timeout_ms=0,
        timings=ScanTimings.instant(),
    )

    assert results == {"hiring": 2, "nothing": 0}
    assert len(await leads.get_all()) == 2


COMPANY_URL = "https://www.linkedin.com/company/acme/"
PEOPLE_URL = "https://www.linkedin.com/company/acme/people/"
COMPANY_HTML = '<body><h1 class="org-top-card-summary__title">Acme</h1></body>'
PEOPLE_HTML = """
<body>
  <h1 class="org-top-card-summary__title">Acme</h1>
  <ul>
    <li class="org-people-profile-card">
      <h3>Ann Lee</h3><div class="artdeco-entity-lockup__subtitle">CEO</div>
      <a href="https://www.linkedin.com/in/annlee/">view</a>
    </li>
    <li class="org-people-profile-card">
      <h3>Raj Patel</h3><div class="artdeco-entity-lockup__subtitle">VP Sales</div>
      <a href="https://www.linkedin.com/in/rajpatel/">view</a>
    </li>
  </ul>
</body>
"""


@pytest.mark.asyncio
async def test_autopilot_follows_navigation(make_scanner: Any, leads: JsonLeadStore, notifier: RecordingNotifier) -> None:
    scanner = await make_scanner(
        {"settings": {"autopilotEnabled": True}},
        pages={COMPANY_URL: COMPANY_HTML, PEOPLE_URL: PEOPLE_HTML},
        url=COMPANY_URL,
    )

    assert await scanner.start_intelligent_mode("company_intel")

    assert scanner.ctx.events_of("goto")[-1] == ("goto", PEOPLE_URL)
    stored = await leads.get_all()
    # the company header record is extracted on both pages but stored once
    assert sorted(lead.author_name for lead in stored) == ["Ann Lee", "Raj Patel", "Unknown"]
    ann = next(lead for lead in stored if lead.author_name == "Ann Lee")
    assert ann.source_url == "https://www.linkedin.com/in/annlee/"
    assert ann.goal_name == "Company Intelligence Gathering"
    assert ann.page_type == "company_page"
    assert ann.matched_keywords == [INTELLIGENT_KEYWORD]
    assert ann.id.startswith("intelligent_")
    assert ann.extracted_fields["title"] == "CEO"
    assert ("Intelligent Mode Active", "Goal: Company Intelligence Gathering\nPage: company_page") in notifier.sent

    scanner.stop_intelligent_mode()
    assert not scanner.session.intelligent_mode


@pytest.mark.asyncio
async def test_keyword_hunting_strategy_keeps_matched_keywords(make_scanner: Any, leads: JsonLeadStore) -> None:
    scanner = await make_scanner({"keywords": ["hiring"]})
    await scanner.analyze_current_page()
    assert scanner.goals.set_goal("keyword_hunting")
    strategy = scanner.goals.generate_strategy(scanner.goals.current_goal, scanner.session.current_analysis)

    result = await scanner.execute_intelligent_strategy(strategy)

    assert result.ok
    stored = await leads.get_all()
    assert sorted(lead.author_name for lead in stored) == ["Dana Scully", "Walter Skinner"]
    assert all(lead.matched_keywords == ["hiring"] for lead in stored)
    assert all(lead.page_type == "feed" for lead in stored)


@pytest.mark.asyncio
async def test_unknown_goal_is_rejected(make_scanner: Any) -> None:
    scanner = await make_scanner({})
    assert not await scanner.start_intelligent_mode("world_domination")
    assert not scanner.session.intelligent_mode
