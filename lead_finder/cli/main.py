"""
CLI entrypoint.

doctor: environment check.
analyze / plan: classify a page (live or saved HTML) and show the goal strategy.
run-goal / ai-scrape: goal-driven and oracle-driven extraction on one page.
scan / auto-search: keyword scanning of the feed and of keyword searches.
export / leads: push stored leads to the sheet, list or dump them.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..core.controller.context import Timings
from ..core.errors import ConfigError, OracleError, StrategyParseError
from ..core.logging import configure_logging
from ..core.result import ExecutionResult
from ..core.settings import settings
from ..io.oracle import OpenRouterOracle
from ..io.playwright_driver import PlaywrightDriver
from ..io.sheets import GoogleSheetsSink, LeadExporter
from ..io.static_driver import StaticPageDriver
from ..io.store import JsonConfigStore, JsonLeadStore
from ..planning.ai_scraper import AIScraper
from ..planning.goals import GoalEngine
from ..planning.page_analyzer import PageAnalyzer
from ..reporting.writer import write_leads
from ..scanner.scanner import Scanner, run_keywords
from ..scanner.session import KEYWORDS_KEY, validate_keywords

app = typer.Typer(help="lead-finder CLI")
console = Console()


@app.callback()
def _main(log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level")) -> None:
    configure_logging(log_level)


def _stores() -> tuple[JsonConfigStore, JsonLeadStore]:
    return JsonConfigStore(settings.data_dir / "config.json"), JsonLeadStore(settings.data_dir / "leads.json")


@asynccontextmanager
async def _open_page(
    url: Optional[str],
    html: Optional[Path],
    *,
    headless: bool = True,
    slowmo: int = 0,
    storage_state: Optional[Path] = None,
) -> AsyncIterator[tuple[Any, Any]]:
    """A saved HTML file opens in the static driver (under `url` when given), anything else in Chromium."""
    if html is not None:
        if not html.exists():
            typer.secho(f"file not found: {html}", fg=typer.colors.RED)
            raise typer.Exit(code=2)
        page_url = url or str(html)
        driver: Any = StaticPageDriver({page_url: html.read_text(encoding="utf-8")})
    elif url:
        page_url = url
        driver = PlaywrightDriver(
            headless=headless, slow_mo_ms=slowmo, storage_state=str(storage_state) if storage_state else None
        )
    else:
        typer.secho("give a URL or --html", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    await driver.start()
    ctx = await driver.new_context()
    try:
        await driver.goto(ctx, page_url)
        yield driver, ctx
    finally:
        await driver.close_context(ctx)
        await driver.stop()


def _steps_table(result: ExecutionResult) -> Table:
    table = Table(title=f"Strategy Results ({result.state.value})", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("step")
    table.add_column("kind")
    table.add_column("result")
    table.add_column("count", justify="right")
    table.add_column("detail")
    for s in result.steps:
        table.add_row(
            str(s.index),
            s.name,
            s.kind,
            "[green]OK[/]" if s.ok else "[red]FAIL[/]",
            "-" if s.count is None else str(s.count),
            s.detail,
        )
    return table


@app.command("doctor")
def doctor() -> None:
    """Environment check: print key settings to confirm CLI is usable."""
    console.print("[bold green]lead-finder[/] environment")
    console.print(f"- headless: {settings.headless}")
    console.print(f"- timeout:  {settings.request_timeout_seconds}s")
    console.print(f"- data dir: {settings.data_dir}")
    console.print(f"- oracle:   {settings.openrouter_model} ({'key set' if settings.openrouter_api_key else 'no key'})")
    console.print(f"- sheet:    {settings.sheet_id or '-'} ({'token set' if settings.google_token else 'no token'})")


@app.command("analyze")
def analyze(
    url: Optional[str] = typer.Argument(None, help="Page URL (also the logical URL of --html)"),
    html: Optional[Path] = typer.Option(None, "--html", help="Saved HTML file to analyse offline"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
    storage_state: Optional[Path] = typer.Option(None, "--storage-state", help="Playwright storage state file"),
) -> None:
    """Classify a page and list what can be extracted from it."""

    async def _run() -> None:
        async with _open_page(url, html, headless=headless, storage_state=storage_state) as (driver, ctx):
            analysis = await PageAnalyzer(driver).analyze_page(ctx)

        goal = GoalEngine.recommend_goal(analysis)
        table = Table(title=f"{analysis.page_type.value}  ({analysis.url})", show_header=True, header_style="bold")
        table.add_column("element")
        table.add_column("count", justify="right")
        table.add_column("extractable")
        for el in analysis.extractable_elements:
            table.add_row(el.type, "-" if el.count is None else str(el.count), ", ".join(sorted(el.extractable)))
        console.print(table)
        console.print(f"recommended goal: [bold]{goal.id}[/] ({goal.name})")

    asyncio.run(_run())


@app.command("plan")
def plan(
    goal_id: str = typer.Argument(..., help="Goal id, e.g. job_applicants"),
    url: Optional[str] = typer.Option(None, "--url"),
    html: Optional[Path] = typer.Option(None, "--html"),
    instructions: str = typer.Option("", "--instructions", help="Custom instructions for the goal"),
) -> None:
    """Print the strategy a goal compiles to on a page, as JSON."""
    engine = GoalEngine()
    if not engine.set_goal(goal_id, instructions):
        typer.secho(f"unknown goal: {goal_id} (known: {', '.join(engine.goal_templates())})", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    async def _run() -> None:
        async with _open_page(url, html) as (driver, ctx):
            analysis = await PageAnalyzer(driver).analyze_page(ctx)
        strategy = engine.generate_strategy(engine.current_goal, analysis)
        console.print_json(json.dumps(strategy.model_dump(mode="json")))

    asyncio.run(_run())


@app.command("run-goal")
def run_goal(
    goal_id: str = typer.Argument(..., help="Goal id"),
    url: Optional[str] = typer.Option(None, "--url"),
    html: Optional[Path] = typer.Option(None, "--html"),
    instructions: str = typer.Option("", "--instructions"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
    slowmo: int = typer.Option(0, "--slowmo", help="Slow motion in ms (debug)"),
    storage_state: Optional[Path] = typer.Option(None, "--storage-state"),
    step_delay_ms: int = typer.Option(settings.step_delay_ms, "--step-delay-ms"),
    artifacts_dir: Path = typer.Option(Path("artifacts"), "--artifacts-dir", help="Where to save failure screenshots"),
) -> None:
    """Run a goal's strategy on a page and store the extracted records as leads."""
    config, leads = _stores()

    async def _run() -> int:
        oracle = OpenRouterOracle() if settings.openrouter_api_key else None
        try:
            async with _open_page(url, html, headless=headless, slowmo=slowmo, storage_state=storage_state) as (
                driver,
                ctx,
            ):
                scanner = Scanner(driver, ctx, config=config, leads=leads, oracle=oracle, step_delay_ms=step_delay_ms)
                scanner.executor.artifacts_dir = artifacts_dir
                artifacts_dir.mkdir(parents=True, exist_ok=True)
                await scanner.load()
                if not scanner.goals.set_goal(goal_id, instructions):
                    typer.secho(f"unknown goal: {goal_id}", fg=typer.colors.RED)
                    return 2
                scanner.session.current_goal = scanner.goals.current_goal
                scanner.session.intelligent_mode = True
                analysis = await scanner.analyze_current_page()
                strategy = scanner.goals.generate_strategy(scanner.session.current_goal, analysis)
                result = await scanner.execute_intelligent_strategy(strategy)
                scanner.stop()
        finally:
            if oracle is not None:
                await oracle.aclose()

        console.print(_steps_table(result))
        console.print(f"records: {result.count}  leads saved: {scanner.leads_found}")
        if result.error:
            console.print(f"[red]{result.error}[/]")
        return 0 if result.ok else 1

    code = asyncio.run(_run())
    if code != 0:
        raise typer.Exit(code=code)


@app.command("ai-scrape")
def ai_scrape(
    goal: str = typer.Argument(..., help="What to extract, in plain words"),
    url: Optional[str] = typer.Option(None, "--url"),
    html: Optional[Path] = typer.Option(None, "--html"),
    max_items: int = typer.Option(100, "--max-items"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write records to this JSON file"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
    storage_state: Optional[Path] = typer.Option(None, "--storage-state"),
) -> None:
    """Ask the oracle for an extraction plan for the page and run it."""

    async def _run() -> int:
        async with OpenRouterOracle() as oracle:
            scraper = AIScraper(oracle, timings=Timings())
            async with _open_page(url, html, headless=headless, storage_state=storage_state) as (driver, ctx):
                try:
                    context = await scraper.capture_page_context(driver, ctx)
                    strategy = await scraper.generate_extraction_strategy(goal, context)
                    records = await scraper.execute_strategy(driver, ctx, strategy, max_items=max_items)
                except (OracleError, StrategyParseError) as e:
                    typer.secho(f"[ai-scrape] {e}", fg=typer.colors.RED)
                    return 1

        console.print(f"page type: [bold]{strategy.page_type}[/] (confidence {strategy.confidence})")
        if strategy.limitations:
            console.print(f"[yellow]limitations: {strategy.limitations}[/]")
        if out:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
            console.print(f"[bold green]{len(records)} records written[/]: {out}")
        else:
            console.print_json(json.dumps(records, ensure_ascii=False))
        return 0

    code = asyncio.run(_run())
    if code != 0:
        raise typer.Exit(code=code)


@app.command("scan")
def scan(
    url: str = typer.Argument(f"{settings.base_url}/feed/", help="Page to scan"),
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Replace the stored keyword list"),
    duration: Optional[float] = typer.Option(None, "--duration", help="Stop after this many seconds"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
    storage_state: Optional[Path] = typer.Option(None, "--storage-state"),
) -> None:
    """Scan the feed for keyword matches until interrupted."""
    config, leads = _stores()

    async def _run() -> int:
        if keyword:
            try:
                await config.set({KEYWORDS_KEY: validate_keywords(keyword)})
            except ConfigError as e:
                typer.secho(f"[scan] {e}", fg=typer.colors.RED)
                return 2
        oracle = OpenRouterOracle() if settings.openrouter_api_key else None
        sink = GoogleSheetsSink()
        exporter = LeadExporter(leads, sink, config=config) if sink.token and sink.sheet_id else None
        try:
            async with _open_page(url, None, headless=headless, storage_state=storage_state) as (driver, ctx):
                scanner = Scanner(driver, ctx, config=config, leads=leads, oracle=oracle, exporter=exporter)
                found = await scanner.run(duration_s=duration)
        finally:
            await sink.aclose()
            if oracle is not None:
                await oracle.aclose()
        console.print(f"[bold green]{found} new leads[/]")
        return 0

    try:
        code = asyncio.run(_run())
    except KeyboardInterrupt:
        code = 0
    if code != 0:
        raise typer.Exit(code=code)


@app.command("auto-search")
def auto_search(
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Keywords to search (default: stored)"),
    headless: bool = typer.Option(True, "--headless/--no-headless"),
    storage_state: Optional[Path] = typer.Option(None, "--storage-state"),
) -> None:
    """Search each keyword in a fresh page, scan the results and close the page."""
    config, leads = _stores()

    async def _run() -> int:
        words = list(keyword or [])
        if not words:
            words = list((await config.get([KEYWORDS_KEY])).get(KEYWORDS_KEY) or [])
        if not words:
            typer.secho("[auto-search] no keywords", fg=typer.colors.RED)
            return 2

        oracle = OpenRouterOracle() if settings.openrouter_api_key else None
        driver = PlaywrightDriver(headless=headless, storage_state=str(storage_state) if storage_state else None)
        await driver.start()
        try:
            results = await run_keywords(driver, words, config=config, leads=leads, oracle=oracle)
        except ConfigError as e:
            typer.secho(f"[auto-search] {e}", fg=typer.colors.RED)
            return 2
        finally:
            await driver.stop()
            if oracle is not None:
                await oracle.aclose()

        table = Table(title="Auto-search", show_header=True, header_style="bold")
        table.add_column("keyword")
        table.add_column("leads", justify="right")
        for word, count in results.items():
            table.add_row(word, str(count))
        console.print(table)
        return 0

    code = asyncio.run(_run())
    if code != 0:
        raise typer.Exit(code=code)


@app.command("export")
def export() -> None:
    """Append every unexported lead to the configured sheet."""
    config, leads = _stores()

    async def _run() -> int:
        sink = GoogleSheetsSink()
        try:
            result = await LeadExporter(leads, sink, config=config).export()
        finally:
            await sink.aclose()
        if not result.ok:
            typer.secho(f"[export] {result.error} ({result.count} exported)", fg=typer.colors.RED)
            return 1
        console.print(f"[bold green]exported {result.count} leads[/] {result.message or ''}")
        return 0

    code = asyncio.run(_run())
    if code != 0:
        raise typer.Exit(code=code)


@app.command("leads")
def list_leads(
    out_dir: Optional[Path] = typer.Option(None, "--out-dir", help="Also write leads.json / leads.csv here"),
    limit: int = typer.Option(20, "--limit", help="Rows to show"),
) -> None:
    """Show stored leads."""
    _, store = _stores()
    items = asyncio.run(store.get_all())

    table = Table(title=f"Leads ({len(items)})", show_header=True, header_style="bold")
    table.add_column("author")
    table.add_column("keywords")
    table.add_column("emails")
    table.add_column("phones")
    table.add_column("exported")
    for lead in items[-limit:]:
        table.add_row(
            lead.author_name,
            ", ".join(lead.matched_keywords),
            ", ".join(lead.emails) or "-",
            ", ".join(lead.phones) or "-",
            "yes" if lead.exported else "no",
        )
    console.print(table)

    if out_dir:
        json_path, csv_path = write_leads(items, out_dir)
        console.print(f"[bold green]Leads written[/]: {json_path}  |  {csv_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
