from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_history, render_window
from logging_config import configure_logging
from services.extractor import extract_occupancy
from services.fetcher import FetchError
from services.worker import (
    ScrapingWorker,
    TickOutcome,
    TickResult,
    build_default_fetcher,
    build_default_window,
    build_default_worker,
    serve,
    utc_now,
)


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Utilities for running and inspecting the pool occupancy logger.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Read API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the read API to respond.",
    ),
) -> None:
    """Entry point for the CLI."""
    ctx.obj = CLIState(config=load_config(base_url=base_url, timeout=timeout))


@app.command("worker")
def worker_command(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    """Run the scraping worker until interrupted."""
    configure_logging(log_level.upper() if log_level else None)
    try:
        worker = build_default_worker()
    except (RuntimeError, ValueError) as exc:
        _fail(f"Worker could not start: {exc}")
    asyncio.run(serve(worker))


async def _fetch_page() -> str:
    async with build_default_fetcher() as fetcher:
        return await fetcher.fetch()


async def _tick_once(worker: ScrapingWorker) -> TickResult:
    async with worker.fetcher:
        return await worker.tick()


@app.command("scrape")
def scrape_command(
    store: bool = typer.Option(
        False,
        "--store/--no-store",
        help="Persist the sample instead of only printing it.",
    ),
) -> None:
    """Run one fetch and extract cycle, ignoring the operating window."""
    if store:
        try:
            worker = build_default_worker()
        except (RuntimeError, ValueError) as exc:
            _fail(f"Worker could not start: {exc}")
        result = asyncio.run(_tick_once(worker))
        if result.outcome is not TickOutcome.stored or result.sample is None:
            _fail(f"No sample stored ({result.outcome.value}).")
        typer.secho(
            f"Stored occupancy {result.sample.occupancy} (#{result.sample.id}).",
            fg=typer.colors.GREEN,
        )
        return

    try:
        html = asyncio.run(_fetch_page())
    except FetchError as exc:
        _fail(f"Fetch failed: {exc}")
    occupancy = extract_occupancy(html)
    if occupancy is None:
        _fail("No pool occupancy found on page.")
    typer.echo(f"occupancy: {occupancy}")


@app.command("window")
def window_command(
    at: Optional[datetime] = typer.Option(
        None,
        "--at",
        formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"],
        help="Evaluate the window at this wall-clock time instead of now.",
    ),
) -> None:
    """Show whether polling is active and when the pool next opens."""
    try:
        window = build_default_window()
    except (LookupError, ValueError) as exc:
        _fail(f"Invalid operating window configuration: {exc}")
    moment = at or utc_now()
    render_window(
        moment,
        window.is_within_operating_hours(moment),
        window.next_open_instant(moment),
    )


@app.command("history")
def history_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show only the newest N samples."),
) -> None:
    """Print the recorded occupancy history from the read API."""
    state = _get_state(ctx)
    client = ApiClient(state.config)
    ctx.call_on_close(client.close)
    render_history(client.get_history(), limit=limit)
