"""Scheduled scraping loop that records pool occupancy samples."""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional

from app.schemas import Sample
from datastore.samples import SampleStore, StoreFailure, build_default_store
from services.extractor import OccupancyExtractor
from services.fetcher import FetchCancelled, FetchFailure, SourceFetcher
from services.schedule import OperatingWindow, build_window
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkerState(str, Enum):
    """Lifecycle states of the scraping loop."""

    waiting_for_window = "waiting_for_window"
    polling = "polling"
    stopping = "stopping"


class TickOutcome(str, Enum):
    """How a single fetch, extract and store cycle ended."""

    stored = "stored"
    extraction_miss = "extraction_miss"
    fetch_failed = "fetch_failed"
    store_failed = "store_failed"
    cancelled = "cancelled"


@dataclass(frozen=True)
class TickResult:
    outcome: TickOutcome
    sample: Optional[Sample] = None


class ScrapingWorker:
    """Polls the status page on a fixed interval during operating hours.

    Samples are taken strictly one at a time. Failures inside a tick are
    logged and absorbed; only the stop event ends :meth:`run`.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        store: SampleStore,
        window: OperatingWindow,
        extractor: Optional[OccupancyExtractor] = None,
        poll_interval: float = 300.0,
        clock: Clock = utc_now,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        self.fetcher = fetcher
        self.store = store
        self.window = window
        self.extractor = extractor or OccupancyExtractor()
        self.poll_interval = poll_interval
        self._clock = clock
        self.state: Optional[WorkerState] = None
        self.next_open: Optional[datetime] = None

    async def run(self, stop: asyncio.Event) -> None:
        """Run until ``stop`` is set, holding one HTTP session throughout."""
        loop = asyncio.get_running_loop()
        async with self.fetcher:
            logger.info("Occupancy worker started", extra={"url": self.fetcher.url})
            try:
                while not stop.is_set():
                    now = self._clock()
                    if not self.window.is_within_operating_hours(now):
                        await self._wait_for_window(now, stop)
                        continue

                    self._enter(WorkerState.polling)
                    next_tick = loop.time() + self.poll_interval
                    try:
                        await self.tick(stop)
                    except Exception:  # noqa: BLE001 - the loop must survive any tick
                        logger.exception("Unexpected error during polling tick")
                    await self._sleep(next_tick - loop.time(), stop)
            finally:
                self._enter(WorkerState.stopping)
        logger.info("Occupancy worker stopped")

    async def tick(self, stop: Optional[asyncio.Event] = None) -> TickResult:
        """Fetch the page, extract the occupancy and persist one sample."""
        try:
            html = await self.fetcher.fetch(cancel=stop)
        except FetchCancelled:
            logger.info("Fetch abandoned for shutdown", extra={"outcome": TickOutcome.cancelled.value})
            return TickResult(TickOutcome.cancelled)
        except FetchFailure as exc:
            logger.warning(
                "Fetch failed: %s",
                exc,
                extra={"url": self.fetcher.url, "status_code": exc.status_code},
            )
            return TickResult(TickOutcome.fetch_failed)

        occupancy = self.extractor.extract(html)
        if occupancy is None:
            logger.warning(
                "No pool occupancy found on page",
                extra={"url": self.fetcher.url, "outcome": TickOutcome.extraction_miss.value},
            )
            return TickResult(TickOutcome.extraction_miss)

        if stop is not None and stop.is_set():
            return TickResult(TickOutcome.cancelled)

        captured_at = self._clock()
        try:
            sample = await asyncio.to_thread(self.store.append, captured_at, occupancy)
        except StoreFailure as exc:
            logger.error(
                "Failed to store occupancy sample: %s",
                exc,
                extra={"occupancy": occupancy, "outcome": TickOutcome.store_failed.value},
            )
            return TickResult(TickOutcome.store_failed)

        logger.info(
            "Recorded occupancy sample",
            extra={"occupancy": sample.occupancy, "sample_id": sample.id},
        )
        return TickResult(TickOutcome.stored, sample)

    async def _wait_for_window(self, now: datetime, stop: asyncio.Event) -> None:
        self._enter(WorkerState.waiting_for_window)
        self.next_open = self.window.next_open_instant(now)
        delay = (
            self.next_open.astimezone(timezone.utc) - self._clock().astimezone(timezone.utc)
        ).total_seconds()
        logger.info(
            "Outside operating hours, waiting",
            extra={"next_open": self.next_open.isoformat()},
        )
        await self._sleep(delay, stop)

    @staticmethod
    async def _sleep(seconds: float, stop: asyncio.Event) -> bool:
        """Wait ``seconds`` or until stopped; return True when stopped."""
        if seconds <= 0:
            return stop.is_set()
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def _enter(self, state: WorkerState) -> None:
        if state is self.state:
            return
        logger.debug("Worker state change", extra={"state": state.value})
        self.state = state


async def serve(
    worker: ScrapingWorker,
    signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> None:
    """Run ``worker`` until one of ``signals`` is received."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in signals:
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    try:
        await worker.run(stop)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def build_default_window() -> OperatingWindow:
    settings = get_settings()
    return build_window(
        opens_at=settings.opens_at,
        closes_at=settings.closes_at,
        late_opens_at=settings.late_opens_at,
        late_opening_weekday=settings.late_opening_weekday,
        timezone_name=settings.timezone,
    )


def build_default_fetcher() -> SourceFetcher:
    settings = get_settings()
    return SourceFetcher(
        settings.source_url,
        timeout=settings.fetch_timeout_seconds,
        user_agent=settings.user_agent,
    )


def build_default_worker() -> ScrapingWorker:
    """Wire a worker from environment settings."""
    return ScrapingWorker(
        fetcher=build_default_fetcher(),
        store=build_default_store(),
        window=build_default_window(),
        poll_interval=get_settings().poll_interval_seconds,
    )
