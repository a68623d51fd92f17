"""Trigger layer: periodically settles every LIVE game past its end date.

Each tick discovers ``{status: LIVE, end_date <= now}`` games and hands
them to the :class:`~wallstreet.settlement.engine.SettlementOrchestrator`
one by one.  A failure in one game is logged and counted; it never stops
the remaining games from settling, and the failed game is retried on the
next tick because nothing was committed for it.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from wallstreet.api.client import QuoteAPIClient
from wallstreet.monitoring.logging import game_context
from wallstreet.monitoring.metrics import metrics
from wallstreet.pricing.cache import PriceCache
from wallstreet.pricing.resolver import PriceResolver
from wallstreet.settlement.engine import SettlementOrchestrator, SettlementStatus
from wallstreet.state.repository import SettlementRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from wallstreet.config.models import AppConfig, SchedulerConfig

logger = structlog.get_logger("wallstreet.core.scheduler")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


def build_orchestrator(
    config: AppConfig,
    session_factory: sessionmaker[Session],
) -> tuple[SettlementOrchestrator, SettlementRepository, QuoteAPIClient | None]:
    """Wire repository, price resolver and orchestrator from configuration.

    The returned quote client (None when remote prices are disabled) owns
    an HTTP connection pool; callers close it on shutdown.
    """
    repo = SettlementRepository(session_factory)
    quote_client = QuoteAPIClient(config.prices) if config.prices.remote_enabled else None
    resolver = PriceResolver(
        snapshot_store=repo,
        cache=PriceCache(ttl_seconds=config.prices.cache_ttl_seconds),
        quote_client=quote_client,
        config=config.prices,
    )
    orchestrator = SettlementOrchestrator(repo, resolver, config.game)
    return orchestrator, repo, quote_client


@dataclass
class TickReport:
    """What one scheduler tick did."""

    started_at: datetime.datetime
    due: list[str] = field(default_factory=list)
    settled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class SettlementScheduler:
    """Async loop around :meth:`run_once`.

    Usage::

        scheduler = SettlementScheduler(orchestrator, repo, config.scheduler)
        await scheduler.run()      # blocks until stop() is called
    """

    def __init__(
        self,
        orchestrator: SettlementOrchestrator,
        repository: SettlementRepository,
        config: SchedulerConfig,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._orchestrator = orchestrator
        self._repo = repository
        self._config = config
        self._clock = clock
        self._running = False
        self._tick_count = 0
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ── Single tick ───────────────────────────────────────────────────

    def run_once(self, now: datetime.datetime | None = None) -> TickReport:
        """Settle every due game, isolating failures per game."""
        now = now or self._clock()
        report = TickReport(started_at=now)
        report.due = self._repo.list_due_games(now)
        self._tick_count += 1

        logger.info("settlement_tick_started", tick=self._tick_count, due_count=len(report.due))

        for game_code in report.due:
            try:
                with game_context(game_code, trigger="scheduler", tick=self._tick_count):
                    outcome = self._orchestrator.settle_game(game_code)
            except Exception as e:
                report.failed[game_code] = str(e)
                metrics.increment("games_settlement_failed")
                logger.exception("game_settlement_failed", game_code=game_code)
                continue
            if outcome.status == SettlementStatus.SETTLED:
                report.settled.append(game_code)
            else:
                report.skipped.append(game_code)

        metrics.set_gauge("last_tick_due_games", len(report.due))
        logger.info(
            "settlement_tick_finished",
            tick=self._tick_count,
            settled=len(report.settled),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    # ── Loop ──────────────────────────────────────────────────────────

    async def run(self) -> None:
        """Run ticks every ``interval_seconds`` until :meth:`stop` is called."""
        self._running = True
        self._stop_event = asyncio.Event()
        logger.info("settlement_scheduler_started", interval_seconds=self._config.interval_seconds)

        while self._running:
            try:
                # Settlement does blocking DB and HTTP work
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("settlement_tick_crashed", tick=self._tick_count)
            metrics.log_summary()

            if not self._running:
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.interval_seconds)

        logger.info("settlement_scheduler_stopped", ticks=self._tick_count)

    def stop(self) -> None:
        """Request the loop to exit after the current tick."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
