"""Settlement Orchestrator — closes one game exactly once.

Pipeline for a single game:

1. load the game; anything but LIVE is a no-op
2. any persisted result means the game is already settled — no-op
3. load players and resolve final prices for the tickers they hold
4. compute returns, rank, awards and what-if messages
5. persist results, leaderboard entries and ``LIVE -> ENDED`` atomically
6. best-effort user statistics and audit log

Steps 1–2 are a cheap read-side guard; step 5 re-checks the LIVE status
inside the write transaction, so overlapping invocations cannot both
commit.
"""

from __future__ import annotations

import dataclasses
import datetime
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from wallstreet.monitoring.metrics import metrics
from wallstreet.pricing.resolver import DataQuality
from wallstreet.settlement.awards import AwardSettings, compute_awards
from wallstreet.settlement.errors import (
    GameNotFoundError,
    SettlementConflictError,
    SettlementPermissionError,
    SettlementPreconditionError,
)
from wallstreet.settlement.ranking import rank_results
from wallstreet.settlement.returns import compute_player_result
from wallstreet.settlement.stats import StatsUpdater
from wallstreet.settlement.what_if import generate_what_if_message
from wallstreet.state.models import GameStatus

if TYPE_CHECKING:
    from wallstreet.config.models import GameConfig
    from wallstreet.pricing.resolver import PriceResolver
    from wallstreet.settlement.types import PlayerPortfolio, PlayerResult
    from wallstreet.state.repository import SettlementRepository

logger = structlog.get_logger("wallstreet.settlement.engine")

SYSTEM_ACTOR = "system"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


class SettlementStatus(StrEnum):
    """How a settlement attempt ended."""

    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"
    SKIPPED_NOT_LIVE = "skipped_not_live"


@dataclass(frozen=True)
class SettlementOutcome:
    """Result of one :meth:`SettlementOrchestrator.settle_game` call."""

    game_code: str
    status: SettlementStatus
    results: tuple[PlayerResult, ...] = field(default_factory=tuple)
    data_quality: DataQuality = DataQuality.OK

    @property
    def settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED

    @property
    def winner(self) -> PlayerResult | None:
        return self.results[0] if self.results else None


class SettlementOrchestrator:
    """Drives price resolution, scoring and persistence for one game at a time.

    Usage::

        orchestrator = SettlementOrchestrator(repo, resolver, config.game)
        outcome = orchestrator.settle_game("WS-8821")
    """

    def __init__(
        self,
        repository: SettlementRepository,
        price_resolver: PriceResolver,
        game_config: GameConfig,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._resolver = price_resolver
        self._game_config = game_config
        self._clock = clock
        self._stats = StatsUpdater(repository)

    # ── Public API ────────────────────────────────────────────────────

    def settle_game(self, game_code: str) -> SettlementOutcome:
        """Settle *game_code* if it is LIVE and has no results yet.

        Returns a no-op outcome when the game was already handled.

        Raises:
            GameNotFoundError: the game does not exist.
        """
        log = logger.bind(game_code=game_code)

        game = self._repo.get_game(game_code)
        if game is None:
            raise GameNotFoundError(f"Game {game_code} not found", game_code=game_code)
        if game.status != GameStatus.LIVE:
            log.info("settlement_skipped_not_live", status=game.status)
            return SettlementOutcome(game_code, SettlementStatus.SKIPPED_NOT_LIVE)
        if self._repo.has_results(game_code):
            log.warning("settlement_skipped_already_settled")
            return SettlementOutcome(game_code, SettlementStatus.ALREADY_SETTLED)

        players = self._repo.list_players(game_code)
        tickers = sorted({ticker for player in players for ticker in player.tickers})
        target_date = (game.end_date or self._clock()).date()
        resolution = self._resolver.resolve(tickers, target_date, anchors=game.initial_prices_snapshot or {})

        results = self.compute_results(players, resolution.prices)
        calculated_at = self._clock()

        try:
            self._repo.commit_settlement(
                game_code,
                results,
                data_quality=resolution.data_quality.value,
                calculated_at=calculated_at,
            )
        except SettlementConflictError as e:
            metrics.increment("settlement_conflicts")
            log.warning("settlement_conflict_no_op", reason=str(e))
            return SettlementOutcome(game_code, SettlementStatus.ALREADY_SETTLED)

        metrics.increment("games_settled")
        log.info(
            "game_settled",
            player_count=len(results),
            winner=results[0].nickname if results else None,
            data_quality=resolution.data_quality.value,
        )

        self._after_commit(game_code, results)
        return SettlementOutcome(
            game_code,
            SettlementStatus.SETTLED,
            results=tuple(results),
            data_quality=resolution.data_quality,
        )

    def force_settle(self, game_code: str, actor_id: str | None) -> SettlementOutcome:
        """Manual settlement by the game's creator.

        Raises:
            SettlementPermissionError: no actor, or the actor is not the creator.
            GameNotFoundError: the game does not exist.
            SettlementPreconditionError: the game is not LIVE.
        """
        if not actor_id:
            raise SettlementPermissionError("Must be logged in to force settlement", game_code=game_code)
        game = self._repo.get_game(game_code)
        if game is None:
            raise GameNotFoundError(f"Game {game_code} not found", game_code=game_code)
        if game.creator_id != actor_id:
            logger.warning("force_settle_denied", game_code=game_code, actor_id=actor_id)
            raise SettlementPermissionError("Only the creator can force settlement", game_code=game_code)
        if game.status != GameStatus.LIVE:
            raise SettlementPreconditionError(f"Game {game_code} is not live", game_code=game_code)

        logger.info("force_settle_requested", game_code=game_code, actor_id=actor_id)
        return self.settle_game(game_code)

    def compute_results(self, players: list[PlayerPortfolio], final_prices: dict[str, float]) -> list[PlayerResult]:
        """Score, rank and decorate every player. No I/O."""
        unranked = [compute_player_result(player, final_prices) for player in players]
        ranked = rank_results(unranked)
        awards = compute_awards(ranked, AwardSettings(gambler_threshold=self._game_config.gambler_threshold))
        return [
            dataclasses.replace(
                result,
                awards=tuple(awards.get(result.player_id, [])),
                what_if_message=generate_what_if_message(result, ranked, self._game_config.total_budget),
            )
            for result in ranked
        ]

    # ── Post-commit ───────────────────────────────────────────────────

    def _after_commit(self, game_code: str, results: list[PlayerResult]) -> None:
        try:
            self._stats.update(game_code, results)
        except Exception:
            logger.exception("user_stats_pass_failed", game_code=game_code)

        winner = results[0] if results else None
        try:
            self._repo.record_audit(
                "GAME_SETTLED",
                SYSTEM_ACTOR,
                "GAME",
                game_code,
                {"player_count": len(results), "winner": winner.nickname if winner else None},
            )
        except Exception:
            logger.exception("audit_log_failed", game_code=game_code)
