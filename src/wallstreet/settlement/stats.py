"""Statistics Updater — per-user aggregates after a game settles.

Best-effort: each user is updated in its own transaction and a failure is
logged and skipped.  Settlement has already committed by the time this
runs, so nothing here can undo it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from wallstreet.monitoring.metrics import metrics
from wallstreet.utils.numbers import MONEY_PRECISION, round_to

if TYPE_CHECKING:
    from wallstreet.settlement.types import PlayerResult
    from wallstreet.state.repository import SettlementRepository

logger = structlog.get_logger("wallstreet.settlement.stats")


@dataclass(frozen=True)
class UserStats:
    """Lifetime aggregates for a user."""

    games_played: int = 0
    games_won: int = 0
    total_returns: float = 0.0
    best_return: float = 0.0
    average_rank: float = 0.0


def apply_result(stats: UserStats, rank: int, return_percent: float) -> UserStats:
    """Fold one settled game into *stats*.

    The first game seeds ``best_return`` even when it lost money; after
    that the maximum is kept.  The running average rank is
    ``(old_avg * old_count + rank) / (old_count + 1)``.
    """
    games_played = stats.games_played + 1
    if stats.games_played == 0:
        best_return = return_percent
    else:
        best_return = max(stats.best_return, return_percent)
    average_rank = (stats.average_rank * stats.games_played + rank) / games_played
    return UserStats(
        games_played=games_played,
        games_won=stats.games_won + (1 if rank == 1 else 0),
        total_returns=round_to(stats.total_returns + return_percent, MONEY_PRECISION),
        best_return=round_to(best_return, MONEY_PRECISION),
        average_rank=round_to(average_rank, MONEY_PRECISION),
    )


@dataclass
class StatsUpdateReport:
    updated: int = 0
    skipped_anonymous: int = 0
    skipped_missing_user: int = 0
    failed: int = 0


class StatsUpdater:
    """Applies settled results to the linked users' statistics."""

    def __init__(self, repository: SettlementRepository) -> None:
        self._repo = repository

    def update(self, game_code: str, results: Sequence[PlayerResult]) -> StatsUpdateReport:
        report = StatsUpdateReport()
        for result in results:
            if not result.user_id:
                report.skipped_anonymous += 1
                continue
            rank = result.rank
            ret = result.portfolio_return_percent
            try:
                found = self._repo.update_user_stats(
                    result.user_id,
                    lambda current, rank=rank, ret=ret: apply_result(current, rank, ret),
                )
            except Exception:
                report.failed += 1
                metrics.increment("user_stats_update_failed")
                logger.exception(
                    "user_stats_update_failed",
                    game_code=game_code,
                    player_id=result.player_id,
                    user_id=result.user_id,
                )
                continue
            if found:
                report.updated += 1
            else:
                report.skipped_missing_user += 1
                logger.warning(
                    "user_stats_user_missing",
                    game_code=game_code,
                    player_id=result.player_id,
                    user_id=result.user_id,
                )
        logger.info(
            "user_stats_updated",
            game_code=game_code,
            updated=report.updated,
            skipped_anonymous=report.skipped_anonymous,
            skipped_missing_user=report.skipped_missing_user,
            failed=report.failed,
        )
        return report
