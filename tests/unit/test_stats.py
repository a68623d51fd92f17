"""Unit tests for per-user statistics aggregation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from wallstreet.settlement.stats import StatsUpdater, UserStats, apply_result
from wallstreet.settlement.types import PlayerResult


def _result(player_id: str, rank: int, ret: float, user_id: str | None) -> PlayerResult:
    return PlayerResult(
        player_id=player_id,
        nickname=player_id,
        position_results=(),
        initial_value=10_000.0,
        final_value=10_000.0,
        portfolio_return_percent=ret,
        user_id=user_id,
        rank=rank,
        total_participants=3,
    )


class TestApplyResult:
    def test_first_game_seeds_best_return(self) -> None:
        stats = apply_result(UserStats(), rank=3, return_percent=-4.5)
        assert stats.games_played == 1
        assert stats.games_won == 0
        assert stats.best_return == -4.5
        assert stats.total_returns == -4.5
        assert stats.average_rank == 3.0

    def test_win_counted(self) -> None:
        stats = apply_result(UserStats(), rank=1, return_percent=8.0)
        assert stats.games_won == 1

    def test_running_average_rank(self) -> None:
        stats = UserStats(games_played=2, games_won=1, total_returns=10.0, best_return=7.0, average_rank=1.5)
        updated = apply_result(stats, rank=4, return_percent=2.0)
        assert updated.games_played == 3
        assert updated.average_rank == pytest.approx(2.33)
        assert updated.best_return == 7.0
        assert updated.total_returns == 12.0

    def test_best_return_keeps_maximum(self) -> None:
        stats = UserStats(games_played=1, best_return=-3.0, average_rank=2.0, total_returns=-3.0)
        assert apply_result(stats, rank=2, return_percent=-1.0).best_return == -1.0
        assert apply_result(stats, rank=2, return_percent=-9.0).best_return == -3.0

    def test_values_rounded(self) -> None:
        stats = apply_result(UserStats(), rank=1, return_percent=3.14159)
        assert stats.total_returns == 3.14
        assert stats.best_return == 3.14


class TestStatsUpdater:
    def test_skips_anonymous_players(self) -> None:
        repo = MagicMock()
        repo.update_user_stats.return_value = True
        report = StatsUpdater(repo).update("WS-1", [_result("p1", 1, 5.0, "u1"), _result("p2", 2, 1.0, None)])

        assert report.updated == 1
        assert report.skipped_anonymous == 1
        repo.update_user_stats.assert_called_once()
        assert repo.update_user_stats.call_args.args[0] == "u1"

    def test_transform_applies_rank_and_return(self) -> None:
        repo = MagicMock()
        repo.update_user_stats.return_value = True
        StatsUpdater(repo).update("WS-1", [_result("p1", 2, 4.0, "u1")])

        transform = repo.update_user_stats.call_args.args[1]
        updated = transform(UserStats())
        assert updated.games_played == 1
        assert updated.average_rank == 2.0
        assert updated.best_return == 4.0

    def test_missing_user_counted(self) -> None:
        repo = MagicMock()
        repo.update_user_stats.return_value = False
        report = StatsUpdater(repo).update("WS-1", [_result("p1", 1, 5.0, "gone")])
        assert report.skipped_missing_user == 1
        assert report.updated == 0

    def test_failure_isolated_per_user(self) -> None:
        repo = MagicMock()
        repo.update_user_stats.side_effect = [RuntimeError("db down"), True]
        report = StatsUpdater(repo).update(
            "WS-1",
            [_result("p1", 1, 5.0, "u1"), _result("p2", 2, 1.0, "u2")],
        )
        assert report.failed == 1
        assert report.updated == 1
        assert repo.update_user_stats.call_count == 2
