"""Unit tests for the what-if message generator."""

from __future__ import annotations

import pytest

from wallstreet.settlement.ranking import rank_results
from wallstreet.settlement.types import PlayerResult, PositionResult
from wallstreet.settlement.what_if import generate_what_if_message, hypothetical_rank, ordinal


def _pos(ticker: str, ret: float) -> PositionResult:
    return PositionResult(
        ticker=ticker,
        budget_invested=5_000.0,
        quantity=50.0,
        initial_price=100.0,
        final_price=100.0 * (1 + ret / 100),
        return_percent=ret,
        value_at_end=5_000.0 * (1 + ret / 100),
    )


def _result(player_id: str, ret: float, *positions: PositionResult) -> PlayerResult:
    return PlayerResult(
        player_id=player_id,
        nickname=player_id.upper(),
        position_results=positions,
        initial_value=10_000.0,
        final_value=10_000.0 * (1 + ret / 100),
        portfolio_return_percent=ret,
    )


def _by_id(ranked: list[PlayerResult]) -> dict[str, PlayerResult]:
    return {r.player_id: r for r in ranked}


class TestOrdinal:
    @pytest.mark.parametrize(
        ("n", "expected"),
        [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th")],
    )
    def test_suffixes(self, n: int, expected: str) -> None:
        assert ordinal(n) == expected


class TestGenerateWhatIf:
    def _ranked(self) -> list[PlayerResult]:
        return rank_results(
            [
                _result("leader", 12.0, _pos("AAA", 12.0), _pos("BBB", 12.0)),
                _result("middle", 5.0, _pos("CCC", 5.0), _pos("DDD", 5.0)),
                # Best pick alone (+15%) would have beaten the leader
                _result("trailer", 1.0, _pos("ROCKT", 15.0), _pos("DUD", -13.0)),
            ]
        )

    def test_none_for_winner(self) -> None:
        ranked = self._ranked()
        assert generate_what_if_message(_by_id(ranked)["leader"], ranked) is None

    def test_message_when_rank_improves(self) -> None:
        ranked = self._ranked()
        trailer = _by_id(ranked)["trailer"]
        assert trailer.rank == 3
        message = generate_what_if_message(trailer, ranked, total_budget=10_000.0)
        assert message == "If you had put all 10,000 credits on ROCKT, you would have finished 1st!"

    def test_none_when_rank_would_not_improve(self) -> None:
        ranked = self._ranked()
        # middle's best pick (+5%) equals its current return
        assert generate_what_if_message(_by_id(ranked)["middle"], ranked) is None

    def test_none_without_positions(self) -> None:
        ranked = rank_results([_result("a", 3.0, _pos("AAA", 3.0)), _result("b", 0.0)])
        assert generate_what_if_message(_by_id(ranked)["b"], ranked) is None

    def test_budget_defaults_to_initial_value(self) -> None:
        ranked = self._ranked()
        message = generate_what_if_message(_by_id(ranked)["trailer"], ranked)
        assert message is not None
        assert "10,000 credits" in message

    def test_fractional_budget_formatting(self) -> None:
        ranked = self._ranked()
        message = generate_what_if_message(_by_id(ranked)["trailer"], ranked, total_budget=2_500.5)
        assert message is not None
        assert "2,500.50 credits" in message

    def test_tie_with_better_player_counts_as_improvement(self) -> None:
        ranked = rank_results(
            [
                _result("a", 10.0, _pos("AAA", 10.0)),
                _result("b", 2.0, _pos("BBB", 10.0), _pos("CCC", -6.0)),
            ]
        )
        b = _by_id(ranked)["b"]
        assert hypothetical_rank(b, ranked, 10.0) == 1
        assert generate_what_if_message(b, ranked) is not None


class TestHypotheticalRank:
    def test_counts_strictly_better_others(self) -> None:
        ranked = rank_results([_result("a", 9.0), _result("b", 6.0), _result("c", 1.0)])
        c = _by_id(ranked)["c"]
        assert hypothetical_rank(c, ranked, 7.0) == 2
        assert hypothetical_rank(c, ranked, 9.0) == 1
        assert hypothetical_rank(c, ranked, -50.0) == 3
