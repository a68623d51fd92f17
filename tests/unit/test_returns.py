"""Unit tests for position and portfolio return math."""

from __future__ import annotations

import datetime

import pytest

from wallstreet.settlement.returns import (
    calculate_return,
    compute_player_result,
    compute_position_result,
    position_value,
)
from wallstreet.settlement.types import PlayerPortfolio, PortfolioPosition
from wallstreet.utils.numbers import MONEY_PRECISION, RETURN_PRECISION, round_to


def _position(ticker: str, budget: float, initial_price: float) -> PortfolioPosition:
    return PortfolioPosition(
        ticker=ticker,
        budget_invested=budget,
        quantity=budget / initial_price,
        initial_price=initial_price,
    )


def _portfolio(*positions: PortfolioPosition, budget: float = 10_000.0) -> PlayerPortfolio:
    return PlayerPortfolio(
        player_id="p1",
        nickname="alice",
        positions=positions,
        total_budget=budget,
        submitted_at=datetime.datetime(2026, 3, 1, 9, 0),
        user_id="u1",
    )


class TestCalculateReturn:
    def test_gain(self) -> None:
        assert calculate_return(100.0, 150.0) == pytest.approx(50.0)

    def test_loss(self) -> None:
        assert calculate_return(100.0, 90.0) == pytest.approx(-10.0)

    def test_flat(self) -> None:
        assert calculate_return(200.0, 200.0) == 0.0

    def test_zero_initial_is_zero(self) -> None:
        assert calculate_return(0.0, 150.0) == 0.0

    def test_position_value(self) -> None:
        assert position_value(2.5, 40.0) == 100.0


class TestComputePositionResult:
    def test_fields(self) -> None:
        pos = _position("AAPL", 5_000.0, 100.0)
        result = compute_position_result(pos, 120.0)
        assert result.ticker == "AAPL"
        assert result.budget_invested == 5_000.0
        assert result.quantity == 50.0
        assert result.final_price == 120.0
        assert result.return_percent == pytest.approx(20.0)
        assert result.value_at_end == pytest.approx(6_000.0)

    def test_serialized_values_rounded(self) -> None:
        pos = PortfolioPosition("AAPL", 3_333.33, 3_333.33 / 187.12, 187.12)
        data = compute_position_result(pos, 191.57).to_dict()
        assert data["return_percent"] == round_to(data["return_percent"], RETURN_PRECISION)
        assert data["value_at_end"] == round_to(data["value_at_end"], MONEY_PRECISION)


class TestComputePlayerResult:
    def test_single_position(self) -> None:
        player = _portfolio(_position("AAPL", 10_000.0, 100.0))
        result = compute_player_result(player, {"AAPL": 150.0})

        assert result.initial_value == 10_000.0
        assert result.final_value == pytest.approx(15_000.0)
        assert result.portfolio_return_percent == pytest.approx(50.0)
        assert result.rank == 0
        assert result.user_id == "u1"

    def test_weighted_portfolio(self) -> None:
        player = _portfolio(
            _position("AAPL", 5_000.0, 100.0),  # +20%
            _position("MSFT", 3_000.0, 300.0),  # -10%
            _position("MC.PA", 2_000.0, 50.0),  # 0%
        )
        result = compute_player_result(player, {"AAPL": 120.0, "MSFT": 270.0, "MC.PA": 50.0})

        assert result.final_value == pytest.approx(6_000.0 + 2_700.0 + 2_000.0)
        assert result.portfolio_return_percent == pytest.approx(7.0)
        assert [p.ticker for p in result.position_results] == ["AAPL", "MSFT", "MC.PA"]

    def test_uninvested_cash_counts_as_loss(self) -> None:
        # Only 9,000 of the 10,000 budget invested; the rest is not carried
        player = _portfolio(_position("AAPL", 9_000.0, 100.0))
        result = compute_player_result(player, {"AAPL": 100.0})
        assert result.portfolio_return_percent == pytest.approx(-10.0)

    def test_missing_price_uses_initial(self) -> None:
        player = _portfolio(_position("AAPL", 10_000.0, 100.0))
        result = compute_player_result(player, {})
        assert result.position_results[0].final_price == 100.0
        assert result.portfolio_return_percent == 0.0

    def test_flat_prices_round_trip(self) -> None:
        """Final prices equal to initial prices reproduce the invested total."""
        positions = (
            _position("AAPL", 3_333.33, 187.12),
            _position("MSFT", 3_333.33, 412.07),
            _position("MC.PA", 3_333.34, 701.4),
        )
        player = _portfolio(*positions)
        result = compute_player_result(player, {p.ticker: p.initial_price for p in positions})

        assert round_to(result.final_value, MONEY_PRECISION) == 10_000.0
        assert round_to(result.portfolio_return_percent, RETURN_PRECISION) == 0.0
        for pos in result.position_results:
            assert pos.return_percent == 0.0


class TestRoundTo:
    def test_half_up(self) -> None:
        assert round_to(2.675, 2) == 2.68
        assert round_to(0.125, 2) == 0.13
        assert round_to(-0.125, 2) == -0.13

    def test_return_precision(self) -> None:
        assert round_to(12.345678, RETURN_PRECISION) == 12.3457

    def test_negative_decimals_rejected(self) -> None:
        with pytest.raises(ValueError):
            round_to(1.0, -1)
