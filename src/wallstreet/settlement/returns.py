"""Return Calculator — pure position and portfolio return math.

No I/O and no rounding: values stay at full precision until they are
persisted (see :mod:`wallstreet.utils.numbers`).
"""

from __future__ import annotations

from collections.abc import Mapping

from wallstreet.settlement.types import PlayerPortfolio, PlayerResult, PortfolioPosition, PositionResult


def calculate_return(initial: float, final: float) -> float:
    """Percentage change from *initial* to *final*; 0 when *initial* is 0."""
    if initial == 0:
        return 0.0
    return (final - initial) / initial * 100


def position_value(quantity: float, price: float) -> float:
    return quantity * price


def compute_position_result(position: PortfolioPosition, final_price: float) -> PositionResult:
    return PositionResult(
        ticker=position.ticker,
        budget_invested=position.budget_invested,
        quantity=position.quantity,
        initial_price=position.initial_price,
        final_price=final_price,
        return_percent=calculate_return(position.initial_price, final_price),
        value_at_end=position_value(position.quantity, final_price),
    )


def compute_player_result(player: PlayerPortfolio, final_prices: Mapping[str, float]) -> PlayerResult:
    """Build the unranked result for one player.

    A ticker missing from *final_prices* is valued at its initial price,
    i.e. a flat 0 % return for that position.
    """
    position_results: list[PositionResult] = []
    total_final_value = 0.0

    for position in player.positions:
        final_price = final_prices.get(position.ticker)
        if final_price is None:
            final_price = position.initial_price
        pos_result = compute_position_result(position, final_price)
        position_results.append(pos_result)
        total_final_value += pos_result.value_at_end

    return PlayerResult(
        player_id=player.player_id,
        nickname=player.nickname,
        position_results=tuple(position_results),
        initial_value=player.total_budget,
        final_value=total_final_value,
        portfolio_return_percent=calculate_return(player.total_budget, total_final_value),
        submitted_at=player.submitted_at,
        user_id=player.user_id,
    )
