"""What-If Generator — counterfactual "all-in on your best pick" messages."""

from __future__ import annotations

from collections.abc import Sequence

from wallstreet.settlement.types import PlayerResult
from wallstreet.utils.numbers import RETURN_PRECISION, round_to


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def hypothetical_rank(result: PlayerResult, all_results: Sequence[PlayerResult], hypothetical_return: float) -> int:
    """Rank *result* would hold with *hypothetical_return*, everyone else unchanged."""
    target = round_to(hypothetical_return, RETURN_PRECISION)
    better = sum(
        1
        for other in all_results
        if other.player_id != result.player_id
        and round_to(other.portfolio_return_percent, RETURN_PRECISION) > target
    )
    return better + 1


def generate_what_if_message(
    result: PlayerResult,
    all_results: Sequence[PlayerResult],
    total_budget: float | None = None,
) -> str | None:
    """Message for a non-winner whose best pick alone would have ranked them higher.

    Returns None for the winner, for players without positions, and when
    the all-in allocation would not have improved the rank.
    """
    if result.rank == 1:
        return None
    best = result.best_position
    if best is None:
        return None

    new_rank = hypothetical_rank(result, all_results, best.return_percent)
    if new_rank >= result.rank:
        return None

    budget = result.initial_value if total_budget is None else total_budget
    budget_text = f"{budget:,.0f}" if float(budget).is_integer() else f"{budget:,.2f}"
    return (
        f"If you had put all {budget_text} credits on {best.ticker}, "
        f"you would have finished {ordinal(new_rank)}!"
    )
