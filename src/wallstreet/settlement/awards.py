"""Awards Engine — narrative badges derived from ranked results.

Seven independent rules, evaluated in a fixed order.  Each rule is a pure
function over the full ranked list that returns zero or more
``(player_id, Award)`` grants; :func:`compute_awards` merges them.

Rules
-----
1. **WOLF**        — 1st place.
2. **DOLPHIN**     — 2nd place (needs at least two participants).
3. **INTERN**      — last place, only when its rank is above 2.
4. **ROCKET**      — best single position across all players.
5. **BAG_HOLDER**  — worst single position, only when it lost money.
6. **ORACLE**      — first player (in rank order) with every position up.
7. **GAMBLER**     — largest single allocation at or above the threshold.

Position returns are compared at persisted precision.  Ties between
positions go to the first one encountered in rank order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import NamedTuple

from wallstreet.settlement.types import Award, AwardType, PlayerResult, PositionResult
from wallstreet.utils.numbers import RETURN_PRECISION, round_to

DEFAULT_GAMBLER_THRESHOLD = 8_000.0


@dataclass(frozen=True)
class AwardSettings:
    gambler_threshold: float = DEFAULT_GAMBLER_THRESHOLD


class AwardGrant(NamedTuple):
    player_id: str
    award: Award


AwardRule = Callable[[Sequence[PlayerResult], AwardSettings], list[AwardGrant]]


# ── Formatting ───────────────────────────────────────────────────────────


def _signed(value: float, decimals: int) -> str:
    rounded = round_to(value, decimals)
    sign = "+" if rounded > 0 else ""
    return f"{sign}{rounded:.{decimals}f}"


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def _position_return(position: PositionResult) -> float:
    return round_to(position.return_percent, RETURN_PRECISION)


def _portfolio_return(result: PlayerResult) -> float:
    return round_to(result.portfolio_return_percent, RETURN_PRECISION)


def _find_rank(ranked: Sequence[PlayerResult], rank: int) -> PlayerResult | None:
    for result in ranked:
        if result.rank == rank:
            return result
    return None


def _all_positions(ranked: Sequence[PlayerResult]) -> Iterator[tuple[PlayerResult, PositionResult]]:
    for result in ranked:
        for position in result.position_results:
            yield result, position


# ── Rules ────────────────────────────────────────────────────────────────


def first_place_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    first = _find_rank(ranked, 1)
    if first is None:
        return []
    ret = _portfolio_return(first)
    award = Award(
        type=AwardType.WOLF,
        value=ret,
        message=f"The Wolf of Wall Street with {_signed(ret, 2)}%",
    )
    return [AwardGrant(first.player_id, award)]


def second_place_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    if len(ranked) < 2:
        return []
    second = _find_rank(ranked, 2)
    if second is None:
        return []
    ret = _portfolio_return(second)
    award = Award(
        type=AwardType.DOLPHIN,
        value=ret,
        message=f"The Runner-Up with {_signed(ret, 2)}%",
    )
    return [AwardGrant(second.player_id, award)]


def last_place_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    last = _find_rank(ranked, len(ranked))
    # Never coincides with the podium awards above
    if last is None or last.rank <= 2:
        return []
    ret = _portfolio_return(last)
    award = Award(
        type=AwardType.INTERN,
        value=ret,
        message=f"The Intern with {_signed(ret, 2)}%",
    )
    return [AwardGrant(last.player_id, award)]


def best_position_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    best: tuple[PlayerResult, PositionResult] | None = None
    for result, position in _all_positions(ranked):
        if best is None or _position_return(position) > _position_return(best[1]):
            best = (result, position)
    if best is None:
        return []
    owner, position = best
    ret = _position_return(position)
    award = Award(
        type=AwardType.ROCKET,
        ticker=position.ticker,
        value=ret,
        message=f"Spotted {position.ticker}, which returned {_signed(ret, 1)}%!",
    )
    return [AwardGrant(owner.player_id, award)]


def worst_position_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    worst: tuple[PlayerResult, PositionResult] | None = None
    for result, position in _all_positions(ranked):
        if worst is None or _position_return(position) < _position_return(worst[1]):
            worst = (result, position)
    if worst is None:
        return []
    owner, position = worst
    ret = _position_return(position)
    if ret >= 0:
        return []
    award = Award(
        type=AwardType.BAG_HOLDER,
        ticker=position.ticker,
        value=ret,
        message=f"Went down with {position.ticker} ({round_to(ret, 1):.1f}%)...",
    )
    return [AwardGrant(owner.player_id, award)]


def all_green_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    for result in ranked:
        positions = result.position_results
        if positions and all(_position_return(p) > 0 for p in positions):
            count = len(positions)
            noun = "pick" if count == 1 else "picks"
            award = Award(
                type=AwardType.ORACLE,
                message=f"All {count} {noun} finished in the green!",
            )
            # One Oracle per game
            return [AwardGrant(result.player_id, award)]
    return []


def big_bet_rule(ranked: Sequence[PlayerResult], settings: AwardSettings) -> list[AwardGrant]:
    biggest: tuple[PlayerResult, PositionResult] | None = None
    for result, position in _all_positions(ranked):
        if position.budget_invested < settings.gambler_threshold:
            continue
        if biggest is None or position.budget_invested > biggest[1].budget_invested:
            biggest = (result, position)
    if biggest is None:
        return []
    owner, position = biggest
    award = Award(
        type=AwardType.GAMBLER,
        ticker=position.ticker,
        value=position.budget_invested,
        message=f"Went all-in on {position.ticker} ({_format_amount(position.budget_invested)} credits)",
    )
    return [AwardGrant(owner.player_id, award)]


AWARD_RULES: tuple[AwardRule, ...] = (
    first_place_rule,
    second_place_rule,
    last_place_rule,
    best_position_rule,
    worst_position_rule,
    all_green_rule,
    big_bet_rule,
)


def compute_awards(
    ranked: Sequence[PlayerResult],
    settings: AwardSettings | None = None,
    rules: Sequence[AwardRule] = AWARD_RULES,
) -> dict[str, list[Award]]:
    """Evaluate every rule and merge the grants per player.

    Every player in *ranked* appears in the returned mapping, with an empty
    list when no rule granted them anything.  Within a player's list,
    awards appear in rule order.
    """
    settings = settings or AwardSettings()
    awards: dict[str, list[Award]] = {result.player_id: [] for result in ranked}
    for rule in rules:
        for grant in rule(ranked, settings):
            awards.setdefault(grant.player_id, []).append(grant.award)
    return awards
