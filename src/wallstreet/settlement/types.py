"""Data types for game settlement."""

from __future__ import annotations

import datetime  # noqa: TCH003
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from wallstreet.utils.numbers import MONEY_PRECISION, RETURN_PRECISION, round_to


class AwardType(StrEnum):
    """The fixed award taxonomy."""

    WOLF = "WOLF"  # 1st place
    DOLPHIN = "DOLPHIN"  # 2nd place
    INTERN = "INTERN"  # Last place
    ROCKET = "ROCKET"  # Best single position
    BAG_HOLDER = "BAG_HOLDER"  # Worst single position
    ORACLE = "ORACLE"  # Every position in the green
    GAMBLER = "GAMBLER"  # Biggest single allocation above threshold


@dataclass(frozen=True)
class AwardInfo:
    emoji: str
    title: str


AWARD_CATALOG: dict[AwardType, AwardInfo] = {
    AwardType.WOLF: AwardInfo("🏆", "The Wolf of Wall Street"),
    AwardType.DOLPHIN: AwardInfo("🥈", "The Runner-Up"),
    AwardType.INTERN: AwardInfo("🪵", "The Intern"),
    AwardType.ROCKET: AwardInfo("🚀", "The Rocket"),
    AwardType.BAG_HOLDER: AwardInfo("💩", "The Bag Holder"),
    AwardType.ORACLE: AwardInfo("🔮", "The Oracle"),
    AwardType.GAMBLER: AwardInfo("🎰", "The Gambler"),
}


@dataclass(frozen=True)
class Award:
    """A rule-derived badge granted to a player."""

    type: AwardType
    message: str
    ticker: str | None = None
    value: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.ticker is not None:
            data["ticker"] = self.ticker
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Award:
        return cls(
            type=AwardType(data["type"]),
            message=data["message"],
            ticker=data.get("ticker"),
            value=data.get("value"),
        )


# ── Inputs ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PortfolioPosition:
    """One position of a launched portfolio. Quantity is frozen at launch."""

    ticker: str
    budget_invested: float
    quantity: float
    initial_price: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PortfolioPosition:
        return cls(
            ticker=data["ticker"],
            budget_invested=float(data["budget_invested"]),
            quantity=float(data["quantity"]),
            initial_price=float(data["initial_price"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "budget_invested": self.budget_invested,
            "quantity": self.quantity,
            "initial_price": self.initial_price,
        }


@dataclass(frozen=True)
class PlayerPortfolio:
    """A participant's portfolio as seen by settlement."""

    player_id: str
    nickname: str
    positions: tuple[PortfolioPosition, ...]
    total_budget: float
    submitted_at: datetime.datetime | None = None
    user_id: str | None = None

    @property
    def tickers(self) -> list[str]:
        return [p.ticker for p in self.positions]


# ── Derived results ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class PositionResult:
    """Outcome of one position. Values are unrounded until serialized."""

    ticker: str
    budget_invested: float
    quantity: float
    initial_price: float
    final_price: float
    return_percent: float
    value_at_end: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "budget_invested": self.budget_invested,
            "quantity": self.quantity,
            "initial_price": self.initial_price,
            "final_price": self.final_price,
            "return_percent": round_to(self.return_percent, RETURN_PRECISION),
            "value_at_end": round_to(self.value_at_end, MONEY_PRECISION),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PositionResult:
        return cls(
            ticker=data["ticker"],
            budget_invested=float(data["budget_invested"]),
            quantity=float(data["quantity"]),
            initial_price=float(data["initial_price"]),
            final_price=float(data["final_price"]),
            return_percent=float(data["return_percent"]),
            value_at_end=float(data["value_at_end"]),
        )


@dataclass(frozen=True)
class PositionSummary:
    """Ticker and return of a single position, for leaderboard display."""

    ticker: str
    return_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {"ticker": self.ticker, "return_percent": round_to(self.return_percent, RETURN_PRECISION)}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PositionSummary | None:
        if not data:
            return None
        return cls(ticker=data["ticker"], return_percent=float(data["return_percent"]))


@dataclass(frozen=True)
class PlayerResult:
    """Settlement result for one player.

    ``rank`` and ``total_participants`` are 0 until ranking; ``awards`` and
    ``what_if_message`` are filled in after awards are computed.
    """

    player_id: str
    nickname: str
    position_results: tuple[PositionResult, ...]
    initial_value: float
    final_value: float
    portfolio_return_percent: float
    submitted_at: datetime.datetime | None = None
    user_id: str | None = None
    rank: int = 0
    total_participants: int = 0
    awards: tuple[Award, ...] = field(default_factory=tuple)
    what_if_message: str | None = None

    @property
    def best_position(self) -> PositionResult | None:
        """Highest-return position; the first one wins ties."""
        best: PositionResult | None = None
        for pos in self.position_results:
            if best is None or pos.return_percent > best.return_percent:
                best = pos
        return best

    @property
    def worst_position(self) -> PositionResult | None:
        """Lowest-return position; the first one wins ties."""
        worst: PositionResult | None = None
        for pos in self.position_results:
            if worst is None or pos.return_percent < worst.return_percent:
                worst = pos
        return worst

    def result_id(self, game_code: str) -> str:
        return f"{game_code}_{self.player_id}"


@dataclass(frozen=True)
class LeaderboardEntry:
    """Read-optimized projection of a :class:`PlayerResult`."""

    game_code: str
    rank: int
    player_id: str
    nickname: str
    portfolio_return_percent: float
    final_value: float
    awards: tuple[Award, ...] = field(default_factory=tuple)
    best_position: PositionSummary | None = None
    worst_position: PositionSummary | None = None

    @classmethod
    def from_result(cls, game_code: str, result: PlayerResult) -> LeaderboardEntry:
        best = result.best_position
        worst = result.worst_position
        return cls(
            game_code=game_code,
            rank=result.rank,
            player_id=result.player_id,
            nickname=result.nickname,
            portfolio_return_percent=round_to(result.portfolio_return_percent, RETURN_PRECISION),
            final_value=round_to(result.final_value, MONEY_PRECISION),
            awards=result.awards,
            best_position=PositionSummary(best.ticker, best.return_percent) if best else None,
            worst_position=PositionSummary(worst.ticker, worst.return_percent) if worst else None,
        )


@dataclass(frozen=True)
class ResultView:
    """A persisted result as returned by the read API."""

    result_id: str
    game_code: str
    player_id: str
    nickname: str
    position_results: tuple[PositionResult, ...]
    portfolio_return_percent: float
    initial_value: float
    final_value: float
    rank: int
    total_participants: int
    awards: tuple[Award, ...]
    what_if_message: str | None
    submitted_at: datetime.datetime | None
    calculated_at: datetime.datetime
