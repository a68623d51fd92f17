"""Game settlement: returns, ranking, awards and what-if messages."""

from wallstreet.settlement.awards import AwardSettings, compute_awards
from wallstreet.settlement.errors import (
    GameNotFoundError,
    ResultNotFoundError,
    SettlementConflictError,
    SettlementError,
    SettlementPermissionError,
    SettlementPreconditionError,
)
from wallstreet.settlement.ranking import rank_results
from wallstreet.settlement.types import (
    Award,
    AwardType,
    LeaderboardEntry,
    PlayerPortfolio,
    PlayerResult,
    PortfolioPosition,
    PositionResult,
)

__all__ = [
    "Award",
    "AwardSettings",
    "AwardType",
    "GameNotFoundError",
    "LeaderboardEntry",
    "PlayerPortfolio",
    "PlayerResult",
    "PortfolioPosition",
    "PositionResult",
    "ResultNotFoundError",
    "SettlementConflictError",
    "SettlementError",
    "SettlementPermissionError",
    "SettlementPreconditionError",
    "compute_awards",
    "rank_results",
]
