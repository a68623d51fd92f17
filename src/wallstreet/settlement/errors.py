"""Settlement error taxonomy.

"Already settled" and "not live" are not errors: the orchestrator reports
them through :class:`~wallstreet.settlement.engine.SettlementOutcome`.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for settlement failures."""

    def __init__(self, message: str, game_code: str = "") -> None:
        super().__init__(message)
        self.game_code = game_code


class GameNotFoundError(SettlementError):
    """The requested game does not exist."""


class ResultNotFoundError(SettlementError):
    """No persisted result for the requested player."""

    def __init__(self, message: str, game_code: str = "", player_id: str = "") -> None:
        super().__init__(message, game_code=game_code)
        self.player_id = player_id


class SettlementPermissionError(SettlementError):
    """Caller may not force-settle this game."""


class SettlementPreconditionError(SettlementError):
    """The game is not in a state that allows settlement."""


class SettlementConflictError(SettlementError):
    """The game left the LIVE state (or gained results) before the write committed."""
