"""Repository for settlement reads and writes.

All settlement-derived documents are written by :meth:`commit_settlement`
in a single transaction together with the game's ``LIVE -> ENDED``
transition.  The transition is a conditional update, so a second writer
that raced past the read-side idempotency checks finds zero matching rows
and rolls back instead of settling the game twice.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from wallstreet.settlement.errors import ResultNotFoundError, SettlementConflictError
from wallstreet.settlement.stats import UserStats
from wallstreet.settlement.types import (
    Award,
    LeaderboardEntry,
    PlayerPortfolio,
    PortfolioPosition,
    PositionResult,
    PositionSummary,
    ResultView,
)
from wallstreet.state.models import (
    AuditLog,
    Game,
    GameStatus,
    LeaderboardRow,
    Player,
    PriceSnapshot,
    Result,
    User,
)
from wallstreet.utils.numbers import MONEY_PRECISION, RETURN_PRECISION, round_to

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from wallstreet.settlement.types import PlayerResult

logger = structlog.get_logger("wallstreet.state.repository")


def snapshot_id(ticker: str, date: datetime.date) -> str:
    return f"{date.isoformat()}_{ticker}"


class SettlementRepository:
    """Persistence gateway used by the settlement engine and read APIs."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # ── Games & players ───────────────────────────────────────────────

    def get_game(self, game_code: str) -> Game | None:
        with self._session_factory() as session:
            game = session.get(Game, game_code)
            if game is not None:
                session.expunge(game)
            return game

    def list_due_games(self, now: datetime.datetime) -> list[str]:
        """Codes of LIVE games whose end date has passed, oldest first."""
        with self._session_factory() as session:
            rows = session.execute(
                select(Game.code)
                .where(Game.status == GameStatus.LIVE, Game.end_date.is_not(None), Game.end_date <= now)
                .order_by(Game.end_date, Game.code)
            ).scalars()
            return list(rows)

    def has_results(self, game_code: str) -> bool:
        with self._session_factory() as session:
            row = session.execute(select(Result.result_id).where(Result.game_code == game_code).limit(1)).first()
            return row is not None

    def list_players(self, game_code: str) -> list[PlayerPortfolio]:
        """Participants of *game_code* that hold a launched portfolio."""
        with self._session_factory() as session:
            players = session.execute(
                select(Player).where(Player.game_code == game_code).order_by(Player.player_id)
            ).scalars()
            portfolios: list[PlayerPortfolio] = []
            skipped = 0
            for player in players:
                if not player.portfolio:
                    skipped += 1
                    continue
                portfolios.append(
                    PlayerPortfolio(
                        player_id=player.player_id,
                        nickname=player.nickname,
                        positions=tuple(PortfolioPosition.from_dict(p) for p in player.portfolio),
                        total_budget=player.total_budget,
                        submitted_at=player.submitted_at,
                        user_id=player.user_id,
                    )
                )
            if skipped:
                logger.warning("players_without_portfolio_skipped", game_code=game_code, count=skipped)
            return portfolios

    # ── Price snapshots ───────────────────────────────────────────────

    def get_close_price(self, ticker: str, date: datetime.date) -> float | None:
        with self._session_factory() as session:
            snap = session.get(PriceSnapshot, snapshot_id(ticker, date))
            return snap.close_price if snap is not None else None

    # ── Settlement write ──────────────────────────────────────────────

    def commit_settlement(
        self,
        game_code: str,
        results: Sequence[PlayerResult],
        data_quality: str,
        calculated_at: datetime.datetime,
    ) -> None:
        """Persist results, leaderboard entries and the ENDED transition atomically.

        Raises:
            SettlementConflictError: the game was no longer LIVE at write
                time, or results for it already existed.  Nothing is written.
            IntegrityError: any other constraint failure.  Nothing is written
                and the game stays LIVE for the next tick.
        """
        try:
            with self._session_factory() as session, session.begin():
                transition = session.execute(
                    update(Game)
                    .where(Game.code == game_code, Game.status == GameStatus.LIVE)
                    .values(status=GameStatus.ENDED, ended_at=calculated_at, data_quality_flag=data_quality)
                    .execution_options(synchronize_session=False)
                )
                if transition.rowcount != 1:
                    raise SettlementConflictError(f"Game {game_code} is no longer LIVE", game_code=game_code)

                for result in results:
                    session.add(self._result_row(game_code, result, calculated_at))
                    session.add(self._leaderboard_row(LeaderboardEntry.from_result(game_code, result), result))
                session.flush()
        except IntegrityError as e:
            if not self._settled_elsewhere(game_code):
                logger.error("settlement_write_failed", game_code=game_code, error=str(e.orig))
                raise
            raise SettlementConflictError(f"Results for game {game_code} already exist", game_code=game_code) from e

    def _settled_elsewhere(self, game_code: str) -> bool:
        """True when another writer has already ended the game or stored its results."""
        game = self.get_game(game_code)
        return game is None or game.status != GameStatus.LIVE or self.has_results(game_code)

    @staticmethod
    def _result_row(game_code: str, result: PlayerResult, calculated_at: datetime.datetime) -> Result:
        return Result(
            result_id=result.result_id(game_code),
            game_code=game_code,
            player_id=result.player_id,
            nickname=result.nickname,
            position_results=[p.to_dict() for p in result.position_results],
            portfolio_return_percent=round_to(result.portfolio_return_percent, RETURN_PRECISION),
            initial_value=result.initial_value,
            final_value=round_to(result.final_value, MONEY_PRECISION),
            rank=result.rank,
            total_participants=result.total_participants,
            awards=[a.to_dict() for a in result.awards],
            what_if_message=result.what_if_message,
            submitted_at=result.submitted_at,
            calculated_at=calculated_at,
        )

    @staticmethod
    def _leaderboard_row(entry: LeaderboardEntry, result: PlayerResult) -> LeaderboardRow:
        return LeaderboardRow(
            entry_id=result.result_id(entry.game_code),
            game_code=entry.game_code,
            rank=entry.rank,
            player_id=entry.player_id,
            nickname=entry.nickname,
            portfolio_return_percent=entry.portfolio_return_percent,
            final_value=entry.final_value,
            awards=[a.to_dict() for a in entry.awards],
            best_position=entry.best_position.to_dict() if entry.best_position else None,
            worst_position=entry.worst_position.to_dict() if entry.worst_position else None,
        )

    # ── User statistics ───────────────────────────────────────────────

    def update_user_stats(self, user_id: str, transform: Callable[[UserStats], UserStats]) -> bool:
        """Read-modify-write a user's stats in one transaction. False if the user is unknown."""
        with self._session_factory() as session, session.begin():
            user = session.get(User, user_id, with_for_update=True)
            if user is None:
                return False
            updated = transform(
                UserStats(
                    games_played=user.games_played,
                    games_won=user.games_won,
                    total_returns=user.total_returns,
                    best_return=user.best_return,
                    average_rank=user.average_rank,
                )
            )
            user.games_played = updated.games_played
            user.games_won = updated.games_won
            user.total_returns = updated.total_returns
            user.best_return = updated.best_return
            user.average_rank = updated.average_rank
            return True

    # ── Audit ─────────────────────────────────────────────────────────

    def record_audit(
        self,
        action: str,
        actor_id: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        with self._session_factory() as session, session.begin():
            session.add(
                AuditLog(
                    action=action,
                    actor_id=actor_id,
                    target_type=target_type,
                    target_id=target_id,
                    details=details or {},
                )
            )

    # ── Read APIs ─────────────────────────────────────────────────────

    def get_leaderboard(self, game_code: str) -> list[LeaderboardEntry]:
        """Leaderboard entries for a game, ordered by rank."""
        with self._session_factory() as session:
            rows = session.execute(
                select(LeaderboardRow).where(LeaderboardRow.game_code == game_code).order_by(LeaderboardRow.rank)
            ).scalars()
            return [
                LeaderboardEntry(
                    game_code=row.game_code,
                    rank=row.rank,
                    player_id=row.player_id,
                    nickname=row.nickname,
                    portfolio_return_percent=row.portfolio_return_percent,
                    final_value=row.final_value,
                    awards=tuple(Award.from_dict(a) for a in row.awards or []),
                    best_position=PositionSummary.from_dict(row.best_position),
                    worst_position=PositionSummary.from_dict(row.worst_position),
                )
                for row in rows
            ]

    def get_player_result(self, game_code: str, player_id: str) -> ResultView:
        """Persisted result for one player.

        Raises:
            ResultNotFoundError: no result exists for this player and game.
        """
        with self._session_factory() as session:
            row = session.get(Result, f"{game_code}_{player_id}")
            if row is None:
                raise ResultNotFoundError(
                    f"No result for player {player_id} in game {game_code}",
                    game_code=game_code,
                    player_id=player_id,
                )
            return ResultView(
                result_id=row.result_id,
                game_code=row.game_code,
                player_id=row.player_id,
                nickname=row.nickname,
                position_results=tuple(PositionResult.from_dict(p) for p in row.position_results or []),
                portfolio_return_percent=row.portfolio_return_percent,
                initial_value=row.initial_value,
                final_value=row.final_value,
                rank=row.rank,
                total_participants=row.total_participants,
                awards=tuple(Award.from_dict(a) for a in row.awards or []),
                what_if_message=row.what_if_message,
                submitted_at=row.submitted_at,
                calculated_at=row.calculated_at,
            )
