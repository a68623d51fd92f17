"""Unit tests for the SettlementRepository."""

from __future__ import annotations

import datetime

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from wallstreet.settlement.errors import ResultNotFoundError, SettlementConflictError
from wallstreet.settlement.stats import UserStats, apply_result
from wallstreet.settlement.types import (
    Award,
    AwardType,
    PlayerResult,
    PositionResult,
)
from wallstreet.state.models import (
    AuditLog,
    Base,
    Game,
    GameStatus,
    LeaderboardRow,
    Player,
    PriceSnapshot,
    Result,
    User,
)
from wallstreet.state.repository import SettlementRepository, snapshot_id

NOW = datetime.datetime(2026, 3, 6, 18, 0)
END = datetime.datetime(2026, 3, 6, 16, 0)


def _factory() -> sessionmaker[Session]:
    """In-memory SQLite session factory."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def _add(sf: sessionmaker[Session], *rows: object) -> None:
    with sf() as session, session.begin():
        session.add_all(rows)


def _game(code: str = "WS-1", status: str = GameStatus.LIVE, end_date: datetime.datetime | None = END) -> Game:
    return Game(code=code, name="Test", creator_id="creator-1", status=status, end_date=end_date)


def _result(player_id: str, rank: int, ret: float) -> PlayerResult:
    position = PositionResult(
        ticker="AAPL",
        budget_invested=10_000.0,
        quantity=100.0,
        initial_price=100.0,
        final_price=100.0 * (1 + ret / 100),
        return_percent=ret,
        value_at_end=10_000.0 * (1 + ret / 100),
    )
    return PlayerResult(
        player_id=player_id,
        nickname=player_id.upper(),
        position_results=(position,),
        initial_value=10_000.0,
        final_value=10_000.0 * (1 + ret / 100),
        portfolio_return_percent=ret,
        rank=rank,
        total_participants=2,
        awards=(Award(AwardType.WOLF, "The Wolf of Wall Street with +12.35%", value=12.3457),)
        if rank == 1
        else (),
        what_if_message=None if rank == 1 else "If you had put all 10,000 credits on AAPL, you would have finished 1st!",
    )


# ── Games & players ──────────────────────────────────────────────────────


class TestGames:
    def test_get_game(self) -> None:
        sf = _factory()
        _add(sf, _game())
        repo = SettlementRepository(sf)

        game = repo.get_game("WS-1")
        assert game is not None
        assert game.status == GameStatus.LIVE
        assert repo.get_game("NOPE") is None

    def test_list_due_games(self) -> None:
        sf = _factory()
        _add(
            sf,
            _game("DUE-B", end_date=END),
            _game("DUE-A", end_date=END - datetime.timedelta(days=1)),
            _game("FUTURE", end_date=NOW + datetime.timedelta(hours=1)),
            _game("ENDED", status=GameStatus.ENDED, end_date=END),
            _game("DRAFT", status=GameStatus.DRAFT, end_date=END),
            _game("NO-END", end_date=None),
        )
        repo = SettlementRepository(sf)
        assert repo.list_due_games(NOW) == ["DUE-A", "DUE-B"]

    def test_list_players_skips_empty_portfolios(self) -> None:
        sf = _factory()
        position = {"ticker": "AAPL", "budget_invested": 10_000.0, "quantity": 50.0, "initial_price": 200.0}
        _add(
            sf,
            _game(),
            Player(player_id="p2", game_code="WS-1", nickname="Bob", portfolio=[position], user_id="u2"),
            Player(player_id="p1", game_code="WS-1", nickname="Alice", portfolio=[position]),
            Player(player_id="p3", game_code="WS-1", nickname="Lurker", portfolio=[]),
            Player(player_id="x1", game_code="OTHER", nickname="Else", portfolio=[position]),
        )
        players = SettlementRepository(sf).list_players("WS-1")

        assert [p.player_id for p in players] == ["p1", "p2"]
        assert players[1].user_id == "u2"
        assert players[0].positions[0].quantity == 50.0
        assert players[0].tickers == ["AAPL"]

    def test_get_close_price(self) -> None:
        sf = _factory()
        day = datetime.date(2026, 3, 6)
        _add(sf, PriceSnapshot(snapshot_id=snapshot_id("AAPL", day), ticker="AAPL", date=day.isoformat(), close_price=190.5))
        repo = SettlementRepository(sf)
        assert repo.get_close_price("AAPL", day) == 190.5
        assert repo.get_close_price("AAPL", day - datetime.timedelta(days=1)) is None

    def test_snapshot_id_format(self) -> None:
        assert snapshot_id("MC.PA", datetime.date(2026, 3, 6)) == "2026-03-06_MC.PA"


# ── Settlement write ─────────────────────────────────────────────────────


class TestCommitSettlement:
    def test_commit_writes_everything(self) -> None:
        sf = _factory()
        _add(sf, _game())
        repo = SettlementRepository(sf)

        repo.commit_settlement("WS-1", [_result("p1", 1, 12.34567), _result("p2", 2, -3.0)], "OK", NOW)

        game = repo.get_game("WS-1")
        assert game is not None
        assert game.status == GameStatus.ENDED
        assert game.ended_at == NOW
        assert game.data_quality_flag == "OK"
        assert repo.has_results("WS-1")

        with sf() as session:
            result = session.get(Result, "WS-1_p1")
            assert result is not None
            assert result.portfolio_return_percent == 12.3457
            assert result.position_results[0]["return_percent"] == 12.3457
            assert result.calculated_at == NOW
            assert session.execute(select(LeaderboardRow)).scalars().all()

    def test_second_commit_conflicts(self) -> None:
        sf = _factory()
        _add(sf, _game())
        repo = SettlementRepository(sf)
        repo.commit_settlement("WS-1", [_result("p1", 1, 5.0)], "OK", NOW)

        with pytest.raises(SettlementConflictError, match="no longer LIVE"):
            repo.commit_settlement("WS-1", [_result("p1", 1, 5.0)], "OK", NOW)

    def test_existing_result_rolls_back_transition(self) -> None:
        sf = _factory()
        _add(
            sf,
            _game(),
            Result(
                result_id="WS-1_p1",
                game_code="WS-1",
                player_id="p1",
                nickname="P1",
                portfolio_return_percent=1.0,
                initial_value=10_000.0,
                final_value=10_100.0,
                rank=1,
                total_participants=1,
            ),
        )
        repo = SettlementRepository(sf)

        with pytest.raises(SettlementConflictError, match="already exist"):
            repo.commit_settlement("WS-1", [_result("p1", 1, 5.0)], "OK", NOW)

        game = repo.get_game("WS-1")
        assert game is not None
        assert game.status == GameStatus.LIVE
        assert repo.get_leaderboard("WS-1") == []

    def test_unrelated_constraint_failure_propagates(self) -> None:
        sf = _factory()
        _add(sf, _game())
        repo = SettlementRepository(sf)

        with pytest.raises(IntegrityError):
            repo.commit_settlement("WS-1", [_result("p1", None, 5.0)], "OK", NOW)  # type: ignore[arg-type]

        game = repo.get_game("WS-1")
        assert game is not None
        assert game.status == GameStatus.LIVE
        assert not repo.has_results("WS-1")

    def test_not_live_game_conflicts(self) -> None:
        sf = _factory()
        _add(sf, _game(status=GameStatus.DRAFT))
        with pytest.raises(SettlementConflictError):
            SettlementRepository(sf).commit_settlement("WS-1", [], "OK", NOW)


# ── Read APIs ────────────────────────────────────────────────────────────


class TestReadApis:
    def _settled(self) -> SettlementRepository:
        sf = _factory()
        _add(sf, _game())
        repo = SettlementRepository(sf)
        repo.commit_settlement("WS-1", [_result("p2", 2, -3.0), _result("p1", 1, 12.34567)], "OK", NOW)
        return repo

    def test_leaderboard_ordered_by_rank(self) -> None:
        entries = self._settled().get_leaderboard("WS-1")
        assert [(e.rank, e.player_id) for e in entries] == [(1, "p1"), (2, "p2")]
        top = entries[0]
        assert top.portfolio_return_percent == 12.3457
        assert top.awards[0].type == AwardType.WOLF
        assert top.best_position is not None
        assert top.best_position.ticker == "AAPL"

    def test_leaderboard_unknown_game_empty(self) -> None:
        assert self._settled().get_leaderboard("NOPE") == []

    def test_get_player_result(self) -> None:
        view = self._settled().get_player_result("WS-1", "p2")
        assert view.result_id == "WS-1_p2"
        assert view.rank == 2
        assert view.total_participants == 2
        assert view.what_if_message is not None
        assert view.position_results[0].ticker == "AAPL"
        assert view.calculated_at == NOW

    def test_get_player_result_missing(self) -> None:
        with pytest.raises(ResultNotFoundError) as exc_info:
            self._settled().get_player_result("WS-1", "ghost")
        assert exc_info.value.player_id == "ghost"
        assert exc_info.value.game_code == "WS-1"


# ── User statistics & audit ──────────────────────────────────────────────


class TestUserStats:
    def test_update_existing_user(self) -> None:
        sf = _factory()
        _add(sf, User(uid="u1", games_played=1, games_won=0, total_returns=2.0, best_return=2.0, average_rank=3.0))
        repo = SettlementRepository(sf)

        assert repo.update_user_stats("u1", lambda s: apply_result(s, 1, 6.0)) is True

        with sf() as session:
            user = session.get(User, "u1")
            assert user is not None
            assert user.games_played == 2
            assert user.games_won == 1
            assert user.best_return == 6.0
            assert user.average_rank == 2.0

    def test_unknown_user(self) -> None:
        repo = SettlementRepository(_factory())
        calls: list[UserStats] = []
        assert repo.update_user_stats("ghost", lambda s: calls.append(s) or s) is False
        assert calls == []

    def test_record_audit(self) -> None:
        sf = _factory()
        SettlementRepository(sf).record_audit("GAME_SETTLED", "system", "GAME", "WS-1", {"player_count": 2})
        with sf() as session:
            log = session.execute(select(AuditLog)).scalar_one()
            assert log.action == "GAME_SETTLED"
            assert log.details == {"player_count": 2}
