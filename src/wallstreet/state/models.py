"""SQLAlchemy ORM models.

Document-shaped sub-structures (portfolios, position results, awards) are
stored in JSON columns so every record stays JSON-serializable.
"""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class GameStatus:
    DRAFT = "DRAFT"
    LIVE = "LIVE"
    ENDED = "ENDED"


class Game(Base):
    __tablename__ = "games"
    __table_args__ = (Index("ix_games_status_end_date", "status", "end_date"),)

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), default="")
    creator_id: Mapped[str] = mapped_column(String(128), index=True)
    creator_display_name: Mapped[str] = mapped_column(String(128), default="")
    status: Mapped[str] = mapped_column(String(8), default=GameStatus.DRAFT)
    start_date: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)
    player_count: Mapped[int] = mapped_column(Integer, default=0)
    max_players: Mapped[int] = mapped_column(Integer, default=50)
    initial_prices_snapshot: Mapped[dict[str, float] | None] = mapped_column(JSON, nullable=True)
    tickers: Mapped[list[str]] = mapped_column(JSON, default=list)
    data_quality_flag: Mapped[str] = mapped_column(String(32), default="OK")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    launched_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)


class Player(Base):
    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    game_code: Mapped[str] = mapped_column(String(16), index=True)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    nickname: Mapped[str] = mapped_column(String(32))
    # [{ticker, budget_invested, quantity, initial_price}, ...]
    portfolio: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    total_budget: Mapped[float] = mapped_column(Float, default=10_000.0)
    is_ready: Mapped[bool] = mapped_column(default=False)
    joined_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    submitted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)


class PriceSnapshot(Base):
    __tablename__ = "price_snapshots"

    # {YYYY-MM-DD}_{ticker}
    snapshot_id: Mapped[str] = mapped_column(String(48), primary_key=True)
    ticker: Mapped[str] = mapped_column(String(16), index=True)
    date: Mapped[str] = mapped_column(String(10), index=True)
    close_price: Mapped[float] = mapped_column(Float)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    volume: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source: Mapped[str] = mapped_column(String(32), default="")
    fetched_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    data_quality: Mapped[str] = mapped_column(String(16), default="LIVE")


class Result(Base):
    __tablename__ = "results"

    # {game_code}_{player_id}; the primary key makes results write-once
    result_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    game_code: Mapped[str] = mapped_column(String(16), index=True)
    player_id: Mapped[str] = mapped_column(String(32))
    nickname: Mapped[str] = mapped_column(String(32))
    position_results: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    portfolio_return_percent: Mapped[float] = mapped_column(Float)
    initial_value: Mapped[float] = mapped_column(Float)
    final_value: Mapped[float] = mapped_column(Float)
    rank: Mapped[int] = mapped_column(Integer)
    total_participants: Mapped[int] = mapped_column(Integer)
    awards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    what_if_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)
    calculated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class LeaderboardRow(Base):
    __tablename__ = "leaderboard"
    __table_args__ = (Index("ix_leaderboard_game_rank", "game_code", "rank"),)

    entry_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    game_code: Mapped[str] = mapped_column(String(16))
    rank: Mapped[int] = mapped_column(Integer)
    player_id: Mapped[str] = mapped_column(String(32))
    nickname: Mapped[str] = mapped_column(String(32))
    portfolio_return_percent: Mapped[float] = mapped_column(Float)
    final_value: Mapped[float] = mapped_column(Float)
    awards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    best_position: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    worst_position: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class User(Base):
    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(64), default="")
    games_played: Mapped[int] = mapped_column(Integer, default=0)
    games_won: Mapped[int] = mapped_column(Integer, default=0)
    total_returns: Mapped[float] = mapped_column(Float, default=0.0)
    best_return: Mapped[float] = mapped_column(Float, default=0.0)
    average_rank: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class AuditLog(Base):
    __tablename__ = "audit_log"

    log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(32), index=True)
    actor_id: Mapped[str] = mapped_column(String(128))
    target_type: Mapped[str] = mapped_column(String(16))
    target_id: Mapped[str] = mapped_column(String(64), index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    timestamp: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
