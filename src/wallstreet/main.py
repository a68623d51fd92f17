"""CLI entry point for the Wallstreet settlement engine."""

from __future__ import annotations

import click

from wallstreet import __version__


@click.group()
@click.version_option(version=__version__, prog_name="wallstreet-settlement")
def cli() -> None:
    """Wallstreet Settlement — closes stock-picking games and crowns the winners."""


@cli.command()
@click.option("--config-dir", default="config", help="Path to configuration directory.")
@click.option(
    "--environment",
    type=click.Choice(["development", "production"]),
    default=None,
    help="Override environment (default: from config).",
)
def run(config_dir: str, environment: str | None) -> None:
    """Start the periodic settlement scheduler."""
    import asyncio
    import signal as signal_mod

    from wallstreet.config.loader import load_config
    from wallstreet.core.scheduler import SettlementScheduler, build_orchestrator
    from wallstreet.monitoring.logging import get_logger, setup_logging
    from wallstreet.state.database import create_db_engine, get_session_factory, init_db

    config = load_config(config_dir=config_dir, environment=environment)
    setup_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
        log_dir=config.logging.log_dir,
        environment=config.app.environment.value,
    )
    log = get_logger("wallstreet.main")
    log.info(
        "settlement_engine_starting",
        version=__version__,
        environment=config.app.environment.value,
        remote_prices=config.prices.remote_enabled,
    )

    if not config.scheduler.enabled:
        click.echo("Scheduler is disabled in configuration.")
        return

    db_engine = create_db_engine(url=config.database.url, echo=config.database.echo)
    init_db(db_engine)
    session_factory = get_session_factory(db_engine)
    log.info("database_initialized", url=config.database.url)

    orchestrator, repo, quote_client = build_orchestrator(config, session_factory)

    click.echo(f"Wallstreet Settlement v{__version__}")
    click.echo(f"Environment: {config.app.environment.value}")
    click.echo(f"Database: {config.database.url}")
    click.echo(f"Interval: {config.scheduler.interval_seconds}s")

    async def _run() -> None:
        scheduler = SettlementScheduler(orchestrator, repo, config.scheduler)

        # Graceful shutdown on SIGINT / SIGTERM
        loop = asyncio.get_running_loop()
        for sig in (signal_mod.SIGINT, signal_mod.SIGTERM):
            loop.add_signal_handler(sig, scheduler.stop)

        click.echo("Scheduler running. Press Ctrl+C to stop.")
        try:
            await scheduler.run()
        finally:
            if quote_client is not None:
                quote_client.close()
            click.echo("Scheduler stopped.")

    asyncio.run(_run())


@cli.command()
@click.argument("game_code")
@click.option("--actor", "actor_id", required=True, help="User id of the game creator.")
@click.option("--config-dir", default="config", help="Path to configuration directory.")
def settle(game_code: str, actor_id: str, config_dir: str) -> None:
    """Force settlement of GAME_CODE on behalf of its creator."""
    from wallstreet.config.loader import load_config
    from wallstreet.core.scheduler import build_orchestrator
    from wallstreet.monitoring.logging import game_context, setup_logging
    from wallstreet.settlement.errors import SettlementError
    from wallstreet.state.database import create_db_engine, get_session_factory

    config = load_config(config_dir=config_dir)
    setup_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
        log_dir=config.logging.log_dir,
        environment=config.app.environment.value,
    )
    engine = create_db_engine(url=config.database.url, echo=False)
    orchestrator, _, quote_client = build_orchestrator(config, get_session_factory(engine))

    try:
        with game_context(game_code, trigger="manual", actor_id=actor_id):
            outcome = orchestrator.force_settle(game_code, actor_id)
    except SettlementError as e:
        click.echo(f"Settlement failed: {e}", err=True)
        raise SystemExit(1) from e
    finally:
        if quote_client is not None:
            quote_client.close()

    click.echo(f"Game {game_code}: {outcome.status.value}")
    if outcome.settled:
        click.echo(f"  Data quality: {outcome.data_quality.value}")
        click.echo(f"  Participants: {len(outcome.results)}")
        if outcome.winner is not None:
            click.echo(f"  Winner: {outcome.winner.nickname}")


@cli.command()
@click.argument("game_code")
@click.option("--config-dir", default="config", help="Path to configuration directory.")
def leaderboard(game_code: str, config_dir: str) -> None:
    """Show the final leaderboard of GAME_CODE."""
    from wallstreet.config.loader import load_config
    from wallstreet.state.database import create_db_engine, get_session_factory
    from wallstreet.state.repository import SettlementRepository

    config = load_config(config_dir=config_dir)
    engine = create_db_engine(url=config.database.url, echo=False)
    repo = SettlementRepository(get_session_factory(engine))

    entries = repo.get_leaderboard(game_code)
    if not entries:
        click.echo(f"No leaderboard for game {game_code}.")
        return

    header = f"{'Rank':>4} {'Player':<20} {'Return':>9} {'Final value':>12}  Awards"
    click.echo(header)
    click.echo("-" * len(header))
    for entry in entries:
        awards = ", ".join(a.type.value for a in entry.awards)
        click.echo(
            f"{entry.rank:>4} {entry.nickname:<20} {entry.portfolio_return_percent:>8.2f}% "
            f"{entry.final_value:>12,.2f}  {awards}"
        )


@cli.command()
@click.argument("game_code")
@click.argument("player_id")
@click.option("--config-dir", default="config", help="Path to configuration directory.")
def result(game_code: str, player_id: str, config_dir: str) -> None:
    """Show the settled result of PLAYER_ID in GAME_CODE."""
    from wallstreet.config.loader import load_config
    from wallstreet.settlement.errors import ResultNotFoundError
    from wallstreet.state.database import create_db_engine, get_session_factory
    from wallstreet.state.repository import SettlementRepository

    config = load_config(config_dir=config_dir)
    engine = create_db_engine(url=config.database.url, echo=False)
    repo = SettlementRepository(get_session_factory(engine))

    try:
        view = repo.get_player_result(game_code, player_id)
    except ResultNotFoundError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1) from e

    click.echo(f"{view.nickname}: rank {view.rank}/{view.total_participants}")
    click.echo(f"  Return: {view.portfolio_return_percent:.2f}%")
    click.echo(f"  Final value: {view.final_value:,.2f}")
    for position in view.position_results:
        click.echo(f"  {position.ticker:<10} {position.return_percent:>8.2f}%")
    for award in view.awards:
        click.echo(f"  [{award.type.value}] {award.message}")
    if view.what_if_message:
        click.echo(f"  {view.what_if_message}")


@cli.command()
@click.option("--config-dir", default="config", help="Path to configuration directory.")
def validate_config(config_dir: str) -> None:
    """Validate configuration files without starting the system."""
    from wallstreet.config.loader import load_config

    try:
        config = load_config(config_dir=config_dir)
        click.echo("Configuration is valid.")
        click.echo(f"  Environment: {config.app.environment.value}")
        click.echo(f"  Database: {config.database.url}")
        click.echo(f"  Scheduler interval: {config.scheduler.interval_seconds}s")
        click.echo(f"  Remote prices: {'enabled' if config.prices.remote_enabled else 'disabled'}")
        click.echo(f"  Gambler threshold: {config.game.gambler_threshold:,.0f}")
    except Exception as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1) from e


@cli.command()
@click.option("--config-dir", default="config", help="Path to configuration directory.")
def init_db_cmd(config_dir: str) -> None:
    """Initialize the database (create tables)."""
    from wallstreet.config.loader import load_config
    from wallstreet.state.database import create_db_engine, init_db

    config = load_config(config_dir=config_dir)
    engine = create_db_engine(url=config.database.url, echo=config.database.echo)
    init_db(engine)
    click.echo(f"Database initialized at {config.database.url}")


if __name__ == "__main__":
    cli()
