"""Administrative CLI - schema creation, demo inventory, bulk reset."""

from __future__ import annotations

import asyncio
import logging
import random

import click
from sqlalchemy.ext.asyncio import create_async_engine

from skybook_api.config import settings
from skybook_api.services.flight_service import FlightService
from skybook_api.services.unit_of_work import UnitOfWork
from skybook_db.database import create_schema, make_session_factory

logger = logging.getLogger(__name__)


def _run_with_flights(  # type: ignore[no-untyped-def]
    database_url: str, action, seed: int | None = None
):
    """Run *action(FlightService)* inside one unit of work and return its result."""

    async def _run():  # type: ignore[no-untyped-def]
        engine = create_async_engine(database_url)
        try:
            async with UnitOfWork(make_session_factory(engine)) as uow:
                rng = random.Random(seed) if seed is not None else None
                return await action(FlightService(uow.session, rng=rng))
        finally:
            await engine.dispose()

    return asyncio.run(_run())


@click.group()
@click.option(
    "--database-url",
    default=settings.database_url,
    show_default=True,
    help="Async SQLAlchemy URL",
)
@click.option("--log-level", default=settings.log_level, show_default=True)
@click.pass_context
def cli(ctx: click.Context, database_url: str, log_level: str) -> None:
    """Skybook administration CLI."""
    logging.basicConfig(
        level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
    )
    ctx.obj = {"database_url": database_url}


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create every table that does not exist yet."""

    async def _run() -> None:
        engine = create_async_engine(ctx.obj["database_url"])
        try:
            await create_schema(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    click.echo("Schema ready.")


@cli.command("seed-flights")
@click.option("--count", default=20, show_default=True, help="Random flights to add")
@click.option("--seed", type=int, default=None, help="Random seed")
@click.pass_context
def seed_flights(ctx: click.Context, count: int, seed: int | None) -> None:
    """Populate an empty inventory with demo flights."""
    added = _run_with_flights(
        ctx.obj["database_url"], lambda svc: svc.seed_flights(count), seed
    )
    if added:
        click.echo(f"Seeded {added} flight(s).")
    else:
        click.echo("Flights already present, nothing seeded.")


@cli.command("reset-flights")
@click.confirmation_option(prompt="Delete price history and all unbooked flights?")
@click.pass_context
def reset_flights(ctx: click.Context) -> None:
    """Drop pricing state and every flight without bookings."""
    removed = _run_with_flights(
        ctx.obj["database_url"], lambda svc: svc.reset_flights()
    )
    click.echo(f"Removed {removed} flight(s).")


if __name__ == "__main__":
    cli()
