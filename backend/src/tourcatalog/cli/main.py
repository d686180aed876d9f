"""Tour catalog CLI entry point."""

import logging

import click

from tourcatalog.config import CatalogSettings
from tourcatalog.persistence import DatabaseConfig


@click.group()
@click.option(
    "--database-url",
    default=None,
    help="Store URL (memory:// or a SQLAlchemy URL). Overrides TOURCATALOG_DATABASE_URL.",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Overrides TOURCATALOG_LOG_LEVEL.",
)
@click.pass_context
def cli(ctx: click.Context, database_url: str | None, log_level: str | None):
    """Tour catalog: metadata-driven tour storage and querying."""
    settings = CatalogSettings.from_env()
    if database_url:
        settings.database = DatabaseConfig(url=database_url)
    if log_level:
        settings.log_level = log_level.upper()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


# Register subcommand groups
from tourcatalog.cli.metadata_cmd import metadata  # noqa: E402
from tourcatalog.cli.tours_cmd import tours  # noqa: E402

cli.add_command(metadata)
cli.add_command(tours)
