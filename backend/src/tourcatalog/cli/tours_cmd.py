"""Tour CLI commands: explain, import, list, stats, monthly-plan, clear."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

import click

from tourcatalog.bootstrap import initialize_services
from tourcatalog.config import CatalogSettings
from tourcatalog.errors import CatalogError
from tourcatalog.persistence.memory import MemoryCollectionStore


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=_json_default)


def _parse_query_string(query_string: str) -> dict[str, list[str]]:
    return parse_qs(query_string.lstrip("?"), keep_blank_values=True)


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    raise SystemExit(1)


async def _with_tours(settings: CatalogSettings, action, store=None):
    services = await initialize_services(settings, store=store)
    try:
        return await action(services.tours)
    finally:
        await services.close()


def _run(settings: CatalogSettings, action, store=None):
    try:
        return asyncio.run(_with_tours(settings, action, store))
    except CatalogError as e:
        _fail(f"{e.code}: {e}")


@click.group()
def tours():
    """Tour commands."""
    pass


@tours.command()
@click.argument("query_string", default="")
@click.pass_obj
def explain(settings: CatalogSettings, query_string: str):
    """Print the query descriptor a request's query string builds.

    Example: tourcatalog tours explain "difficulty=easy&duration[lte]=5&sort=-price"
    """
    params = _parse_query_string(query_string)

    async def action(repo):
        return repo.describe(params)

    # Explaining never touches the configured store
    descriptor = _run(settings, action, store=MemoryCollectionStore())
    click.echo(_dump(descriptor.to_dict()))


@tours.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--replace", is_flag=True, default=False, help="Delete existing tours first.")
@click.pass_obj
def import_cmd(settings: CatalogSettings, file: Path, replace: bool):
    """Create tours from a JSON array (or {"data": [...]}) file."""
    try:
        payload = json.loads(file.read_text())
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {file}: {e}")
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if not isinstance(payload, list):
        _fail("Expected a JSON array of tours")

    async def action(repo):
        removed = await repo.clear() if replace else 0
        created, failures = 0, []
        for index, item in enumerate(payload):
            try:
                await repo.create(item)
                created += 1
            except CatalogError as e:
                failures.append((index, e))
        return removed, created, failures

    removed, created, failures = _run(settings, action)
    if replace:
        click.echo(f"Deleted {removed} existing tour(s).")
    click.echo(f"Imported {created} tour(s).")
    for index, error in failures:
        click.echo(click.style(f"  ✗ [{index}] {error.code}: {error}", fg="red"), err=True)
    if failures:
        raise SystemExit(1)


@tours.command("list")
@click.argument("query_string", default="")
@click.pass_obj
def list_cmd(settings: CatalogSettings, query_string: str):
    """Run a query and print matching tours as JSON.

    Example: tourcatalog tours list "fields=name,price&sort=price&limit=3"
    """
    params = _parse_query_string(query_string)

    async def action(repo):
        return await repo.find(params)

    click.echo(_dump(_run(settings, action)))


@tours.command("top-cheap")
@click.pass_obj
def top_cheap(settings: CatalogSettings):
    """Print the five best-rated, cheapest tours."""

    async def action(repo):
        return await repo.top_cheap()

    click.echo(_dump(_run(settings, action)))


@tours.command()
@click.pass_obj
def stats(settings: CatalogSettings):
    """Print per-difficulty statistics for highly rated tours."""

    async def action(repo):
        return await repo.tour_stats()

    click.echo(_dump(_run(settings, action)))


@tours.command("monthly-plan")
@click.argument("year", type=int)
@click.pass_obj
def monthly_plan(settings: CatalogSettings, year: int):
    """Print the number of tour starts per month of YEAR."""

    async def action(repo):
        return await repo.monthly_plan(year)

    click.echo(_dump(_run(settings, action)))


@tours.command()
@click.pass_obj
def clear(settings: CatalogSettings):
    """Delete all tours."""

    async def action(repo):
        return await repo.clear()

    click.echo(f"Deleted {_run(settings, action)} tour(s).")
