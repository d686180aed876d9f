"""Metadata CLI commands: validate."""

from pathlib import Path

import click

from tourcatalog.metadata.loader import BUNDLED_METADATA_PATH, MetadataLoader
from tourcatalog.metadata.validator import validate_metadata_dir


@click.group()
def metadata():
    """Metadata commands."""
    pass


@metadata.command()
@click.option(
    "--path",
    "metadata_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Metadata directory to validate (defaults to the configured one).",
)
@click.pass_obj
def validate(settings, metadata_path: Path | None):
    """Validate entity YAML files, then load them."""
    metadata_path = metadata_path or settings.metadata_path or BUNDLED_METADATA_PATH

    # ── Schema (JSON Schema) validation ─────────────────────────────────────
    issues = validate_metadata_dir(metadata_path)
    for issue in issues:
        click.echo(click.style(str(issue), fg="red"))
    if issues:
        click.echo(
            click.style(f"\n{len(issues)} schema error(s) found", fg="red", bold=True)
        )
        raise SystemExit(1)

    # ── Semantic (loader) validation ─────────────────────────────────────────
    try:
        loader = MetadataLoader(metadata_path)
        loader.load_all()
    except (ValueError, KeyError) as e:
        click.echo(click.style(f"\nSemantic validation failed: {e}", fg="red"), err=True)
        raise SystemExit(1)

    entities = loader.list_entities()
    click.echo(f"Loaded {len(entities)} entities:")
    for name in sorted(entities):
        entity = loader.get_entity(name)
        hook_count = sum(len(h) for h in entity.hooks.values())
        click.echo(
            f"  ✓ {name} ({len(entity.fields)} fields, "
            f"{len(entity.virtuals)} virtuals, {hook_count} hooks, "
            f"collection: {entity.collection})"
        )

    click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))
