"""Command line interface for :mod:`waterfeatures`."""

import json
import sys
from typing import Optional

import click

from .backend.config import Config
from .backend.services.cache_service import MemoryCache
from .backend.services.feature_service import FeatureService
from .models import FeatureFilter, FeatureType
from .sparql_helper import EndpointError, SparqlHelper

__all__ = [
    "main",
]

TYPE_CHOICE = click.Choice([t.value for t in FeatureType], case_sensitive=False)


def _service(ctx: click.Context) -> FeatureService:
    helper = SparqlHelper(
        ctx.obj["endpoint"],
        timeout=Config.SPARQL_TIMEOUT,
        max_retries=Config.SPARQL_MAX_RETRIES,
    )
    return FeatureService(
        MemoryCache(default_ttl=Config.CACHE_TTL),
        helper,
        preload_ttl=Config.PRELOAD_TTL,
        preload_limit=Config.PRELOAD_LIMIT,
    )


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.version_option()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--endpoint",
    default=Config.SPARQL_ENDPOINT,
    show_default=True,
    help="SPARQL endpoint URL",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, endpoint: str) -> None:
    """Bulgarian water features from Wikidata.

    Query lakes, dams, reservoirs and rivers, or run the HTTP API.
    """
    import logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["endpoint"] = endpoint

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        logging.getLogger("waterfeatures").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s", force=True)


@main.command("list")
@click.option("--type", "feature_type", type=TYPE_CHOICE, help="Feature type")
@click.option("--region", help="Substring of a containing region's name")
@click.option("--min-capacity", type=float, help="Minimum capacity")
@click.option("--min-surface-area", type=float, help="Minimum surface area")
@click.option("--sort-by", default="name", show_default=True,
              help="name, surfaceArea, capacity, width or length")
@click.option("--sort-order", type=click.Choice(["ASC", "DESC"], case_sensitive=False),
              default="ASC", show_default=True)
@click.option("--limit", type=click.IntRange(min=1), default=100, show_default=True)
@click.option("--offset", type=click.IntRange(min=0), default=0, show_default=True)
@click.pass_context
def list_features(
    ctx: click.Context,
    feature_type: Optional[str],
    region: Optional[str],
    min_capacity: Optional[float],
    min_surface_area: Optional[float],
    sort_by: str,
    sort_order: str,
    limit: int,
    offset: int,
) -> None:
    """List water features as JSON.

    Example:
      waterfeatures list --type DAM --min-capacity 1000000 --sort-by capacity
    """
    filters = FeatureFilter(
        category=feature_type,
        region=region,
        min_capacity=min_capacity,
        min_surface_area=min_surface_area,
        sort_field=sort_by,
        sort_direction=sort_order,
        limit=limit,
        offset=offset,
    )
    try:
        features = _service(ctx).list_features(filters)
    except EndpointError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _echo_json([f.model_dump(mode="json") for f in features])


@main.command()
@click.argument("feature_id")
@click.pass_context
def get(ctx: click.Context, feature_id: str) -> None:
    """Show one water feature by Wikidata ID (e.g. Q1234)."""
    try:
        feature = _service(ctx).get_by_id(feature_id)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="FEATURE_ID") from e
    except EndpointError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if feature is None:
        click.echo(f"No water feature found for {feature_id}", err=True)
        sys.exit(1)
    _echo_json(feature.model_dump(mode="json"))


@main.command()
@click.pass_context
def preload(ctx: click.Context) -> None:
    """Load every feature type once and report counts."""
    loaded = _service(ctx).preload_all()
    for feature_type in FeatureType:
        if feature_type in loaded:
            click.echo(f"{feature_type.value:<10} {loaded[feature_type]}")
        else:
            click.echo(f"{feature_type.value:<10} failed")
    if len(loaded) < len(FeatureType):
        sys.exit(1)


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", type=int, default=Config.PORT, show_default=True)
@click.option("--debug", is_flag=True, help="Run Flask in debug mode")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, debug: bool) -> None:
    """Run the HTTP API."""
    from .backend.app import create_app

    class _Config(Config):
        SPARQL_ENDPOINT = ctx.obj["endpoint"]

    app = create_app(_Config)
    click.echo(f"Water features API listening on http://{host}:{port}/api/features/")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
