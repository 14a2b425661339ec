#!/usr/bin/env python3
"""
Main CLI Entry Point for edgesteer.

Provides command-line tools for inspecting a CDN edge pool:
- Discover and probe edges, showing distance, latency and the chosen edge
- Rewrite a playlist or segment URI for the chosen edge
"""

import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from edgesteer.core.config import EdgeSteerSettings
from edgesteer.core.errors import EdgeSteerError
from edgesteer.core.logging import configure_logging
from edgesteer.core.registry import Edge
from edgesteer.core.session import EdgeSteeringSession
from edgesteer.core.transport import AiohttpTransport, HeadlessPlayer

console = Console()


def load_settings(
    config: str | None,
    discovery_url: str | None,
    auth_refresh_url: str | None = None,
) -> EdgeSteerSettings:
    """Settings from an optional JSON file, with command-line overrides."""
    settings = EdgeSteerSettings()
    if config:
        try:
            settings = EdgeSteerSettings.from_mapping(
                json.loads(Path(config).read_text())
            )
        except ValueError as e:
            raise click.UsageError(f"Invalid configuration file {config}: {e}") from e
    overrides: dict[str, str] = {}
    if discovery_url:
        overrides["discovery_url"] = discovery_url
    if auth_refresh_url:
        overrides["auth_refresh_url"] = auth_refresh_url
    if overrides:
        settings = replace(settings, **overrides)
    if not settings.discovery_url:
        raise click.UsageError("A discovery URL is required (--discovery-url or config)")
    return settings


def setup_logging(ctx: click.Context, settings: EdgeSteerSettings) -> None:
    """Apply the settings' log level and scopes; ``--verbose`` wins."""
    configure_logging(settings, verbose=ctx.obj["verbose"], colorize=True)


def _format_optional(value: float | None, unit: str) -> str:
    if value is None:
        return "[dim]-[/dim]"
    return f"{value:.1f}{unit}"


def display_edges(edges: list[Edge], selected: Edge | None) -> None:
    """Display edges in geographic order in a rich table."""
    table = Table(title="CDN Edges")

    table.add_column("Hostname", style="cyan", no_wrap=True)
    table.add_column("Country", style="magenta")
    table.add_column("Distance", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Status", justify="center")

    for edge in edges:
        status = "[green]alive[/green]" if edge.is_alive else "[red]dead[/red]"
        if edge is selected:
            status = "[bold green]selected[/bold green]"
        country = edge.datacenter.country_code if edge.datacenter else None
        table.add_row(
            edge.hostname,
            country or "[dim]?[/dim]",
            _format_optional(edge.client_distance_km, "km"),
            _format_optional(edge.latency_ms, "ms"),
            status,
        )

    console.print(table)


def edges_as_json(edges: list[Edge], selected: Edge | None) -> str:
    return json.dumps(
        {
            "selected": selected.hostname if selected else None,
            "edges": [
                {
                    "hostname": edge.hostname,
                    "country_code": (
                        edge.datacenter.country_code if edge.datacenter else None
                    ),
                    "client_distance_km": edge.client_distance_km,
                    "latency_ms": edge.latency_ms,
                }
                for edge in edges
            ],
        },
        indent=2,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """
    Edgesteer CDN edge steering tools.

    Discover the edge pool, probe every edge, and show which edge a player
    would be steered to.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--discovery-url", "-d", help="Edge discovery endpoint")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def probe(ctx, discovery_url: str | None, config: str | None, output: str):
    """Discover and probe the edge pool."""
    settings = load_settings(config, discovery_url)
    setup_logging(ctx, settings)

    async def _probe():
        player = HeadlessPlayer(
            master_uri="",
            transport=AiohttpTransport(
                default_timeout=settings.probe_timeout_seconds
            ),
        )
        session = EdgeSteeringSession(settings=settings, player=player)
        try:
            summary = await session.discover()
            edges = session.selector.geo_order(session.registry)
            selected = session.select_edge()
        finally:
            await session.close()
            await player.close()

        if output == "json":
            click.echo(edges_as_json(edges, selected))
        else:
            display_edges(edges, selected)
            console.print(
                f"{summary.alive_edges}/{summary.total_edges} edges alive, "
                f"probed in {summary.duration_seconds:.2f}s"
            )
        return selected

    if asyncio.run(_probe()) is None:
        sys.exit(1)


@cli.command()
@click.argument("uri")
@click.option("--discovery-url", "-d", help="Edge discovery endpoint")
@click.option("--auth-refresh-url", help="Authorization signature endpoint")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option(
    "--master",
    "-m",
    help="Master playlist URI (enables segment rewriting with session tokens)",
)
@click.pass_context
def resolve(
    ctx,
    uri: str,
    discovery_url: str | None,
    auth_refresh_url: str | None,
    config: str | None,
    master: str | None,
):
    """Rewrite URI for the best edge."""
    settings = load_settings(config, discovery_url, auth_refresh_url)
    setup_logging(ctx, settings)

    async def _resolve():
        player = HeadlessPlayer(master_uri=master or uri)
        session = EdgeSteeringSession(settings=settings, player=player)
        session.attach()
        try:
            await session.discover()
            if master:
                resolved = await session.resolve_segment_uri(uri)
            else:
                resolved = session.resolve_playlist_uri(uri)
            await session.failover.wait_for_refresh()
        finally:
            await session.close()
            await player.close()

        if resolved == uri:
            logger.info("No usable edge; URI left unchanged")
        click.echo(resolved)

    asyncio.run(_resolve())


def main():
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except EdgeSteerError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
