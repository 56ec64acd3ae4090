"""Command-line interface for meshtrace."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from meshtrace.endpoints import StaticEndpointResolver
from meshtrace.errors import ConfigLoadError
from meshtrace.loader import (
    load_clusters,
    load_document,
    load_mesh_config,
    load_metadata,
    load_proxy_config,
    load_telemetry,
)
from meshtrace.report import format_json, print_config
from meshtrace.resolver import TracingResolver
from meshtrace.settings import TracingSettings

app = typer.Typer(
    name="meshtrace",
    help="Resolve proxy tracing configuration from mesh, proxy and telemetry settings",
    add_completion=False,
)


def _parse_metadata(values: list[str]) -> dict[str, str]:
    metadata = {}
    for value in values:
        if "=" not in value:
            raise ConfigLoadError(f"metadata must be KEY=VALUE, got {value!r}")
        key, val = value.split("=", 1)
        metadata[key.strip()] = val.strip()
    return metadata


@app.command(name="resolve")
def resolve_cmd(
    mesh: Annotated[Path, typer.Argument(help="Mesh configuration file (YAML or JSON)")],
    proxy: Annotated[
        Optional[Path],
        typer.Option("--proxy", "-p", help="Proxy configuration file; defaults to the mesh defaultConfig"),
    ] = None,
    telemetry: Annotated[
        Optional[Path],
        typer.Option("--telemetry", "-t", help="Telemetry resource file"),
    ] = None,
    clusters: Annotated[
        Optional[Path],
        typer.Option("--clusters", "-c", help="Cluster table file for provider services"),
    ] = None,
    metadata: Annotated[
        Optional[list[str]],
        typer.Option("--metadata", "-m", help="Platform metadata as KEY=VALUE (repeatable)"),
    ] = None,
    sts_port: Annotated[
        str,
        typer.Option("--sts-port", help="Secure token service port of the proxy"),
    ] = "",
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (json, table)"),
    ] = "json",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log resolution details"),
    ] = False,
) -> None:
    """Resolve the tracing configuration for one workload."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )

    if format not in ("json", "table"):
        typer.echo(f"Error: Unknown format: {format}", err=True)
        raise typer.Exit(1)

    try:
        mesh_config = load_mesh_config(load_document(mesh))
        proxy_config = load_proxy_config(load_document(proxy)) if proxy else None
        directive = load_telemetry(load_document(telemetry)) if telemetry else None
        cluster_table = load_clusters(load_document(clusters)) if clusters else {}
        node_metadata = load_metadata(_parse_metadata(metadata or []), sts_port)
    except ConfigLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    resolver = TracingResolver(
        endpoints=StaticEndpointResolver(cluster_table),
        settings=TracingSettings.from_env(),
    )
    result = resolver.resolve(directive, mesh_config, proxy_config, metadata=node_metadata)

    if format == "table":
        print_config(result)
    else:
        typer.echo(format_json(result))


@app.command(name="providers")
def providers_cmd(
    mesh: Annotated[Path, typer.Argument(help="Mesh configuration file (YAML or JSON)")],
) -> None:
    """List the extension providers of a mesh configuration."""
    try:
        mesh_config = load_mesh_config(load_document(mesh))
    except ConfigLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    default = mesh_config.default_providers.tracing
    for definition in mesh_config.extension_providers:
        marker = " (default)" if definition.matches(default) else ""
        typer.echo(f"{definition.name}\t{definition.kind.value}{marker}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
