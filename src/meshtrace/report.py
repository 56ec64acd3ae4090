"""Console rendering of resolved tracing configuration."""

import json

from rich.console import Console
from rich.table import Table

from meshtrace.types import CustomTag, EnvironmentTag, LiteralTag, ResolvedTracingConfig


def format_json(config: ResolvedTracingConfig | None) -> str:
    """Render a resolved configuration as JSON; ``null`` when disabled."""
    if config is None:
        return "null"
    return json.dumps(config.to_dict(), indent=2)


def _describe_source(tag: CustomTag) -> tuple[str, str]:
    source = tag.source
    if isinstance(source, LiteralTag):
        return "literal", source.value
    kind = "environment" if isinstance(source, EnvironmentTag) else "header"
    detail = source.name
    if source.default_value:
        detail += f" (default: {source.default_value})"
    return kind, detail


def print_config(config: ResolvedTracingConfig | None, console: Console | None = None) -> None:
    """Print a resolved configuration as Rich tables."""
    console = console or Console()
    console.print()
    console.print("[bold]Tracing Configuration[/bold]")
    console.print("━" * 52)

    if config is None:
        console.print("[yellow]Tracing disabled[/yellow]")
        console.print()
        return

    summary = Table(show_header=False)
    summary.add_column("Setting", style="cyan")
    summary.add_column("Value")
    if config.provider is not None:
        summary.add_row("Provider", config.provider.name)
        summary.add_row("Type", config.provider.typed_config.type_url.rsplit(".", 1)[-1])
    else:
        summary.add_row("Provider", "[dim]none[/dim]")
    summary.add_row("Random sampling", f"{config.random_sampling:g}%")
    summary.add_row("Client sampling", f"{config.client_sampling:g}%")
    summary.add_row("Overall sampling", f"{config.overall_sampling:g}%")
    if config.max_path_tag_length is not None:
        summary.add_row("Max path tag length", str(config.max_path_tag_length))
    console.print(summary)

    if config.custom_tags:
        tags = Table(show_header=True, header_style="bold")
        tags.add_column("Tag", style="cyan")
        tags.add_column("Source")
        tags.add_column("Value")
        for tag in config.custom_tags:
            kind, detail = _describe_source(tag)
            tags.add_row(tag.tag, kind, detail)
        console.print(tags)

    console.print()
