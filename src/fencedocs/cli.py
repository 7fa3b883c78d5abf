"""fencedocs CLI — render markdown files with their diagram blocks."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from .core.cache import FileCache, MemoryCache
from .core.models import DEFAULT_KROKI_SERVER, EnhancerConfig
from .pipeline import Pipeline
from .renderers import kroki

console = Console()


@click.group()
@click.version_option(version="0.1.0", prog_name="fencedocs")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def main(verbose: bool):
    """fencedocs — render mermaid, PlantUML, Graphviz, Vega and Kroki blocks in markdown."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-o", "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output HTML file (default: SOURCE with .html suffix).",
)
@click.option(
    "--plantuml-server",
    envvar="PLANTUML_SERVER",
    default="",
    help="PlantUML server URL (or set PLANTUML_SERVER env var).",
)
@click.option(
    "--plantuml-jar",
    envvar="PLANTUML_JAR",
    default="",
    help="Path to plantuml.jar (or set PLANTUML_JAR env var).",
)
@click.option(
    "--kroki-server",
    envvar="KROKI_SERVER",
    default=DEFAULT_KROKI_SERVER,
    show_default=True,
    help="Kroki server used by blocks with a kroki attribute.",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Persist rendered diagrams in this directory.",
)
@click.option(
    "--clear-cache",
    is_flag=True,
    default=False,
    help="Empty --cache-dir before rendering.",
)
def render(
    source: str,
    output_path: str | None,
    plantuml_server: str,
    plantuml_jar: str,
    kroki_server: str,
    cache_dir: str | None,
    clear_cache: bool,
):
    """Render SOURCE markdown to a standalone HTML page."""
    config = EnhancerConfig(
        file_directory_path=Path(source).resolve().parent,
        plantuml_server=plantuml_server,
        plantuml_jar_path=plantuml_jar,
        kroki_server=kroki_server,
    )

    if cache_dir:
        cache = FileCache(cache_dir)
        if clear_cache:
            cache.clear()
    else:
        cache = MemoryCache()

    result = Pipeline(config=config, cache=cache).run(source, output_path=output_path)
    if not result.success:
        raise SystemExit(1)


@main.command("kroki-url")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("-t", "--type", "diagram_type", required=True, help="Kroki diagram type (e.g. plantuml).")
@click.option("-f", "--format", "output_format", default="svg", show_default=True)
@click.option("--kroki-server", envvar="KROKI_SERVER", default=DEFAULT_KROKI_SERVER)
def kroki_url(source: str, diagram_type: str, output_format: str, kroki_server: str):
    """Print the Kroki GET URL for the diagram in SOURCE."""
    code = Path(source).read_text(encoding="utf-8")
    click.echo(kroki.diagram_url(code, diagram_type, output_format, kroki_server))


if __name__ == "__main__":
    main()
