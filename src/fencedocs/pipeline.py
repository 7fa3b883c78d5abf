"""Orchestration pipeline — ties parser, diagram enhancer and page output together."""

from __future__ import annotations

import asyncio
import html
from pathlib import Path

from rich.console import Console

from .core.cache import DiagramCache, MemoryCache
from .core.document import Document
from .core.models import EnhancerConfig, PipelineResult
from .core.parser import MarkdownParser
from .enhancers.fenced_diagrams import EXECUTOR_NAME, enhance

console = Console()

_MERMAID_JS = "https://cdn.jsdelivr.net/npm/mermaid@11/dist/mermaid.min.js"
_WAVEDROM_JS = "https://cdnjs.cloudflare.com/ajax/libs/wavedrom/3.5.0/wavedrom.min.js"
_WAVEDROM_SKIN_JS = "https://cdnjs.cloudflare.com/ajax/libs/wavedrom/3.5.0/skins/default.js"

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<script src="{mermaid_js}"></script>
<script src="{wavedrom_skin_js}"></script>
<script src="{wavedrom_js}"></script>
</head>
<body onload="WaveDrom.ProcessAll()">
{body}
<script>mermaid.initialize({{startOnLoad: true}});</script>
</body>
</html>
"""


class Pipeline:
    """Markdown file → standalone HTML page with rendered diagrams.

    Usage::

        pipeline = Pipeline(EnhancerConfig.from_env())
        result = pipeline.run("docs/architecture.md")
        print(result.output_path)

    The same *cache* is reused across runs, so calling :meth:`run`
    repeatedly only renders diagrams that changed.
    """

    def __init__(
        self,
        config: EnhancerConfig | None = None,
        cache: DiagramCache | None = None,
    ) -> None:
        self.config = config or EnhancerConfig.from_env()
        self.cache = cache if cache is not None else MemoryCache()
        self.parser = MarkdownParser()

    async def render(self, markdown: str, *, base_dir: Path | None = None) -> Document:
        """Parse *markdown* and render its diagram blocks."""
        config = self.config
        if base_dir is not None:
            config = config.model_copy(update={"file_directory_path": base_dir})
        doc = self.parser.parse(markdown)
        await enhance(doc, self.cache, config)
        return doc

    def run(
        self,
        source: str | Path,
        *,
        output_path: str | Path | None = None,
        title: str | None = None,
    ) -> PipelineResult:
        """Render *source* to an HTML page next to it (or at *output_path*)."""
        src = Path(source).resolve()
        out = Path(output_path).resolve() if output_path else src.with_suffix(".html")
        result = PipelineResult(source=str(src), output_path=out)

        console.print(f"[bold blue]📥 Reading[/] {src}")
        try:
            markdown = src.read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"[bold red]❌ Read failed:[/] {exc}")
            result.success = False
            result.error = str(exc)
            return result

        console.print("[bold blue]📐 Rendering diagrams...[/]")
        doc = asyncio.run(self.render(markdown, base_dir=src.parent))

        result.diagrams = sum(1 for b in doc.code_blocks() if b.executor == EXECUTOR_NAME)
        result.failures = len(doc.soup.select("pre.language-text"))
        console.print(
            f"[green]✓[/] {result.diagrams} diagram(s) rendered, "
            f"{result.failures} failure(s)"
        )

        page = PAGE_TEMPLATE.format(
            title=html.escape(title or src.stem),
            mermaid_js=_MERMAID_JS,
            wavedrom_js=_WAVEDROM_JS,
            wavedrom_skin_js=_WAVEDROM_SKIN_JS,
            body=doc.to_html(),
        )
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(page, encoding="utf-8")
        console.print(f"[bold green]🎉 Done![/] → {out}")
        return result
