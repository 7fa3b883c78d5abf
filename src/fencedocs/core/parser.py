"""Markdown → :class:`Document` parser.

Uses *mistune 3.x* to render HTML.  Fenced code blocks are emitted as
``<pre data-role="codeBlock" data-info="...">`` containers so the
enhancers can find them and read the raw fence info string.
"""

from __future__ import annotations

import html
from typing import Any

import mistune

from .document import CODE_BLOCK_ROLE, Document


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class FenceRenderer(mistune.HTMLRenderer):
    """HTML renderer that keeps the full fence info string on code blocks."""

    def block_code(self, code: str, info: Any = None) -> str:
        attrs = f' data-role="{CODE_BLOCK_ROLE}"'
        code_attrs = ""
        if info:
            info = str(info).strip()
            attrs += f' data-info="{html.escape(info, quote=True)}"'
            language = info.split(None, 1)[0].split("{", 1)[0]
            if language:
                code_attrs = f' class="language-{html.escape(language, quote=True)}"'
        return f"<pre{attrs}><code{code_attrs}>{html.escape(code)}</code></pre>\n"


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class MarkdownParser:
    """Parse raw Markdown into a :class:`Document`."""

    def __init__(self) -> None:
        self._md = mistune.create_markdown(
            renderer=FenceRenderer(),
            plugins=["table", "strikethrough"],
        )

    def render(self, markdown: str) -> str:
        """Return the HTML body for *markdown*."""
        return self._md(markdown)  # type: ignore[return-value]

    def parse(self, markdown: str) -> Document:
        return Document(self.render(markdown))
