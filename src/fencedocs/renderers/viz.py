"""Render Graphviz (DOT) source to SVG with the ``graphviz`` package.

``graphviz.Source.pipe`` blocks on the ``dot`` family of executables,
so it runs in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging

import graphviz

from ..core.errors import RenderError

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = "dot"


def _pipe_svg(code: str, engine: str) -> str:
    try:
        return graphviz.Source(code, engine=engine).pipe(format="svg", encoding="utf-8")
    except graphviz.ExecutableNotFound as exc:
        raise RenderError("Graphviz executables not found on PATH") from exc
    except graphviz.CalledProcessError as exc:
        stderr = exc.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise RenderError(f"Graphviz ({engine}) failed: {(stderr or '').strip()}") from exc


async def render(code: str, engine: str = DEFAULT_ENGINE) -> str:
    """Lay out *code* with *engine* and return SVG text."""
    engine = engine or DEFAULT_ENGINE
    if engine not in graphviz.ENGINES:
        raise RenderError(
            f"Unknown Graphviz engine {engine!r}; expected one of {sorted(graphviz.ENGINES)}"
        )
    logger.debug("Rendering Graphviz diagram with engine %s", engine)
    svg = await asyncio.to_thread(_pipe_svg, code, engine)
    start = svg.find("<svg")
    return svg[start:] if start != -1 else svg
