"""Render fenced diagram blocks (mermaid, PlantUML, Graphviz, Vega, WaveDrom, Kroki).

Each eligible ``<pre data-role="codeBlock">`` is claimed, rendered
concurrently with the others, and the resulting HTML fragment is
inserted next to it.  Server-side renders are cached by a hash of the
block info and source, so unchanged diagrams are not rendered twice.

Blocks are left alone when another enhancer already claimed them,
when ``literate``/``literal``/``cmd`` is ``false``, or when the
language is not a diagram language and no ``kroki`` attribute is set.
"""

from __future__ import annotations

import asyncio
import html
import json
import logging
from typing import Any, Awaitable, Callable, MutableMapping

from ..core.block_info import ensure_class_in_attributes, open_tag
from ..core.cache import DiagramCache, as_cache, cache_key
from ..core.document import CodeBlockElement, Document
from ..core.models import BlockInfo, DiagramKind, EnhancerConfig, classify
from ..renderers import kroki, puml, vega, viz

logger = logging.getLogger(__name__)

EXECUTOR_NAME = "fenced-diagrams"

_OPT_OUT_ATTRIBUTES = ("literate", "literal", "cmd")


# ---------------------------------------------------------------------------
# Fragment helpers
# ---------------------------------------------------------------------------

def _classed(info: BlockInfo) -> dict[str, Any]:
    return ensure_class_in_attributes(info.attributes, info.language)


def error_fragment(exc: BaseException) -> str:
    return f'<pre class="language-text">{html.escape(str(exc))}</pre>'


def hidden_code(payload: str, info: BlockInfo) -> str:
    return f'{open_tag("p", _classed(info))}<span style="display: none">{payload}</span></p>'


def _svg_fragment(svg: str, info: BlockInfo) -> str:
    return f"{open_tag('p', info.attributes)}{svg}</p>"


async def _cached(cache: DiagramCache, key: str, produce: Callable[[], Awaitable[str]]) -> str:
    svg = cache.get(key)
    if not svg:
        svg = await produce()
        cache.set(key, svg)
    return svg


# ---------------------------------------------------------------------------
# Per-kind renderers
# ---------------------------------------------------------------------------

async def _render_kroki(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    # only a URL is built here, so nothing is cached
    output_format = info.attributes.get("output")
    if not isinstance(output_format, str) or not output_format:
        output_format = None

    url = kroki.diagram_url(
        code,
        kroki.diagram_type(info),
        output_format,
        config.kroki_server,
    )
    return (
        f'{open_tag("div", _classed(info))}'
        f'<img src="{html.escape(url, quote=True)}" alt="{html.escape(info.language)} diagram">'
        f"</div>"
    )


async def _render_mermaid(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    # rendered on the client
    return f'{open_tag("div", _classed(info))}{html.escape(code)}</div>'


async def _render_wavedrom(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    # also client side, but through a <script> tag
    return f'{open_tag("div", _classed(info))}<script type="WaveDrom">{code}</script></div>'


async def _render_plantuml(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    svg = await _cached(
        cache,
        key,
        lambda: puml.render(
            code,
            config.file_directory_path,
            config.plantuml_server,
            config.plantuml_jar_path,
        ),
    )
    return _svg_fragment(svg, info)


async def _render_graphviz(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    engine = info.attributes.get("engine") or viz.DEFAULT_ENGINE
    svg = await _cached(cache, key, lambda: viz.render(code, engine=str(engine)))
    return _svg_fragment(svg, info)


async def _render_vega(
    info: BlockInfo, code: str, key: str, cache: DiagramCache, config: EnhancerConfig,
) -> str:
    if info.attr_is("interactive", True):
        spec = vega.load_spec(code)
        return hidden_code(json.dumps(spec).replace("<", "&lt;"), info)

    compile_svg = vega.to_svg if info.language == "vega" else vega.lite_to_svg
    svg = await _cached(
        cache,
        key,
        lambda: compile_svg(code, config.file_directory_path, config.kroki_server),
    )
    return _svg_fragment(svg, info)


_RENDERERS = {
    DiagramKind.KROKI: _render_kroki,
    DiagramKind.MERMAID: _render_mermaid,
    DiagramKind.WAVEDROM: _render_wavedrom,
    DiagramKind.PLANTUML: _render_plantuml,
    DiagramKind.GRAPHVIZ: _render_graphviz,
    DiagramKind.VEGA: _render_vega,
    DiagramKind.VEGA_LITE: _render_vega,
}


# ---------------------------------------------------------------------------
# Block handling
# ---------------------------------------------------------------------------

def is_eligible(block: CodeBlockElement) -> bool:
    """Whether this enhancer should claim *block*."""
    if block.executor:
        return False
    info = block.info
    if any(info.attr_is(name, False) for name in _OPT_OUT_ATTRIBUTES):
        return False
    return classify(info) is not None


async def render_diagram(
    block: CodeBlockElement,
    cache: DiagramCache,
    config: EnhancerConfig,
) -> None:
    """Render one claimed block and splice the result into the document.

    Renderer failures are shown in place of the diagram, never raised.
    """
    info = block.info
    code = block.code
    kind = classify(info)
    key = cache_key(info, code)

    try:
        output = await _RENDERERS[kind](info, code, key, cache, config)
    except Exception as exc:
        logger.warning("Failed to render %s diagram: %s", kind.value, exc)
        output = error_fragment(exc)

    if info.attr_is("output_first", True):
        block.insert_before(output)
    else:
        block.insert_after(output)

    if not info.attr_is("hide", False) and not info.attr_is("code_block", True):
        block.hidden = True


async def enhance(
    document: Document,
    cache: DiagramCache | MutableMapping[str, str],
    config: EnhancerConfig,
) -> None:
    """Render every diagram block of *document* in place.

    *cache* may be any ``DiagramCache`` or a plain dict; it is filled
    with new renders and never pruned.
    """
    store = as_cache(cache)
    pending = []
    for block in document.code_blocks():
        if not is_eligible(block):
            continue
        block.executor = EXECUTOR_NAME
        pending.append(render_diagram(block, store, config))

    if pending:
        logger.debug("Rendering %d diagram block(s)", len(pending))
        await asyncio.gather(*pending)
