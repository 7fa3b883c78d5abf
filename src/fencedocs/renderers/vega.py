"""Compile Vega and Vega-Lite specs to SVG.

Specs may be written in JSON or YAML: anything that does not start
with ``{`` is parsed as YAML.  Compilation is delegated to a Kroki
server (``POST {server}/vega/svg`` or ``/vegalite/svg``), so local
data files referenced by a relative ``data.url`` are inlined as
``values`` before the spec leaves the machine.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import yaml

from ..core.errors import RenderError
from ..core.models import DEFAULT_KROKI_SERVER

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Spec handling
# ---------------------------------------------------------------------------

def load_spec(text: str) -> Any:
    """Parse a spec written as JSON or YAML."""
    raw = text.strip()
    if not raw:
        raise RenderError("Empty Vega specification")
    if raw[0] != "{":
        return yaml.safe_load(raw)
    return json.loads(raw)


def _is_relative(url: str) -> bool:
    return not urlparse(url).scheme and not url.startswith("/")


def _inline_data(data: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    url = data.get("url")
    if not isinstance(url, str) or not _is_relative(url):
        return data
    root = base_dir.resolve()
    path = (root / url).resolve()
    # inlined files are sent to the Kroki server
    if not path.is_relative_to(root):
        logger.warning("Data file %s is outside %s; leaving url as is", url, root)
        return data
    if not path.is_file():
        logger.debug("Data file %s not found; leaving url as is", path)
        return data

    inlined = {k: v for k, v in data.items() if k != "url"}
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower().lstrip(".")
    if suffix == "json" and "format" not in data:
        inlined["values"] = json.loads(text)
    else:
        inlined["values"] = text
        inlined.setdefault("format", {"type": suffix or "csv"})
    return inlined


def inline_local_data(node: Any, base_dir: Path) -> Any:
    """Replace relative ``data.url`` references with the file contents."""
    if isinstance(node, list):
        return [inline_local_data(item, base_dir) for item in node]
    if not isinstance(node, dict):
        return node

    resolved: dict[str, Any] = {}
    for key, value in node.items():
        if key == "data":
            if isinstance(value, list):
                value = [
                    _inline_data(v, base_dir) if isinstance(v, dict) else v
                    for v in value
                ]
            elif isinstance(value, dict):
                value = _inline_data(value, base_dir)
        resolved[key] = inline_local_data(value, base_dir)
    return resolved


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

async def _compile(
    kind: str,
    code: str,
    file_directory_path: Path | str | None,
    server: str | None,
) -> str:
    spec = load_spec(code)
    if not isinstance(spec, dict):
        raise RenderError("Vega specification must be an object")
    if file_directory_path:
        spec = inline_local_data(spec, Path(file_directory_path))

    url = f"{(server or DEFAULT_KROKI_SERVER).rstrip('/')}/{kind}/svg"
    try:
        async with httpx.AsyncClient(timeout=_REQUEST_TIMEOUT, follow_redirects=True) as client:
            resp = await client.post(
                url,
                content=json.dumps(spec).encode("utf-8"),
                headers={"Content-Type": "text/plain"},
            )
    except httpx.HTTPError as exc:
        raise RenderError(f"{kind} compilation request failed: {exc}") from exc

    if resp.status_code != 200:
        error_msg = resp.text[:500] if resp.text else f"HTTP {resp.status_code}"
        raise RenderError(f"{kind} compilation failed: {error_msg}")
    return resp.text


async def to_svg(
    code: str,
    file_directory_path: Path | str | None = None,
    server: str | None = None,
) -> str:
    """Compile a Vega spec to SVG."""
    logger.debug("Compiling Vega spec")
    return await _compile("vega", code, file_directory_path, server)


async def lite_to_svg(
    code: str,
    file_directory_path: Path | str | None = None,
    server: str | None = None,
) -> str:
    """Compile a Vega-Lite spec to SVG."""
    logger.debug("Compiling Vega-Lite spec")
    return await _compile("vegalite", code, file_directory_path, server)
