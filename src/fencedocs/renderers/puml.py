"""Render PlantUML source to SVG.

Two backends are supported:

1. **PlantUML server** – used when a server URL is configured.  The
   source is encoded with PlantUML's own base64 alphabet and fetched
   from ``{server}/svg/{encoded}``.

2. **Local jar / executable** – ``java -jar plantuml.jar -pipe -tsvg``
   (or a ``plantuml`` wrapper script found on ``PATH``), run with the
   markdown file's directory as working directory so ``!include``
   paths resolve.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import zlib
from pathlib import Path

import httpx

from ..core.errors import RenderError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_REQUEST_TIMEOUT = 30.0
_PROCESS_TIMEOUT = 30.0

# PlantUML's URL alphabet (not RFC 4648)
_PLANTUML_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def encode_plantuml(source: str) -> str:
    """Raw-deflate *source* and encode it with the PlantUML alphabet."""
    data = zlib.compress(source.encode("utf-8"), level=9)[2:-4]
    result: list[str] = []
    for i in range(0, len(data), 3):
        chunk = data[i : i + 3]
        b1 = chunk[0]
        b2 = chunk[1] if len(chunk) > 1 else 0
        b3 = chunk[2] if len(chunk) > 2 else 0
        result.append(_PLANTUML_ALPHABET[b1 >> 2])
        result.append(_PLANTUML_ALPHABET[((b1 & 0x3) << 4) | (b2 >> 4)])
        if len(chunk) > 1:
            result.append(_PLANTUML_ALPHABET[((b2 & 0xF) << 2) | (b3 >> 6)])
        if len(chunk) > 2:
            result.append(_PLANTUML_ALPHABET[b3 & 0x3F])
    return "".join(result)


def prepare_source(code: str) -> str:
    """Wrap shorthand blocks that omit ``@startuml``/``@enduml``."""
    normalized = code.replace("\r\n", "\n").strip("\n")
    if not normalized:
        return "@startuml\n@enduml\n"
    has_start = any(
        line.strip().lower().startswith("@start")
        for line in normalized.splitlines()
    )
    if has_start:
        return normalized + "\n"
    return f"@startuml\n{normalized}\n@enduml\n"


def _extract_svg(text: str) -> str:
    """Drop any XML prolog so the SVG can be inlined."""
    start = text.find("<svg")
    if start == -1:
        raise RenderError("PlantUML did not return SVG output")
    return text[start:].strip()


def _local_command(plantuml_jar_path: str) -> list[str]:
    if plantuml_jar_path:
        if not Path(plantuml_jar_path).is_file():
            raise RenderError(f"plantuml.jar not found at {plantuml_jar_path}")
        if shutil.which("java") is None:
            raise RenderError("Java runtime not found in PATH")
        return ["java", "-Djava.awt.headless=true", "-jar", plantuml_jar_path]

    executable = shutil.which("plantuml")
    if executable is None:
        raise RenderError(
            "PlantUML is not configured: set a PlantUML server URL or jar path"
        )
    return [executable]


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

async def _render_server(content: str, server_url: str) -> str:
    url = f"{server_url.rstrip('/')}/svg/{encode_plantuml(content)}"
    try:
        async with httpx.AsyncClient(timeout=_REQUEST_TIMEOUT, follow_redirects=True) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise RenderError(f"PlantUML server request failed: {exc}") from exc
    return _extract_svg(resp.text)


async def _render_local(
    content: str, file_directory_path: Path | str | None, plantuml_jar_path: str,
) -> str:
    cmd = _local_command(plantuml_jar_path)
    cmd.extend(["-pipe", "-tsvg", "-charset", "UTF-8"])

    cwd = None
    if file_directory_path and Path(file_directory_path).is_dir():
        cwd = str(file_directory_path)

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as exc:
        raise RenderError(f"Failed to start PlantUML: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(content.encode("utf-8")), timeout=_PROCESS_TIMEOUT,
        )
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise RenderError("PlantUML render timed out") from exc

    if proc.returncode != 0:
        details = stderr.decode("utf-8", errors="replace").strip()
        raise RenderError(f"PlantUML exited with {proc.returncode}: {details[:500]}")
    return _extract_svg(stdout.decode("utf-8", errors="replace"))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def render(
    content: str,
    file_directory_path: Path | str | None = None,
    server_url: str = "",
    plantuml_jar_path: str = "",
) -> str:
    """Render PlantUML *content* and return SVG text.

    Raises ``RenderError`` when neither backend can produce a diagram.
    """
    source = prepare_source(content)
    if server_url:
        logger.debug("Rendering PlantUML via server %s", server_url)
        return await _render_server(source, server_url)
    logger.debug("Rendering PlantUML locally")
    return await _render_local(source, file_directory_path, plantuml_jar_path)
