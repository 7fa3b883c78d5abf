"""Pydantic models shared by the parser, the enhancer and the pipeline.

``BlockInfo`` is the normalized description of one fenced code block
(language + free-form attributes).  ``EnhancerConfig`` carries the
resolved rendering options.  ``DiagramKind`` is the closed set of
dispatch variants the diagram enhancer knows about.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


DEFAULT_KROKI_SERVER = "https://kroki.io"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DiagramKind(str, Enum):
    """Rendering strategies for fenced diagram blocks."""
    KROKI = "kroki"
    MERMAID = "mermaid"
    WAVEDROM = "wavedrom"
    PLANTUML = "plantuml"
    GRAPHVIZ = "graphviz"
    VEGA = "vega"
    VEGA_LITE = "vega-lite"


# Fence languages → kind, in the order they are documented
LANGUAGE_KINDS: dict[str, DiagramKind] = {
    "mermaid": DiagramKind.MERMAID,
    "puml": DiagramKind.PLANTUML,
    "plantuml": DiagramKind.PLANTUML,
    "wavedrom": DiagramKind.WAVEDROM,
    "graphviz": DiagramKind.GRAPHVIZ,
    "viz": DiagramKind.GRAPHVIZ,
    "dot": DiagramKind.GRAPHVIZ,
    "vega": DiagramKind.VEGA,
    "vega-lite": DiagramKind.VEGA_LITE,
}

SUPPORTED_LANGUAGES = tuple(LANGUAGE_KINDS)


# ---------------------------------------------------------------------------
# Block info
# ---------------------------------------------------------------------------

class BlockInfo(BaseModel):
    """Language tag and attributes of a fenced code block."""
    language: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_kroki(self) -> bool:
        return bool(self.attributes.get("kroki"))

    def attr_is(self, key: str, value: bool) -> bool:
        """Strict boolean comparison, ``"true"`` is not ``True``."""
        return self.attributes.get(key) is value


def classify(info: BlockInfo) -> DiagramKind | None:
    """Map a block to the renderer that handles it, or *None*."""
    if info.is_kroki:
        return DiagramKind.KROKI
    return LANGUAGE_KINDS.get(info.language)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class EnhancerConfig(BaseModel):
    """Resolved options for the diagram enhancer."""
    file_directory_path: Path = Field(default_factory=Path.cwd)
    image_directory_path: Optional[Path] = Field(
        default=None,
        description="Reserved for renderers that write image files; nothing writes there yet.",
    )
    plantuml_server: str = ""
    plantuml_jar_path: str = ""
    kroki_server: str = DEFAULT_KROKI_SERVER

    @classmethod
    def from_env(cls, **overrides: Any) -> EnhancerConfig:
        """Build a config from ``PLANTUML_SERVER``, ``PLANTUML_JAR`` and
        ``KROKI_SERVER``; explicit *overrides* that are not *None* win.
        """
        values: dict[str, Any] = {
            "plantuml_server": os.environ.get("PLANTUML_SERVER", ""),
            "plantuml_jar_path": os.environ.get("PLANTUML_JAR", ""),
            "kroki_server": os.environ.get("KROKI_SERVER", "") or DEFAULT_KROKI_SERVER,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# ---------------------------------------------------------------------------
# Pipeline result
# ---------------------------------------------------------------------------

class PipelineResult(BaseModel):
    """Outcome of one markdown → HTML run."""
    source: str = ""
    output_path: Optional[Path] = None
    diagrams: int = 0
    failures: int = 0
    success: bool = True
    error: Optional[str] = None
