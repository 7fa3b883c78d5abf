"""Content-addressed storage for rendered diagrams.

The enhancer only needs ``get``/``set``; callers decide where entries
live.  ``MemoryCache`` keeps them for the lifetime of a session,
``FileCache`` persists them as one file per key so repeated CLI runs
skip already rendered diagrams.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import MutableMapping, Protocol, runtime_checkable

from .models import BlockInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class DiagramCache(Protocol):
    """Minimal key/value interface used by the enhancer."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


def compute_checksum(text: str) -> str:
    """SHA-256 hex digest of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def cache_key(info: BlockInfo, code: str) -> str:
    """Key for a block: hash of its normalized info followed by its source.

    Attribute order does not matter; any attribute value change does.
    """
    payload = json.dumps(
        {"language": info.language, "attributes": info.attributes},
        sort_keys=True,
        default=str,
    )
    return compute_checksum(payload + code)


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------

class MemoryCache:
    """Dict-backed cache.  Pass an existing mapping to share it."""

    def __init__(self, store: MutableMapping[str, str] | None = None) -> None:
        self.store: MutableMapping[str, str] = store if store is not None else {}

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str) -> None:
        self.store[key] = value

    def __len__(self) -> int:
        return len(self.store)

    def __contains__(self, key: object) -> bool:
        return key in self.store


class FileCache:
    """Directory-backed cache storing each entry as ``<key>.html``."""

    def __init__(self, cache_dir: Path | str) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.html"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if path.exists() and path.stat().st_size > 0:
            return path.read_text(encoding="utf-8")
        return None

    def set(self, key: str, value: str) -> None:
        self._path(key).write_text(value, encoding="utf-8")

    def clear(self) -> int:
        """Delete every entry; returns the number removed."""
        removed = 0
        for path in self.cache_dir.glob("*.html"):
            path.unlink(missing_ok=True)
            removed += 1
        logger.info("Cleared %d cached diagram(s) from %s", removed, self.cache_dir)
        return removed

    def __len__(self) -> int:
        return sum(1 for _ in self.cache_dir.glob("*.html"))


def as_cache(cache: DiagramCache | MutableMapping[str, str]) -> DiagramCache:
    """Wrap a plain dict so it satisfies ``DiagramCache``."""
    if isinstance(cache, (MemoryCache, FileCache)):
        return cache
    if isinstance(cache, MutableMapping):
        return MemoryCache(cache)
    return cache
