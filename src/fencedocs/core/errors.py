"""Exception types raised by fencedocs."""

from __future__ import annotations


class RenderError(Exception):
    """A diagram renderer failed (bad source, HTTP error, missing binary)."""


class BlockAttributeError(ValueError):
    """Malformed attribute text in a code fence info string."""
