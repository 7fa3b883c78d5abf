"""Document enhancers that post-process rendered markdown."""

from .fenced_diagrams import enhance

__all__ = ["enhance"]
