"""fencedocs — render fenced diagram blocks in markdown documents."""

__version__ = "0.1.0"
