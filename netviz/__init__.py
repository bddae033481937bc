"""NetViz topology analysis engine."""

__version__ = "1.0.0"
