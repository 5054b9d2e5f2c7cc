"""flowgraph - host application layer (settings, logging, CLI) for the graph runtime."""

__version__ = "0.1.0"
