"""Query model and query lifecycle engine for the data visualizer."""

__version__ = "0.1.0"
