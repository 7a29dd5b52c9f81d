"""Portfolio — personal content hosting backend."""

__version__ = "0.3.0"
