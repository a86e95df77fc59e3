"""Evidence-gated task tracking service."""

__version__ = "0.3.0"
