"""Table order synchronization engine and reference order service."""

__version__ = "0.1.0"
