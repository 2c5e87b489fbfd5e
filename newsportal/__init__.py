"""News Portal backend: configuration, database lifecycle and record types."""

__version__ = "1.0.0"
