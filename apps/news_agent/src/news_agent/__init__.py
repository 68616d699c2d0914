"""News Agent: feed ingestion and digest delivery service."""

__version__ = "1.0.0"
