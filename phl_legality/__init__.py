"""Pioneer Highlander deck legality: catalog ingestion and rule engine."""

__version__ = "0.3.0"
