"""Content ingestion and hybrid retrieval pipeline."""

__version__ = "0.1.0"
