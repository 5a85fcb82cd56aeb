"""kbrag: knowledge ingestion and retrieval engine for grounded question answering."""

__version__ = "0.1.0"
