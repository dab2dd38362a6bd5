"""adpulse: ad-platform ingestion, normalization and analytics backend."""

__version__ = "0.1.0"
