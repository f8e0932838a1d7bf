"""Live football odds/statistics ingestion, validation and late-goal scoring."""

__version__ = "0.1.0"
