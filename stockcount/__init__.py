"""Daily stock counts, derived sales and summaries for a single shop."""

__version__ = "1.0.0"
