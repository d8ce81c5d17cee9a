"""Deduplicating build scheduler for disk-cached generated artifacts."""

__version__ = "0.1.0"
