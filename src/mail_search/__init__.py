"""Keyword search over a fixed corpus of email-like documents."""

__version__ = "0.1.0"
