"""Firefly III transaction categorizer backed by OpenAI."""

__version__ = "1.0.0"
