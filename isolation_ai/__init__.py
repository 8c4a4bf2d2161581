"""Isolation AI: search engine and HTTP service for the Isolation board game."""

__version__ = "1.0.0"
