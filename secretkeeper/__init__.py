"""Secretkeeper: store and view short secrets behind local or OAuth login."""

__version__ = "0.1.0"
