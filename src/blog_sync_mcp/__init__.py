"""Markdown blog synchronization with a GitHub-hosted static site."""

__version__ = "0.3.0"
