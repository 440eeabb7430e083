"""Render a source tree or Git repository into a syntax-highlighted PDF."""

__version__ = "0.1.0"
