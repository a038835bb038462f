"""
CLI Interface - Command-line tools for Folioscope.

Provides commands for:
- Document extraction (PDF, images, text)
- PDF inspection
"""

from .main import app, main

__all__ = ["app", "main"]
