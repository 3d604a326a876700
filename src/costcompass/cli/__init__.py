"""
CostCompass CLI Package

This package exposes the top-level Typer `app` so tests and the console
entrypoint can import `costcompass.cli.app`.
"""

from .main import app

__all__ = ["app"]
