"""CLI commands package."""

from .base import BaseCommand
from .preview import preview
from .serve import serve
from .sync import sync

__all__ = [
    "BaseCommand",
    "preview",
    "serve",
    "sync",
]
