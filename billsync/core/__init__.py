"""Core orchestration module for billsync."""

from .registry import RunRegistry
from .runner import SyncRunner

__all__ = [
    "RunRegistry",
    "SyncRunner",
]
