"""Utilities for r2manager."""
from .events import (
    EventEmitter,
    ProgressEvent,
    RetryEvent,
    StatusEvent,
    TerminalEvent,
    TransferProgressEvent,
)

__all__ = [
    "EventEmitter",
    "ProgressEvent",
    "RetryEvent",
    "StatusEvent",
    "TerminalEvent",
    "TransferProgressEvent",
]
