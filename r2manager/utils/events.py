from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import asyncio
import inspect
import logging

from ..models import UploadStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Upload progress for one task, in percent."""
    destination_key: str
    percent: float
    completed_chunks: int
    total_chunks: int


@dataclass(frozen=True)
class RetryEvent:
    """A chunk attempt failed and will be retried."""
    destination_key: str
    attempt: int
    chunk_index: int
    error: str


@dataclass(frozen=True)
class StatusEvent:
    """An upload task changed state."""
    destination_key: str
    status: UploadStatus


@dataclass(frozen=True)
class TerminalEvent:
    """An upload task reached ``complete`` or ``failed``."""
    destination_key: str
    status: UploadStatus
    verified: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class TransferProgressEvent:
    """One more entry of a transfer batch succeeded."""
    key: str
    completed_count: int
    total_count: int


class EventEmitter:
    """Simple event emitter for upload, listing and transfer events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # listeners may unsubscribe while we iterate
                try:
                    outcome = callback(*args, **kwargs)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
