"""
Transfer Status Types

Design Decision: Delivering Status Across Threads
=================================================

Options Considered:
1. Call the sink directly from the worker thread
   - Simple
   - Sink must be thread-safe (UI toolkits usually are not)

2. Shared mutable fields polled by the caller
   - Racy, easy to miss intermediate states

3. Dispatcher that marshals each delivery onto the sink's thread
   - Ordered, no shared mutable state
   - Caller picks the mechanism that fits its main loop

Decision: Pluggable dispatchers
- DirectDispatcher: inline call, for thread-safe sinks
- QueueDispatcher: FIFO queue pumped by the caller's thread (CLI)
- LoopDispatcher: asyncio loop.call_soon_threadsafe
"""

import asyncio
import logging
import queue
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ..bluetooth.adapter import PeerHandle
from ..errors import ConnectCause

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Transfer session states."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TRANSFERRING = "transferring"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SUCCEEDED, SessionState.FAILED,
                        SessionState.CANCELLED)


class FailureReason(Enum):
    """Why a transfer ended in FAILED."""
    CONNECT_ERROR = "connect_error"
    SOURCE_READ_ERROR = "source_read_error"
    TRANSPORT_WRITE_ERROR = "transport_write_error"


@dataclass(frozen=True)
class ErrorInfo:
    """Failure detail carried on the terminal FAILED status."""
    reason: FailureReason
    message: str = ''
    cause: Optional[ConnectCause] = None

    def describe(self) -> str:
        """Human-readable failure line."""
        kind = self.reason.value.replace('_', ' ')
        if self.cause is not None:
            kind = f"{kind} ({self.cause.value.replace('_', ' ')})"
        return f"{kind}: {self.message}" if self.message else kind


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted once per chunk written."""
    bytes_transferred: int
    chunk_bytes: int
    total_bytes: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def progress_percent(self) -> Optional[float]:
        """Progress as percentage, or None when the size is unknown."""
        if not self.total_bytes:
            return None
        return min(100.0, self.bytes_transferred * 100 / self.total_bytes)


@dataclass(frozen=True)
class TransferResult:
    """Outcome of one FileStreamer run."""
    bytes_transferred: int
    error: Optional[ErrorInfo] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session for the caller's thread."""
    state: SessionState
    peer: Optional[PeerHandle]
    bytes_transferred: int = 0
    error: Optional[ErrorInfo] = None


@dataclass(frozen=True)
class StatusUpdate:
    """One delivery to a status sink."""
    state: SessionState
    progress: Optional[ProgressEvent] = None
    error: Optional[ErrorInfo] = None
    message: str = ''


class StatusSink(ABC):
    """
    Receives status transitions and progress.

    Subclass and override on_status, or wrap a function with CallbackSink.
    """

    @abstractmethod
    def on_status(self, state: SessionState,
                  progress: Optional[ProgressEvent] = None,
                  error: Optional[ErrorInfo] = None,
                  message: str = ''):
        """Called once per transition and once per progress event."""


class CallbackSink(StatusSink):
    """Adapts a callable taking a StatusUpdate."""

    def __init__(self, callback: Callable[[StatusUpdate], None]):
        self.callback = callback

    def on_status(self, state, progress=None, error=None, message=''):
        self.callback(StatusUpdate(state, progress, error, message))


# Dispatcher: takes a zero-argument callable and runs it on the sink's thread
Dispatcher = Callable[[Callable[[], None]], None]


class DirectDispatcher:
    """Runs deliveries inline on the producing thread."""

    def __call__(self, fn: Callable[[], None]):
        fn()


class QueueDispatcher:
    """
    Queues deliveries for the consuming thread.

    The worker enqueues; the primary thread calls pump() from its own
    loop. FIFO order is the order the worker produced them.
    """

    def __init__(self):
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()
        # Delivery cut short by KeyboardInterrupt; runs first on the next pump
        self._interrupted: Optional[Callable[[], None]] = None

    def __call__(self, fn: Callable[[], None]):
        self._queue.put(fn)

    def pump(self, timeout: Optional[float] = None) -> int:
        """
        Run pending deliveries on the calling thread.

        Waits up to timeout for the first one, then drains whatever is
        queued without blocking. If the caller is interrupted mid-delivery,
        that delivery is kept and retried on the next pump.

        Returns:
            Number of deliveries run
        """
        count = 0
        fn, self._interrupted = self._interrupted, None
        if fn is None:
            try:
                fn = self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
            except queue.Empty:
                return 0

        while True:
            try:
                fn()
            except Exception as e:
                logger.error(f"Status sink raised: {e}")
            except KeyboardInterrupt:
                self._interrupted = fn
                raise
            count += 1
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return count

    @property
    def pending(self) -> int:
        return self._queue.qsize() + (self._interrupted is not None)


class LoopDispatcher:
    """Schedules deliveries on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def __call__(self, fn: Callable[[], None]):
        self.loop.call_soon_threadsafe(fn)
