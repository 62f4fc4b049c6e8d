"""
Transfer Session

Design Decision: Session Orchestration
======================================

Options Considered:
1. A connect thread that spawns a transfer thread
   - Handoff through object references passed between threads
   - Hard to tell which thread owns the socket at any moment

2. asyncio with run_in_executor for every blocking call
   - Ties the core to an event loop the caller may not run

3. One worker thread per session driving an explicit state machine
   - Handoff is a state transition, not a shared reference
   - The session is the only owner of the channel

Decision: Explicit state machine with one worker thread

State Machine:
```
IDLE -> CONNECTING -> CONNECTED -> TRANSFERRING -> SUCCEEDED
           |              |              |      +-> FAILED
           |              |              |
           +--------------+--------------+-------> CANCELLED / FAILED
```

Cancellation closes the channel from the caller's thread. The blocked
connect/write in the worker then errors out; since the session is
already CANCELLED, that error is absorbed and the sink sees exactly one
terminal status.

Status updates are queued while the session lock is held and handed to
the dispatcher only after it is released. A slow sink therefore delays
other deliveries but never cancel().
"""

import logging
import threading
from collections import deque
from typing import Dict, Optional, Set

from ..bluetooth.adapter import PeerHandle
from ..bluetooth.sdp import ServiceIdentifier
from ..channel.base import StreamChannel
from ..errors import ConnectError, PreconditionError
from .connector import Connector
from .status import (
    DirectDispatcher, Dispatcher, ErrorInfo, FailureReason, ProgressEvent,
    SessionSnapshot, SessionState, StatusSink, StatusUpdate
)
from .streamer import FileStreamer, close_source

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.IDLE: {SessionState.CONNECTING, SessionState.CANCELLED},
    SessionState.CONNECTING: {SessionState.CONNECTED, SessionState.FAILED,
                              SessionState.CANCELLED},
    SessionState.CONNECTED: {SessionState.TRANSFERRING, SessionState.FAILED,
                             SessionState.CANCELLED},
    SessionState.TRANSFERRING: {SessionState.SUCCEEDED, SessionState.FAILED,
                                SessionState.CANCELLED},
    SessionState.SUCCEEDED: set(),
    SessionState.FAILED: set(),
    SessionState.CANCELLED: set(),
}


class TransferSession:
    """
    One file transfer to one peer.

    Usage:
        session = TransferSession(connector, streamer, sink)
        session.select_peer(peer)
        session.select_file(open(path, 'rb'))
        session.start()
        ...
        session.cancel()   # from any thread, never blocks

    A session runs at most once. Terminal states are final; send
    another file with a new session.
    """

    def __init__(self, connector: Connector, streamer: FileStreamer,
                 sink: StatusSink, dispatcher: Optional[Dispatcher] = None,
                 service: Optional[ServiceIdentifier] = None):
        self.connector = connector
        self.streamer = streamer
        self.sink = sink
        self.dispatcher = dispatcher or DirectDispatcher()
        self.service = service or ServiceIdentifier.default()

        # Guarded by _lock
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._peer: Optional[PeerHandle] = None
        self._source = None
        self._total_bytes: Optional[int] = None
        self._channel: Optional[StreamChannel] = None
        self._bytes_transferred = 0
        self._error: Optional[ErrorInfo] = None

        self._worker: Optional[threading.Thread] = None
        self._done = threading.Event()

        # Updates waiting for the dispatcher, in the order they were produced
        self._pending: "deque[StatusUpdate]" = deque()
        self._delivering = threading.Lock()

    # === Caller-side API ===

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        """True between start() and the terminal state."""
        with self._lock:
            return self._state != SessionState.IDLE and not self._state.is_terminal

    def snapshot(self) -> SessionSnapshot:
        """Immutable copy of the session's current state."""
        with self._lock:
            return SessionSnapshot(
                state=self._state,
                peer=self._peer,
                bytes_transferred=self._bytes_transferred,
                error=self._error,
            )

    def select_peer(self, peer: PeerHandle):
        """Set the target device. Only valid before start()."""
        with self._lock:
            self._require_idle()
            self._peer = peer
            self._emit(SessionState.IDLE, message=f"Selected device: {peer.display_name}")
        self._deliver()

    def select_file(self, source, total_bytes: Optional[int] = None):
        """Set the file source. Only valid before start()."""
        with self._lock:
            self._require_idle()
            self._source = source
            self._total_bytes = total_bytes
            name = getattr(source, 'name', None)
            self._emit(SessionState.IDLE,
                       message=f"File selected: {name}" if isinstance(name, str) else "File selected")
        self._deliver()

    def start(self, peer: Optional[PeerHandle] = None, source=None,
              total_bytes: Optional[int] = None):
        """
        Begin the transfer on a background worker.

        Raises:
            PreconditionError: no peer or file selected, or already started
        """
        with self._lock:
            self._require_idle()
            if peer is not None:
                self._peer = peer
            if source is not None:
                self._source = source
                self._total_bytes = total_bytes
            if self._peer is None or self._source is None:
                raise PreconditionError("Select device and file first")

            self._transition(SessionState.CONNECTING,
                             message=f"Connecting to {self._peer.display_name}...")
            self._worker = threading.Thread(
                target=self._run,
                name=f"btsend-{self._peer.address}",
                daemon=True,
            )
            self._worker.start()
        self._deliver()

    def cancel(self) -> bool:
        """
        Cancel the transfer. Never blocks on I/O.

        Returns:
            True if this call cancelled the session, False if it had
            already reached a terminal state
        """
        with self._lock:
            if self._state.is_terminal:
                return False

            logger.info(f"Cancelling transfer in state {self._state.value}")
            was_idle = self._state == SessionState.IDLE
            self._close_channel()
            self._state = SessionState.CANCELLED
            self._emit(SessionState.CANCELLED, message="Transfer cancelled")

        self._deliver()
        if was_idle:
            close_source(self._source)
            self._done.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker to finish.

        Returns:
            True if the session is finished, False on timeout
        """
        with self._lock:
            if self._worker is None and not self._state.is_terminal:
                return False
        return self._done.wait(timeout)

    # === Worker ===

    def _run(self):
        peer = self._peer
        source = self._source
        try:
            try:
                channel = self.connector.connect(peer, self.service,
                                                 on_channel=self._adopt_channel)
            except ConnectError as e:
                self._finish(
                    SessionState.FAILED,
                    error=ErrorInfo(FailureReason.CONNECT_ERROR, e.message, e.cause),
                    message=f"Could not connect to {peer.display_name}: {e.message}",
                )
                return

            with self._lock:
                if self._state.is_terminal:
                    # Cancelled while the dial was completing
                    channel.close()
                    return
                self._channel = channel
                self._transition(SessionState.CONNECTED,
                                 message=f"Connected to {peer.display_name}")
                self._transition(SessionState.TRANSFERRING, message="Sending file...")
            self._deliver()

            result = self.streamer.run(source, channel, self._on_progress,
                                       total_bytes=self._total_bytes)

            if result.succeeded:
                self._finish(SessionState.SUCCEEDED,
                             message="File sent successfully")
            else:
                self._finish(SessionState.FAILED, error=result.error,
                             message=f"File transfer failed: {result.error.describe()}")

        except Exception as e:
            logger.error(f"Unexpected error in transfer to {peer}: {e}")
            self._finish(
                SessionState.FAILED,
                error=ErrorInfo(FailureReason.TRANSPORT_WRITE_ERROR, f"Unexpected error: {e}"),
                message=f"File transfer failed: {e}",
            )
        finally:
            with self._lock:
                self._close_channel()
            close_source(source)
            self._done.set()

    def _adopt_channel(self, channel: StreamChannel):
        """Take ownership of the channel before the dial blocks."""
        with self._lock:
            if self._state.is_terminal:
                # Cancelled before the dial started; connect() will fail fast
                channel.close()
                return
            self._channel = channel

    def _on_progress(self, event: ProgressEvent):
        with self._lock:
            if self._state != SessionState.TRANSFERRING:
                return
            self._bytes_transferred = event.bytes_transferred
            self._emit(SessionState.TRANSFERRING, progress=event)
        self._deliver()

    def _finish(self, state: SessionState, error: Optional[ErrorInfo] = None,
                message: str = ''):
        """Close the channel, then report the terminal state (once)."""
        with self._lock:
            if self._state.is_terminal:
                logger.debug(f"Ignoring {state.value}, session already {self._state.value}")
                return
            self._close_channel()
            self._error = error
            self._transition(state, error=error, message=message)
        self._deliver()

    # === Helpers (call with _lock held) ===

    def _require_idle(self):
        if self._state != SessionState.IDLE:
            raise PreconditionError(f"Session is {self._state.value}, not idle")

    def _transition(self, state: SessionState, error: Optional[ErrorInfo] = None,
                    message: str = ''):
        if state not in VALID_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid transition {self._state.value} -> {state.value}")

        logger.info(f"Session {self._state.value} -> {state.value}"
                    + (f": {message}" if message else ""))
        self._state = state
        self._emit(state, error=error, message=message)

    def _close_channel(self):
        if self._channel is not None:
            self._channel.close()

    def _emit(self, state: SessionState, progress: Optional[ProgressEvent] = None,
              error: Optional[ErrorInfo] = None, message: str = ''):
        self._pending.append(StatusUpdate(state, progress, error, message))

    # === Delivery (call without _lock held) ===

    def _deliver(self):
        """
        Hand queued updates to the dispatcher, in order.

        Only one thread delivers at a time. A thread that finds delivery
        in progress returns at once; the delivering thread picks up its
        updates before it lets go.
        """
        while self._pending:
            if not self._delivering.acquire(blocking=False):
                return
            try:
                while self._pending:
                    update = self._pending.popleft()
                    self.dispatcher(self._delivery(update))
            finally:
                self._delivering.release()

    def _delivery(self, update: StatusUpdate):
        sink = self.sink
        return lambda: sink.on_status(update.state, update.progress,
                                      update.error, update.message)
