"""Shared pytest fixtures and fakes for all tests."""

import io
import socket
import threading
from typing import List, Optional

import pytest

from btsend.bluetooth import PeerHandle
from btsend.channel import StreamChannel
from btsend.errors import ConnectError
from btsend.transfer import (
    FileStreamer, SessionState, StatusSink, StatusUpdate, TransferSession,
    classify_connect_error
)


class FakeChannel(StreamChannel):
    """
    In-memory channel.

    Args:
        fail_after: raise on the write after this many successful writes
        block_after: block the write after this many successful writes
            until the channel is closed
        connect_error: OSError raised by connect()
        block_connect: block connect() until closed
    """

    def __init__(self, fail_after: Optional[int] = None,
                 block_after: Optional[int] = None,
                 connect_error: Optional[OSError] = None,
                 block_connect: bool = False):
        self.fail_after = fail_after
        self.block_after = block_after
        self.connect_error = connect_error
        self.block_connect = block_connect

        self.writes: List[bytes] = []
        self.calls: List[str] = []
        self.close_count = 0
        self._closed = False
        self._closed_event = threading.Event()
        self.dialing = threading.Event()
        self.write_blocked = threading.Event()

    @property
    def remote_address(self):
        return ('fake', 1)

    @property
    def closed(self):
        return self._closed

    @property
    def data(self) -> bytes:
        return b''.join(self.writes)

    def connect(self):
        self.calls.append('connect')
        if self._closed:
            raise ConnectionAbortedError("closed")
        if self.block_connect:
            self.dialing.set()
            self._closed_event.wait(5)
            raise ConnectionAbortedError("closed during dial")
        if self.connect_error:
            raise self.connect_error

    def read(self, size):
        return b''

    def write(self, data):
        if self._closed:
            raise BrokenPipeError("closed")
        if self.fail_after is not None and len(self.writes) >= self.fail_after:
            raise ConnectionResetError("peer went away")
        if self.block_after is not None and len(self.writes) >= self.block_after:
            self.write_blocked.set()
            self._closed_event.wait(5)
            raise BrokenPipeError("closed during write")
        self.calls.append('write')
        self.writes.append(bytes(data))

    def flush(self):
        self.calls.append('flush')

    def close(self):
        self.close_count += 1
        self._closed = True
        self._closed_event.set()


class RecordingSink(StatusSink):
    """Keeps every update, in delivery order."""

    def __init__(self):
        self.updates: List[StatusUpdate] = []
        self._lock = threading.Lock()

    def on_status(self, state, progress=None, error=None, message=''):
        with self._lock:
            self.updates.append(StatusUpdate(state, progress, error, message))

    @property
    def states(self) -> List[SessionState]:
        """Distinct state transitions, progress repeats collapsed."""
        with self._lock:
            result = []
            for update in self.updates:
                if not result or result[-1] != update.state:
                    result.append(update.state)
            return result

    @property
    def progress_events(self):
        with self._lock:
            return [u.progress for u in self.updates if u.progress is not None]

    @property
    def terminal(self) -> Optional[StatusUpdate]:
        with self._lock:
            terminals = [u for u in self.updates if u.state.is_terminal]
        return terminals[-1] if terminals else None


class FakeConnector:
    """Connector stand-in that dials a FakeChannel."""

    def __init__(self, channel: Optional[FakeChannel] = None,
                 error: Optional[ConnectError] = None):
        self.channel = channel or FakeChannel()
        self.error = error
        self.calls = 0

    def connect(self, peer, service, on_channel=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if on_channel is not None:
            on_channel(self.channel)
        try:
            self.channel.connect()
        except OSError as e:
            self.channel.close()
            raise ConnectError(classify_connect_error(e), str(e)) from e
        return self.channel


class FailingSource(io.BytesIO):
    """BytesIO that raises after a number of reads."""

    def __init__(self, data: bytes, fail_on_read: int):
        super().__init__(data)
        self.fail_on_read = fail_on_read
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        if self.reads >= self.fail_on_read:
            raise OSError("disk read error")
        return super().read(size)


class TcpReceiver:
    """Loopback TCP server that accepts one connection and reads to EOF."""

    def __init__(self):
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(('127.0.0.1', 0))
        self.server.listen(1)
        self.port = self.server.getsockname()[1]
        self.received = bytearray()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        self.server.settimeout(10)
        try:
            conn, _ = self.server.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(10)
            while True:
                data = conn.recv(4096)
                if not data:
                    break
                self.received.extend(data)

    def join(self, timeout: float = 5.0):
        self._thread.join(timeout)

    def close(self):
        self.server.close()


@pytest.fixture
def peer():
    return PeerHandle(address='00:11:22:33:44:55', name='Test Phone')


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def payload():
    """2500 bytes: two full 1KB chunks and a 452-byte tail."""
    return bytes(i % 251 for i in range(2500))


@pytest.fixture
def make_session(sink):
    """Build a session around a connector with a 1KB streamer."""
    def factory(connector, chunk_size=1024, dispatcher=None):
        return TransferSession(connector, FileStreamer(chunk_size), sink, dispatcher)
    return factory


@pytest.fixture
def tcp_receiver():
    receiver = TcpReceiver()
    yield receiver
    receiver.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
