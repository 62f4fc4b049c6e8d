"""Tests for socket-backed channels."""

import socket
import threading

import pytest

from btsend.channel import SocketChannel, rfcomm_channel
from btsend.channel import socket_channel
from btsend.errors import ConnectCause, ConnectError


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield SocketChannel(a, ('local', 0)), b
    b.close()


def test_write_reaches_peer(pair):
    channel, peer = pair

    channel.write(b'raw file bytes')

    assert peer.recv(100) == b'raw file bytes'


def test_read_returns_peer_bytes(pair):
    channel, peer = pair
    peer.sendall(b'ack')
    assert channel.read(10) == b'ack'


def test_close_is_idempotent(pair):
    channel, _ = pair

    channel.close()
    channel.close()

    assert channel.closed


def test_write_after_close_raises(pair):
    channel, _ = pair
    channel.close()

    with pytest.raises(OSError):
        channel.write(b'late')


def test_connect_after_close_raises(pair):
    channel, _ = pair
    channel.close()

    with pytest.raises(OSError):
        channel.connect()


def test_close_unblocks_reader_on_other_thread(pair):
    """Test that close() from another thread ends a blocked read."""
    channel, _ = pair
    outcome = []

    def reader():
        try:
            outcome.append(channel.read(10))
        except OSError as e:
            outcome.append(e)

    thread = threading.Thread(target=reader)
    thread.start()
    threading.Timer(0.2, channel.close).start()
    thread.join(5)

    assert not thread.is_alive()
    assert outcome and (outcome[0] == b'' or isinstance(outcome[0], OSError))


def test_rfcomm_unavailable(monkeypatch):
    monkeypatch.setattr(socket_channel, 'BLUETOOTH_AVAILABLE', False)

    with pytest.raises(ConnectError) as exc_info:
        rfcomm_channel('00:11:22:33:44:55', 1)

    assert exc_info.value.cause == ConnectCause.TRANSPORT_UNAVAILABLE
