"""
Socket-backed Channels

Design Decision: Transport Sockets
==================================

Options Considered:
1. PyBluez BluetoothSocket
   - Wraps the same kernel socket
   - Unmaintained, hard to install on current Pythons

2. Stdlib socket with AF_BLUETOOTH / BTPROTO_RFCOMM
   - Ships with CPython on Linux (BlueZ)
   - Same API as TCP sockets, so one channel class covers both

Decision: Stdlib sockets
- RFCOMM for paired radio links
- TCP for Bluetooth PAN links and loopback testing
- Closing from another thread uses shutdown() first so a blocked
  sendall()/recv() returns with an error instead of hanging
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from .base import StreamChannel
from ..errors import ConnectCause, ConnectError

logger = logging.getLogger(__name__)

BLUETOOTH_AVAILABLE = hasattr(socket, 'AF_BLUETOOTH') and hasattr(socket, 'BTPROTO_RFCOMM')


class SocketChannel(StreamChannel):
    """
    StreamChannel over a connection-oriented socket.

    The socket is created by the factory functions below and dialed by
    connect(). connect_timeout bounds the dial; io_timeout (None means
    blocking) applies to reads and writes afterwards.
    """

    def __init__(self, sock: socket.socket, address: Tuple,
                 connect_timeout: Optional[float] = None,
                 io_timeout: Optional[float] = None):
        self._sock = sock
        self._address = address
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def remote_address(self) -> Tuple:
        return self._address

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self):
        if self._closed:
            raise ConnectionAbortedError("Channel closed before connect")

        self._sock.settimeout(self.connect_timeout)
        self._sock.connect(self._address)
        self._sock.settimeout(self.io_timeout)
        logger.debug(f"Socket connected to {self._address}")

    def read(self, size: int) -> bytes:
        if self._closed:
            raise ConnectionAbortedError("Channel closed")
        return self._sock.recv(size)

    def write(self, data: bytes):
        if self._closed:
            raise ConnectionAbortedError("Channel closed")
        self._sock.sendall(data)

    def close(self):
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Not connected yet, or the peer already went away
            pass
        self._sock.close()
        logger.debug(f"Socket to {self._address} closed")


def rfcomm_channel(address: str, port: int,
                   connect_timeout: Optional[float] = None,
                   io_timeout: Optional[float] = None) -> SocketChannel:
    """
    Create an unconnected RFCOMM channel to a paired device.

    Raises:
        ConnectError(TRANSPORT_UNAVAILABLE) if this interpreter or kernel
        has no Bluetooth socket support.
    """
    if not BLUETOOTH_AVAILABLE:
        raise ConnectError(
            ConnectCause.TRANSPORT_UNAVAILABLE,
            "Bluetooth sockets are not supported on this system"
        )

    try:
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM,
                             socket.BTPROTO_RFCOMM)
    except OSError as e:
        raise ConnectError(ConnectCause.TRANSPORT_UNAVAILABLE, str(e)) from e

    return SocketChannel(sock, (address, port), connect_timeout, io_timeout)


def tcp_channel(host: str, port: int,
                connect_timeout: Optional[float] = None,
                io_timeout: Optional[float] = None) -> SocketChannel:
    """Create an unconnected TCP channel (Bluetooth PAN or loopback)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    return SocketChannel(sock, (host, port), connect_timeout, io_timeout)
