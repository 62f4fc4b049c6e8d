"""
Stream Channel

Abstraction over one duplex, ordered, reliable byte-stream connection
to a peer. A channel is created unconnected, dialed once with connect(),
and closed exactly once. close() may be called from any thread, and
must make a read/write blocked in another thread fail promptly.
"""

from abc import ABC, abstractmethod
from typing import Tuple


class StreamChannel(ABC):
    """Duplex byte-stream connection."""

    @property
    @abstractmethod
    def remote_address(self) -> Tuple:
        """Address of the peer this channel dials."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once close() has been called."""

    @abstractmethod
    def connect(self):
        """Dial the peer. Blocks until connected; raises OSError on failure."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to size bytes. Returns b'' when the peer closed."""

    @abstractmethod
    def write(self, data: bytes):
        """Write all of data. Raises OSError on transport failure."""

    def flush(self):
        """Push any buffered output to the transport."""

    @abstractmethod
    def close(self):
        """Close the channel. Idempotent and thread-safe."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
