"""
Channel Module - Duplex Byte Streams

Connection abstraction used by the transfer layer.
"""

from .base import StreamChannel
from .socket_channel import (
    SocketChannel, rfcomm_channel, tcp_channel, BLUETOOTH_AVAILABLE
)

__all__ = [
    'StreamChannel',
    'SocketChannel',
    'rfcomm_channel',
    'tcp_channel',
    'BLUETOOTH_AVAILABLE',
]
