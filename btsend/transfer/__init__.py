"""
Transfer Module - Connect, Stream, Orchestrate

Sender side of the file transfer: dial the peer, copy the file bytes,
report progress and the terminal outcome.
"""

from .status import (
    SessionState, FailureReason, ErrorInfo, ProgressEvent, TransferResult,
    SessionSnapshot, StatusUpdate, StatusSink, CallbackSink,
    Dispatcher, DirectDispatcher, QueueDispatcher, LoopDispatcher
)
from .connector import (
    Connector, RfcommChannelFactory, TcpChannelFactory, classify_connect_error
)
from .streamer import FileStreamer, CHUNK_SIZE
from .session import TransferSession

__all__ = [
    'SessionState',
    'FailureReason',
    'ErrorInfo',
    'ProgressEvent',
    'TransferResult',
    'SessionSnapshot',
    'StatusUpdate',
    'StatusSink',
    'CallbackSink',
    'Dispatcher',
    'DirectDispatcher',
    'QueueDispatcher',
    'LoopDispatcher',
    'Connector',
    'RfcommChannelFactory',
    'TcpChannelFactory',
    'classify_connect_error',
    'FileStreamer',
    'CHUNK_SIZE',
    'TransferSession',
]
