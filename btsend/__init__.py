"""
btsend - Bluetooth File Sender

Sends one file to an already-paired device over an RFCOMM stream:
dial the well-known serial service, copy the raw file bytes, report
progress and a single terminal status.
"""

from .bluetooth import PeerHandle, ServiceIdentifier, SERVICE_UUID
from .config import Config, load_config
from .errors import (
    TransferError, PreconditionError, ConnectError, ConnectCause,
    SourceReadError, TransportWriteError
)
from .sender import FileSender
from .transfer import (
    TransferSession, SessionState, ProgressEvent, ErrorInfo, FailureReason,
    StatusSink, CallbackSink
)

__version__ = '0.1.0'

__all__ = [
    'PeerHandle',
    'ServiceIdentifier',
    'SERVICE_UUID',
    'Config',
    'load_config',
    'TransferError',
    'PreconditionError',
    'ConnectError',
    'ConnectCause',
    'SourceReadError',
    'TransportWriteError',
    'FileSender',
    'TransferSession',
    'SessionState',
    'ProgressEvent',
    'ErrorInfo',
    'FailureReason',
    'StatusSink',
    'CallbackSink',
]
