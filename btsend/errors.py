"""
Error Taxonomy

Failures a transfer can end with. Everything except PreconditionError
is caught inside the session worker and turned into a terminal state,
so callers only ever see PreconditionError raised directly.
"""

from enum import Enum
from typing import Optional


class ConnectCause(Enum):
    """Why a connection attempt failed."""
    TIMEOUT = "timeout"
    REFUSED = "refused"
    UNREACHABLE = "unreachable"
    TRANSPORT_UNAVAILABLE = "transport_unavailable"


class TransferError(Exception):
    """Base class for all transfer errors."""


class PreconditionError(TransferError):
    """start() called without a peer and file, or while a session is active."""


class ConnectError(TransferError):
    """Connection establishment failed."""

    def __init__(self, cause: ConnectCause, message: str = ''):
        self.cause = cause
        self.message = message or cause.value
        super().__init__(f"{cause.value}: {self.message}" if message else cause.value)


class SourceReadError(TransferError):
    """Reading from the file source failed mid-transfer."""

    def __init__(self, message: str = '', cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message or str(cause))


class TransportWriteError(TransferError):
    """Writing to the channel failed (peer disconnect, transport error)."""

    def __init__(self, message: str = '', cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message or str(cause))
