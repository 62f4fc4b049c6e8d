"""
File Streamer

Copies a file source onto an open channel in fixed-size chunks.

Wire format: the raw file bytes, nothing else. Chunk boundaries are a
flow-control detail and carry no meaning; the receiver learns the file
is complete when the sender closes the channel.
"""

import logging
from typing import Callable, Optional

from ..channel.base import StreamChannel
from ..errors import SourceReadError, TransportWriteError
from .status import ErrorInfo, FailureReason, ProgressEvent, TransferResult

logger = logging.getLogger(__name__)

# Chunk size: 1KB, a tunable, not part of the protocol
CHUNK_SIZE = 1024

ProgressCallback = Callable[[ProgressEvent], None]


class FileStreamer:
    """
    Streams a readable source to a StreamChannel.

    The source is any object with read(size) and close(). Its read
    cursor is closed when run() returns; the channel is left open for
    the owning session to close.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def run(self, source, channel: StreamChannel,
            on_progress: Optional[ProgressCallback] = None,
            total_bytes: Optional[int] = None) -> TransferResult:
        """
        Copy source to channel.

        Returns:
            TransferResult with the byte count and, on failure, the reason
        """
        bytes_sent = 0
        try:
            while True:
                chunk = self._read_chunk(source)
                if not chunk:
                    break

                self._write_chunk(channel, chunk)
                bytes_sent += len(chunk)
                logger.debug(f"Wrote chunk of {len(chunk)} bytes ({bytes_sent:,} total)")

                if on_progress:
                    on_progress(ProgressEvent(
                        bytes_transferred=bytes_sent,
                        chunk_bytes=len(chunk),
                        total_bytes=total_bytes,
                    ))

            try:
                channel.flush()
            except OSError as e:
                raise TransportWriteError(f"Flush failed: {e}", e) from e

        except SourceReadError as e:
            logger.error(f"Error reading source after {bytes_sent:,} bytes: {e}")
            return TransferResult(bytes_sent, ErrorInfo(FailureReason.SOURCE_READ_ERROR, str(e)))
        except TransportWriteError as e:
            logger.error(f"Error writing to {channel.remote_address} after {bytes_sent:,} bytes: {e}")
            return TransferResult(bytes_sent, ErrorInfo(FailureReason.TRANSPORT_WRITE_ERROR, str(e)))
        finally:
            close_source(source)

        logger.info(f"Streamed {bytes_sent:,} bytes to {channel.remote_address}")
        return TransferResult(bytes_sent)

    def _read_chunk(self, source) -> bytes:
        try:
            return source.read(self.chunk_size)
        except (OSError, ValueError) as e:
            # ValueError: read on a closed file
            raise SourceReadError(f"Read failed: {e}", e) from e

    def _write_chunk(self, channel: StreamChannel, chunk: bytes):
        try:
            channel.write(chunk)
        except OSError as e:
            raise TransportWriteError(f"Write failed: {e}", e) from e


def close_source(source):
    """Close a source's read cursor, if it has one. Safe to call twice."""
    close = getattr(source, 'close', None)
    if close is None:
        return
    try:
        close()
    except OSError as e:
        logger.warning(f"Error closing source: {e}")
