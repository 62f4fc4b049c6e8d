"""
File Sender - Main Controller

Orchestrates all components for one application lifetime:
- Adapter control (paired devices, discovery)
- Service channel resolution
- Connector + FileStreamer wiring per configured transport
- The single active TransferSession
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional

from .bluetooth import BluezAdapter, PeerHandle, ServiceResolver
from .config import Config
from .errors import PreconditionError
from .transfer import (
    Connector, Dispatcher, FileStreamer, RfcommChannelFactory, StatusSink,
    TcpChannelFactory, TransferSession
)

logger = logging.getLogger(__name__)


class FileSender:
    """
    Sends files to paired devices, one at a time.

    - paired_peers(): list bonded devices
    - send(peer, source, sink): start a transfer from any readable source
    - send_path(peer, path, sink): start a transfer of a local file
    - cancel(): cancel the running transfer
    """

    def __init__(self, config: Config = None,
                 adapter: Optional[BluezAdapter] = None,
                 connector: Optional[Connector] = None):
        """
        Initialize a sender.

        Args:
            config: Sender configuration (uses defaults if not provided)
            adapter: Adapter control (built from config if not provided)
            connector: Connector (built from config if not provided)
        """
        self.config = (config or Config()).validate()

        self.adapter = adapter or BluezAdapter(self.config.bluetoothctl_path)
        self.resolver = ServiceResolver(fallback_channel=self.config.rfcomm_channel)
        self.connector = connector or self._build_connector()
        self.streamer = FileStreamer(chunk_size=self.config.chunk_size)

        self._lock = threading.Lock()
        self._session: Optional[TransferSession] = None

    def _build_connector(self) -> Connector:
        if self.config.transport == 'tcp':
            factory = TcpChannelFactory(
                default_port=self.config.tcp_port,
                connect_timeout=self.config.connect_timeout,
                io_timeout=self.config.write_timeout,
            )
        else:
            factory = RfcommChannelFactory(
                self.resolver,
                connect_timeout=self.config.connect_timeout,
                io_timeout=self.config.write_timeout,
            )
        return Connector(
            factory,
            adapter=self.adapter,
            quiesce_discovery=self.config.quiesce_discovery,
        )

    @property
    def active_session(self) -> Optional[TransferSession]:
        """The running session, if any."""
        with self._lock:
            if self._session is not None and self._session.is_active:
                return self._session
            return None

    def paired_peers(self) -> List[PeerHandle]:
        """List devices already paired with this adapter."""
        peers = self.adapter.paired_devices()
        logger.debug(f"Found {len(peers)} paired devices")
        return peers

    def send(self, peer: PeerHandle, source, sink: StatusSink,
             dispatcher: Optional[Dispatcher] = None,
             total_bytes: Optional[int] = None) -> TransferSession:
        """
        Start sending a source to a peer.

        Returns:
            The started TransferSession

        Raises:
            PreconditionError: another transfer is still active
        """
        with self._lock:
            if self._session is not None and self._session.is_active:
                raise PreconditionError("A transfer is already in progress")

            session = TransferSession(self.connector, self.streamer, sink, dispatcher)
            session.select_peer(peer)
            session.select_file(source, total_bytes=total_bytes)
            session.start()
            self._session = session

        logger.info(f"Sending to {peer}")
        return session

    def send_path(self, peer: PeerHandle, path: Path, sink: StatusSink,
                  dispatcher: Optional[Dispatcher] = None) -> TransferSession:
        """Open a local file and send it."""
        path = Path(path)
        if not path.is_file():
            raise PreconditionError(f"Not a file: {path}")

        # Checked before opening so a rejected send does not leak the handle
        if self.active_session is not None:
            raise PreconditionError("A transfer is already in progress")

        source = open(path, 'rb')
        try:
            return self.send(peer, source, sink, dispatcher,
                             total_bytes=path.stat().st_size)
        except PreconditionError:
            source.close()
            raise

    def cancel(self) -> bool:
        """Cancel the active transfer, if any."""
        session = self.active_session
        if session is None:
            return False
        return session.cancel()
