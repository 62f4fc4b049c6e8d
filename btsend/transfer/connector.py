"""
Connector

Dials a paired peer's service channel and hands back an open
StreamChannel. The dial blocks, so connect() must run on a worker
thread, never on the caller's main thread.

Connect Flow:
1. Stop adapter discovery (a running inquiry disturbs the dial)
2. Build an unconnected channel for the configured transport
3. Hand the channel to the owner so it can be closed mid-dial
4. Blocking connect; map failures to a ConnectCause
"""

import errno
import logging
import socket
from typing import Callable, Optional

from ..bluetooth.adapter import BluezAdapter, PeerHandle
from ..bluetooth.sdp import ServiceIdentifier, ServiceResolver
from ..channel.base import StreamChannel
from ..channel.socket_channel import rfcomm_channel, tcp_channel
from ..errors import ConnectCause, ConnectError

logger = logging.getLogger(__name__)

# Builds an unconnected channel for a peer
ChannelFactory = Callable[[PeerHandle, ServiceIdentifier], StreamChannel]

# Receives the channel before the blocking dial starts
ChannelCallback = Callable[[StreamChannel], None]

TIMEOUT_ERRNOS = {errno.ETIMEDOUT}
REFUSED_ERRNOS = {errno.ECONNREFUSED}
UNAVAILABLE_ERRNOS = {errno.EAFNOSUPPORT, errno.EPROTONOSUPPORT, errno.ENODEV}


def classify_connect_error(error: BaseException) -> ConnectCause:
    """Map a dial failure to a ConnectCause."""
    if isinstance(error, (socket.timeout, TimeoutError)):
        return ConnectCause.TIMEOUT
    if isinstance(error, ConnectionRefusedError):
        return ConnectCause.REFUSED

    code = getattr(error, 'errno', None)
    if code in TIMEOUT_ERRNOS:
        return ConnectCause.TIMEOUT
    if code in REFUSED_ERRNOS:
        return ConnectCause.REFUSED
    if code in UNAVAILABLE_ERRNOS:
        return ConnectCause.TRANSPORT_UNAVAILABLE
    return ConnectCause.UNREACHABLE


class RfcommChannelFactory:
    """Creates RFCOMM channels, resolving the service channel per peer."""

    def __init__(self, resolver: ServiceResolver,
                 connect_timeout: Optional[float] = None,
                 io_timeout: Optional[float] = None):
        self.resolver = resolver
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout

    def __call__(self, peer: PeerHandle, service: ServiceIdentifier) -> StreamChannel:
        port = self.resolver.resolve(peer.address, service)
        return rfcomm_channel(peer.address, port,
                              self.connect_timeout, self.io_timeout)


class TcpChannelFactory:
    """Creates TCP channels; the peer address may carry its own port."""

    def __init__(self, default_port: int,
                 connect_timeout: Optional[float] = None,
                 io_timeout: Optional[float] = None):
        self.default_port = default_port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout

    def __call__(self, peer: PeerHandle, service: ServiceIdentifier) -> StreamChannel:
        host, port = peer.address, self.default_port
        if ':' in host:
            host, port_str = host.rsplit(':', 1)
            try:
                port = int(port_str)
            except ValueError:
                raise ConnectError(ConnectCause.UNREACHABLE,
                                   f"Invalid port in address {peer.address}")
        return tcp_channel(host, port, self.connect_timeout, self.io_timeout)


class Connector:
    """
    Establishes one outbound connection per call.

    No retries: a failed dial is reported once and the caller decides
    whether to start a new transfer.
    """

    def __init__(self, channel_factory: ChannelFactory,
                 adapter: Optional[BluezAdapter] = None,
                 quiesce_discovery: bool = True):
        self.channel_factory = channel_factory
        self.adapter = adapter
        self.quiesce_discovery = quiesce_discovery

    def connect(self, peer: PeerHandle, service: ServiceIdentifier,
                on_channel: Optional[ChannelCallback] = None) -> StreamChannel:
        """
        Dial the peer's service channel.

        Args:
            peer: Already-paired device
            service: Service to connect to
            on_channel: Called with the channel before the dial blocks

        Returns:
            Connected StreamChannel

        Raises:
            ConnectError: the dial failed; any channel built was closed
        """
        if self.quiesce_discovery and self.adapter is not None:
            self.adapter.cancel_discovery()

        try:
            channel = self.channel_factory(peer, service)
        except OSError as e:
            raise ConnectError(classify_connect_error(e), str(e)) from e

        if on_channel is not None:
            on_channel(channel)

        logger.info(f"Connecting to {peer} ({service})...")
        try:
            channel.connect()
        except OSError as e:
            channel.close()
            cause = classify_connect_error(e)
            logger.error(f"Could not connect to {peer}: {e}")
            raise ConnectError(cause, str(e)) from e

        logger.info(f"Connected to {peer}")
        return channel
