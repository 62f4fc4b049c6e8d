"""
Service Channel Resolution

Maps the well-known service UUID to the RFCOMM channel number a peer
advertises it on. With PyBluez installed the peer's SDP records are
queried; otherwise the configured channel is used (most SPP servers
listen on channel 1).
"""

import logging
import uuid
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Try to import PyBluez for SDP lookups
try:
    import bluetooth as pybluez
    PYBLUEZ_AVAILABLE = True
except ImportError:
    pybluez = None
    PYBLUEZ_AVAILABLE = False
    logger.debug("PyBluez not available, SDP lookup disabled")


# Serial Port Profile, shared by sender and receiver
SERVICE_UUID = uuid.UUID("00001101-0000-1000-8000-00805F9B34FB")

DEFAULT_RFCOMM_CHANNEL = 1


@dataclass(frozen=True)
class ServiceIdentifier:
    """128-bit identifier selecting the service channel on the peer."""
    uuid: uuid.UUID

    @classmethod
    def default(cls) -> 'ServiceIdentifier':
        return cls(SERVICE_UUID)

    def __str__(self):
        return str(self.uuid).upper()


class ServiceResolver:
    """Resolves a service identifier to an RFCOMM channel on a peer."""

    def __init__(self, fallback_channel: int = DEFAULT_RFCOMM_CHANNEL,
                 use_sdp: bool = True):
        self.fallback_channel = fallback_channel
        self.use_sdp = use_sdp and PYBLUEZ_AVAILABLE

    def resolve(self, address: str, service: ServiceIdentifier) -> int:
        """
        Find the RFCOMM channel for a service.

        Returns:
            Channel number (SDP result when available, else the fallback)
        """
        if self.use_sdp:
            try:
                records = pybluez.find_service(uuid=str(service), address=address)
            except (OSError, pybluez.BluetoothError) as e:
                logger.warning(f"SDP lookup on {address} failed: {e}")
                records = []

            for record in records:
                port = record.get('port')
                if record.get('protocol') == 'RFCOMM' and port:
                    logger.debug(f"SDP: {service} on {address} is channel {port}")
                    return int(port)

            logger.info(f"No SDP record for {service} on {address}, "
                        f"using channel {self.fallback_channel}")

        return self.fallback_channel
