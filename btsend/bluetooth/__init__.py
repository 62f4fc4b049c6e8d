"""
Bluetooth Module - Adapter Control and Service Lookup

Paired device listing, discovery quiescing, and RFCOMM channel
resolution for the well-known service UUID.
"""

from .adapter import BluezAdapter, PeerHandle, parse_device_list
from .sdp import (
    ServiceIdentifier, ServiceResolver, SERVICE_UUID,
    DEFAULT_RFCOMM_CHANNEL, PYBLUEZ_AVAILABLE
)

__all__ = [
    'BluezAdapter',
    'PeerHandle',
    'parse_device_list',
    'ServiceIdentifier',
    'ServiceResolver',
    'SERVICE_UUID',
    'DEFAULT_RFCOMM_CHANNEL',
    'PYBLUEZ_AVAILABLE',
]
