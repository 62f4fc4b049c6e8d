"""
BlueZ Adapter Control

Design Decision: Adapter Access
===============================

Options Considered:
1. D-Bus (org.bluez) bindings
   - Full API, signals
   - Extra native dependency, verbose

2. bluetoothctl subprocess
   - Ships with every BlueZ install
   - Plain text output, easy to parse
   - Good enough for the three things we need

Decision: bluetoothctl
- paired device listing (peer selection)
- powered check
- stopping an in-progress scan before dialing; a running inquiry
  slows down or breaks RFCOMM connection attempts on many controllers
"""

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

BLUETOOTHCTL = "bluetoothctl"

# "Device 00:11:22:33:44:55 Some Name"
DEVICE_LINE = re.compile(r'^Device\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})\s*(.*)$')


@dataclass(frozen=True)
class PeerHandle:
    """An already-paired remote device."""
    address: str
    name: str = ''

    @property
    def display_name(self) -> str:
        return self.name or self.address

    def __str__(self):
        return f"{self.display_name} ({self.address})"


def parse_device_list(output: str) -> List[PeerHandle]:
    """Parse bluetoothctl device listing output into peer handles."""
    peers = []
    seen = set()
    for line in output.splitlines():
        match = DEVICE_LINE.match(line.strip())
        if not match:
            continue
        address = match.group(1).upper()
        if address in seen:
            continue
        seen.add(address)
        peers.append(PeerHandle(address=address, name=match.group(2).strip()))
    return peers


class BluezAdapter:
    """
    Local Bluetooth adapter, controlled through bluetoothctl.

    None of these calls raise on tool failure; they log and return a
    neutral value so a missing tool never masks the real connect error.
    """

    def __init__(self, bluetoothctl_path: str = BLUETOOTHCTL,
                 timeout: float = 5.0):
        self.bluetoothctl_path = bluetoothctl_path
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check if bluetoothctl can be found."""
        return shutil.which(self.bluetoothctl_path) is not None

    def _run(self, *args: str) -> Optional[subprocess.CompletedProcess]:
        cmd = [self.bluetoothctl_path, *args]
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            logger.warning(f"{self.bluetoothctl_path} not found")
        except subprocess.TimeoutExpired:
            logger.warning(f"'{' '.join(cmd)}' timed out after {self.timeout}s")
        except OSError as e:
            logger.warning(f"Failed to run '{' '.join(cmd)}': {e}")
        return None

    def is_powered(self) -> bool:
        """Check if the default controller is powered on."""
        result = self._run("show")
        if result is None or result.returncode != 0:
            return False
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.startswith("Powered:"):
                return line.split(":", 1)[1].strip().lower() == "yes"
        return False

    def paired_devices(self) -> List[PeerHandle]:
        """List bonded devices."""
        result = self._run("devices", "Paired")
        if result is None or result.returncode != 0 or not result.stdout.strip():
            # BlueZ < 5.65 only knows the old command
            result = self._run("paired-devices")
        if result is None or result.returncode != 0:
            return []
        return parse_device_list(result.stdout)

    def find_paired(self, address: str) -> Optional[PeerHandle]:
        """Look up a paired device by address."""
        address = address.upper()
        for peer in self.paired_devices():
            if peer.address == address:
                return peer
        return None

    def cancel_discovery(self) -> bool:
        """
        Stop any in-progress device discovery.

        Returns:
            True if the adapter acknowledged, False otherwise
        """
        result = self._run("scan", "off")
        if result is None:
            return False
        if result.returncode != 0:
            logger.debug(f"scan off returned {result.returncode}: {result.stderr.strip()}")
            return False
        logger.debug("Adapter discovery stopped")
        return True
