"""
Device Table Port

Architectural Intent:
- Port interface for enumerating the kernel's network devices
- Implemented by the sysfs adapter (/sys/class/net) and by test fakes
"""

from abc import ABC, abstractmethod
from typing import Optional


class DeviceTablePort(ABC):

    @abstractmethod
    def list_devices(self) -> list[str]:
        """Names of the ethernet devices currently present, e.g. ['eth0', 'eth1']."""
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def hardware_address(self, name: str) -> Optional[str]:
        """Lower-case MAC address of the device, or None if it is gone."""
        pass
