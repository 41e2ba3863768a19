"""
Interface Registry

Architectural Intent:
- The one place Interface entities are created; one instance per device
  number for the life of the registry, so per-interface caches and locks
  are shared by every caller
- Resolves Selector variants (see domain.value_objects.selector) to
  Interface instances
- A single lock guards the instance cache so concurrent callers never
  instantiate the same device twice

Lookup Semantics:
- ByIndex/ByName return the cached instance whether or not the device is
  currently present (callers assert existence themselves)
- ByCloudId, ByHardwareAddress and ByIP search the devices present in the
  device table
- ByAutoNext returns the first device number in 0..32 with no device behind it
"""

import logging
import threading
from typing import Callable, Optional, Union

from enisync.domain.entities.interface import Interface
from enisync.domain.errors import InvalidInterfaceError, UnknownInterfaceError
from enisync.domain.ports.device_table_port import DeviceTablePort
from enisync.domain.value_objects.selector import (
    ByAutoNext,
    ByCloudId,
    ByHardwareAddress,
    ByIndex,
    ByIP,
    ByName,
    BySubnet,
    FilterSelector,
    Selector,
    classify,
    classify_filter,
    device_name,
    device_number_of,
)

logger = logging.getLogger(__name__)

MAX_DEVICE_INDEX = 32

InterfaceFactory = Callable[[str], Interface]


class InterfaceRegistry:
    def __init__(self, devices: DeviceTablePort, factory: InterfaceFactory):
        self.devices = devices
        self._factory = factory
        self._lock = threading.Lock()
        self._instances: dict[int, Interface] = {}

    # ------------------------------------------------------------------
    # Single lookups
    # ------------------------------------------------------------------

    def by_index(self, device_number: int) -> Interface:
        with self._lock:
            dev = self._instances.get(device_number)
            if dev is None:
                dev = self._factory(device_name(device_number))
                self._instances[device_number] = dev
            return dev

    def by_name(self, name: str) -> Interface:
        number = device_number_of(name)
        if number is None:
            raise InvalidInterfaceError(f"Invalid interface: {name}")
        return self.by_index(number)

    def by_cloud_id(self, interface_id: str) -> Optional[Interface]:
        return self._find(lambda dev: dev.interface_id == interface_id)

    def by_hwaddr(self, hwaddr: str) -> Optional[Interface]:
        return self._find(lambda dev: dev.hwaddr.lower() == hwaddr.lower())

    def by_ip(self, address: str) -> Optional[Interface]:
        return self._find(lambda dev: dev.has_ip(address))

    def next_available_index(self) -> int:
        for number in range(MAX_DEVICE_INDEX + 1):
            if not self.by_index(number).exists():
                return number
        raise InvalidInterfaceError(
            f"No free device number between 0 and {MAX_DEVICE_INDEX}"
        )

    def _find(self, predicate: Callable[[Interface], bool]) -> Optional[Interface]:
        for dev in self.all():
            try:
                if predicate(dev):
                    return dev
            except InvalidInterfaceError as e:
                # attached moments ago; metadata has not caught up
                logger.debug("Skipping %s: %s", dev.name, e)
        return None

    def resolve(self, selector: Selector) -> Interface:
        if isinstance(selector, ByIndex):
            dev = self.by_index(selector.device_number)
        elif isinstance(selector, ByName):
            dev = self.by_name(selector.name)
        elif isinstance(selector, ByCloudId):
            dev = self.by_cloud_id(selector.interface_id)
        elif isinstance(selector, ByHardwareAddress):
            dev = self.by_hwaddr(selector.hwaddr)
        elif isinstance(selector, ByIP):
            dev = self.by_ip(selector.address)
        elif isinstance(selector, ByAutoNext):
            dev = self.by_index(self.next_available_index())
        else:
            raise TypeError(f"Unknown selector: {selector!r}")
        if dev is None:
            raise UnknownInterfaceError(f"No interface found matching {selector}")
        return dev

    def get(self, key: Union[int, str, None]) -> Interface:
        """Resolve a loose identifier (index, name, eni id, MAC, IP or None)."""
        return self.resolve(classify(key))

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def all(self) -> list[Interface]:
        """Every ethernet device currently present, ordered by device number."""
        return [self.by_name(name) for name in self.devices.list_devices()]

    def enabled(self) -> list[Interface]:
        return [dev for dev in self.all() if dev.enabled()]

    def filter(self, key: Union[int, str, FilterSelector, None] = None) -> list[Interface]:
        """All devices, one device, or every device in a subnet; never empty."""
        selector = key if not isinstance(key, (int, str)) else classify_filter(key)
        if selector is None:
            devs = self.all()
        elif isinstance(selector, BySubnet):
            devs = [dev for dev in self.all() if dev.subnet_id == selector.subnet_id]
        else:
            devs = [self.resolve(selector)]
        if not devs:
            raise UnknownInterfaceError(f"No interface found matching {key}")
        return devs

    def clean(self) -> None:
        """Drop cached devices that have disappeared, deconfiguring them first."""
        with self._lock:
            cached = list(self._instances.items())
        for number, dev in cached:
            # exists() deconfigures a vanished device on its own
            if not dev.exists():
                with self._lock:
                    self._instances.pop(number, None)
                logger.info("Removed vanished device %s", dev.name)
