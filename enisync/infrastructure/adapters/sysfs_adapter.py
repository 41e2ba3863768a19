"""
Sysfs Device Table

Architectural Intent:
- Implements DeviceTablePort by reading /sys/class/net
- Only ethN devices are reported, ordered by device number
"""

import re
from pathlib import Path
from typing import Optional

from enisync.domain.ports.device_table_port import DeviceTablePort

_DEVICE_NAME = re.compile(r"^eth([0-9]+)$")


class SysfsDeviceTable(DeviceTablePort):
    def __init__(self, root: str = "/sys/class/net"):
        self.root = Path(root)

    def list_devices(self) -> list[str]:
        try:
            names = [p.name for p in self.root.iterdir()]
        except FileNotFoundError:
            return []
        devices = [n for n in names if _DEVICE_NAME.match(n)]
        return sorted(devices, key=lambda n: int(_DEVICE_NAME.match(n).group(1)))

    def exists(self, name: str) -> bool:
        return (self.root / name).is_dir()

    def hardware_address(self, name: str) -> Optional[str]:
        try:
            address = (self.root / name / "address").read_text().strip().lower()
        except OSError:
            return None
        return address or None
