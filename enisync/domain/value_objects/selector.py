"""
Interface Selector Value Objects

Architectural Intent:
- Tagged variants naming a local interface one of several ways
- classify() turns a loose user identifier (int, str or None) into exactly
  one variant, so the registry never sniffs patterns itself

Resolution precedence for strings:
    device name (eth1) -> device number (1) -> cloud id (eni-...)
    -> hardware address (0e:..:2c) -> IPv4 address -> integer fallback
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from enisync.domain.errors import InvalidParameterError

DEVICE_PREFIX = "eth"

_NAME_RE = re.compile(rf"^{DEVICE_PREFIX}([0-9]+)$")
_NUMBER_RE = re.compile(r"^[0-9]+$")
_CLOUD_ID_RE = re.compile(r"^eni-[0-9a-f]+$", re.IGNORECASE)
_HWADDR_RE = re.compile(r"^[0-9a-f]{2}(?::[0-9a-f]{2}){5}$", re.IGNORECASE)
_IPV4_RE = re.compile(r"^[0-9]{1,3}(?:\.[0-9]{1,3}){3}$")
_SUBNET_RE = re.compile(r"^subnet-[0-9a-f]+$", re.IGNORECASE)


def device_name(device_number: int) -> str:
    return f"{DEVICE_PREFIX}{device_number}"


def device_number_of(name: str) -> Optional[int]:
    """Return the device number encoded in a device name, or None."""
    m = _NAME_RE.match(name)
    return int(m.group(1)) if m else None


@dataclass(frozen=True)
class ByIndex:
    device_number: int

    def __post_init__(self) -> None:
        if self.device_number < 0:
            raise InvalidParameterError(
                f"Device number must be non-negative, got {self.device_number}"
            )

    def __str__(self) -> str:
        return str(self.device_number)


@dataclass(frozen=True)
class ByName:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ByCloudId:
    interface_id: str

    def __str__(self) -> str:
        return self.interface_id


@dataclass(frozen=True)
class ByHardwareAddress:
    hwaddr: str

    def __str__(self) -> str:
        return self.hwaddr


@dataclass(frozen=True)
class ByIP:
    address: str

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class ByAutoNext:
    """The next device number with no device behind it."""

    def __str__(self) -> str:
        return "next available device"


@dataclass(frozen=True)
class BySubnet:
    """Only valid for filtering: every device in the given subnet."""
    subnet_id: str

    def __str__(self) -> str:
        return self.subnet_id


Selector = Union[ByIndex, ByName, ByCloudId, ByHardwareAddress, ByIP, ByAutoNext]
FilterSelector = Union[Selector, BySubnet]


def classify(key: Union[int, str, None]) -> Selector:
    """Classify a loose identifier into a selector variant."""
    if key is None:
        return ByAutoNext()
    if isinstance(key, bool):
        raise InvalidParameterError(f"Invalid interface identifier: {key!r}")
    if isinstance(key, int):
        return ByIndex(key)

    key = key.strip()
    if _NAME_RE.match(key):
        return ByName(key)
    if _NUMBER_RE.match(key):
        return ByIndex(int(key))
    if _CLOUD_ID_RE.match(key):
        return ByCloudId(key.lower())
    if _HWADDR_RE.match(key):
        return ByHardwareAddress(key.lower())
    if _IPV4_RE.match(key):
        return ByIP(key)
    try:
        return ByIndex(int(key))
    except ValueError:
        raise InvalidParameterError(f"Invalid interface identifier: {key!r}")


def classify_filter(key: Union[int, str, None]) -> Optional[FilterSelector]:
    """Like classify(), but None means "all devices" and subnet ids are allowed."""
    if key is None:
        return None
    if isinstance(key, str) and _SUBNET_RE.match(key.strip()):
        return BySubnet(key.strip().lower())
    return classify(key)
