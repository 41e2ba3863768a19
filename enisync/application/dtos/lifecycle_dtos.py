"""
Lifecycle DTOs

Architectural Intent:
- Data Transfer Objects for the interface and address lifecycle use cases
- Input validation at the application boundary: malformed ids and
  addresses raise InputError before any cloud or OS mutation
- Responses are plain frozen records the CLI can print as JSON
"""

import ipaddress
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

from enisync.domain.errors import InvalidParameterError, MissingParameterError

DeviceKey = Union[int, str, None]

_ENI_RE = re.compile(r"^eni-[0-9a-f]+$")
_SUBNET_RE = re.compile(r"^subnet-[0-9a-f]+$")
_ALLOCATION_RE = re.compile(r"^eipalloc-[0-9a-f]+$")
_ASSOCIATION_RE = re.compile(r"^eipassoc-[0-9a-f]+$")


def _require(value: Any, name: str) -> None:
    if value is None or value == "":
        raise MissingParameterError(f"{name} is required")


def _check_ip(value: Optional[str], name: str) -> None:
    if value is None:
        return
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        raise InvalidParameterError(f"Invalid {name}: {value!r}")


def _check_pattern(value: Optional[str], pattern: re.Pattern, name: str) -> None:
    if value is not None and not pattern.match(value):
        raise InvalidParameterError(f"Invalid {name}: {value!r}")


class _Response:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateInterfaceRequest:
    subnet_id: Optional[str] = None  # default: the primary interface's subnet
    description: Optional[str] = None
    primary_ip: Optional[str] = None
    security_groups: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_pattern(self.subnet_id, _SUBNET_RE, "subnet id")
        _check_ip(self.primary_ip, "primary ip")


@dataclass(frozen=True)
class InterfaceCreated(_Response):
    interface_id: str
    subnet_id: str
    private_ip: Optional[str]


@dataclass(frozen=True)
class AttachInterfaceRequest:
    interface_id: str
    device: DeviceKey = None  # None: next free device number
    configure: bool = True
    enable: bool = True
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.interface_id, "interface_id")
        _check_pattern(self.interface_id, _ENI_RE, "interface id")


@dataclass(frozen=True)
class InterfaceAttached(_Response):
    interface_id: str
    device_name: str
    device_number: int
    configured: bool
    enabled: bool


@dataclass(frozen=True)
class DetachInterfaceRequest:
    device: DeviceKey
    interface_id: Optional[str] = None
    device_number: Optional[int] = None
    delete: bool = True
    release: bool = False
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.device, "device")
        _check_pattern(self.interface_id, _ENI_RE, "interface id")


@dataclass(frozen=True)
class InterfaceDetached(_Response):
    interface_id: str
    device_name: str
    device_number: int
    created_by_us: bool
    deleted: bool
    released: tuple[str, ...] = ()
    public_ips: tuple[str, ...] = ()  # elastic IPs associated at detach time


@dataclass(frozen=True)
class CleanInterfacesRequest:
    filter: Optional[str] = None  # eni id, subnet id or availability zone
    safe_mode: bool = True
    release: bool = False


@dataclass(frozen=True)
class InterfacesCleaned(_Response):
    deleted: tuple[str, ...]
    released: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.deleted)


# ---------------------------------------------------------------------------
# Secondary private IPs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssignSecondaryIpRequest:
    device: DeviceKey
    private_ip: Optional[str] = None  # None: let the cloud pick one
    configure: bool = True
    test: bool = False
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.device, "device")
        _check_ip(self.private_ip, "private ip")


@dataclass(frozen=True)
class SecondaryIpAssigned(_Response):
    private_ip: str
    device_name: str
    interface_id: str


@dataclass(frozen=True)
class UnassignSecondaryIpRequest:
    private_ip: str
    device: DeviceKey = None  # None: the device holding private_ip
    release: bool = False
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.private_ip, "private_ip")
        _check_ip(self.private_ip, "private ip")


@dataclass(frozen=True)
class SecondaryIpUnassigned(_Response):
    private_ip: str
    device_name: str
    interface_id: str
    public_ip: Optional[str] = None
    released: bool = False


# ---------------------------------------------------------------------------
# Elastic IPs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AddressAllocated(_Response):
    public_ip: str
    allocation_id: str


@dataclass(frozen=True)
class AddressReleased(_Response):
    public_ip: str
    allocation_id: str


@dataclass(frozen=True)
class AssociateAddressRequest:
    private_ip: str
    device: DeviceKey = None
    public_ip: Optional[str] = None
    allocation_id: Optional[str] = None
    new: bool = False
    test: bool = False
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.private_ip, "private_ip")
        _check_ip(self.private_ip, "private ip")
        _check_ip(self.public_ip, "public ip")
        _check_pattern(self.allocation_id, _ALLOCATION_RE, "allocation id")
        if self.new and (self.public_ip or self.allocation_id):
            raise InvalidParameterError(
                "A new address cannot be requested together with a specific one"
            )


@dataclass(frozen=True)
class AddressRequest:
    """Identifies an elastic IP plus optional attributes it must match."""
    address: str  # public ip, private ip, allocation id or association id
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None
    allocation_id: Optional[str] = None
    association_id: Optional[str] = None
    interface_id: Optional[str] = None
    release: bool = False
    block: bool = True

    def __post_init__(self) -> None:
        _require(self.address, "address")
        _check_ip(self.private_ip, "private ip")
        _check_ip(self.public_ip, "public ip")
        _check_pattern(self.allocation_id, _ALLOCATION_RE, "allocation id")
        _check_pattern(self.association_id, _ASSOCIATION_RE, "association id")
        _check_pattern(self.interface_id, _ENI_RE, "interface id")


@dataclass(frozen=True)
class AddressAssociated(_Response):
    private_ip: str
    device_name: str
    interface_id: str
    public_ip: str
    allocation_id: str
    association_id: str


@dataclass(frozen=True)
class AddressDissociated(_Response):
    private_ip: str
    device_name: str
    interface_id: str
    public_ip: str
    allocation_id: str
    association_id: str
    released: bool = False
