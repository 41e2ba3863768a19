"""
Interface Assertion Value Objects

Architectural Intent:
- Named expectations a caller has about a local interface
- Interface.assert_matches() evaluates them in order and raises
  UnknownInterfaceError on the first violation
- expectations() builds a list from optional keyword arguments, skipping
  the ones left as None, which is how use cases forward caller options
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Exists:
    expected: bool = True


@dataclass(frozen=True)
class Enabled:
    expected: bool = True


@dataclass(frozen=True)
class HasName:
    name: str


@dataclass(frozen=True)
class HasDeviceNumber:
    device_number: int


@dataclass(frozen=True)
class HasHardwareAddress:
    hwaddr: str


@dataclass(frozen=True)
class HasCloudId:
    interface_id: str


@dataclass(frozen=True)
class InSubnet:
    subnet_id: str


@dataclass(frozen=True)
class HasIP:
    """Private IP if inside the VPC range, otherwise an associated public IP."""
    address: str


@dataclass(frozen=True)
class HasPublicIP:
    address: str


@dataclass(frozen=True)
class HasPrivateIP:
    address: str


InterfaceAssertion = Union[
    Exists,
    Enabled,
    HasName,
    HasDeviceNumber,
    HasHardwareAddress,
    HasCloudId,
    InSubnet,
    HasIP,
    HasPublicIP,
    HasPrivateIP,
]


def expectations(
    exists: Optional[bool] = None,
    enabled: Optional[bool] = None,
    name: Optional[str] = None,
    device_number: Optional[int] = None,
    hwaddr: Optional[str] = None,
    interface_id: Optional[str] = None,
    subnet_id: Optional[str] = None,
    ip: Optional[str] = None,
    public_ip: Optional[str] = None,
    private_ip: Optional[str] = None,
) -> list[InterfaceAssertion]:
    """Build assertions from keyword arguments, ignoring those set to None."""
    result: list[InterfaceAssertion] = []
    if exists is not None:
        result.append(Exists(exists))
    if enabled is not None:
        result.append(Enabled(enabled))
    if name is not None:
        result.append(HasName(name))
    if device_number is not None:
        result.append(HasDeviceNumber(int(device_number)))
    if hwaddr is not None:
        result.append(HasHardwareAddress(hwaddr))
    if interface_id is not None:
        result.append(HasCloudId(interface_id))
    if subnet_id is not None:
        result.append(InSubnet(subnet_id))
    if ip is not None:
        result.append(HasIP(ip))
    if public_ip is not None:
        result.append(HasPublicIP(public_ip))
    if private_ip is not None:
        result.append(HasPrivateIP(private_ip))
    return result
