"""
Environment Value Object

Architectural Intent:
- Immutable facts about the instance enisync runs on
- Detected once per container (see infrastructure.environment) and shared
  by every use case
- Region is derived from the availability zone by stripping its trailing
  zone letter (us-east-1a -> us-east-1)
"""

import ipaddress
import re
from dataclasses import dataclass

_ZONE_SUFFIX_RE = re.compile(r"^(.*\d)[a-z]+$")


def region_from_zone(availability_zone: str) -> str:
    """Strip the zone letter from an availability zone name."""
    m = _ZONE_SUFFIX_RE.match(availability_zone)
    if not m:
        raise ValueError(f"Invalid availability zone: {availability_zone!r}")
    return m.group(1)


@dataclass(frozen=True)
class Environment:
    instance_id: str
    availability_zone: str
    vpc_id: str
    vpc_cidr: str

    def __post_init__(self) -> None:
        if not self.instance_id:
            raise ValueError("Environment instance_id cannot be empty")
        if not self.vpc_id:
            raise ValueError("Environment vpc_id cannot be empty")
        region_from_zone(self.availability_zone)
        ipaddress.ip_network(self.vpc_cidr, strict=False)

    @property
    def region(self) -> str:
        return region_from_zone(self.availability_zone)

    def in_vpc(self, address: str) -> bool:
        """True if the address lies inside the VPC CIDR block."""
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return False
        return ip in ipaddress.ip_network(self.vpc_cidr, strict=False)

    def to_dict(self) -> dict[str, str]:
        return {
            "instance_id": self.instance_id,
            "availability_zone": self.availability_zone,
            "region": self.region,
            "vpc_id": self.vpc_id,
            "vpc_cidr": self.vpc_cidr,
        }
