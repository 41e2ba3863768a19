"""
Cloud Resource Value Objects

Architectural Intent:
- Typed, immutable views over EC2 API response payloads
- from_api() accepts the boto3 response dict shape (CamelCase keys) so the
  EC2 adapter stays a thin translation layer
- Ownership tags written by enisync live here so every layer agrees on
  the key names

Tag Keys:
- "created by"   owner identity (configurable, default "enisync")
- "created on"   ISO-8601 UTC creation timestamp
- "created from" instance id that created the resource
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Optional

TAG_CREATED_BY = "created by"
TAG_CREATED_ON = "created on"
TAG_CREATED_FROM = "created from"

STATUS_AVAILABLE = "available"
STATUS_IN_USE = "in-use"


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 tag value; naive values are taken as UTC."""
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@dataclass(frozen=True)
class IpAssociation:
    public_ip: str
    allocation_id: Optional[str] = None
    association_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "IpAssociation":
        return cls(
            public_ip=data.get("PublicIp", ""),
            allocation_id=data.get("AllocationId"),
            association_id=data.get("AssociationId"),
        )


@dataclass(frozen=True)
class PrivateIpEntry:
    address: str
    primary: bool = False
    association: Optional[IpAssociation] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PrivateIpEntry":
        assoc = data.get("Association")
        return cls(
            address=data["PrivateIpAddress"],
            primary=bool(data.get("Primary", False)),
            association=IpAssociation.from_api(assoc) if assoc else None,
        )


@dataclass(frozen=True)
class InterfaceAttachment:
    attachment_id: str
    instance_id: Optional[str]
    device_index: Optional[int]
    status: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InterfaceAttachment":
        return cls(
            attachment_id=data.get("AttachmentId", ""),
            instance_id=data.get("InstanceId"),
            device_index=data.get("DeviceIndex"),
            status=data.get("Status", ""),
        )


@dataclass(frozen=True)
class NetworkInterfaceResource:
    """Cloud-side view of an ENI."""
    interface_id: str
    status: str
    subnet_id: str = ""
    vpc_id: str = ""
    availability_zone: str = ""
    mac_address: str = ""
    description: str = ""
    attachment: Optional[InterfaceAttachment] = None
    private_ips: tuple[PrivateIpEntry, ...] = ()
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "NetworkInterfaceResource":
        attachment = data.get("Attachment")
        return cls(
            interface_id=data["NetworkInterfaceId"],
            status=data.get("Status", ""),
            subnet_id=data.get("SubnetId", ""),
            vpc_id=data.get("VpcId", ""),
            availability_zone=data.get("AvailabilityZone", ""),
            mac_address=data.get("MacAddress", ""),
            description=data.get("Description", ""),
            attachment=InterfaceAttachment.from_api(attachment) if attachment else None,
            private_ips=tuple(
                PrivateIpEntry.from_api(entry)
                for entry in data.get("PrivateIpAddresses", [])
            ),
            tags={t["Key"]: t.get("Value", "") for t in data.get("TagSet", [])},
        )

    @property
    def attached(self) -> bool:
        return self.status == STATUS_IN_USE

    @property
    def primary_ip(self) -> Optional[str]:
        for entry in self.private_ips:
            if entry.primary:
                return entry.address
        return None

    @property
    def private_ip_addresses(self) -> list[str]:
        """All private IPs, primary first."""
        primary = [e.address for e in self.private_ips if e.primary]
        return primary + [e.address for e in self.private_ips if not e.primary]

    @property
    def associations(self) -> list[tuple[str, IpAssociation]]:
        return [
            (e.address, e.association) for e in self.private_ips if e.association
        ]

    def private_ip(self, address: str) -> Optional[PrivateIpEntry]:
        for entry in self.private_ips:
            if entry.address == address:
                return entry
        return None

    def attached_to(self, instance_id: str) -> bool:
        return bool(self.attachment and self.attachment.instance_id == instance_id)

    def created_by(self, owner: str) -> bool:
        return self.tags.get(TAG_CREATED_BY) == owner

    @property
    def created_on(self) -> Optional[datetime]:
        value = self.tags.get(TAG_CREATED_ON)
        return parse_timestamp(value) if value else None


@dataclass(frozen=True)
class ElasticIpResource:
    public_ip: str
    allocation_id: str
    association_id: Optional[str] = None
    domain: str = "vpc"
    instance_id: Optional[str] = None
    interface_id: Optional[str] = None
    private_ip: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ElasticIpResource":
        return cls(
            public_ip=data.get("PublicIp", ""),
            allocation_id=data.get("AllocationId", ""),
            association_id=data.get("AssociationId"),
            domain=data.get("Domain", "vpc"),
            instance_id=data.get("InstanceId"),
            interface_id=data.get("NetworkInterfaceId"),
            private_ip=data.get("PrivateIpAddress"),
        )

    @property
    def associated(self) -> bool:
        return self.association_id is not None
