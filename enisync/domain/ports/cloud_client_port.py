"""
Cloud Client Port

Architectural Intent:
- Typed port over the cloud control plane for ENIs and elastic IPs
- Implemented by the boto3 EC2 adapter
- Every method raises CloudPermissionError when the credentials lack
  access and CloudOperationError (with the provider code) for any other
  service failure

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed), so test
  fakes only need the methods they exercise
- Filters are passed as {name: [values]} and translated by the adapter
"""

from typing import Optional, Protocol, runtime_checkable

from enisync.domain.value_objects.cloud_resources import (
    ElasticIpResource,
    NetworkInterfaceResource,
)


@runtime_checkable
class CloudClientPort(Protocol):
    """Port for ENI and elastic IP operations."""

    # -- interfaces -------------------------------------------------------

    def describe_interface(self, interface_id: str) -> NetworkInterfaceResource:
        """Describe one interface; UnknownInterfaceError if it does not exist."""
        ...

    def describe_interfaces(
        self, filters: Optional[dict[str, list[str]]] = None
    ) -> list[NetworkInterfaceResource]:
        ...

    def create_interface(
        self,
        subnet_id: str,
        description: Optional[str] = None,
        private_ip: Optional[str] = None,
        security_groups: Optional[list[str]] = None,
    ) -> NetworkInterfaceResource:
        ...

    def attach_interface(
        self, interface_id: str, instance_id: str, device_index: int
    ) -> str:
        """Attach and return the attachment id."""
        ...

    def detach_interface(self, attachment_id: str, force: bool = True) -> None:
        ...

    def delete_interface(self, interface_id: str) -> None:
        ...

    def interface_private_ips(self, interface_id: str) -> list[str]:
        """All private IPs of the interface, primary first."""
        ...

    def interface_attached(self, interface_id: str) -> bool:
        ...

    # -- private ips ------------------------------------------------------

    def assign_private_ip(
        self, interface_id: str, private_ip: Optional[str] = None
    ) -> None:
        """Assign a specific secondary IP, or let the provider pick one."""
        ...

    def unassign_private_ip(self, interface_id: str, private_ip: str) -> None:
        ...

    # -- elastic ips ------------------------------------------------------

    def describe_address(self, address: str) -> ElasticIpResource:
        """Look up by public IP, allocation id, association id or private IP."""
        ...

    def describe_addresses(
        self, filters: Optional[dict[str, list[str]]] = None
    ) -> list[ElasticIpResource]:
        ...

    def allocate_address(self) -> ElasticIpResource:
        ...

    def associate_address(
        self,
        allocation_id: str,
        interface_id: str,
        private_ip: str,
        allow_reassociation: bool = False,
    ) -> str:
        """Associate and return the association id."""
        ...

    def disassociate_address(self, association_id: str) -> None:
        ...

    def release_address(self, allocation_id: str) -> None:
        ...

    # -- tags and access --------------------------------------------------

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        ...

    def describe_tags(self, resource_id: str) -> dict[str, str]:
        ...

    def has_access(self) -> bool:
        """Dry-run every mutating operation; True only if all would succeed."""
        ...
