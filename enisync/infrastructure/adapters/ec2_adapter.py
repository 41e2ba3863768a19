"""
EC2 Cloud Client Adapter

Architectural Intent:
- Implements CloudClientPort over the boto3 EC2 client
- The boto3 client is created lazily on first use; its region comes from
  configuration or, when unset, from the instance's availability zone
- botocore ClientError is translated here and nowhere else:
  UnauthorizedOperation/AuthFailure become CloudPermissionError, any other
  service code becomes CloudOperationError carrying that code, except
  InvalidNetworkInterfaceID.NotFound (UnknownInterfaceError) and
  AttachmentLimitExceeded (its own CloudOperationError subclass)

Design Decisions:
- Responses are converted to cloud_resources value objects so callers never
  see boto3 dictionaries
- describe_address() chooses its filter from the shape of the input:
  eipalloc-* allocation id, eipassoc-* association id, an address inside the
  VPC CIDR is a private IP, anything else a public IP
- has_access() dry-runs every mutating call it can; assign/unassign private
  IP addresses have no dry-run mode and are not probed
"""

from __future__ import annotations
import ipaddress
import logging
import threading
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from enisync.domain.errors import (
    AttachmentLimitExceeded,
    CloudOperationError,
    CloudPermissionError,
    InstanceEnvironmentError,
    InvalidParameterError,
    UnknownAddressError,
    UnknownInterfaceError,
)
from enisync.domain.value_objects.cloud_resources import (
    ElasticIpResource,
    NetworkInterfaceResource,
)
from enisync.domain.value_objects.environment import Environment

logger = logging.getLogger(__name__)

PERMISSION_CODES = frozenset({"UnauthorizedOperation", "AuthFailure"})
INTERFACE_NOT_FOUND = "InvalidNetworkInterfaceID.NotFound"
ATTACHMENT_LIMIT = "AttachmentLimitExceeded"

# probes that mean "the call would have succeeded"
_DRY_RUN_OK = frozenset({"DryRunOperation", "InvalidAllocationID.NotFound"})

_ACCESS_PROBES: tuple[tuple[str, dict[str, Any]], ...] = (
    ("describe_network_interfaces", {}),
    ("create_network_interface", {"SubnetId": "subnet-abcd1234"}),
    (
        "attach_network_interface",
        {"NetworkInterfaceId": "eni-abcd1234", "InstanceId": "i-abcd1234", "DeviceIndex": 0},
    ),
    ("detach_network_interface", {"AttachmentId": "eni-attach-abcd1234"}),
    ("delete_network_interface", {"NetworkInterfaceId": "eni-abcd1234"}),
    (
        "create_tags",
        {"Resources": ["eni-abcd1234"], "Tags": [{"Key": "created by", "Value": "probe"}]},
    ),
    ("describe_addresses", {}),
    ("allocate_address", {"Domain": "vpc"}),
    ("release_address", {"AllocationId": "eipalloc-abcd1234"}),
    (
        "associate_address",
        {"AllocationId": "eipalloc-abcd1234", "NetworkInterfaceId": "eni-abcd1234"},
    ),
    ("disassociate_address", {"AssociationId": "eipassoc-abcd1234"}),
)


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def translate_client_error(error: ClientError) -> Exception:
    """Map a botocore ClientError onto the enisync error taxonomy."""
    code = error_code(error)
    message = error.response.get("Error", {}).get("Message", str(error))
    if code in PERMISSION_CODES:
        return CloudPermissionError(f"Operation not permitted: {message}")
    if code == INTERFACE_NOT_FOUND:
        return UnknownInterfaceError(f"Interface could not be located: {message}")
    if code == ATTACHMENT_LIMIT:
        return AttachmentLimitExceeded(f"EC2 service error ({code}: {message})", code)
    return CloudOperationError(f"EC2 service error ({code}: {message})", code)


def _filters(filters: Optional[dict[str, list[str]]]) -> list[dict[str, Any]]:
    return [{"Name": name, "Values": list(values)} for name, values in (filters or {}).items()]


class Ec2CloudClient:
    """boto3-backed CloudClientPort."""

    def __init__(
        self,
        region: str = "",
        profile: str = "",
        environment: Optional[Callable[[], Environment]] = None,
        client: Any = None,
    ):
        self._region = region
        self._profile = profile
        self._environment = environment
        self._client = client
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def region(self) -> str:
        if self._region:
            return self._region
        if self._environment is None:
            raise InstanceEnvironmentError("No region configured and no instance metadata")
        return self._environment().region

    @property
    def client(self) -> Any:
        with self._lock:
            if self._client is None:
                session_args = {"region_name": self.region}
                if self._profile:
                    session_args["profile_name"] = self._profile
                try:
                    self._client = boto3.Session(**session_args).client("ec2")
                except BotoCoreError as e:
                    raise InstanceEnvironmentError(
                        f"Unable to initialize EC2 client: {e}"
                    ) from e
            return self._client

    def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        try:
            return getattr(self.client, operation)(**params)
        except ClientError as e:
            raise translate_client_error(e) from e

    def _vpc_cidr(self) -> str:
        if self._environment is None:
            raise InstanceEnvironmentError("VPC CIDR unknown without instance metadata")
        return self._environment().vpc_cidr

    # ------------------------------------------------------------------
    # Interfaces
    # ------------------------------------------------------------------

    def describe_interface(self, interface_id: str) -> NetworkInterfaceResource:
        resp = self._call("describe_network_interfaces", NetworkInterfaceIds=[interface_id])
        interfaces = resp.get("NetworkInterfaces", [])
        if not interfaces:
            raise UnknownInterfaceError(f"Interface {interface_id} could not be located")
        return NetworkInterfaceResource.from_api(interfaces[0])

    def describe_interfaces(
        self, filters: Optional[dict[str, list[str]]] = None
    ) -> list[NetworkInterfaceResource]:
        resp = self._call("describe_network_interfaces", Filters=_filters(filters))
        return [NetworkInterfaceResource.from_api(i) for i in resp.get("NetworkInterfaces", [])]

    def create_interface(
        self,
        subnet_id: str,
        description: Optional[str] = None,
        private_ip: Optional[str] = None,
        security_groups: Optional[list[str]] = None,
    ) -> NetworkInterfaceResource:
        params: dict[str, Any] = {"SubnetId": subnet_id}
        if description:
            params["Description"] = description
        if private_ip:
            params["PrivateIpAddress"] = private_ip
        if security_groups:
            params["Groups"] = list(security_groups)
        resp = self._call("create_network_interface", **params)
        resource = NetworkInterfaceResource.from_api(resp["NetworkInterface"])
        logger.info(
            "Created interface %s in %s", resource.interface_id, subnet_id,
            extra={"interface_id": resource.interface_id},
        )
        return resource

    def attach_interface(self, interface_id: str, instance_id: str, device_index: int) -> str:
        resp = self._call(
            "attach_network_interface",
            NetworkInterfaceId=interface_id,
            InstanceId=instance_id,
            DeviceIndex=device_index,
        )
        logger.info(
            "Attached %s to %s as device %d", interface_id, instance_id, device_index,
            extra={"interface_id": interface_id},
        )
        return resp["AttachmentId"]

    def detach_interface(self, attachment_id: str, force: bool = True) -> None:
        self._call("detach_network_interface", AttachmentId=attachment_id, Force=force)
        logger.info("Detached %s", attachment_id)

    def delete_interface(self, interface_id: str) -> None:
        self._call("delete_network_interface", NetworkInterfaceId=interface_id)
        logger.info("Deleted interface %s", interface_id, extra={"interface_id": interface_id})

    def interface_private_ips(self, interface_id: str) -> list[str]:
        return self.describe_interface(interface_id).private_ip_addresses

    def interface_attached(self, interface_id: str) -> bool:
        return self.describe_interface(interface_id).attached

    # ------------------------------------------------------------------
    # Private IPs
    # ------------------------------------------------------------------

    def assign_private_ip(self, interface_id: str, private_ip: Optional[str] = None) -> None:
        params: dict[str, Any] = {"NetworkInterfaceId": interface_id, "AllowReassignment": False}
        if private_ip:
            params["PrivateIpAddresses"] = [private_ip]
        else:
            params["SecondaryPrivateIpAddressCount"] = 1
        self._call("assign_private_ip_addresses", **params)
        logger.info(
            "Assigned %s to %s", private_ip or "a new private IP", interface_id,
            extra={"interface_id": interface_id, "private_ip": private_ip},
        )

    def unassign_private_ip(self, interface_id: str, private_ip: str) -> None:
        self._call(
            "unassign_private_ip_addresses",
            NetworkInterfaceId=interface_id,
            PrivateIpAddresses=[private_ip],
        )
        logger.info(
            "Unassigned %s from %s", private_ip, interface_id,
            extra={"interface_id": interface_id, "private_ip": private_ip},
        )

    # ------------------------------------------------------------------
    # Elastic IPs
    # ------------------------------------------------------------------

    def address_filter(self, address: str) -> str:
        """Name of the describe_addresses filter that matches `address`."""
        if address.startswith("eipalloc-"):
            return "allocation-id"
        if address.startswith("eipassoc-"):
            return "association-id"
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            raise InvalidParameterError(f"Invalid address: {address}")
        if ip in ipaddress.ip_network(self._vpc_cidr(), strict=False):
            return "private-ip-address"
        return "public-ip"

    def describe_address(self, address: str) -> ElasticIpResource:
        addresses = self.describe_addresses(
            {"domain": ["vpc"], self.address_filter(address): [address]}
        )
        if not addresses:
            raise UnknownAddressError(f"IP {address} could not be located")
        return addresses[0]

    def describe_addresses(
        self, filters: Optional[dict[str, list[str]]] = None
    ) -> list[ElasticIpResource]:
        resp = self._call("describe_addresses", Filters=_filters(filters))
        return [ElasticIpResource.from_api(a) for a in resp.get("Addresses", [])]

    def allocate_address(self) -> ElasticIpResource:
        resp = self._call("allocate_address", Domain="vpc")
        resource = ElasticIpResource.from_api(resp)
        logger.info("Allocated %s (%s)", resource.public_ip, resource.allocation_id)
        return resource

    def associate_address(
        self,
        allocation_id: str,
        interface_id: str,
        private_ip: str,
        allow_reassociation: bool = False,
    ) -> str:
        resp = self._call(
            "associate_address",
            AllocationId=allocation_id,
            NetworkInterfaceId=interface_id,
            PrivateIpAddress=private_ip,
            AllowReassociation=allow_reassociation,
        )
        logger.info("Associated %s with %s on %s", allocation_id, private_ip, interface_id)
        return resp["AssociationId"]

    def disassociate_address(self, association_id: str) -> None:
        self._call("disassociate_address", AssociationId=association_id)
        logger.info("Dissociated %s", association_id)

    def release_address(self, allocation_id: str) -> None:
        self._call("release_address", AllocationId=allocation_id)
        logger.info("Released %s", allocation_id)

    # ------------------------------------------------------------------
    # Tags and access
    # ------------------------------------------------------------------

    def create_tags(self, resource_id: str, tags: dict[str, str]) -> None:
        self._call(
            "create_tags",
            Resources=[resource_id],
            Tags=[{"Key": key, "Value": value} for key, value in tags.items()],
        )

    def describe_tags(self, resource_id: str) -> dict[str, str]:
        resp = self._call("describe_tags", Filters=_filters({"resource-id": [resource_id]}))
        return {t["Key"]: t.get("Value", "") for t in resp.get("Tags", [])}

    def has_access(self) -> bool:
        for operation, params in _ACCESS_PROBES:
            try:
                getattr(self.client, operation)(DryRun=True, **params)
            except ClientError as e:
                code = error_code(e)
                if code in _DRY_RUN_OK:
                    continue
                if code in PERMISSION_CODES:
                    logger.info("No permission for %s", operation)
                    return False
                raise CloudOperationError(
                    "Unexpected behavior while testing EC2 client permissions", code
                ) from e
            raise CloudOperationError(
                "Unexpected behavior while testing EC2 client permissions"
            )
        return True
