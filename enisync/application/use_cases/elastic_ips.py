"""
Elastic IP Use Case

Architectural Intent:
- Allocates, associates, dissociates, tests and releases elastic IPs for
  private addresses on this instance's interfaces
- Any address can be named by public IP, private IP, allocation id or
  association id; extra attributes supplied by the caller are cross-checked
  against the cloud record before anything is changed

Safety:
- Never reassociates an address that is already in use
- Never dissociates the public IP of eth0's primary private address
- Refuses to act on an address associated with another machine
- Refuses to release an address that is still associated
"""

import logging
from typing import Optional

from enisync.application.dtos.lifecycle_dtos import (
    AddressAllocated,
    AddressAssociated,
    AddressDissociated,
    AddressReleased,
    AddressRequest,
    AssociateAddressRequest,
)
from enisync.application.lifecycle_context import LifecycleContext
from enisync.application.orchestration.convergence import pending_on
from enisync.domain.entities.interface import Interface
from enisync.domain.errors import (
    CloudOperationError,
    InterfaceOperationError,
    InvalidInterfaceError,
    InvalidParameterError,
    UnknownAddressError,
    UnknownInterfaceError,
)
from enisync.domain.value_objects.cloud_resources import ElasticIpResource
from enisync.domain.value_objects.interface_assertion import expectations

logger = logging.getLogger(__name__)

_CHECKED_ATTRIBUTES = (
    ("private_ip", "private IP"),
    ("public_ip", "public IP"),
    ("allocation_id", "allocation id"),
    ("association_id", "association id"),
    ("interface_id", "interface id"),
)


class ElasticIpLifecycle:
    def __init__(self, context: LifecycleContext):
        self.context = context

    # ------------------------------------------------------------------
    # Allocate / release
    # ------------------------------------------------------------------

    def allocate(self) -> AddressAllocated:
        with self.context.span("allocate_elastic_ip"):
            eip = self._allocate()
            return AddressAllocated(public_ip=eip.public_ip, allocation_id=eip.allocation_id)

    def _allocate(self) -> ElasticIpResource:
        ctx = self.context
        eip = ctx.cloud.allocate_address()
        ctx.waiter.wait_for(
            f"{eip.public_ip} ({eip.allocation_id}) to be available",
            pending_on(lambda: ctx.cloud.describe_address(eip.allocation_id), UnknownAddressError),
        )
        return eip

    def release(self, request: AddressRequest) -> AddressReleased:
        ctx = self.context
        with ctx.span("release_elastic_ip", address=request.address):
            eip = self._resolve(request)
            if eip.associated:
                raise InvalidParameterError(
                    f"Elastic IP {eip.public_ip} ({eip.allocation_id}) is currently "
                    f"associated with {eip.private_ip}"
                )
            ctx.cloud.release_address(eip.allocation_id)
            return AddressReleased(public_ip=eip.public_ip, allocation_id=eip.allocation_id)

    # ------------------------------------------------------------------
    # Associate / dissociate
    # ------------------------------------------------------------------

    def associate(self, request: AssociateAddressRequest) -> AddressAssociated:
        ctx = self.context
        private_ip = request.private_ip
        with ctx.span("associate_elastic_ip", private_ip=private_ip):
            key = private_ip if request.device is None else request.device
            device = ctx.interface(key, *expectations(exists=True, private_ip=private_ip))
            interface_id = device.interface_id

            if request.allocation_id or request.public_ip:
                eip = ctx.cloud.describe_address(request.allocation_id or request.public_ip)
                if request.public_ip and eip.public_ip != request.public_ip:
                    raise InvalidParameterError(
                        f"{request.allocation_id} does not match {request.public_ip}"
                    )
                if eip.associated:
                    raise CloudOperationError(
                        f"{eip.public_ip} is already associated with {eip.private_ip}"
                    )
            else:
                eip = None if request.new else self._unassociated()
                eip = eip or self._allocate()

            association_id = ctx.cloud.associate_address(
                eip.allocation_id, interface_id, private_ip, allow_reassociation=False
            )

            if request.block or request.test:
                ctx.waiter.wait_for(
                    f"{eip.public_ip} to be associated with {private_ip}",
                    lambda: device.public_ips().get(private_ip) == eip.public_ip,
                )
            if request.test and not ctx.ping(private_ip):
                raise InterfaceOperationError(
                    f"Unable to reach {ctx.connectivity_target} from {private_ip}"
                )

            return AddressAssociated(
                private_ip=private_ip,
                device_name=device.name,
                interface_id=interface_id,
                public_ip=eip.public_ip,
                allocation_id=eip.allocation_id,
                association_id=association_id,
            )

    def _unassociated(self) -> Optional[ElasticIpResource]:
        for eip in self.context.cloud.describe_addresses({"domain": ["vpc"]}):
            if not eip.associated:
                return eip
        return None

    def dissociate(self, request: AddressRequest) -> AddressDissociated:
        ctx = self.context
        with ctx.span("dissociate_elastic_ip", address=request.address):
            eip = self._resolve(request)
            device = self._local_device(eip)
            desired = device.meta_ips()
            if device.is_primary and desired and eip.private_ip == desired[0]:
                raise InvalidInterfaceError(
                    f"For safety, a public IP cannot be dissociated from the primary IP on {device.name}"
                )

            ctx.cloud.disassociate_address(eip.association_id)
            if request.release:
                ctx.cloud.release_address(eip.allocation_id)

            if request.block:
                ctx.waiter.wait_for(
                    f"{eip.public_ip} to be dissociated from {eip.private_ip}",
                    lambda: device.public_ips().get(eip.private_ip) != eip.public_ip,
                )

            return AddressDissociated(
                private_ip=eip.private_ip,
                device_name=device.name,
                interface_id=eip.interface_id,
                public_ip=eip.public_ip,
                allocation_id=eip.allocation_id,
                association_id=eip.association_id,
                released=request.release,
            )

    def test_association(self, request: AddressRequest) -> bool:
        """Connectivity test through an associated elastic IP."""
        ctx = self.context
        with ctx.span("test_association", address=request.address):
            eip = self._resolve(request)
            self._local_device(eip)
            return ctx.ping(eip.private_ip)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, request: AddressRequest) -> ElasticIpResource:
        """Look the address up and check every attribute the caller supplied."""
        eip = self.context.cloud.describe_address(request.address)
        for attribute, label in _CHECKED_ATTRIBUTES:
            expected = getattr(request, attribute)
            actual = getattr(eip, attribute)
            if expected is not None and expected != actual:
                raise InvalidParameterError(
                    f"{label} {expected} does not match {eip.public_ip} ({actual})"
                )
        return eip

    def _local_device(self, eip: ElasticIpResource) -> Interface:
        """The local device an associated address belongs to."""
        if not eip.associated or not eip.interface_id:
            raise InvalidParameterError(f"{eip.public_ip} is not associated")
        env = self.context.environment()
        if eip.instance_id and eip.instance_id != env.instance_id:
            raise UnknownInterfaceError(
                f"{eip.public_ip} is associated with an interface on another machine"
            )
        return self.context.interface(eip.interface_id)
