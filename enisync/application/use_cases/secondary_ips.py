"""
Secondary IP Use Case

Architectural Intent:
- Assigns and unassigns secondary private IPs on an attached ENI and keeps
  the local alias and policy rule in step with the cloud assignment
- Auto-assigned addresses are discovered by diffing the interface's private
  IPs against a snapshot taken before the call; the device's metadata is
  the fallback source while the describe call lags
- With block=True the call only returns once the change is visible in both
  the instance metadata and the cloud API, so a follow-up read never sees
  stale state
"""

import logging
from typing import Optional

from enisync.application.dtos.lifecycle_dtos import (
    AssignSecondaryIpRequest,
    SecondaryIpAssigned,
    SecondaryIpUnassigned,
    UnassignSecondaryIpRequest,
)
from enisync.application.lifecycle_context import LifecycleContext
from enisync.application.orchestration.convergence import pending_on
from enisync.domain.errors import (
    InterfaceOperationError,
    InvalidParameterError,
    UnknownInterfaceError,
)
from enisync.domain.value_objects.interface_assertion import (
    Exists,
    HasPrivateIP,
    expectations,
)

logger = logging.getLogger(__name__)


class SecondaryIpLifecycle:
    def __init__(self, context: LifecycleContext):
        self.context = context

    def assign(self, request: AssignSecondaryIpRequest) -> SecondaryIpAssigned:
        ctx = self.context
        with ctx.span("assign_secondary_ip", device=request.device):
            if request.configure:
                ctx.assert_can_modify()
            device = ctx.interface(request.device, Exists(True))
            interface_id = device.interface_id
            current = ctx.cloud.interface_private_ips(interface_id)

            private_ip = request.private_ip
            if private_ip:
                if private_ip in current:
                    raise InvalidParameterError(
                        f"IP {private_ip} already assigned to {device.name}"
                    )
                ctx.cloud.assign_private_ip(interface_id, private_ip)
            else:
                ctx.cloud.assign_private_ip(interface_id)

                def new_address() -> Optional[str]:
                    fresh = [a for a in ctx.cloud.interface_private_ips(interface_id) if a not in current]
                    fresh = fresh or [a for a in device.meta_ips() if a not in current]
                    return fresh[0] if fresh else None

                private_ip = ctx.waiter.wait_for(
                    f"a new private IP to be assigned to {interface_id}",
                    pending_on(new_address),
                )

            if request.configure:
                device.add_alias(private_ip)
                if request.test and not ctx.ping(private_ip):
                    raise InterfaceOperationError(
                        f"Unable to reach {ctx.connectivity_target} from {private_ip}"
                    )

            if request.block:
                ctx.waiter.wait_for(
                    f"{private_ip} to appear on {interface_id}",
                    lambda: private_ip in device.meta_ips()
                    and private_ip in ctx.cloud.interface_private_ips(interface_id),
                )

            logger.info("Assigned %s to %s (%s)", private_ip, device.name, interface_id)
            return SecondaryIpAssigned(
                private_ip=private_ip,
                device_name=device.name,
                interface_id=interface_id,
            )

    def unassign(self, request: UnassignSecondaryIpRequest) -> SecondaryIpUnassigned:
        ctx = self.context
        private_ip = request.private_ip
        with ctx.span("unassign_secondary_ip", private_ip=private_ip):
            ctx.assert_can_modify()
            key = private_ip if request.device is None else request.device
            device = ctx.interface(key, *expectations(exists=True, private_ip=private_ip))
            interface_id = device.interface_id

            resource = ctx.cloud.describe_interface(interface_id)
            entry = resource.private_ip(private_ip)
            if entry is None:
                raise UnknownInterfaceError(f"IP {private_ip} not found on {device.name}")
            if entry.primary:
                raise InvalidParameterError(
                    "The primary IP address of an interface cannot be unassigned"
                )

            public_ip = None
            released = False
            association = entry.association
            if association:
                public_ip = association.public_ip
                if association.association_id:
                    ctx.cloud.disassociate_address(association.association_id)
                if request.release and association.allocation_id:
                    ctx.cloud.release_address(association.allocation_id)
                    released = True

            device.remove_alias(private_ip)
            ctx.cloud.unassign_private_ip(interface_id, private_ip)

            if request.block:
                ctx.waiter.wait_for(
                    f"{private_ip} to be removed from {interface_id}",
                    lambda: private_ip not in device.meta_ips()
                    and private_ip not in ctx.cloud.interface_private_ips(interface_id),
                )

            return SecondaryIpUnassigned(
                private_ip=private_ip,
                device_name=device.name,
                interface_id=interface_id,
                public_ip=public_ip,
                released=released,
            )

    def test(
        self,
        private_ip: str,
        target: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> bool:
        """Connectivity test from a private IP configured on this instance."""
        ctx = self.context
        with ctx.span("test_secondary_ip", private_ip=private_ip):
            ctx.interface(private_ip, HasPrivateIP(private_ip))
            return ctx.ping(private_ip, target, timeout)
