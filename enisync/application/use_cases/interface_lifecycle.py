"""
Interface Lifecycle Use Case

Architectural Intent:
- Drives the multi-step cloud lifecycle of an ENI: create, attach, detach,
  and bulk clean-up of unattached interfaces
- Every step that mutates the cloud is followed by a convergence wait before
  anything that depends on the mutation runs locally
- No rollback: a failure mid-sequence leaves the partially mutated state in
  place; re-running the operation is expected to converge

Safety:
- Device 0 is never detached
- Detach deletes the cloud resource only when enisync created it
- Clean only touches interfaces in this VPC, and by default only those
  carrying our ownership tag that are older than the protection window
"""

import logging
import re

from enisync.application.dtos.lifecycle_dtos import (
    AttachInterfaceRequest,
    CleanInterfacesRequest,
    CreateInterfaceRequest,
    DetachInterfaceRequest,
    InterfaceAttached,
    InterfaceCreated,
    InterfaceDetached,
    InterfacesCleaned,
)
from enisync.application.lifecycle_context import LifecycleContext
from enisync.application.orchestration.convergence import pending_on
from enisync.domain.errors import (
    AttachmentLimitExceeded,
    InvalidInterfaceError,
    InvalidParameterError,
    MetadataNotFound,
    UnknownInterfaceError,
)
from enisync.domain.value_objects.cloud_resources import (
    STATUS_AVAILABLE,
    TAG_CREATED_BY,
    NetworkInterfaceResource,
)
from enisync.domain.value_objects.interface_assertion import Exists, expectations

logger = logging.getLogger(__name__)


class InterfaceLifecycle:
    def __init__(self, context: LifecycleContext):
        self.context = context

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: CreateInterfaceRequest = CreateInterfaceRequest()) -> InterfaceCreated:
        ctx = self.context
        with ctx.span("create_interface", subnet_id=request.subnet_id):
            env = ctx.environment()
            subnet_id = request.subnet_id or ctx.registry.get(0).subnet_id
            created_on = ctx.now()
            description = request.description or (
                f"generated by {ctx.ownership.owner_tag} from {env.instance_id} "
                f"on {created_on.isoformat()}"
            )

            resource = ctx.cloud.create_interface(
                subnet_id,
                description=description,
                private_ip=request.primary_ip,
                security_groups=list(request.security_groups) or None,
            )
            interface_id = resource.interface_id
            tags = ctx.ownership.tags_for(env.instance_id, created_on)

            def tagged() -> bool:
                ctx.cloud.describe_interface(interface_id)
                ctx.cloud.create_tags(interface_id, tags)
                return True

            ctx.waiter.wait_for(
                f"interface {interface_id} to be created",
                pending_on(tagged, UnknownInterfaceError),
            )
            return InterfaceCreated(
                interface_id=interface_id,
                subnet_id=subnet_id,
                private_ip=resource.primary_ip,
            )

    # ------------------------------------------------------------------
    # Attach
    # ------------------------------------------------------------------

    def attach(self, request: AttachInterfaceRequest) -> InterfaceAttached:
        ctx = self.context
        interface_id = request.interface_id
        with ctx.span("attach_interface", interface_id=interface_id):
            env = ctx.environment()
            if request.configure or request.enable:
                ctx.assert_can_modify()
            device = ctx.interface(request.device, Exists(False))

            try:
                ctx.cloud.attach_interface(interface_id, env.instance_id, device.device_number)
            except AttachmentLimitExceeded as e:
                raise AttachmentLimitExceeded(
                    f"Unable to attach {interface_id} to {device.name} "
                    "(attachment limit exceeded)",
                    e.code,
                ) from e

            if request.block or request.configure or request.enable:
                ctx.waiter.wait_for(
                    f"{interface_id} to attach as {device.name}",
                    pending_on(
                        lambda: (
                            device.exists()
                            and device.interface_id == interface_id
                            and ctx.cloud.interface_attached(interface_id)
                        ),
                        InvalidInterfaceError,
                        UnknownInterfaceError,
                        MetadataNotFound,
                    ),
                )

            if request.configure:
                changes = device.configure()
                ctx.record_reconciliation(device.name, changes, False)
            if request.enable:
                device.enable()

            return InterfaceAttached(
                interface_id=interface_id,
                device_name=device.name,
                device_number=device.device_number,
                configured=request.configure,
                enabled=request.enable,
            )

    # ------------------------------------------------------------------
    # Detach
    # ------------------------------------------------------------------

    def detach(self, request: DetachInterfaceRequest) -> InterfaceDetached:
        ctx = self.context
        with ctx.span("detach_interface", device=request.device):
            env = ctx.environment()
            device = ctx.registry.get(request.device)
            if device.is_primary:
                raise InvalidInterfaceError(
                    f"For safety, interface {device.name} cannot be detached."
                )
            device.assert_matches(
                *expectations(
                    exists=True,
                    interface_id=request.interface_id,
                    device_number=request.device_number,
                )
            )
            ctx.assert_can_modify()

            interface_id = device.interface_id
            resource = ctx.cloud.describe_interface(interface_id)
            if not resource.attached_to(env.instance_id) or resource.attachment is None:
                raise UnknownInterfaceError(
                    f"Interface {interface_id} is not attached to this machine"
                )

            public_ips = tuple(association.public_ip for _, association in resource.associations)
            released = self._release_addresses(resource) if request.release else []

            device.disable()
            device.deconfigure()
            ctx.cloud.detach_interface(resource.attachment.attachment_id, force=True)

            created_by_us = ctx.ownership.owns(resource)
            delete = request.delete and created_by_us
            if delete or request.block:
                ctx.waiter.wait_for(
                    f"{interface_id} to detach from {device.name}",
                    lambda: not device.exists() and not ctx.cloud.interface_attached(interface_id),
                )
            if delete:
                ctx.cloud.delete_interface(interface_id)

            return InterfaceDetached(
                interface_id=interface_id,
                device_name=device.name,
                device_number=device.device_number,
                created_by_us=created_by_us,
                deleted=delete,
                released=tuple(released),
                public_ips=public_ips,
            )

    def _release_addresses(self, resource: NetworkInterfaceResource) -> list[str]:
        """Dissociate and release every elastic IP on the interface."""
        released = []
        for private_ip, association in resource.associations:
            if association.association_id:
                self.context.cloud.disassociate_address(association.association_id)
            if association.allocation_id:
                self.context.cloud.release_address(association.allocation_id)
                released.append(association.public_ip)
                logger.info("Released %s from %s", association.public_ip, private_ip)
        return released

    # ------------------------------------------------------------------
    # Clean
    # ------------------------------------------------------------------

    def clean(self, request: CleanInterfacesRequest = CleanInterfacesRequest()) -> InterfacesCleaned:
        ctx = self.context
        with ctx.span("clean_interfaces", filter=request.filter):
            env = ctx.environment()
            filters = {"vpc-id": [env.vpc_id], "status": [STATUS_AVAILABLE]}
            key = request.filter
            if key:
                if key.startswith("eni-"):
                    filters["network-interface-id"] = [key]
                elif key.startswith("subnet-"):
                    filters["subnet-id"] = [key]
                elif re.match(rf"^{re.escape(env.region)}[a-z]$", key):
                    filters["availability-zone"] = [key]
                else:
                    raise InvalidParameterError(f"Unknown interface filter: {key}")
            if request.safe_mode:
                filters[f"tag:{TAG_CREATED_BY}"] = [ctx.ownership.owner_tag]

            now = ctx.now()
            deleted: list[str] = []
            released: list[str] = []
            for resource in ctx.cloud.describe_interfaces(filters):
                if resource.status != STATUS_AVAILABLE:
                    continue
                if not ctx.ownership.may_clean(resource, request.safe_mode, now):
                    logger.info("Skipping %s (not ours or too new)", resource.interface_id)
                    continue
                for private_ip, association in resource.associations:
                    if association.association_id:
                        ctx.cloud.disassociate_address(association.association_id)
                    if request.release and association.allocation_id:
                        ctx.cloud.release_address(association.allocation_id)
                        released.append(association.public_ip)
                ctx.cloud.delete_interface(resource.interface_id)
                deleted.append(resource.interface_id)

            return InterfacesCleaned(deleted=tuple(deleted), released=tuple(released))
