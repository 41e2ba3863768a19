"""
Configure Interfaces Use Case

Architectural Intent:
- Local-only operations over every device, one device, or a subnet's
  devices: list, configure (reconcile), deconfigure, enable, disable
- Needs only the instance metadata and the `ip` command, never the cloud
  API, so it can run from boot scripts without credentials
- Also hosts the permission probes (can_modify, has_access) and the
  environment summary
"""

from __future__ import annotations
import logging
from typing import Any, Union

from enisync.application.lifecycle_context import LifecycleContext
from enisync.domain.errors import InvalidInterfaceError

logger = logging.getLogger(__name__)

Key = Union[int, str, None]


class ConfigureInterfaces:
    def __init__(self, context: LifecycleContext):
        self.context = context

    def list(self, selector: Key = None) -> list[dict[str, Any]]:
        return [dev.to_dict() for dev in self.context.registry.filter(selector)]

    def configure(self, selector: Key = None, dry_run: bool = False) -> int:
        """Reconcile the selected devices; returns the total change count."""
        ctx = self.context
        with ctx.span("configure", selector=selector, dry_run=dry_run):
            ctx.registry.clean()
            total = 0
            for dev in ctx.registry.filter(selector):
                changes = dev.configure(dry_run=dry_run)
                ctx.record_reconciliation(dev.name, changes, dry_run)
                total += changes
            return total

    def deconfigure(self, selector: Key = None) -> bool:
        with self.context.span("deconfigure", selector=selector):
            for dev in self.context.registry.filter(selector):
                dev.deconfigure()
            return True

    def enable(self, selector: Key = None) -> int:
        """Enable the selected devices; returns how many changed state."""
        with self.context.span("enable", selector=selector):
            count = 0
            for dev in self.context.registry.filter(selector):
                if not dev.enabled():
                    dev.enable()
                    count += 1
            return count

    def disable(self, selector: Key = None) -> int:
        """Disable the selected devices; eth0 is skipped, or refused if named."""
        with self.context.span("disable", selector=selector):
            devices = self.context.registry.filter(selector)
            if selector is not None:
                for dev in devices:
                    if dev.is_primary:
                        raise InvalidInterfaceError(
                            f"For safety, interface {dev.name} cannot be disabled."
                        )
            count = 0
            for dev in devices:
                if dev.is_primary:
                    continue
                if dev.enabled():
                    dev.disable()
                    count += 1
            return count

    def can_modify(self) -> bool:
        return self.context.ip.can_modify()

    def has_access(self) -> bool:
        with self.context.span("has_access"):
            return self.context.cloud.has_access()

    def environment(self) -> dict[str, str]:
        return self.context.environment().to_dict()

    def enabled(self) -> list[str]:
        return [dev.name for dev in self.context.registry.enabled()]
