"""
Lifecycle Context

Architectural Intent:
- The explicit, per-process bundle of collaborators every use case needs:
  environment, interface registry, cloud client, convergence waiter,
  ownership policy and the `ip` command
- Built once by the composition root (or once per test); nothing in the
  application layer reaches for module-level state
"""

from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Optional, Protocol

from enisync.application.orchestration.convergence import ConvergenceWaiter
from enisync.domain.entities.interface import Interface
from enisync.domain.errors import InterfacePermissionError
from enisync.domain.ports.cloud_client_port import CloudClientPort
from enisync.domain.ports.interface_registry_port import InterfaceRegistryPort
from enisync.domain.services.ip_command import IpCommand
from enisync.domain.services.ownership import OwnershipPolicy
from enisync.domain.value_objects.environment import Environment
from enisync.domain.value_objects.interface_assertion import InterfaceAssertion


class Telemetry(Protocol):
    def span(self, operation: str, attributes: Optional[dict[str, str]] = None) -> AbstractContextManager:
        ...

    def record_reconciliation(self, device: str, changes: int, dry_run: bool) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class LifecycleContext:
    environment: Callable[[], Environment]
    registry: InterfaceRegistryPort
    cloud: CloudClientPort
    ip: IpCommand
    waiter: ConvergenceWaiter = field(default_factory=ConvergenceWaiter)
    ownership: OwnershipPolicy = field(default_factory=OwnershipPolicy)
    connectivity_target: str = "8.8.8.8"
    connectivity_timeout: int = 30
    telemetry: Optional[Telemetry] = None
    now: Callable[[], datetime] = _utcnow

    def span(self, operation: str, **attributes: Any) -> AbstractContextManager:
        if self.telemetry is None:
            return nullcontext()
        return self.telemetry.span(
            operation, {k: str(v) for k, v in attributes.items() if v is not None}
        )

    def record_reconciliation(self, device: str, changes: int, dry_run: bool) -> None:
        if self.telemetry is not None:
            self.telemetry.record_reconciliation(device, changes, dry_run)

    def interface(self, key: Any, *assertions: InterfaceAssertion) -> Interface:
        """Resolve a device and fail fast unless every assertion holds."""
        return self.registry.get(key).assert_matches(*assertions)

    def assert_can_modify(self) -> None:
        if not self.ip.can_modify():
            raise InterfacePermissionError(
                "Insufficient user permission to modify network interfaces (try sudo)"
            )

    def ping(self, private_ip: str, target: Optional[str] = None, timeout: Optional[int] = None) -> bool:
        return self.ip.ping(
            private_ip,
            target or self.connectivity_target,
            timeout or self.connectivity_timeout,
        )
