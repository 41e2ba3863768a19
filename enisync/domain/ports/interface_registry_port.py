"""
Interface Registry Port

Architectural Intent:
- Port through which use cases look up local Interface entities
- Implemented by infrastructure.interface_registry.InterfaceRegistry
"""

from typing import Protocol, Union, runtime_checkable

from enisync.domain.entities.interface import Interface
from enisync.domain.value_objects.selector import FilterSelector, Selector


@runtime_checkable
class InterfaceRegistryPort(Protocol):

    def get(self, key: Union[int, str, None]) -> Interface:
        """Resolve an index, name, eni id, MAC, IP or None (next free device)."""
        ...

    def resolve(self, selector: Selector) -> Interface:
        ...

    def by_cloud_id(self, interface_id: str) -> Union[Interface, None]:
        ...

    def all(self) -> list[Interface]:
        ...

    def enabled(self) -> list[Interface]:
        ...

    def filter(self, key: Union[int, str, FilterSelector, None] = None) -> list[Interface]:
        """All devices, one device, or a subnet's devices; raises when empty."""
        ...

    def clean(self) -> None:
        ...
