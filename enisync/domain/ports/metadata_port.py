"""
Metadata Port

Architectural Intent:
- Port interface for the instance metadata service
- Reads are cached per path for the life of the adapter; cache=False forces
  a fresh read (used when polling for convergence)
- The not-found policy is explicit per call: pass not_found=<default> to get
  a default back on 404, or leave it as RAISE to get MetadataNotFound
- session() scopes one connection to one logical operation: it returns a
  context manager yielding an object with the same get/instance/interface
  reads, all sharing that connection, which is released on exit
"""

from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable


class _Raise:
    def __repr__(self) -> str:
        return "RAISE"


RAISE: Any = _Raise()


@runtime_checkable
class MetadataPort(Protocol):
    """Port for instance metadata reads."""

    def get(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        """Read a path relative to the metadata base path."""
        ...

    def instance(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        """Read an instance-level field, e.g. 'instance-id'."""
        ...

    def interface(
        self, hwaddr: str, path: str, not_found: Any = RAISE, cache: bool = True
    ) -> Any:
        """Read a per-interface field under network/interfaces/macs/<hwaddr>/."""
        ...

    def session(self) -> AbstractContextManager:
        """Yield a reader holding one connection for the with-block."""
        ...
