"""
Reconciliation Change Value Objects

Architectural Intent:
- One immutable record per corrective action a reconciliation pass takes
- Interface.plan() produces a list of these; Interface.configure() applies
  them unless running dry, and the change count is always len(plan)
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ResetPrimary:
    """Deconfigure the device, then add the desired primary address."""
    address: Optional[str]

    def describe(self) -> str:
        return f"reset primary address to {self.address}"


@dataclass(frozen=True)
class AddAddress:
    address: str

    def describe(self) -> str:
        return f"add address {self.address}"


@dataclass(frozen=True)
class RemoveAddress:
    address: str

    def describe(self) -> str:
        return f"remove address {self.address}"


@dataclass(frozen=True)
class AddRule:
    address: str

    def describe(self) -> str:
        return f"add policy rule from {self.address}"


@dataclass(frozen=True)
class RemoveRule:
    preference: int
    address: str

    def describe(self) -> str:
        return f"remove policy rule {self.preference} from {self.address}"


Change = Union[ResetPrimary, AddAddress, RemoveAddress, AddRule, RemoveRule]


@dataclass(frozen=True)
class PolicyRule:
    """One parsed line of `ip rule list`."""
    preference: int
    source: Optional[str]
    table: str
