"""
Domain Services Package

Architectural Intent:
- Stateless domain logic that does not belong to a single entity
- IpCommand: classified `ip`/`ping` execution and output parsing
- OwnershipPolicy: which cloud resources enisync may clean up
"""

from enisync.domain.services.ip_command import IpCommand, parse_addresses, parse_rules
from enisync.domain.services.ownership import OwnershipPolicy

__all__ = [
    "IpCommand",
    "parse_addresses",
    "parse_rules",
    "OwnershipPolicy",
]
