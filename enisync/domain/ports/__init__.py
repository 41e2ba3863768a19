"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from enisync.domain.ports.cloud_client_port import CloudClientPort
from enisync.domain.ports.device_table_port import DeviceTablePort
from enisync.domain.ports.metadata_port import MetadataPort, RAISE
from enisync.domain.ports.shell_runner_port import CommandResult, ShellRunnerPort

__all__ = [
    "CloudClientPort",
    "DeviceTablePort",
    "MetadataPort",
    "RAISE",
    "CommandResult",
    "ShellRunnerPort",
]
