"""
Composition Root

Architectural Intent:
- Dependency injection composition root for enisync
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Everything that used to be process-wide state (the detected environment,
  the metadata cache, the interface instance cache) lives on objects owned
  by one container; build a second container for an isolated second world
- The EC2 client and the environment are resolved lazily, so purely local
  commands never need cloud credentials
"""

from dataclasses import dataclass
from typing import Optional

from enisync.application.lifecycle_context import LifecycleContext
from enisync.application.orchestration.convergence import ConvergenceWaiter
from enisync.application.use_cases.configure_interfaces import ConfigureInterfaces
from enisync.application.use_cases.elastic_ips import ElasticIpLifecycle
from enisync.application.use_cases.interface_lifecycle import InterfaceLifecycle
from enisync.application.use_cases.secondary_ips import SecondaryIpLifecycle
from enisync.domain.entities.interface import Interface
from enisync.domain.services.ip_command import IpCommand
from enisync.domain.services.ownership import OwnershipPolicy
from enisync.infrastructure.adapters.ec2_adapter import Ec2CloudClient
from enisync.infrastructure.adapters.metadata_adapter import InstanceMetadataClient
from enisync.infrastructure.adapters.shell_adapter import SubprocessShellRunner
from enisync.infrastructure.adapters.sysfs_adapter import SysfsDeviceTable
from enisync.infrastructure.config import EniSyncConfig
from enisync.infrastructure.environment import EnvironmentDetector
from enisync.infrastructure.interface_registry import InterfaceRegistry
from enisync.infrastructure.telemetry.otel_exporter import OTELExporter, create_exporter


@dataclass
class EniSyncContainer:
    """DI container holding all wired dependencies."""

    config: EniSyncConfig
    metadata: InstanceMetadataClient
    environment: EnvironmentDetector
    cloud: Ec2CloudClient
    registry: InterfaceRegistry
    telemetry: OTELExporter
    context: LifecycleContext
    interfaces: InterfaceLifecycle
    secondary_ips: SecondaryIpLifecycle
    elastic_ips: ElasticIpLifecycle
    configuration: ConfigureInterfaces


def create_container(config: Optional[EniSyncConfig] = None) -> EniSyncContainer:
    """Create and wire all dependencies."""
    config = config or EniSyncConfig()

    metadata = InstanceMetadataClient(
        host=config.metadata.host,
        port=config.metadata.port,
        open_timeout=config.metadata.open_timeout,
        read_timeout=config.metadata.read_timeout,
        retries=config.metadata.retries,
    )
    environment = EnvironmentDetector(metadata)
    devices = SysfsDeviceTable(config.commands.sysfs_root)
    ip = IpCommand(
        SubprocessShellRunner(),
        ip_path=config.commands.ip_path,
        ping_path=config.commands.ping_path,
    )

    def interface_factory(name: str) -> Interface:
        return Interface(
            name, ip, metadata, devices, scope_cidr=lambda: environment().vpc_cidr
        )

    registry = InterfaceRegistry(devices, interface_factory)
    cloud = Ec2CloudClient(
        region=config.cloud.region,
        profile=config.cloud.profile,
        environment=environment,
    )
    telemetry = create_exporter(
        endpoint=config.telemetry.endpoint,
        insecure=config.telemetry.insecure,
    )
    waiter = ConvergenceWaiter(
        timeout=config.convergence.timeout,
        interval=config.convergence.interval,
        observer=telemetry.record_convergence,
    )
    context = LifecycleContext(
        environment=environment,
        registry=registry,
        cloud=cloud,
        ip=ip,
        waiter=waiter,
        ownership=OwnershipPolicy(
            owner_tag=config.ownership.owner_tag,
            protect_seconds=config.ownership.protect_seconds,
        ),
        connectivity_target=config.connectivity.target,
        connectivity_timeout=config.connectivity.timeout,
        telemetry=telemetry,
    )

    return EniSyncContainer(
        config=config,
        metadata=metadata,
        environment=environment,
        cloud=cloud,
        registry=registry,
        telemetry=telemetry,
        context=context,
        interfaces=InterfaceLifecycle(context),
        secondary_ips=SecondaryIpLifecycle(context),
        elastic_ips=ElasticIpLifecycle(context),
        configuration=ConfigureInterfaces(context),
    )
