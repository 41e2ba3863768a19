"""Tests for composition root wiring."""

from enisync.composition_root import EniSyncContainer, create_container
from enisync.infrastructure.adapters.ec2_adapter import Ec2CloudClient
from enisync.infrastructure.adapters.metadata_adapter import InstanceMetadataClient
from enisync.infrastructure.config import (
    CloudConfig,
    CommandsConfig,
    ConnectivityConfig,
    ConvergenceConfig,
    EniSyncConfig,
    MetadataConfig,
    OwnershipConfig,
)
from enisync.infrastructure.environment import EnvironmentDetector
from enisync.infrastructure.interface_registry import InterfaceRegistry


class TestCreateContainer:
    def test_default_container(self):
        container = create_container()
        assert isinstance(container, EniSyncContainer)
        assert isinstance(container.metadata, InstanceMetadataClient)
        assert isinstance(container.environment, EnvironmentDetector)
        assert isinstance(container.cloud, Ec2CloudClient)
        assert isinstance(container.registry, InterfaceRegistry)
        assert not container.telemetry.initialized

    def test_use_cases_share_one_context(self):
        container = create_container()
        assert container.interfaces.context is container.context
        assert container.secondary_ips.context is container.context
        assert container.elastic_ips.context is container.context
        assert container.configuration.context is container.context
        assert container.context.registry is container.registry
        assert container.context.cloud is container.cloud
        assert container.context.environment is container.environment

    def test_config_flows_through(self):
        config = EniSyncConfig(
            metadata=MetadataConfig(host="127.0.0.1", port=1338, retries=1),
            convergence=ConvergenceConfig(timeout=10.0, interval=1.0),
            ownership=OwnershipConfig(owner_tag="blue", protect_seconds=5),
            connectivity=ConnectivityConfig(target="1.1.1.1", timeout=3),
            cloud=CloudConfig(region="eu-west-1"),
            commands=CommandsConfig(ip_path="/usr/sbin/ip", sysfs_root="/tmp/net"),
        )
        container = create_container(config)
        assert container.config is config
        assert container.metadata.host == "127.0.0.1"
        assert container.metadata.port == 1338
        assert container.metadata.retries == 1
        assert container.context.waiter.timeout == 10.0
        assert container.context.waiter.interval == 1.0
        assert container.context.ownership.owner_tag == "blue"
        assert container.context.ownership.protect_seconds == 5
        assert container.context.connectivity_target == "1.1.1.1"
        assert container.context.connectivity_timeout == 3
        assert container.context.ip.ip_path == "/usr/sbin/ip"
        assert str(container.registry.devices.root) == "/tmp/net"
        assert container.cloud.region == "eu-west-1"

    def test_containers_are_isolated(self):
        first, second = create_container(), create_container()
        assert first.registry is not second.registry
        assert first.metadata is not second.metadata
        assert first.environment is not second.environment

    def test_registry_builds_interfaces(self):
        container = create_container()
        eth1 = container.registry.get("eth1")
        assert eth1.name == "eth1"
        assert eth1.metadata is container.metadata
        assert eth1.ip is container.context.ip
