"""
Interface Entity Tests

Architectural Intent:
- Exercise reconciliation against the in-memory `ip` simulation in conftest
- Verify plan/apply agreement, idempotence and the device 0 protections
"""

import pytest

from conftest import ETH0_MAC, ETH1_MAC
from enisync.domain.errors import InvalidInterfaceError, UnknownInterfaceError
from enisync.domain.value_objects.interface_assertion import (
    Enabled,
    Exists,
    HasCloudId,
    HasIP,
    HasPrivateIP,
    HasPublicIP,
    InSubnet,
)
from enisync.domain.value_objects.reconciliation import (
    AddAddress,
    AddRule,
    RemoveAddress,
    RemoveRule,
    ResetPrimary,
)


@pytest.fixture
def eth1(world):
    world.plug("eth1", ETH1_MAC, "eni-11111111", local_ips=("10.0.1.5", "10.0.1.6"))
    return world.registry.get("eth1")


class TestIdentity:
    def test_invalid_name(self, world):
        with pytest.raises(InvalidInterfaceError):
            world.interface_factory("wlan0")

    def test_route_table(self, eth1):
        assert eth1.route_table == 10001
        assert not eth1.is_primary

    def test_metadata_fields(self, eth1):
        assert eth1.hwaddr == ETH1_MAC
        assert eth1.interface_id == "eni-11111111"
        assert eth1.subnet_id == "subnet-11111111"
        assert eth1.gateway == "10.0.1.1"
        assert eth1.prefix == 24

    def test_missing_device(self, world):
        eth3 = world.registry.get(3)
        assert not eth3.exists()
        with pytest.raises(UnknownInterfaceError, match="not found on this machine"):
            eth3.interface_id

    def test_device_without_metadata(self, world):
        world.devices.add("eth2", "0e:00:00:00:00:99")
        with pytest.raises(InvalidInterfaceError, match="instance metadata"):
            world.registry.get(2).interface_id

    def test_info_refetched_when_mac_changes(self, world, eth1):
        assert eth1.interface_id == "eni-11111111"
        world.unplug("eth1")
        world.plug("eth1", "0e:00:00:00:00:0f", "eni-22222222")
        assert eth1.interface_id == "eni-22222222"

    def test_info_read_in_one_session(self, world, eth1):
        before = world.metadata.sessions
        eth1.info()
        assert world.metadata.sessions == before + 1

    def test_vanished_device_is_deconfigured(self, world, eth1):
        eth1.configure()
        world.unplug("eth1")
        assert not eth1.exists()
        assert world.ip.rules(10001) == []


class TestReconciliation:
    def test_fresh_secondary_device(self, world, eth1):
        assert eth1.plan() == [
            ResetPrimary("10.0.1.5"),
            AddAddress("10.0.1.6"),
            AddRule("10.0.1.5"),
            AddRule("10.0.1.6"),
        ]
        assert eth1.configure() == 4
        assert eth1.local_ips() == ["10.0.1.5", "10.0.1.6"]
        assert sorted(r.source for r in world.ip.rules(10001)) == ["10.0.1.5", "10.0.1.6"]

    def test_idempotent(self, world, eth1):
        eth1.configure()
        world.shell.commands.clear()
        assert eth1.configure() == 0
        assert world.shell.mutations() == []

    def test_dry_run_reports_same_count_without_changes(self, world, eth1):
        assert eth1.configure(dry_run=True) == 4
        assert world.shell.mutations() == []
        assert eth1.local_ips() == []
        assert eth1.configure() == 4

    def test_rule_sync(self, world, eth1):
        eth1.configure()
        world.shell.rules = [(100, "10.0.1.5", "10001"), (101, "10.0.1.9", "10001")]
        assert eth1.plan() == [RemoveRule(101, "10.0.1.9"), AddRule("10.0.1.6")]
        assert eth1.configure() == 2
        assert sorted(r.source for r in world.ip.rules(10001)) == ["10.0.1.5", "10.0.1.6"]

    def test_rules_in_other_tables_untouched(self, world, eth1):
        eth1.configure()
        world.shell.rules.append((200, "10.0.2.5", "10002"))
        assert eth1.configure() == 0
        assert (200, "10.0.2.5", "10002") in world.shell.rules

    def test_stale_alias_removed(self, world, eth1):
        eth1.configure()
        world.metadata.set_local_ips(ETH1_MAC, "10.0.1.5")
        assert eth1.plan() == [RemoveAddress("10.0.1.6"), RemoveRule(32764, "10.0.1.6")]
        assert eth1.configure() == 2
        assert eth1.local_ips() == ["10.0.1.5"]

    def test_primary_change_resets_device(self, world, eth1):
        eth1.configure()
        world.metadata.set_local_ips(ETH1_MAC, "10.0.1.8", "10.0.1.6")
        assert eth1.configure() == 4
        assert eth1.local_ips() == ["10.0.1.8", "10.0.1.6"]

    def test_reattached_device_reconciles_against_new_mac(self, world, eth1):
        eth1.configure()
        world.unplug("eth1")
        world.plug("eth1", "0e:00:00:00:00:0f", "eni-33333333", local_ips=("10.0.1.20",))
        assert eth1.meta_ips() == ["10.0.1.20"]
        assert eth1.configure() == 2
        assert eth1.local_ips() == ["10.0.1.20"]
        assert [r.source for r in world.ip.rules(10001)] == ["10.0.1.20"]

    def test_device_zero_keeps_primary(self, world):
        world.metadata.set_local_ips(ETH0_MAC, "10.0.0.10", "10.0.0.11")
        eth0 = world.registry.get(0)
        assert eth0.plan() == [AddAddress("10.0.0.11")]
        assert eth0.configure() == 1
        assert world.shell.ip_commands("rule", "add") == []
        assert world.shell.ip_commands("addr", "flush") == []

    def test_device_zero_never_reset(self, world):
        world.shell.addresses["eth0"] = []
        assert world.registry.get(0).plan() == []

    def test_deconfigure_device_zero_only_flushes_secondaries(self, world):
        world.metadata.set_local_ips(ETH0_MAC, "10.0.0.10", "10.0.0.11")
        eth0 = world.registry.get(0)
        eth0.configure()
        eth0.deconfigure()
        assert eth0.local_ips() == ["10.0.0.10"]


class TestAliases:
    def test_add_and_remove_alias(self, world, eth1):
        eth1.configure()
        eth1.add_alias("10.0.1.7")
        assert "10.0.1.7" in eth1.local_ips()
        assert "10.0.1.7" in [r.source for r in world.ip.rules(10001)]
        eth1.remove_alias("10.0.1.7")
        assert "10.0.1.7" not in eth1.local_ips()
        assert "10.0.1.7" not in [r.source for r in world.ip.rules(10001)]

    def test_alias_on_device_zero_has_no_rule(self, world):
        world.registry.get(0).add_alias("10.0.0.11")
        assert world.shell.ip_commands("rule", "add") == []


class TestLinkState:
    def test_enable_disable(self, world, eth1):
        assert not eth1.enabled()
        eth1.enable()
        assert eth1.enabled()
        assert world.shell.routes["10001"] == ["default via 10.0.1.1 dev eth1 table 10001"]
        eth1.disable()
        assert not eth1.enabled()


class TestAssertions:
    def test_all_pass(self, world, eth1):
        eth1.configure()
        world.metadata.set_associations(ETH1_MAC, {"54.0.0.1": "10.0.1.6"})
        assert eth1.assert_matches(
            Exists(True),
            HasCloudId("eni-11111111"),
            InSubnet("subnet-11111111"),
            HasPrivateIP("10.0.1.6"),
            HasIP("10.0.1.5"),
            HasIP("54.0.0.1"),
            HasPublicIP("54.0.0.1"),
        ) is eth1

    def test_first_violation_wins(self, eth1):
        with pytest.raises(UnknownInterfaceError, match="exists"):
            eth1.assert_matches(Exists(False), HasCloudId("eni-other"))

    def test_enabled(self, eth1):
        with pytest.raises(UnknownInterfaceError, match="not enabled"):
            eth1.assert_matches(Enabled(True))

    def test_missing_device(self, world):
        with pytest.raises(UnknownInterfaceError, match="does not exist"):
            world.registry.get(4).assert_matches(Exists(True))

    def test_public_ips(self, world, eth1):
        world.metadata.set_associations(ETH1_MAC, {"54.0.0.1": "10.0.1.6"})
        assert eth1.public_ips() == {"10.0.1.6": "54.0.0.1"}

    def test_to_dict(self, eth1):
        data = eth1.to_dict()
        assert data["name"] == "eth1"
        assert data["interface_id"] == "eni-11111111"
        assert data["route_table"] == 10001
        assert data["enabled"] is False
