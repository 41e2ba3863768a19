"""Global test configuration.

In-memory stand-ins for the instance metadata service, the kernel's device
table and the `ip`/`ping` tools, so every layer above the adapters can be
exercised without an EC2 instance or root privileges.
"""

from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest

from enisync.application.lifecycle_context import LifecycleContext
from enisync.application.orchestration.convergence import ConvergenceWaiter
from enisync.domain.entities.interface import Interface
from enisync.domain.errors import MetadataConnectionFailed, MetadataNotFound
from enisync.domain.ports.device_table_port import DeviceTablePort
from enisync.domain.ports.metadata_port import RAISE
from enisync.domain.ports.shell_runner_port import CommandResult, ShellRunnerPort
from enisync.domain.services.ip_command import IpCommand
from enisync.domain.services.ownership import OwnershipPolicy
from enisync.infrastructure.environment import EnvironmentDetector
from enisync.infrastructure.interface_registry import InterfaceRegistry

INSTANCE_ID = "i-0123456789abcdef0"
ZONE = "us-east-1a"
VPC_ID = "vpc-1a2b3c4d"
VPC_CIDR = "10.0.0.0/16"
ETH0_MAC = "0e:00:00:00:00:00"
ETH1_MAC = "0e:00:00:00:00:01"
ETH2_MAC = "0e:00:00:00:00:02"
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)

NOT_PERMITTED = "RTNETLINK answers: Operation not permitted"


class FakeDeviceTable(DeviceTablePort):
    def __init__(self):
        self.hwaddrs: dict[str, str] = {}

    def add(self, name: str, hwaddr: str) -> None:
        self.hwaddrs[name] = hwaddr

    def remove(self, name: str) -> None:
        self.hwaddrs.pop(name, None)

    def list_devices(self) -> list[str]:
        return sorted(self.hwaddrs, key=lambda n: int(n[3:]))

    def exists(self, name: str) -> bool:
        return name in self.hwaddrs

    def hardware_address(self, name: str) -> Optional[str]:
        return self.hwaddrs.get(name)


class FakeMetadata:
    """Path -> body map with the MetadataPort read API."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.unreachable = False
        self.reads: list[str] = []
        self.sessions = 0

    def get(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        if self.unreachable:
            raise MetadataConnectionFailed("Connection failed after 5 retries.")
        self.reads.append(path)
        if path in self.data:
            return self.data[path]
        if path.endswith("/"):
            children = sorted(
                {k[len(path):].split("/")[0] for k in self.data if k.startswith(path)}
            )
            if children:
                return "\n".join(children)
        if not_found is RAISE:
            raise MetadataNotFound(f"Meta-data not found: {path}")
        return not_found

    def instance(self, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        return self.get(path, not_found=not_found, cache=cache)

    def interface(self, hwaddr: str, path: str, not_found: Any = RAISE, cache: bool = True) -> Any:
        return self.get(
            f"network/interfaces/macs/{hwaddr}/{path}", not_found=not_found, cache=cache
        )

    @contextmanager
    def session(self):
        self.sessions += 1
        yield self

    def set_instance(self, instance_id: str = INSTANCE_ID, zone: str = ZONE) -> None:
        self.data["instance-id"] = instance_id
        self.data["placement/availability-zone"] = zone

    def set_interface(
        self,
        hwaddr: str,
        device_number: int,
        interface_id: str,
        subnet_id: str,
        subnet_cidr: str,
        local_ips: tuple[str, ...] = (),
        associations: Optional[dict[str, str]] = None,
        vpc_id: str = VPC_ID,
        vpc_cidr: str = VPC_CIDR,
    ) -> None:
        base = f"network/interfaces/macs/{hwaddr}/"
        self.data.update({
            base + "device-number": str(device_number),
            base + "interface-id": interface_id,
            base + "subnet-id": subnet_id,
            base + "subnet-ipv4-cidr-block": subnet_cidr,
            base + "vpc-id": vpc_id,
            base + "vpc-ipv4-cidr-block": vpc_cidr,
            base + "local-ipv4s": "\n".join(local_ips),
        })
        self.set_associations(hwaddr, associations or {})

    def set_local_ips(self, hwaddr: str, *local_ips: str) -> None:
        self.data[f"network/interfaces/macs/{hwaddr}/local-ipv4s"] = "\n".join(local_ips)

    def set_associations(self, hwaddr: str, associations: dict[str, str]) -> None:
        """associations maps public IP -> private IP."""
        base = f"network/interfaces/macs/{hwaddr}/ipv4-associations/"
        for key in [k for k in self.data if k.startswith(base)]:
            del self.data[key]
        for public_ip, private_ip in associations.items():
            self.data[base + public_ip] = private_ip

    def remove_interface(self, hwaddr: str) -> None:
        base = f"network/interfaces/macs/{hwaddr}/"
        for key in [k for k in self.data if k.startswith(base)]:
            del self.data[key]


class FakeShellRunner(ShellRunnerPort):
    """Simulates the subset of `ip` and `ping` that enisync drives."""

    def __init__(self, devices: FakeDeviceTable):
        self.devices = devices
        self.addresses: dict[str, list[tuple[str, int]]] = {}
        self.rules: list[tuple[int, str, str]] = []
        self.routes: dict[str, list[str]] = {}
        self.up: set[str] = set()
        self.commands: list[list[str]] = []
        self.permitted = True
        self.ping_ok = True
        self._next_pref = 32765

    def ip_commands(self, *prefix: str) -> list[list[str]]:
        """Recorded `ip` argument lists starting with prefix."""
        return [
            argv[1:] for argv in self.commands
            if argv[0].endswith("ip") and argv[1:1 + len(prefix)] == list(prefix)
        ]

    def mutations(self) -> list[list[str]]:
        return [
            args for args in (argv[1:] for argv in self.commands if argv[0].endswith("ip"))
            if args[1] in ("add", "del", "delete", "flush")
            or args[:2] == ["link", "set"] and len(args) > 3
        ]

    def run(self, argv: list[str], timeout: Optional[float] = None) -> CommandResult:
        self.commands.append(list(argv))
        if argv[0] == "ping":
            return CommandResult(0 if self.ping_ok else 1)
        if not self.permitted:
            return CommandResult(2, "", NOT_PERMITTED)
        return self._ip(argv[1:])

    def _ip(self, args: list[str]) -> CommandResult:
        obj, verb, rest = args[0], args[1] if len(args) > 1 else "", args[2:]
        if obj == "addr":
            return self._addr(verb, rest)
        if obj == "rule":
            return self._rule(verb, rest)
        if obj == "link":
            return self._link(verb, rest)
        if obj == "route":
            return self._route(verb, rest)
        return CommandResult(1, "", f'Object "{obj}" is unknown')

    def _addr(self, verb: str, rest: list[str]) -> CommandResult:
        if verb == "show":
            dev, which = rest[1], rest[2]
            if not self.devices.exists(dev):
                return CommandResult(1, "", f'Device "{dev}" does not exist.')
            entries = self.addresses.get(dev, [])
            selected = entries[:1] if which == "primary" else entries[1:]
            lines = []
            for address, prefix in selected:
                flag = " secondary" if which == "secondary" else ""
                lines.append(f"    inet {address}/{prefix} brd + scope global{flag} {dev}")
                lines.append("       valid_lft forever preferred_lft forever")
            return CommandResult(0, "\n".join(lines) + ("\n" if lines else ""))
        if verb == "add":
            address, prefix = rest[0].split("/")
            dev = rest[rest.index("dev") + 1]
            entries = self.addresses.setdefault(dev, [])
            if any(a == address for a, _ in entries):
                return CommandResult(2, "", "RTNETLINK answers: File exists")
            entries.append((address, int(prefix)))
            return CommandResult(0)
        if verb == "del":
            address = rest[0].split("/")[0]
            dev = rest[rest.index("dev") + 1]
            entries = self.addresses.get(dev, [])
            if not any(a == address for a, _ in entries):
                return CommandResult(2, "", "RTNETLINK answers: Cannot assign requested address")
            self.addresses[dev] = [e for e in entries if e[0] != address]
            return CommandResult(0)
        if verb == "flush":
            dev = rest[1]
            entries = self.addresses.get(dev, [])
            self.addresses[dev] = entries[:1] if "secondary" in rest else []
            return CommandResult(0)
        return CommandResult(1, "", f"unknown addr command {verb}")

    def _rule(self, verb: str, rest: list[str]) -> CommandResult:
        if verb == "list":
            lines = ["0:\tfrom all lookup local"]
            lines += [f"{p}:\tfrom {s} lookup {t}" for p, s, t in sorted(self.rules)]
            lines += ["32766:\tfrom all lookup main", "32767:\tfrom all lookup default"]
            return CommandResult(0, "\n".join(lines) + "\n")
        if verb == "add":
            self.rules.append((self._next_pref, rest[1], rest[3]))
            self._next_pref -= 1
            return CommandResult(0)
        if verb == "delete":
            pref = int(rest[1])
            if not any(p == pref for p, _, _ in self.rules):
                return CommandResult(2, "", "RTNETLINK answers: No such file or directory")
            self.rules = [r for r in self.rules if r[0] != pref]
            return CommandResult(0)
        return CommandResult(1, "", f"unknown rule command {verb}")

    def _link(self, verb: str, rest: list[str]) -> CommandResult:
        if verb == "show":
            lines = [
                f"{n + 1}: {name}: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 9001 state UP"
                for n, name in enumerate(self.devices.list_devices())
                if name in self.up
            ]
            return CommandResult(0, "\n".join(lines) + "\n")
        if verb == "set":
            dev = rest[1]
            if not self.devices.exists(dev):
                return CommandResult(1, "", f'Cannot find device "{dev}"')
            if rest[2:] == ["up"]:
                self.up.add(dev)
            elif rest[2:] == ["down"]:
                self.up.discard(dev)
            return CommandResult(0)
        return CommandResult(1, "", f"unknown link command {verb}")

    def _route(self, verb: str, rest: list[str]) -> CommandResult:
        if verb == "add":
            table = rest[rest.index("table") + 1]
            self.routes.setdefault(table, []).append(" ".join(rest))
            return CommandResult(0)
        if verb == "flush":
            if rest[0] == "table":
                self.routes.pop(rest[1], None)
            return CommandResult(0)
        return CommandResult(1, "", f"unknown route command {verb}")


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeWorld:
    """One instance with eth0 attached, wired the way the composition root wires it."""

    def __init__(self):
        self.metadata = FakeMetadata()
        self.devices = FakeDeviceTable()
        self.shell = FakeShellRunner(self.devices)
        self.ip = IpCommand(self.shell, ip_path="ip", ping_path="ping")
        self.metadata.set_instance()
        self.environment = EnvironmentDetector(self.metadata)
        self.registry = InterfaceRegistry(self.devices, self.interface_factory)
        self.cloud = MagicMock()
        self.clock = FakeClock()
        self.waiter = ConvergenceWaiter(
            timeout=5.0, interval=0.5, clock=self.clock, sleep=self.clock.sleep
        )
        self.context = LifecycleContext(
            environment=self.environment,
            registry=self.registry,
            cloud=self.cloud,
            ip=self.ip,
            waiter=self.waiter,
            ownership=OwnershipPolicy(),
            now=lambda: NOW,
        )
        self.plug("eth0", ETH0_MAC, "eni-00000000", "subnet-00000000", "10.0.0.0/24",
                  local_ips=("10.0.0.10",))
        self.shell.addresses["eth0"] = [("10.0.0.10", 24)]
        self.shell.up.add("eth0")

    def interface_factory(self, name: str) -> Interface:
        return Interface(
            name, self.ip, self.metadata, self.devices, scope_cidr=lambda: VPC_CIDR
        )

    def plug(
        self,
        name: str,
        hwaddr: str,
        interface_id: str,
        subnet_id: str = "subnet-11111111",
        subnet_cidr: str = "10.0.1.0/24",
        local_ips: tuple[str, ...] = (),
        associations: Optional[dict[str, str]] = None,
    ) -> None:
        """Make a device appear, as the kernel and metadata do after an attach."""
        self.devices.add(name, hwaddr)
        self.metadata.set_interface(
            hwaddr, int(name[3:]), interface_id, subnet_id, subnet_cidr,
            local_ips=local_ips, associations=associations,
        )

    def unplug(self, name: str) -> None:
        hwaddr = self.devices.hardware_address(name)
        self.devices.remove(name)
        if hwaddr:
            self.metadata.remove_interface(hwaddr)


@pytest.fixture
def world():
    return FakeWorld()


@pytest.fixture
def metadata():
    return FakeMetadata()


@pytest.fixture
def devices():
    return FakeDeviceTable()
