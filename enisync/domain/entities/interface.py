"""
Interface Entity

Architectural Intent:
- One instance per local ethernet device (eth0, eth1, ...)
- Reconciles the device's OS configuration (addresses, source-based policy
  rules, default route in its private table) with the addresses the
  instance metadata says it should have
- Device 0 is the primary interface: its primary address is DHCP-managed,
  so it is never flushed, and it gets no policy routing

Domain Logic:
- Local state comes from `ip addr show` and `ip rule list`
- Desired state comes from metadata local-ipv4s (primary first)
- plan() diffs the two into Change records; configure() applies them unless
  running dry; the change count is len(plan()) either way
- Each non-primary device N owns routing table 10000 + N; every desired
  address gets a rule "from <ip> lookup <table>" so replies leave through
  the device that owns the address

Caching:
- Per-interface metadata (interface id, subnet) is cached keyed by hardware
  address and re-fetched when the device's MAC changes (a different ENI
  was attached under the same name)
"""

from __future__ import annotations
import ipaddress
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from enisync.domain.errors import (
    InvalidInterfaceError,
    MetadataConnectionFailed,
    UnknownInterfaceError,
)
from enisync.domain.ports.device_table_port import DeviceTablePort
from enisync.domain.ports.metadata_port import MetadataPort
from enisync.domain.services.ip_command import IpCommand
from enisync.domain.value_objects.interface_assertion import (
    Enabled,
    Exists,
    HasCloudId,
    HasDeviceNumber,
    HasHardwareAddress,
    HasIP,
    HasName,
    HasPrivateIP,
    HasPublicIP,
    InSubnet,
    InterfaceAssertion,
)
from enisync.domain.value_objects.reconciliation import (
    AddAddress,
    AddRule,
    Change,
    RemoveAddress,
    RemoveRule,
    ResetPrimary,
)
from enisync.domain.value_objects.selector import device_number_of

logger = logging.getLogger(__name__)

ROUTE_TABLE_BASE = 10000


@dataclass(frozen=True)
class InterfaceInfo:
    hwaddr: str
    interface_id: str
    subnet_id: str
    subnet_cidr: str


class Interface:
    """A local network device and its reconciliation behaviour."""

    def __init__(
        self,
        name: str,
        ip: IpCommand,
        metadata: MetadataPort,
        devices: DeviceTablePort,
        scope_cidr: Optional[Callable[[], str]] = None,
    ):
        number = device_number_of(name)
        if number is None:
            raise InvalidInterfaceError(f"Invalid interface: {name}")
        self.name = name
        self.device_number = number
        self.route_table = ROUTE_TABLE_BASE + number
        self.ip = ip
        self.metadata = metadata
        self.devices = devices
        self._scope_cidr = scope_cidr
        self._lock = threading.Lock()
        self._info: Optional[InterfaceInfo] = None
        self._clean = False

    def __repr__(self) -> str:
        return f"Interface({self.name!r})"

    @property
    def is_primary(self) -> bool:
        return self.device_number == 0

    # ------------------------------------------------------------------
    # Identity and metadata
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        """True if the device is present; stale config is removed if it is not."""
        present = self.devices.exists(self.name)
        if not present and not self._clean:
            self.deconfigure()
        return present

    @property
    def hwaddr(self) -> str:
        address = self.devices.hardware_address(self.name) if self.exists() else None
        if not address:
            raise UnknownInterfaceError(f"Interface {self.name} not found on this machine")
        return address

    def info(self) -> InterfaceInfo:
        with self._lock:
            hwaddr = self.hwaddr
            if self._info is None or self._info.hwaddr != hwaddr:
                self._info = self._fetch_info(hwaddr)
            return self._info

    def _fetch_info(self, hwaddr: str) -> InterfaceInfo:
        try:
            with self.metadata.session() as meta:
                if meta.interface(hwaddr, "", not_found=None) is None:
                    raise InvalidInterfaceError(
                        f"Interface {self.name} could not be found in the instance metadata"
                    )
                return InterfaceInfo(
                    hwaddr=hwaddr,
                    interface_id=meta.interface(hwaddr, "interface-id"),
                    subnet_id=meta.interface(hwaddr, "subnet-id"),
                    subnet_cidr=meta.interface(hwaddr, "subnet-ipv4-cidr-block"),
                )
        except MetadataConnectionFailed:
            raise InvalidInterfaceError(
                f"Interface {self.name} could not be found in the instance metadata"
            )

    @property
    def interface_id(self) -> str:
        return self.info().interface_id

    @property
    def subnet_id(self) -> str:
        return self.info().subnet_id

    @property
    def subnet_cidr(self) -> str:
        return self.info().subnet_cidr

    @property
    def gateway(self) -> str:
        network = ipaddress.ip_network(self.subnet_cidr, strict=False)
        return str(network.network_address + 1)

    @property
    def prefix(self) -> int:
        return ipaddress.ip_network(self.subnet_cidr, strict=False).prefixlen

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    def local_ips(self) -> list[str]:
        """Addresses configured on the device, primary first."""
        return self.ip.addresses(self.name)

    def meta_ips(self) -> list[str]:
        """Addresses the metadata assigns to this device, primary first."""
        # info() re-checks the MAC, so a different ENI under this name is noticed
        listing = self.metadata.interface(
            self.info().hwaddr, "local-ipv4s", not_found="", cache=False
        )
        return [line.strip() for line in listing.splitlines() if line.strip()]

    def public_ips(self) -> dict[str, str]:
        """Map of private IP -> associated public IP."""
        hwaddr = self.hwaddr
        associations: dict[str, str] = {}
        with self.metadata.session() as meta:
            listing = meta.interface(
                hwaddr, "ipv4-associations/", not_found="", cache=False
            )
            for public_ip in listing.splitlines():
                public_ip = public_ip.strip().rstrip("/")
                if not public_ip:
                    continue
                private_ip = meta.interface(
                    hwaddr, f"ipv4-associations/{public_ip}", cache=False
                )
                associations[private_ip.strip()] = public_ip
        return associations

    def has_ip(self, address: str) -> bool:
        """Private addresses are checked locally, public ones via associations."""
        cidr = self._scope_cidr() if self._scope_cidr else self.subnet_cidr
        try:
            private = ipaddress.ip_address(address) in ipaddress.ip_network(cidr, strict=False)
        except ValueError:
            return False
        if private:
            return address in self.local_ips()
        return address in self.public_ips().values()

    def enabled(self) -> bool:
        if not self.exists():
            return False
        output = self.ip("link", "show", "up") or ""
        pattern = re.compile(rf"^[0-9]+:\s+{re.escape(self.name)}(?:@\S+)?:", re.MULTILINE)
        return bool(pattern.search(output))

    # ------------------------------------------------------------------
    # Link state
    # ------------------------------------------------------------------

    def enable(self) -> None:
        """Bring the link up and route this device's table via its gateway."""
        self.ip("link", "set", "dev", self.name, "up")
        self.ip(
            "route", "add", "default", "via", self.gateway,
            "dev", self.name, "table", str(self.route_table),
            check=False,
        )
        self.ip("route", "flush", "cache", check=False)
        logger.info("Enabled %s", self.name, extra={"device": self.name})

    def disable(self) -> None:
        self.ip("link", "set", "dev", self.name, "down")
        logger.info("Disabled %s", self.name, extra={"device": self.name})

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def plan(self) -> list[Change]:
        """Compute the changes that would make the device match its metadata."""
        local = self.local_ips()
        desired = self.meta_ips()
        local_primary, local_aliases = (local[0], local[1:]) if local else (None, [])
        desired_primary, desired_aliases = (
            (desired[0], desired[1:]) if desired else (None, [])
        )
        rules = [] if self.is_primary else self.ip.rules(self.route_table)

        changes: list[Change] = []
        if not self.is_primary and local_primary != desired_primary:
            changes.append(ResetPrimary(desired_primary))
            # the reset flushes addresses and rules first
            local_aliases = []
            rules = []

        changes.extend(AddAddress(ip) for ip in desired_aliases if ip not in local_aliases)
        changes.extend(RemoveAddress(ip) for ip in local_aliases if ip not in desired_aliases)

        if not self.is_primary:
            wanted = list(desired)
            for rule in rules:
                if rule.source in wanted:
                    wanted.remove(rule.source)
                else:
                    changes.append(RemoveRule(rule.preference, rule.source or "all"))
            changes.extend(AddRule(ip) for ip in wanted)

        return changes

    def configure(self, dry_run: bool = False) -> int:
        """Apply the reconciliation plan; returns the number of changes."""
        changes = self.plan()
        if not dry_run:
            prefix = self.prefix
            for change in changes:
                self._apply(change, prefix)
            self._clean = False
        for change in changes:
            logger.info(
                "%s%s: %s", "[dry-run] " if dry_run else "", self.name, change.describe()
            )
        return len(changes)

    def _apply(self, change: Change, prefix: int) -> None:
        if isinstance(change, ResetPrimary):
            self.deconfigure()
            if change.address:
                self._add_address(change.address, prefix)
        elif isinstance(change, AddAddress):
            self._add_address(change.address, prefix)
        elif isinstance(change, RemoveAddress):
            self.ip("addr", "del", f"{change.address}/{prefix}", "dev", self.name)
        elif isinstance(change, AddRule):
            self.ip("rule", "add", "from", change.address, "lookup", str(self.route_table))
        elif isinstance(change, RemoveRule):
            self.ip("rule", "delete", "pref", str(change.preference))
        else:
            raise TypeError(f"Unknown change: {change!r}")

    def _add_address(self, address: str, prefix: int) -> None:
        self.ip("addr", "add", f"{address}/{prefix}", "brd", "+", "dev", self.name)

    def deconfigure(self) -> None:
        """Remove everything enisync configures on this device."""
        if self.is_primary:
            self.ip("addr", "flush", "dev", self.name, "secondary", check=False)
        else:
            for rule in self.ip.rules(self.route_table):
                self.ip("rule", "delete", "pref", str(rule.preference), check=False)
            self.ip("addr", "flush", "dev", self.name, check=False)
            self.ip("route", "flush", "table", str(self.route_table), check=False)
            self.ip("route", "flush", "cache", check=False)
        self._clean = True

    def add_alias(self, address: str) -> None:
        """Add one secondary address and its policy rule."""
        self._add_address(address, self.prefix)
        if self.is_primary:
            return
        if not any(r.source == address for r in self.ip.rules(self.route_table)):
            self.ip("rule", "add", "from", address, "lookup", str(self.route_table))

    def remove_alias(self, address: str) -> None:
        """Remove one secondary address and its policy rule."""
        self.ip("addr", "del", f"{address}/{self.prefix}", "dev", self.name)
        if self.is_primary:
            return
        for rule in self.ip.rules(self.route_table):
            if rule.source == address:
                self.ip("rule", "delete", "pref", str(rule.preference))

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------

    def assert_matches(self, *assertions: InterfaceAssertion) -> "Interface":
        """Raise UnknownInterfaceError on the first assertion that fails."""
        for assertion in assertions:
            error = self._violation(assertion)
            if error:
                raise UnknownInterfaceError(error)
        return self

    def _violation(self, assertion: InterfaceAssertion) -> Optional[str]:
        if isinstance(assertion, Exists):
            if assertion.expected and not self.exists():
                return "The specified interface does not exist."
            if not assertion.expected and self.exists():
                return f"Interface {self.name} exists."
        elif isinstance(assertion, Enabled):
            if assertion.expected and not self.enabled():
                return f"Interface {self.name} is not enabled."
            if not assertion.expected and self.enabled():
                return f"Interface {self.name} is not disabled."
        elif isinstance(assertion, HasName):
            if self.name != assertion.name:
                return f"The specified interface does not match {assertion.name}"
        elif isinstance(assertion, HasDeviceNumber):
            if self.device_number != assertion.device_number:
                return f"Interface {self.name} is not device number {assertion.device_number}"
        elif isinstance(assertion, HasHardwareAddress):
            if self.hwaddr.lower() != assertion.hwaddr.lower():
                return f"Interface {self.name} does not match hwaddr {assertion.hwaddr}"
        elif isinstance(assertion, HasCloudId):
            if self.interface_id != assertion.interface_id:
                return f"Interface {self.name} does not have interface id {assertion.interface_id}"
        elif isinstance(assertion, InSubnet):
            if self.subnet_id != assertion.subnet_id:
                return f"Interface {self.name} does not have subnet id {assertion.subnet_id}"
        elif isinstance(assertion, HasIP):
            if not self.has_ip(assertion.address):
                return f"Interface {self.name} does not have IP {assertion.address}"
        elif isinstance(assertion, HasPublicIP):
            if assertion.address not in self.public_ips().values():
                return f"Interface {self.name} does not have public IP {assertion.address}"
        elif isinstance(assertion, HasPrivateIP):
            if assertion.address not in self.local_ips():
                return f"Interface {self.name} does not have private IP {assertion.address}"
        else:
            return f"Unknown assertion: {assertion!r}"
        return None

    def to_dict(self) -> dict[str, Any]:
        info = self.info()
        return {
            "name": self.name,
            "device_number": self.device_number,
            "route_table": self.route_table,
            "hwaddr": info.hwaddr,
            "interface_id": info.interface_id,
            "subnet_id": info.subnet_id,
            "subnet_cidr": info.subnet_cidr,
            "local_ips": self.local_ips(),
            "public_ips": self.public_ips(),
            "enabled": self.enabled(),
        }
