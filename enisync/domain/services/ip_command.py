"""
IP Command Service

Architectural Intent:
- Domain service wrapping the `ip` and `ping` tools behind ShellRunnerPort
- Classifies failures: stderr mentioning "operation not permitted" is always
  an InterfacePermissionError; other failures raise InterfaceOperationError
  when the caller requires success (check=True) and are logged and
  tolerated otherwise
- Parses the two outputs reconciliation depends on: `ip addr show` and
  `ip rule list`
"""

import logging
import re
from typing import Optional

from enisync.domain.errors import InterfaceOperationError, InterfacePermissionError
from enisync.domain.ports.shell_runner_port import ShellRunnerPort
from enisync.domain.value_objects.reconciliation import PolicyRule

logger = logging.getLogger(__name__)

_RULE_RE = re.compile(r"^([0-9]+):\s+from\s+(\S+)\b.*\blookup\s+(\S+)")


def parse_addresses(output: str, device: str) -> list[str]:
    """Extract IPv4 addresses from `ip addr show` output for one device."""
    pattern = re.compile(
        rf"^\s*inet\s+([0-9.]+)/[0-9]+\b.*\s{re.escape(device)}(?::\S*)?\s*$"
    )
    addresses = []
    for line in output.splitlines():
        m = pattern.match(line)
        if m:
            addresses.append(m.group(1))
    return addresses


def parse_rules(output: str) -> list[PolicyRule]:
    """Parse `ip rule list` output into PolicyRule records."""
    rules = []
    for line in output.splitlines():
        m = _RULE_RE.match(line.strip())
        if not m:
            continue
        source = m.group(2)
        rules.append(
            PolicyRule(
                preference=int(m.group(1)),
                source=None if source == "all" else source,
                table=m.group(3),
            )
        )
    return rules


class IpCommand:
    """Runs `ip` subcommands and connectivity tests through a ShellRunnerPort."""

    def __init__(
        self,
        runner: ShellRunnerPort,
        ip_path: str = "/sbin/ip",
        ping_path: str = "ping",
    ):
        self.runner = runner
        self.ip_path = ip_path
        self.ping_path = ping_path

    def __call__(self, *args: str, check: bool = True) -> Optional[str]:
        argv = [self.ip_path, *args]
        command = " ".join(argv)
        logger.debug("exec: %s", command, extra={"command": command})
        result = self.runner.run(argv)
        if result.ok:
            return result.stdout

        error = result.stderr.strip()
        if "operation not permitted" in error.lower():
            raise InterfacePermissionError(f"Operation not permitted: {command}")
        logger.warning("Command failed (%s): %s", command, error, extra={"command": command})
        if check:
            raise InterfaceOperationError(f"Command failed ({command}): {error}")
        return None

    def rules(self, table: Optional[int] = None) -> list[PolicyRule]:
        rules = parse_rules(self("rule", "list") or "")
        if table is None:
            return rules
        return [r for r in rules if r.table == str(table)]

    def addresses(self, device: str) -> list[str]:
        """Primary addresses first, then secondaries."""
        output = (self("addr", "show", "dev", device, "primary") or "") + (
            self("addr", "show", "dev", device, "secondary") or ""
        )
        return parse_addresses(output, device)

    def can_modify(self, device: str = "eth0") -> bool:
        """Probe RTNETLINK permissions with an innocuous link command."""
        try:
            self("link", "set", "dev", device, check=False)
        except InterfacePermissionError:
            return False
        return True

    def ping(self, source_ip: str, target: str = "8.8.8.8", timeout: int = 30) -> bool:
        """Send one ICMP echo from source_ip; True if a reply arrives in time."""
        argv = [self.ping_path, "-w", str(int(timeout)), "-c", "1", "-I", source_ip, target]
        logger.debug("exec: %s", " ".join(argv))
        result = self.runner.run(argv, timeout=timeout + 5)
        return result.ok
