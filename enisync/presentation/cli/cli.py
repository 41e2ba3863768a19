"""
CLI Module

Architectural Intent:
- Command-line interface for enisync
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Exit Codes:
- 0 success, 1 operation failed, 2 usage error (argparse),
  3 permission error (run as root / grant cloud permissions)
"""

import argparse
import json
import logging
import sys
import traceback
from typing import Any, Callable, Optional

from enisync.application.dtos.lifecycle_dtos import (
    AddressRequest,
    AssignSecondaryIpRequest,
    AssociateAddressRequest,
    AttachInterfaceRequest,
    CleanInterfacesRequest,
    CreateInterfaceRequest,
    DetachInterfaceRequest,
    UnassignSecondaryIpRequest,
)
from enisync.composition_root import EniSyncContainer, create_container
from enisync.domain.errors import (
    CloudPermissionError,
    EniSyncError,
    InterfacePermissionError,
)
from enisync.infrastructure.config import load_config
from enisync.infrastructure.logging import configure_logging

EXIT_FAILED = 1
EXIT_PERMISSION = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="enisync",
        description="Manage secondary network interfaces and IPs on an EC2 instance",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument("--config", "-c", help="Path to enisync.json")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="Show local interfaces")
    list_parser.add_argument("filter", nargs="?", help="Device, eni id, MAC, IP or subnet id")

    configure_parser = subparsers.add_parser(
        "configure", help="Sync local addresses and routing with instance metadata"
    )
    configure_parser.add_argument("filter", nargs="?")
    configure_parser.add_argument(
        "--dry-run", "-n", action="store_true", help="Report changes without applying them"
    )

    deconfigure_parser = subparsers.add_parser(
        "deconfigure", help="Remove everything enisync configured locally"
    )
    deconfigure_parser.add_argument("filter", nargs="?")

    enable_parser = subparsers.add_parser("enable", help="Bring interfaces up")
    enable_parser.add_argument("filter", nargs="?")

    disable_parser = subparsers.add_parser("disable", help="Bring interfaces down (never eth0)")
    disable_parser.add_argument("filter", nargs="?")

    create_parser = subparsers.add_parser("create", help="Create a new ENI")
    create_parser.add_argument("--subnet", "-s", help="Subnet id (default: eth0's subnet)")
    create_parser.add_argument("--description", "-d")
    create_parser.add_argument("--primary-ip", "-p")
    create_parser.add_argument(
        "--security-groups", "-g", help="Comma-separated security group ids"
    )

    attach_parser = subparsers.add_parser("attach", help="Attach an ENI to this instance")
    attach_parser.add_argument("interface_id")
    attach_parser.add_argument("--device", "-d", help="Device number or name (default: next free)")
    attach_parser.add_argument("--no-configure", action="store_true")
    attach_parser.add_argument("--no-enable", action="store_true")
    attach_parser.add_argument("--no-block", action="store_true")

    detach_parser = subparsers.add_parser("detach", help="Detach an ENI from this instance")
    detach_parser.add_argument("device", help="Device number, name, eni id, MAC or IP")
    detach_parser.add_argument("--no-delete", action="store_true")
    detach_parser.add_argument("--release", "-r", action="store_true", help="Release elastic IPs")
    detach_parser.add_argument("--no-block", action="store_true")

    clean_parser = subparsers.add_parser("clean", help="Delete unattached ENIs")
    clean_parser.add_argument("filter", nargs="?", help="eni id, subnet id or availability zone")
    clean_parser.add_argument(
        "--force", action="store_true", help="Also delete interfaces enisync did not create"
    )
    clean_parser.add_argument("--release", "-r", action="store_true", help="Release elastic IPs")

    assign_parser = subparsers.add_parser("assign", help="Assign a secondary private IP")
    assign_parser.add_argument("device")
    assign_parser.add_argument("--private-ip", "-p")
    assign_parser.add_argument("--no-configure", action="store_true")
    assign_parser.add_argument("--test", "-t", action="store_true")
    assign_parser.add_argument("--no-block", action="store_true")

    unassign_parser = subparsers.add_parser("unassign", help="Unassign a secondary private IP")
    unassign_parser.add_argument("private_ip")
    unassign_parser.add_argument("--device", "-d")
    unassign_parser.add_argument("--release", "-r", action="store_true")
    unassign_parser.add_argument("--no-block", action="store_true")

    associate_parser = subparsers.add_parser(
        "associate", help="Associate an elastic IP with a private IP"
    )
    associate_parser.add_argument("private_ip")
    associate_parser.add_argument("--device", "-d")
    associate_parser.add_argument("--public-ip")
    associate_parser.add_argument("--allocation-id")
    associate_parser.add_argument("--new", action="store_true", help="Always allocate a new address")
    associate_parser.add_argument("--test", "-t", action="store_true")
    associate_parser.add_argument("--no-block", action="store_true")

    dissociate_parser = subparsers.add_parser("dissociate", help="Dissociate an elastic IP")
    dissociate_parser.add_argument("address", help="Public IP, private IP, eipalloc- or eipassoc- id")
    dissociate_parser.add_argument("--release", "-r", action="store_true")
    dissociate_parser.add_argument("--no-block", action="store_true")

    subparsers.add_parser("allocate", help="Allocate a new elastic IP")

    release_parser = subparsers.add_parser("release", help="Release an unassociated elastic IP")
    release_parser.add_argument("address")

    test_parser = subparsers.add_parser(
        "test", help="Test connectivity from a private IP or through an elastic IP"
    )
    test_parser.add_argument("address")
    test_parser.add_argument("--target")
    test_parser.add_argument("--timeout", type=int)

    subparsers.add_parser(
        "check-access", help="Check local and EC2 permissions for every operation"
    )

    return parser


def _print_result(result: Any) -> None:
    if hasattr(result, "to_dict"):
        result = result.to_dict()
    print(json.dumps(result, indent=2, default=str))


def _cmd_list(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(c.configuration.list(args.filter))
    return 0


def _cmd_configure(c: EniSyncContainer, args: argparse.Namespace) -> int:
    changes = c.configuration.configure(args.filter, dry_run=args.dry_run)
    prefix = "[*] Dry run: " if args.dry_run else "[+] "
    print(f"{prefix}{changes} interface changes")
    return 0


def _cmd_deconfigure(c: EniSyncContainer, args: argparse.Namespace) -> int:
    c.configuration.deconfigure(args.filter)
    print("[+] Interfaces deconfigured")
    return 0


def _cmd_enable(c: EniSyncContainer, args: argparse.Namespace) -> int:
    print(f"[+] {c.configuration.enable(args.filter)} interfaces enabled")
    return 0


def _cmd_disable(c: EniSyncContainer, args: argparse.Namespace) -> int:
    print(f"[+] {c.configuration.disable(args.filter)} interfaces disabled")
    return 0


def _cmd_create(c: EniSyncContainer, args: argparse.Namespace) -> int:
    groups = tuple(g.strip() for g in (args.security_groups or "").split(",") if g.strip())
    _print_result(
        c.interfaces.create(
            CreateInterfaceRequest(
                subnet_id=args.subnet,
                description=args.description,
                primary_ip=args.primary_ip,
                security_groups=groups,
            )
        )
    )
    return 0


def _cmd_attach(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.interfaces.attach(
            AttachInterfaceRequest(
                interface_id=args.interface_id,
                device=args.device,
                configure=not args.no_configure,
                enable=not args.no_enable,
                block=not args.no_block,
            )
        )
    )
    return 0


def _cmd_detach(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.interfaces.detach(
            DetachInterfaceRequest(
                device=args.device,
                delete=not args.no_delete,
                release=args.release,
                block=not args.no_block,
            )
        )
    )
    return 0


def _cmd_clean(c: EniSyncContainer, args: argparse.Namespace) -> int:
    result = c.interfaces.clean(
        CleanInterfacesRequest(filter=args.filter, safe_mode=not args.force, release=args.release)
    )
    print(f"[+] {result.count} interfaces deleted")
    _print_result(result)
    return 0


def _cmd_assign(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.secondary_ips.assign(
            AssignSecondaryIpRequest(
                device=args.device,
                private_ip=args.private_ip,
                configure=not args.no_configure,
                test=args.test,
                block=not args.no_block,
            )
        )
    )
    return 0


def _cmd_unassign(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.secondary_ips.unassign(
            UnassignSecondaryIpRequest(
                private_ip=args.private_ip,
                device=args.device,
                release=args.release,
                block=not args.no_block,
            )
        )
    )
    return 0


def _cmd_associate(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.elastic_ips.associate(
            AssociateAddressRequest(
                private_ip=args.private_ip,
                device=args.device,
                public_ip=args.public_ip,
                allocation_id=args.allocation_id,
                new=args.new,
                test=args.test,
                block=not args.no_block,
            )
        )
    )
    return 0


def _cmd_dissociate(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(
        c.elastic_ips.dissociate(
            AddressRequest(address=args.address, release=args.release, block=not args.no_block)
        )
    )
    return 0


def _cmd_allocate(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(c.elastic_ips.allocate())
    return 0


def _cmd_release(c: EniSyncContainer, args: argparse.Namespace) -> int:
    _print_result(c.elastic_ips.release(AddressRequest(address=args.address)))
    return 0


def _cmd_test(c: EniSyncContainer, args: argparse.Namespace) -> int:
    address = args.address
    if c.environment().in_vpc(address):
        ok = c.secondary_ips.test(address, target=args.target, timeout=args.timeout)
    else:
        ok = c.elastic_ips.test_association(AddressRequest(address=address))
    if ok:
        print(f"[+] Connectivity from {address} OK")
        return 0
    print(f"[-] No connectivity from {address}")
    return EXIT_FAILED


def _cmd_check_access(c: EniSyncContainer, args: argparse.Namespace) -> int:
    local = c.configuration.can_modify()
    cloud = c.configuration.has_access()
    print(f"[{'+' if local else '-'}] Local interface changes: {'allowed' if local else 'denied'}")
    print(f"[{'+' if cloud else '-'}] EC2 API operations: {'allowed' if cloud else 'denied'}")
    return 0 if local and cloud else EXIT_PERMISSION


COMMANDS: dict[str, Callable[[EniSyncContainer, argparse.Namespace], int]] = {
    "list": _cmd_list,
    "configure": _cmd_configure,
    "deconfigure": _cmd_deconfigure,
    "enable": _cmd_enable,
    "disable": _cmd_disable,
    "create": _cmd_create,
    "attach": _cmd_attach,
    "detach": _cmd_detach,
    "clean": _cmd_clean,
    "assign": _cmd_assign,
    "unassign": _cmd_unassign,
    "associate": _cmd_associate,
    "dissociate": _cmd_dissociate,
    "allocate": _cmd_allocate,
    "release": _cmd_release,
    "test": _cmd_test,
    "check-access": _cmd_check_access,
}


def run(
    argv: Optional[list[str]] = None,
    container_factory: Callable[..., EniSyncContainer] = create_container,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    # Configure logging based on flags
    if args.debug:
        configure_logging(level=logging.DEBUG, json_format=args.json_logs)
    elif args.verbose:
        configure_logging(level=logging.INFO, json_format=args.json_logs)
    else:
        configure_logging(level=config.log_level, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    container = container_factory(config)
    try:
        return handler(container, args)
    except (InterfacePermissionError, CloudPermissionError) as e:
        print(f"[-] Permission denied: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_PERMISSION
    except TimeoutError as e:
        print(f"[-] {e}; the operation may have partially completed, re-check state")
        if verbose:
            traceback.print_exc()
        return EXIT_FAILED
    except EniSyncError as e:
        print(f"[-] {args.command} failed: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_FAILED
    finally:
        container.telemetry.export()


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
