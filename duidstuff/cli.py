#!/usr/bin/env python3
"""CLI entry point for duidstuff: show, spoof, sync, restore and reset the DHCPv6 DUID.

Provides the ``python -m duidstuff`` command.

Examples:
    $ python -m duidstuff list
    $ sudo python -m duidstuff randomize en0
    $ sudo python -m duidstuff randomize eth0 --type LLT
    $ sudo python -m duidstuff set 00:03:00:01:aa:bb:cc:dd:ee:ff
    $ sudo python -m duidstuff sync en0            # DUID-LL from the current MAC of en0
    $ sudo python -m duidstuff restore             # back to the original DUID
    $ sudo python -m duidstuff reset               # OS generates a NEW DUID
    $ python -m duidstuff generate --type UUID
    $ python -m duidstuff original show
    $ sudo python -m duidstuff original clear --force

restore vs. reset:
    ``restore`` returns to the DUID saved before the first spoof.
    ``reset`` deletes the active DUID; the OS then generates a new one.
"""

import argparse
import os
import subprocess
import sys

from loguru import logger
from tabulate import tabulate

from duidstuff import __version__, configure_logging
from duidstuff.codec import DuidError, DuidType, decode, encode, format_colon_hex, parse_duid_type
from duidstuff.controller import DuidController
from duidstuff.duidconfig import load_config
from duidstuff.platforms import RestoreResult, create_platform

_TYPE_HELP = "DUID type: LLT (1), EN (2), LL (3), UUID (4) (default: LL)"


def _duid_type_arg(value: str) -> DuidType:
    try:
        return parse_duid_type(value)
    except DuidError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the duidstuff CLI."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", help="Path to YAML config file")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")

    parser = argparse.ArgumentParser(
        prog="duidstuff",
        description="duidstuff: DHCPv6 DUID spoofing utility",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], aliases=["show"], help="Show current DUID and original status")

    rnd = sub.add_parser("randomize", parents=[common], help="Generate and set a random DUID")
    rnd.add_argument("iface", nargs="?", help="Network interface")
    rnd.add_argument("--type", "-t", dest="duid_type", type=_duid_type_arg, default=DuidType.LL, help=_TYPE_HELP)
    rnd.add_argument("--mac", help="MAC address to base the DUID on (default: random)")

    set_parser = sub.add_parser("set", parents=[common], help="Set a specific DUID")
    set_parser.add_argument("duid", help="DUID as hex, with or without ':' separators")
    set_parser.add_argument("iface", nargs="?", help="Network interface")

    sync = sub.add_parser("sync", parents=[common], help="Sync DUID to the current MAC address of an interface")
    sync.add_argument("iface", help="Network interface")
    sync.add_argument("--type", "-t", dest="duid_type", type=_duid_type_arg, default=DuidType.LL, help=_TYPE_HELP)

    restore = sub.add_parser("restore", parents=[common], help="Restore the original (pre-spoofing) DUID")
    restore.add_argument("iface", nargs="?", help="Network interface")

    reset = sub.add_parser("reset", parents=[common], help="Delete the DUID; the OS generates a NEW one")
    reset.add_argument("iface", nargs="?", help="Network interface")

    gen = sub.add_parser("generate", parents=[common], help="Generate a DUID without applying it")
    gen.add_argument("--type", "-t", dest="duid_type", type=_duid_type_arg, default=DuidType.LL, help=_TYPE_HELP)
    gen.add_argument("--mac", help="MAC address to base the DUID on (default: random)")

    orig = sub.add_parser("original", parents=[common], help="Manage the stored original DUID")
    orig.add_argument("action", nargs="?", choices=["show", "path", "clear"], default="show")
    orig.add_argument("--force", action="store_true", help="Confirm deletion for 'clear'")

    return parser.parse_args(argv)


def is_privileged() -> bool:
    """Return whether we run as root (POSIX) or Administrator (Windows)."""
    if sys.platform == "win32":
        result = subprocess.run(["net", "session"], capture_output=True)
        return result.returncode == 0
    return os.geteuid() == 0


def build_controller(args: argparse.Namespace) -> DuidController:
    config = load_config(config_path=args.config)
    return DuidController(create_platform(config=config))


def format_duid(duid: bytes | None) -> str:
    if not duid:
        return "No DUID currently set (system will generate on next DHCPv6 request)"
    return tabulate(decode(duid).as_rows(), tablefmt="simple")


def _require_privileges(command: str) -> bool:
    if is_privileged():
        return True
    logger.error("This command requires root/administrator privileges")
    logger.info(f"Try: sudo python -m duidstuff {command}")
    return False


def cmd_list(ctl: DuidController, args: argparse.Namespace) -> int:
    current = ctl.get_current()
    print("Current DUID:")
    print(format_duid(current))
    print()

    if not ctl.has_original():
        print("No original DUID stored yet (will be saved on first spoof)")
        return 0

    original = ctl.original()
    rows = [["Stored", "yes"], ["Location", str(ctl.original_path())]]
    if current and original:
        if current != original:
            rows.append(["Status", "currently spoofed"])
            rows.append(["Original", format_colon_hex(original)])
        else:
            rows.append(["Status", "using original DUID"])
    print("Original DUID status:")
    print(tabulate(rows, tablefmt="simple"))
    return 0


def cmd_randomize(ctl: DuidController, args: argparse.Namespace) -> int:
    if not _require_privileges("randomize [iface]"):
        return 1
    logger.info(f"Generating random DUID (type: {args.duid_type.type_name})...")
    try:
        duid = ctl.randomize(args.duid_type, args.iface, args.mac)
    except (DuidError, ValueError) as exc:
        logger.error(f"Failed to set DUID: {exc}")
        return 1

    logger.info("DUID changed successfully!")
    print(format_duid(duid))
    if args.iface:
        logger.info(f"Applied to interface: {args.iface}")
    logger.info("The original DUID has been backed up and can be restored with: duidstuff restore")
    return 0


def cmd_set(ctl: DuidController, args: argparse.Namespace) -> int:
    if not _require_privileges("set <duid-hex> [iface]"):
        return 1
    try:
        logger.info(f"Setting DUID to: {args.duid}")
        duid = ctl.set_duid(args.duid, args.iface)
    except (DuidError, ValueError) as exc:
        logger.error(f"Failed to set DUID: {exc}")
        return 1

    logger.info("DUID changed successfully!")
    print(format_duid(duid))
    logger.info("The original DUID has been backed up and can be restored with: duidstuff restore")
    return 0


def cmd_sync(ctl: DuidController, args: argparse.Namespace) -> int:
    if not _require_privileges("sync <iface>"):
        return 1
    logger.info(f"Syncing DUID to current MAC address of {args.iface}...")
    try:
        duid = ctl.sync_to_mac(args.iface, args.duid_type)
    except (DuidError, ValueError) as exc:
        logger.error(f"Failed to sync DUID: {exc}")
        return 1

    logger.info("DUID synced to current MAC address!")
    print(format_duid(duid))
    return 0


def cmd_restore(ctl: DuidController, args: argparse.Namespace) -> int:
    if not _require_privileges("restore [iface]"):
        return 1
    try:
        result = ctl.restore(args.iface)
    except DuidError as exc:
        logger.error(f"Failed to restore DUID: {exc}")
        return 1

    if result is RestoreResult.NO_ORIGINAL:
        logger.error("No original DUID stored.")
        logger.info("The original DUID is saved automatically the first time you randomize, set or sync.")
        return 1
    if result is RestoreResult.NOT_SPOOFED:
        logger.info("DUID is already set to the original value.")
    else:
        logger.info("DUID restored to original!")
    print(format_duid(ctl.get_current()))
    return 0


def cmd_reset(ctl: DuidController, args: argparse.Namespace) -> int:
    if not _require_privileges("reset [iface]"):
        return 1
    try:
        ctl.reset(args.iface)
    except DuidError as exc:
        logger.error(f"Failed to reset DUID: {exc}")
        return 1
    logger.info("DUID reset. The system will generate a new DUID on the next DHCPv6 request.")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    try:
        duid = encode(args.duid_type, args.mac)
    except (DuidError, ValueError) as exc:
        logger.error(f"Failed to generate DUID: {exc}")
        return 1
    print(format_duid(duid))
    print()
    print(f"To apply: sudo python -m duidstuff set {format_colon_hex(duid)} [iface]")
    return 0


def cmd_original(ctl: DuidController, args: argparse.Namespace) -> int:
    if args.action == "path":
        print(ctl.original_path())
        return 0

    if args.action == "show":
        record = ctl.original_record()
        original = ctl.original()
        if original is None:
            logger.info("No original DUID stored yet. It is saved automatically when you first spoof the DUID.")
            return 0
        print("Original DUID (stored):")
        print(format_duid(original))
        if record is not None:
            print(f"Stored at: {record.stored_at.isoformat()} on {record.hostname} ({record.platform})")
        print(f"Storage location: {ctl.original_path()}")
        return 0

    # clear
    if not _require_privileges("original clear --force"):
        return 1
    if not ctl.has_original():
        logger.info("No original DUID stored.")
        return 0
    if not args.force:
        logger.warning("This deletes the stored original DUID; restore will no longer be possible.")
        logger.info("To confirm, run: duidstuff original clear --force")
        return 1
    try:
        ctl.clear_original(confirm=True)
    except DuidError as exc:
        logger.error(f"Failed to clear original DUID: {exc}")
        return 1
    logger.info("Original DUID storage cleared.")
    return 0


_COMMANDS = {
    "list": cmd_list,
    "show": cmd_list,
    "randomize": cmd_randomize,
    "set": cmd_set,
    "sync": cmd_sync,
    "restore": cmd_restore,
    "reset": cmd_reset,
    "original": cmd_original,
}


def main(argv: list[str] | None = None) -> int:
    """CLI entry point: parse args, configure logging, and dispatch.

    Returns:
        Exit code: 0 on success, 1 on failure.
    """
    args = parse_args(argv)
    os.environ.setdefault("LOGURU_LEVEL", "DEBUG" if args.verbose else "INFO")
    configure_logging()

    if args.command == "generate":
        return cmd_generate(args)

    try:
        ctl = build_controller(args)
    except Exception as exc:
        logger.error(f"Configuration error: {exc}")
        return 1

    return _COMMANDS[args.command](ctl, args)


if __name__ == "__main__":
    sys.exit(main())
