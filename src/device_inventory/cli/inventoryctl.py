#!/usr/bin/env python3
"""
inventoryctl - device inventory operational CLI

A lightweight CLI for day-2 operations:
- Device lookup (inventoryctl get)
- Device creation (inventoryctl add)
- Attribute updates (inventoryctl upsert)
- Store health check (inventoryctl doctor)
- Version info (inventoryctl version)
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from device_inventory import __version__
from device_inventory.core.config import get_config
from device_inventory.core.errors import InvalidInputError, InventoryError
from device_inventory.inventory.store import DeviceDataStore

logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for terminal output."""

    GREEN = "\033[92m"
    RED = "\033[91m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colorize(text: str, color: str) -> str:
    """Colorize text if stdout is a TTY."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def load_document(path: str) -> Any:
    """Load a YAML or JSON document from a file, or stdin for ``-``."""
    if path == "-":
        return yaml.safe_load(sys.stdin)
    with open(path, "r") as f:
        return yaml.safe_load(f)


def parse_assignments(items: Optional[List[str]], option: str) -> Dict[str, str]:
    """Split ``name=text`` pairs given on the command line."""
    assignments = {}
    for item in items or []:
        name, sep, text = item.partition("=")
        if not sep or not name:
            raise InvalidInputError(f"{option} expects name=value, got {item!r}")
        assignments[name] = text
    return assignments


def open_store(args) -> DeviceDataStore:
    """Open the device store named on the command line or in configuration."""
    store_config = get_config().store
    return DeviceDataStore.open(
        args.store_url or store_config.url,
        collection=args.collection or store_config.collection,
        timeout=store_config.timeout,
    )


def cmd_get(args) -> int:
    """
    Print a device as JSON.

    Returns:
        Exit code (0 when found, 1 when absent)
    """
    with open_store(args) as store:
        device = store.get_device(args.device_id)

    if device is None:
        print(f"Device {args.device_id!r} not found", file=sys.stderr)
        return 1

    print(json.dumps(device.to_document(), indent=2, sort_keys=True))
    return 0


def cmd_add(args) -> int:
    """Insert a device read from a YAML/JSON file."""
    document = load_document(args.file)

    if isinstance(document, dict) and not isinstance(document.get("_id", ""), str):
        raise InvalidInputError(
            f"_id in {args.file} must be a string, got {document['_id']!r}; "
            'quote it, e.g. _id: "0003"'
        )

    with open_store(args) as store:
        device = store.add_device(document)

    print(colorize(f"✓ Added device {device.id}", Colors.GREEN))
    return 0


def cmd_upsert(args) -> int:
    """Merge attribute updates into a device."""
    attributes: Dict[str, Dict[str, Any]] = {}

    if args.file:
        loaded = load_document(args.file) or {}
        if not isinstance(loaded, dict):
            raise InvalidInputError(f"{args.file} must contain a mapping of attributes")
        for name, update in loaded.items():
            if not isinstance(update, dict):
                raise InvalidInputError(f"attribute {name!r} in {args.file} must be a mapping")
            attributes[name] = dict(update)

    for name, text in parse_assignments(args.set, "--set").items():
        attributes.setdefault(name, {})["value"] = text

    for name, text in parse_assignments(args.set_json, "--set-json").items():
        try:
            attributes.setdefault(name, {})["value"] = json.loads(text)
        except ValueError as e:
            raise InvalidInputError(f"--set-json value for {name!r} is not JSON: {e}") from e

    for name, text in parse_assignments(args.describe, "--describe").items():
        attributes.setdefault(name, {})["description"] = text

    with open_store(args) as store:
        plan = store.upsert_attributes(args.device_id, attributes)

    print(colorize(f"✓ Upserted device {args.device_id}: {plan.describe()}", Colors.GREEN))
    return 0


def cmd_doctor(args) -> int:
    """
    Check that the configured document store can be opened and used.

    Returns:
        Exit code (0 on success, 1 on failure)
    """
    target = args.store_url or get_config().store.url

    try:
        with open_store(args) as store:
            store.ping()
    except InventoryError as e:
        print(f"Document store ({target}): {colorize('[ERROR]', Colors.RED)} {e}")
        return 1

    print(f"Document store ({target}): {colorize('[OK]', Colors.GREEN)} reachable")
    return 0


def cmd_version(args) -> int:
    """
    Print version information.

    Returns:
        Exit code (always 0)
    """
    print(f"inventoryctl version {__version__}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for inventoryctl."""
    parser = argparse.ArgumentParser(
        prog="inventoryctl",
        description="Device inventory operational CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  inventoryctl get 0003                                  # Show a device
  inventoryctl add device.yaml                           # Insert a new device
  inventoryctl upsert 0003 --set sn=0003-newsn           # Update one value
  inventoryctl upsert 0099 --set-json 'ip=["1.2.3.4", "1.2.3.5"]' --describe "ip=ip addr array"
  inventoryctl doctor                                    # Check the store

Environment variables:
  INVENTORY_STORE_URL               # Store target (sqlite:///<path> or memory://)
  INVENTORY_STORE_COLLECTION        # Device collection (default: devices)
  LOG_LEVEL                         # Logging level (default: INFO)
        """
    )
    parser.add_argument("--store-url", help="Document store target (overrides configuration)")
    parser.add_argument("--collection", help="Device collection (overrides configuration)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # get command
    get_parser = subparsers.add_parser("get", help="Show a device as JSON")
    get_parser.add_argument("device_id", help="Device identifier")

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Insert a new device from a YAML/JSON file (quote numeric-looking ids: _id: \"0003\")"
    )
    add_parser.add_argument("file", help="Device document file, or - for stdin")

    # upsert command
    upsert_parser = subparsers.add_parser(
        "upsert",
        help="Merge attribute updates into a device, creating it if needed"
    )
    upsert_parser.add_argument("device_id", help="Device identifier")
    upsert_parser.add_argument(
        "--file",
        help="YAML/JSON mapping of attribute name to {value, description}; quote string values that look like numbers"
    )
    upsert_parser.add_argument(
        "--set",
        action="append",
        metavar="NAME=VALUE",
        help="Set an attribute value, stored verbatim as a string (repeatable)"
    )
    upsert_parser.add_argument(
        "--set-json",
        action="append",
        metavar="NAME=JSON",
        help="Set an attribute value parsed as JSON, for lists, numbers and booleans (repeatable)"
    )
    upsert_parser.add_argument(
        "--describe",
        action="append",
        metavar="NAME=TEXT",
        help="Set an attribute description (repeatable)"
    )

    # doctor command
    subparsers.add_parser("doctor", help="Check the document store is reachable")

    # version command
    subparsers.add_parser("version", help="Show version information")

    return parser


def main(argv=None):
    """Main entry point for inventoryctl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_config().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    handlers = {
        "get": cmd_get,
        "add": cmd_add,
        "upsert": cmd_upsert,
        "doctor": cmd_doctor,
        "version": cmd_version,
    }

    try:
        return handlers[args.command](args)
    except (InventoryError, OSError, yaml.YAMLError) as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(colorize(f"✗ {args.command} failed: {e}", Colors.RED), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
