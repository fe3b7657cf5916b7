#!/usr/bin/env python3
"""
Command-Line Interface for the Voxels Configuration Store

Usage:
    python -m voxels_store status                  # Show storage status
    python -m voxels_store -c config.yaml list     # List all entries
    python -m voxels_store get timezone            # Read a value
    python -m voxels_store set timezone UTC        # Write a value
    python -m voxels_store set boot_count 3 --int  # Write an integer
    python -m voxels_store delete timezone         # Remove a key
    python -m voxels_store format --yes            # Erase and initialize
    python -m voxels_store wipe --yes              # Erase all entries
    python -m voxels_store boot                    # Increment boot_count
"""

import argparse
import logging
import os
import sys

from .errors import StoreError
from .models import StoreConfig, StoreStatus
from .store import ConfigStore


def setup_logging(config: StoreConfig):
    """Configure logging."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def load_config(path: str) -> StoreConfig:
    """Load config, falling back to defaults when the file is absent."""
    if not os.path.exists(path):
        print(f"Config file not found: {path} (using defaults)", file=sys.stderr)
        return StoreConfig()
    return StoreConfig.from_yaml(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voxels-store",
        description="Voxels Configuration Store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxels-store status                      # Show storage status
  voxels-store -c config.yaml list         # List entries using custom config
  voxels-store set device_name Kitchen     # Write a value
  voxels-store set font_size_preset 2 --int
  voxels-store format --yes                # Format removable storage
        """
    )
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show storage status")
    commands.add_parser("list", help="List all entries in storage order")

    get_cmd = commands.add_parser("get", help="Print the value of a key")
    get_cmd.add_argument("key")

    set_cmd = commands.add_parser("set", help="Store a value and save")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value")
    set_cmd.add_argument(
        "--int",
        dest="as_int",
        action="store_true",
        help="Store value as an integer",
    )

    delete_cmd = commands.add_parser("delete", help="Remove a key and save")
    delete_cmd.add_argument("key")

    for name, text in (
        ("format", "Erase storage and initialize an empty database"),
        ("wipe", "Erase all entries on the active storage"),
    ):
        destructive = commands.add_parser(name, help=text)
        destructive.add_argument(
            "--yes",
            action="store_true",
            help="Do not ask for confirmation",
        )

    commands.add_parser("boot", help="Run the startup routine (increments boot_count)")

    return parser


def confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def print_status(store: ConfigStore):
    print("\n" + "=" * 50)
    print("CONFIGURATION STORE")
    print("=" * 50)
    print(f"Status:   {store.get_status().value}")
    print(f"Storage:  {store.get_storage_type()}")
    if store.is_ready():
        print(f"Entries:  {store.count}/{store.capacity}")
    print("=" * 50)


def require_ready(store: ConfigStore) -> bool:
    if store.is_ready():
        return True
    if store.get_status() is StoreStatus.NOT_INITIALIZED:
        print("Error: Storage needs formatting (run 'format')")
    else:
        print(f"Error: Storage not available ({store.get_status().value})")
    return False


def run_command(store: ConfigStore, args) -> int:
    """Run one command against an initialized store. Returns exit code."""
    status = store.get_status()

    if args.command == "status":
        print_status(store)
        return 0

    if args.command == "format":
        if not args.yes and not confirm(f"Erase all data on {store.get_storage_type()}?"):
            print("Format cancelled")
            return 1
        if store.format_and_init() is not StoreStatus.READY:
            print("Error: Format failed")
            return 1
        print("Storage formatted and database initialized")
        return 0

    if args.command == "boot":
        print_status(store)
        if status is not StoreStatus.READY:
            return 0
        boot_count = store.get_int_or("boot_count", 0)
        print(f"Boot count: {boot_count}")
        store.set_int("boot_count", boot_count + 1)
        store.save()
        return 0

    if not require_ready(store):
        return 1

    if args.command == "list":
        for key, value in store.items():
            print(f"{key}={value}")
    elif args.command == "get":
        print(store.get_string(args.key))
    elif args.command == "set":
        if args.as_int:
            store.set_int(args.key, int(args.value))
        else:
            store.set_string(args.key, args.value)
        store.save()
    elif args.command == "delete":
        store.delete(args.key)
        store.save()
    elif args.command == "wipe":
        if not args.yes and not confirm(f"Erase all entries on {store.get_storage_type()}?"):
            print("Wipe cancelled")
            return 1
        store.wipe()
        print("Storage wiped")

    return 0


def main(argv=None) -> int:
    """Command-line entry point."""
    args = build_parser().parse_args(argv)

    # Load config
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}")
        return 1

    setup_logging(config)
    store = ConfigStore.from_config(config)

    try:
        store.init()
        return run_command(store, args)
    except (StoreError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        try:
            store.deinit()
        except StoreError as e:
            print(f"Error: {e}")


if __name__ == "__main__":
    sys.exit(main())
