# suppress_manager/cli.py

from __future__ import annotations

import argparse
import asyncio
import locale
import logging
import os
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .activity_log import setup_logging
from .config import ConfigStore, DEFAULT_MODULE_PATH, dump_policy, enabled_targets
from .discovery import AppDiscoveryService
from .errors import PersistenceError, ValidationError
from .executor import ShellExecutor
from .files import DeviceFileProvider
from .models import DiscoveryFilters
from .reconcile import available_view, configured_view

console = Console()
logger = logging.getLogger(__name__)

MUTATING_COMMANDS = {"add", "remove", "enable", "disable", "toggle", "processes"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="suppress-manager",
        description="Manage the per-app process suppression config on an Android device.",
    )
    parser.add_argument(
        "--module-path",
        default=DEFAULT_MODULE_PATH,
        help=f"Module root on the device (default: {DEFAULT_MODULE_PATH})",
    )
    parser.add_argument("--adb", action="store_true", help="Run device commands through `adb shell`")
    parser.add_argument(
        "--serial",
        default=os.environ.get("SUPPRESS_ADB_SERIAL"),
        help="adb device serial (implies --adb)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="Show configured apps.")

    p_apps = subparsers.add_parser("apps", help="Show installed apps that can be added.")
    p_apps.add_argument("--system", action="store_true", help="Include system apps")
    p_apps.add_argument("--search", default="", help="Filter by app or package name")

    p_add = subparsers.add_parser("add", help="Add an app (default process <pkg>:appbrand0).")
    p_add.add_argument("package")
    p_add.add_argument("processes", nargs="*", help="Process names to suppress")

    for name, help_text in (
        ("remove", "Remove an app from the config."),
        ("enable", "Enable suppression for an app."),
        ("disable", "Disable suppression for an app."),
        ("toggle", "Flip the enabled state of an app."),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("package")

    p_procs = subparsers.add_parser("processes", help="Replace the process list of an app.")
    p_procs.add_argument("package")
    p_procs.add_argument("processes", nargs="+")

    subparsers.add_parser("validate", help="Check the stored config against the schema.")
    subparsers.add_parser("targets", help="Print enabled packages and processes as daemon arguments.")
    subparsers.add_parser("show", help="Print the config document.")

    return parser


def _print_configured(store: ConfigStore) -> None:
    rows = configured_view(store.policy, [])
    if not rows:
        console.print("No configured apps.")
        return

    table = Table(title="Suppressed apps")
    table.add_column("Package")
    table.add_column("Enabled")
    table.add_column("Processes")
    for row in rows:
        table.add_row(
            row.package_name,
            "yes" if row.entry.enabled else "no",
            "\n".join(row.entry.processes),
        )
    console.print(table)


async def _print_available(store: ConfigStore, discovery: AppDiscoveryService, args: argparse.Namespace) -> None:
    with console.status("Scanning installed apps..."):
        apps = await discovery.discover()

    filters = DiscoveryFilters(query=args.search, show_system_apps=args.system)
    available = available_view(apps, store.policy, filters)
    if not available:
        console.print("No matching apps.")
        return

    table = Table(title=f"Available apps ({len(available)})")
    table.add_column("Name")
    table.add_column("Package")
    table.add_column("Version")
    table.add_column("System")
    for app in available:
        table.add_row(app.app_name, app.package_name, app.version_name, "yes" if app.is_system else "")
    console.print(table)


def _apply_mutation(store: ConfigStore, args: argparse.Namespace) -> bool:
    if args.command == "add":
        store.add_app(args.package, args.processes)
        return True
    if args.command == "remove":
        changed = store.remove_app(args.package)
    elif args.command == "enable":
        changed = store.set_enabled(args.package, True)
    elif args.command == "disable":
        changed = store.set_enabled(args.package, False)
    elif args.command == "toggle":
        changed = store.toggle_enabled(args.package) is not None
    else:
        changed = store.replace_processes(args.package, args.processes)

    if not changed:
        console.print(f"[yellow]{args.package} is not configured; nothing changed.[/yellow]")
    return changed


async def _run(args: argparse.Namespace) -> int:
    executor = ShellExecutor(adb=args.adb or bool(args.serial), serial=args.serial)
    files = DeviceFileProvider(executor, args.module_path)
    store = ConfigStore(files, executor, module_path=args.module_path)
    discovery = AppDiscoveryService(executor)

    if args.command == "validate":
        ok = await store.validate_file()
        console.print("Config is valid." if ok else "[red]Config is invalid.[/red]")
        return 0 if ok else 1

    await store.load()

    if args.command == "list":
        _print_configured(store)
        return 0

    if args.command == "apps":
        await _print_available(store, discovery, args)
        return 0

    if args.command == "targets":
        print(" ".join(enabled_targets(store.policy)))
        return 0

    if args.command == "show":
        print(dump_policy(store.policy), end="")
        return 0

    try:
        if not _apply_mutation(store, args):
            return 0
        await store.save()
    except ValidationError as exc:
        console.print(f"[red]Config is invalid: {exc}[/red]")
        return 1
    except PersistenceError as exc:
        console.print("[red]Saving config failed:[/red]")
        console.print(str(exc))
        return 1

    console.print("[green]Config saved and applied.[/green]")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.debug("Keeping default collation: %s", exc)
    return asyncio.run(_run(args))
