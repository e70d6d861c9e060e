"""
wpsyde command line interface.

Usage:
    wpsyde init
    wpsyde list
    wpsyde add Button
    wpsyde add Card 1.0.0
    wpsyde add Button Card Input
    wpsyde add --all [--yes]
    wpsyde remove Button
    wpsyde health

Exit codes: 0 on success, 1 on any failed operation, 2 on usage errors.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from wpsyde import __version__
from wpsyde.client.config import (
    CONFIG_FILENAME,
    ClientConfig,
    DEFAULT_TIMEOUT_S,
    default_registry_url,
    init_config,
    load_config,
    load_project,
)
from wpsyde.client.installer import ConfirmFn, Installer
from wpsyde.client.registry_client import RegistryClient
from wpsyde.errors import InvalidInput, WpsydeError
from wpsyde.logging_config import setup_logging
from wpsyde.registry.naming import sanitize_component_name
from wpsyde.registry.version import LATEST, is_version
from wpsyde.reporter import Reporter

logger = logging.getLogger(__name__)


def prompt_confirm(count: int) -> bool:
    """Ask on stdin before installing every component."""
    try:
        answer = input(f"This will install ALL {count} components. Continue? (y/N) ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def split_add_targets(targets: Sequence[str]) -> tuple[list[str], str]:
    """Split `add` positionals into component names and a trailing version.

    Names are returned as given; each is validated by its own install.

    Raises:
        InvalidInput: If no component name remains.
    """
    names = list(targets)
    version = LATEST
    if len(names) > 1 and (is_version(names[-1]) or names[-1] == LATEST):
        version = names.pop()
    if not names:
        raise InvalidInput("Component name required. Usage: wpsyde add <ComponentName> [version]")
    return names, version


def _registry_url(args: argparse.Namespace) -> str:
    if args.registry:
        return args.registry
    config_path = Path(args.config)
    if config_path.exists():
        return load_config(config_path).registry
    return default_registry_url()


def _client(args: argparse.Namespace, base_url: str) -> RegistryClient:
    return RegistryClient(ClientConfig(base_url=base_url, timeout_s=args.timeout))


def cmd_init(args: argparse.Namespace, reporter: Reporter) -> int:
    config = init_config(Path(args.config), registry=args.registry)
    if config is None:
        reporter.warn(f"{args.config} already exists")
        return 0
    reporter.success(f"Created {args.config}")
    reporter.info("Edit this file to customize your paths")
    return 0


async def cmd_list(args: argparse.Namespace, reporter: Reporter) -> int:
    async with _client(args, _registry_url(args)) as client:
        reporter.step("Fetching components from registry...")
        index = await client.fetch_index()

    reporter.heading("Available Components:")
    for name, entry in index.components.items():
        reporter.info(f"\n{name}:")
        reporter.info(f"  Latest: {entry.latest}")
        reporter.info(f"  Versions: {', '.join(entry.versions)}")
        if entry.description:
            reporter.info(f"  Description: {entry.description}")
    reporter.heading(f"\nTotal: {len(index)} components available")
    return 0


async def cmd_add(args: argparse.Namespace, reporter: Reporter, confirm: ConfirmFn) -> int:
    if args.all and args.targets:
        raise InvalidInput("--all cannot be combined with component names")
    if not args.all and not args.targets:
        raise InvalidInput("Component name required. Usage: wpsyde add <ComponentName> [--all]")

    names: list[str] = []
    version = LATEST
    if not args.all:
        names, version = split_add_targets(args.targets)
    if len(names) == 1:
        names = [sanitize_component_name(names[0])]

    project = load_project(Path(args.config))
    base_url = args.registry or project.config.registry

    async with _client(args, base_url) as client:
        installer = Installer(client, project, reporter)

        if args.all:
            report = await installer.install_all(lambda n: True if args.yes else confirm(n))
            return 0 if report.ok or (report.cancelled and not report.outcomes) else 1

        if len(names) == 1:
            await installer.install(names[0], version)
            return 0

        report = await installer.install_many(names, version)
        return 0 if report.ok else 1


def cmd_remove(args: argparse.Namespace, reporter: Reporter) -> int:
    project = load_project(Path(args.config))
    client = RegistryClient(ClientConfig(base_url=project.config.registry))
    Installer(client, project, reporter).remove(args.name)
    return 0


async def cmd_health(args: argparse.Namespace, reporter: Reporter) -> int:
    async with _client(args, _registry_url(args)) as client:
        reporter.step("Checking registry health...")
        health = await client.check_health()

    if health.healthy:
        reporter.success(health.message)
        reporter.success("Component endpoints are working correctly")
        return 0
    reporter.error(health.message)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wpsyde",
        description="Install WordPress UI components from the WPSyde registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=CONFIG_FILENAME,
        help=f"Path to the project config file (default: {CONFIG_FILENAME})",
    )
    parser.add_argument(
        "--registry",
        default=None,
        help="Registry base URL (default: from config, $WPSYDE_REGISTRY_URL, or public registry)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help=f"HTTP timeout in seconds (default: {DEFAULT_TIMEOUT_S:g})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Create wpsyde.json with default paths")
    sub.add_parser("list", help="List available components")

    add = sub.add_parser("add", help="Install one or more components")
    add.add_argument("targets", nargs="*", help="Component names, optionally followed by a version")
    add.add_argument("--all", action="store_true", help="Install every component in the registry")
    add.add_argument("--yes", "-y", action="store_true", help="Skip the --all confirmation")

    remove = sub.add_parser("remove", help="Remove an installed component")
    remove.add_argument("name", help="Component name")

    sub.add_parser("health", help="Check registry health")
    return parser


async def _dispatch_async(
    args: argparse.Namespace, reporter: Reporter, confirm: ConfirmFn
) -> int:
    if args.command == "list":
        return await cmd_list(args, reporter)
    if args.command == "add":
        return await cmd_add(args, reporter, confirm)
    return await cmd_health(args, reporter)


def main(
    argv: Sequence[str] | None = None,
    *,
    reporter: Reporter | None = None,
    confirm: ConfirmFn | None = None,
) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        json_format=args.json_logs,
    )
    reporter = reporter or Reporter()
    confirm = confirm or prompt_confirm

    try:
        if args.command == "init":
            return cmd_init(args, reporter)
        if args.command == "remove":
            return cmd_remove(args, reporter)
        return asyncio.run(_dispatch_async(args, reporter, confirm))
    except WpsydeError as e:
        reporter.error(str(e))
        logger.debug("Command failed", exc_info=True)
        return 1
    except ValueError as e:
        # ClientConfig/ProjectConfig validation of user-supplied values
        reporter.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
