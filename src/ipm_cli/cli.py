"""Inkdrop Plugin Manager CLI.

Usage:
    ipm configure
    ipm list|ls
    ipm outdated
    ipm install|i <package> [-v VERSION]
    ipm update <package> [-v VERSION]
    ipm uninstall|remove|rm <package>
    ipm search <query> [-s SORT] [-d DIRECTION]
    ipm show|info <package>
    ipm publish [path] [--dry-run]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable
from typing import Any, NoReturn, TypeVar

from loguru import logger

from ipm_cli import __version__
from ipm_cli.auth import InputError
from ipm_cli.backend import DIRECTION_CHOICES, SORT_CHOICES, BackendError
from ipm_cli.credentials import StorageError
from ipm_cli.logging import setup_logging
from ipm_cli.session import Session

PLUGINS_URL = "https://my.inkdrop.app/plugins"

T = TypeVar("T")


def _run(session: Session, awaitable: Awaitable[T]) -> T:
    """Run one backend call, closing the backend afterwards."""

    async def _main() -> T:
        try:
            return await awaitable
        finally:
            await session.close()

    return asyncio.run(_main())


def _fail(message: str, error: BaseException) -> NoReturn:
    """Report a failed backend call and exit."""
    logger.opt(exception=error).debug(message)
    print(f"{message}: {error}", file=sys.stderr)
    sys.exit(1)


def _version_suffix(version: str | None) -> str:
    return f"@{version}" if version else ""


# --- Commands ---


def cmd_configure(session: Session, args: Any) -> None:
    """Set up or replace the stored access key."""
    session.auth.configure()


def cmd_list(session: Session, args: Any) -> None:
    """List installed packages."""
    ipm = session.package_manager()
    print("Fetching installed packages...")
    try:
        packages = _run(session, ipm.get_installed())
    except Exception as e:
        _fail("Failed to fetch installed packages", e)

    if not packages:
        print("No packages installed.")
        return

    print(f"\nInstalled packages ({len(packages)}):\n")
    for pkg in packages:
        description = f" - {pkg.description}" if pkg.description else ""
        print(f"  {pkg.name}@{pkg.version}{description}")


def cmd_outdated(session: Session, args: Any) -> None:
    """List packages with a newer release."""
    ipm = session.package_manager()
    print("Checking for outdated packages...")
    try:
        outdated = _run(session, ipm.get_outdated())
    except Exception as e:
        _fail("Failed to check outdated packages", e)

    if not outdated:
        print("All packages are up to date.")
        return

    print(f"\nOutdated packages ({len(outdated)}):\n")
    for pkg in outdated:
        print(f"  {pkg.name}: {pkg.version} → {pkg.latest_version}")


def cmd_install(session: Session, args: Any) -> None:
    """Install a package."""
    ipm = session.package_manager()
    label = f"{args.package}{_version_suffix(args.version)}"
    print(f"Installing {label}...")
    try:
        _run(session, ipm.install(args.package, args.version))
    except Exception as e:
        _fail(f"Failed to install {args.package}", e)
    print(f"✓ Successfully installed {label}")


def cmd_update(session: Session, args: Any) -> None:
    """Update a package."""
    ipm = session.package_manager()
    label = f"{args.package}{_version_suffix(args.version)}"
    print(f"Updating {label}...")
    try:
        _run(session, ipm.update(args.package, args.version))
    except Exception as e:
        _fail(f"Failed to update {args.package}", e)
    print(f"✓ Successfully updated {label}")


def cmd_uninstall(session: Session, args: Any) -> None:
    """Uninstall a package."""
    ipm = session.package_manager()
    print(f"Uninstalling {args.package}...")
    try:
        removed = _run(session, ipm.uninstall(args.package))
    except Exception as e:
        _fail(f"Failed to uninstall {args.package}", e)

    if removed:
        print(f"✓ Successfully uninstalled {args.package}")
    else:
        print(f"Package {args.package} is not installed.")


def cmd_search(session: Session, args: Any) -> None:
    """Search the registry."""
    ipm = session.package_manager()
    print(f'Searching for "{args.query}"...')
    try:
        results = _run(
            session,
            ipm.registry.search(args.query, sort=args.sort, direction=args.direction),
        )
    except Exception as e:
        _fail("Search failed", e)

    if not results:
        print("No packages found.")
        return

    print(f"\nFound {len(results)} package(s):\n")
    for pkg in results:
        print(f"└── {pkg.name} (v{pkg.latest_version})")
        if pkg.description:
            print(f"    {pkg.description}")
        print(f"    Downloads: {pkg.downloads}")
        print()
    print(
        "Use `ipm install` to install them or visit "
        f"{PLUGINS_URL} to read more about them."
    )


def cmd_show(session: Session, args: Any) -> None:
    """Show registry information for a package."""
    ipm = session.package_manager()
    print(f"Fetching information for {args.package}...")
    try:
        info = _run(session, ipm.registry.get_package_info(args.package))
    except Exception as e:
        _fail("Failed to fetch package info", e)

    print(f"\nPackage: {info.name}")
    print(f"├── Latest version: {info.latest_version}")
    if info.description:
        print(f"├── Description: {info.description}")
    if info.repository:
        print(f"├── Repository: {info.repository}")
    print(f"├── Downloads: {info.downloads}")
    if info.engine:
        print(f"└── Supported Inkdrop version: {info.engine}")


def cmd_publish(session: Session, args: Any) -> None:
    """Publish a package to the registry."""
    ipm = session.package_manager()
    source = f" from {args.path}" if args.path else ""
    if args.dry_run:
        print(f"Running publish in dry-run mode{source}...")
    else:
        print(f"Publishing package{source}...")
    try:
        _run(session, ipm.publish(dryrun=args.dry_run, path=args.path))
    except Exception as e:
        _fail("Failed to publish package", e)

    if args.dry_run:
        print("✓ Dry-run completed successfully!")
        print("No changes were made to the registry.")
    else:
        print("✓ Package published successfully!")


# --- Parser ---


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ipm",
        description="Inkdrop Plugin Manager - Manage your Inkdrop plugins",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Print debug logs to stderr"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "configure", help="Configure the CLI by setting up authentication"
    )
    subparsers.add_parser("list", aliases=["ls"], help="List installed packages")
    subparsers.add_parser("outdated", help="List outdated packages")

    sp = subparsers.add_parser("install", aliases=["i"], help="Install a package")
    sp.add_argument("package", help="Package name")
    sp.add_argument("-v", "--version", help="Specific version to install")

    sp = subparsers.add_parser("update", help="Update a package")
    sp.add_argument("package", help="Package name")
    sp.add_argument("-v", "--version", help="Specific version to update to")

    sp = subparsers.add_parser(
        "uninstall", aliases=["remove", "rm"], help="Uninstall a package"
    )
    sp.add_argument("package", help="Package name")

    sp = subparsers.add_parser("search", help="Search for packages")
    sp.add_argument("query", help="Search query")
    sp.add_argument(
        "-s",
        "--sort",
        choices=SORT_CHOICES,
        help=f"Sort order ({', '.join(SORT_CHOICES)})",
    )
    sp.add_argument(
        "-d",
        "--direction",
        choices=DIRECTION_CHOICES,
        help=f"Sort direction ({', '.join(DIRECTION_CHOICES)})",
    )

    sp = subparsers.add_parser(
        "show", aliases=["info"], help="Show package information"
    )
    sp.add_argument("package", help="Package name")

    sp = subparsers.add_parser("publish", help="Publish a package to the registry")
    sp.add_argument("path", nargs="?", help="Package directory (default: current)")
    sp.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate the publish process without actually publishing",
    )

    return parser


_ALIASES: dict[str, str] = {
    "ls": "list",
    "i": "install",
    "remove": "uninstall",
    "rm": "uninstall",
    "info": "show",
}

# Command dispatch table
_COMMANDS: dict[str, Any] = {
    "configure": cmd_configure,
    "list": cmd_list,
    "outdated": cmd_outdated,
    "install": cmd_install,
    "update": cmd_update,
    "uninstall": cmd_uninstall,
    "search": cmd_search,
    "show": cmd_show,
    "publish": cmd_publish,
}


def main(argv: list[str] | None = None, session: Session | None = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    session = session or Session()
    setup_logging("DEBUG" if args.verbose else session.settings.ipm_log_level)

    command = _ALIASES.get(args.command, args.command)
    handler = _COMMANDS[command]

    try:
        handler(session, args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except StorageError as e:
        print(f"Error saving access token: {e}", file=sys.stderr)
        print("Run `ipm configure` to try again.", file=sys.stderr)
        sys.exit(1)
    except BackendError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.opt(exception=e).debug("Unhandled error")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
