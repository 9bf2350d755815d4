"""CLI interface for the OLM installer.

Provides the install, uninstall and status commands.
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from olm_installer import __version__
from olm_installer.config import InstallerConfig
from olm_installer.kube_config import KubeconfigProvider
from olm_installer.manager import Manager
from olm_installer.utils.errors import InstallerError
from olm_installer.utils.validation import validate_olm_version

console = Console(highlight=False)
err_console = Console(stderr=True)

COMMANDS = {
    "install": "Install Operator Lifecycle Manager in your cluster",
    "uninstall": "Uninstall Operator Lifecycle Manager from your cluster",
    "status": "Get the status of the Operator Lifecycle Manager installation in your cluster",
}


def setup_logging(level: str = "info", verbose: bool = False) -> None:
    """Configure logging to stderr.

    Args:
        level: Log level name
        verbose: Force debug logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=False,
                rich_tracebacks=True,
            )
        ],
        force=True,  # Override any existing config
    )


def build_parser(manager: Manager) -> argparse.ArgumentParser:
    """Build argument parser for CLI.

    Args:
        manager: Manager whose timeout the --timeout option binds to

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="olm-installer",
        description="Manage the Operator Lifecycle Manager (OLM) in a Kubernetes cluster",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--kubeconfig",
        type=str,
        help="Path to the kubeconfig file to use",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"olm-installer {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    for command, help_text in COMMANDS.items():
        subparser = subparsers.add_parser(command, help=help_text, description=help_text)
        subparser.add_argument(
            "--version",
            dest="olm_version",
            default=None,
            metavar="VERSION",
            help=(
                "version of OLM resources to install"
                if command == "install"
                else "version of OLM resources (default: the installed version)"
            ),
        )
        manager.add_to_parser(subparser)

    return parser


async def run_command(manager: Manager, command: str) -> None:
    """Run a single manager operation.

    Args:
        manager: Configured manager
        command: One of install, uninstall, status
    """
    operations = {
        "install": manager.install,
        "uninstall": manager.uninstall,
        "status": manager.status,
    }
    await operations[command]()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for CLI."""
    try:
        config = InstallerConfig()
        config.validate()
        manager = Manager(
            timeout=config.timeout_seconds,
            namespace=config.olm_namespace,
            console=console,
        )
    except ValueError as e:
        err_console.print(f"[red]Configuration Error: {escape(str(e))}[/red]")
        sys.exit(1)

    args = build_parser(manager).parse_args(argv)
    setup_logging(config.log_level, verbose=args.verbose)

    manager.version = args.olm_version if args.olm_version is not None else config.olm_version
    if manager.version:
        try:
            validate_olm_version(manager.version)
        except ValueError as e:
            err_console.print(f"[red]Configuration Error: {escape(str(e))}[/red]")
            sys.exit(1)
    manager.config_provider = KubeconfigProvider(
        kubeconfig=args.kubeconfig or config.kubeconfig,
        context=config.kube_context,
    )

    try:
        asyncio.run(run_command(manager, args.command))
    except KeyboardInterrupt:
        err_console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except InstallerError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)
    except Exception as e:
        err_console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
