"""CLI entry point and argument parsing"""

import sys
import asyncio
import argparse
from rich.console import Console

from energy.client import OPERATION_MODES
from cli.cli_app import EnergyMonitorCLI
from cli.debug_setup import DEBUG_LOG_FILE, setup_logging


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tesla Powerwall energy monitor")
    parser.add_argument("--debug", "-d", action="store_true", help=f"Enable debug logging (appends to {DEBUG_LOG_FILE})")

    subparsers = parser.add_subparsers(dest="command", required=True)

    configure = subparsers.add_parser("configure", help="Store the Tesla application client ID and secret")
    configure.add_argument("--client-id", default=None, help="Application client ID (prompted if omitted)")
    configure.add_argument("--client-secret", default=None, help="Application client secret (prompted if omitted)")

    login = subparsers.add_parser("login", help="Sign in to Tesla in the browser")
    login.add_argument(
        "--partner",
        action="store_true",
        help="Use an application-only partner token instead of a browser sign-in"
    )

    subparsers.add_parser("status", help="Show token status and the latest live reading")
    subparsers.add_parser("watch", help="Poll the energy site until interrupted")

    history = subparsers.add_parser("history", help="Show recorded samples")
    history.add_argument("--limit", type=int, default=20, help="Number of samples to show (default: 20)")

    subparsers.add_parser("logout", help="Sign out and wipe stored credentials")

    reserve = subparsers.add_parser("reserve", help="Set the backup reserve percentage")
    reserve.add_argument("percent", type=float, help="Backup reserve percentage (0-100)")

    mode = subparsers.add_parser("mode", help="Set the site operation mode")
    mode.add_argument("mode", choices=OPERATION_MODES, help="Operation mode")

    return parser


def run_command(cli: EnergyMonitorCLI, args: argparse.Namespace) -> bool:
    """Dispatch a parsed command; returns False when it did not succeed"""
    if args.command == "configure":
        cli.configure(args.client_id, args.client_secret)
        return True
    if args.command == "history":
        cli.history(args.limit)
        return True
    if args.command == "login":
        return asyncio.run(cli.login(partner=args.partner))
    if args.command == "status":
        return asyncio.run(cli.status())
    if args.command == "watch":
        asyncio.run(cli.watch())
        return True
    if args.command == "logout":
        asyncio.run(cli.logout())
        return True
    if args.command == "reserve":
        if not 0 <= args.percent <= 100:
            console.print("[red]ERROR:[/red] Backup reserve must be between 0 and 100")
            return False
        return asyncio.run(cli.set_backup_reserve(args.percent))
    if args.command == "mode":
        return asyncio.run(cli.set_operation_mode(args.mode))
    raise ValueError(f"Unknown command: {args.command}")


def main():
    """Entry point for the CLI"""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.debug)

    try:
        cli = EnergyMonitorCLI(console=console)
        ok = run_command(cli, args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        console.print("Goodbye!")
        return
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
