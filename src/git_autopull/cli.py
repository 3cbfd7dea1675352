import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import daemon, ops, remote
from .config import Config, LoggingConfig
from .constants import APP_NAME, CONFIG_FILE, VERSION
from .errors import (
    ConfigError,
    LocalRepoUnavailable,
    RemoteProtocolError,
    RemoteUnavailable,
)

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def _wait_for_acknowledgment() -> None:
    """Keeps a double-clicked console window open long enough to read the error."""
    if not sys.stdin.isatty():
        return
    try:
        console.input("Press Enter to exit...")
    except EOFError:
        pass


def load_config_or_report(path: Path) -> Config | None:
    """Loads the configuration, reporting failures to the user.

    Args:
        path (Path): The configuration file.

    Returns:
        Config | None: The configuration, or None if it could not be loaded.
    """
    try:
        return Config.load(path)
    except ConfigError as e:
        logger.error(str(e))
        err_console.print(f"[bold red]FATAL:[/bold red] {e}")
        _wait_for_acknowledgment()
        return None


def run_check(config: Config) -> int:
    """Compares the remote and local heads once, without pulling.

    Returns:
        int: 0 when in sync, 2 when the checkout is behind, 1 on error.
    """
    table = Table(title=f"{config.github.owner}/{config.github.repo}")
    table.add_column("Side", style="cyan")
    table.add_column("Commit")

    try:
        with console.status("[bold blue]Checking remote and local heads...[/bold blue]"):
            remote_sha = remote.fetch_remote_head(config.github)
            local_sha = ops.read_local_head(config.local_repo.path)
    except (RemoteUnavailable, RemoteProtocolError, LocalRepoUnavailable) as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {e}")
        return 1

    table.add_row(f"remote ({config.github.target_branch})", remote_sha)
    table.add_row(f"local ({config.local_repo.path})", local_sha)
    console.print(table)

    if remote_sha == local_sha:
        console.print("[bold green]✔ Up to date.[/bold green]")
        return 0
    console.print("[bold yellow]Behind:[/bold yellow] a pull would run.")
    return 2


def show_config(config: Config) -> None:
    """Prints the effective configuration with the access token masked."""
    table = Table(title="Effective configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for section, values in config.redacted().items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", "" if value is None else str(value))

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep a local clone in sync with a GitHub branch.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=CONFIG_FILE,
        help=f"Path to the TOML configuration file (default: {CONFIG_FILE})",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Also log to stderr"
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Start the polling daemon (default)")
    run_parser.add_argument(
        "--once", action="store_true", help="Run a single cycle and exit"
    )
    subparsers.add_parser("check", help="Compare remote and local heads once")
    subparsers.add_parser("config", help="Show the effective configuration")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the git-autopull CLI."""
    args = build_parser().parse_args(argv)

    # Log to the default sink until the configuration names another one.
    daemon.setup_logging(LoggingConfig(), verbose=args.verbose)

    config = load_config_or_report(args.config)
    if config is None:
        return 1

    daemon.setup_logging(config.logging, verbose=args.verbose)

    if args.command == "check":
        return run_check(config)
    elif args.command == "config":
        show_config(config)
        return 0

    # Default Action
    return daemon.main(config, once=getattr(args, "once", False))


if __name__ == "__main__":
    sys.exit(main())
