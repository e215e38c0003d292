"""Command line for parallel PostgreSQL backup and restore.

Usage:
    pg-backup backup
    pg-backup backup app reports --format sql --split 64MiB
    pg-backup restore --format sql --join
    pg-backup restore app --regexp '^tenant_'
    pg-backup list --regexp '^tenant_'
    pg-backup clear
    pg-backup version --verbose

Commands:
    backup   - Back up all databases or the named ones
    restore  - Restore all backups or the named ones
    list     - List the databases a backup would process
    clear    - Remove all backups from the backups directory
    version  - Print version information
"""

import argparse
import asyncio
import logging
import sys
import tomllib
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from pg_backup.app import App, BackupRootError
from pg_backup.config import BackupConfig, load_config
from pg_backup.log import ConsoleLogger, Logger, StdlibLogger
from pg_backup.psql.commands import CommandError
from pg_backup.version import get_version, get_version_verbose

PROG = "pg-backup"

# Default size when --split is given without a value
DEFAULT_SPLIT = "8MiB"

# Exit status for configuration and startup failures
EXIT_FATAL = 255

console = Console(highlight=False)


# ============================================================================
# Setup helpers
# ============================================================================


def _make_logger(args: argparse.Namespace) -> Logger:
    """Console logger, or a stdlib file logger when ``--log-file`` is set."""
    if getattr(args, "log_file", None):
        logging.basicConfig(
            filename=args.log_file,
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
        )
        return StdlibLogger()
    return ConsoleLogger(console)


def _load(args: argparse.Namespace) -> BackupConfig:
    """Build the run configuration from ``--config`` plus CLI overrides.

    Raises:
        FileNotFoundError, tomllib.TOMLDecodeError, ValidationError
    """
    config_path = Path(args.config) if args.config else None
    return load_config(
        config_path,
        format=getattr(args, "format", None),
        regexp=getattr(args, "regexp", None),
        split_size=getattr(args, "split", None),
        join=getattr(args, "join", None) or None,
        verbose=args.verbose or None,
        backups_dir=Path(args.backups_dir) if args.backups_dir else None,
    )


def _build_app(args: argparse.Namespace, logger: Logger) -> App | None:
    """Load config and create the app, reporting config errors."""
    try:
        config = _load(args)
    except (FileNotFoundError, tomllib.TOMLDecodeError) as e:
        logger.error(str(e))
        return None
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"])
            logger.error(f"Invalid {field}: {err['msg']}")
        return None
    return App(config, logger=logger)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_run(app: App, command: str, names: list[str]) -> None:
    """Run one pool-driven command with SIGINT wired to cancellation."""
    app.install_signal_handlers()
    if command == "backup":
        await app.exec_backup(names)
    elif command == "restore":
        await app.exec_restore(names)
    else:
        await app.exec_list()


def _run_command(args: argparse.Namespace, command: str) -> int:
    logger = _make_logger(args)
    try:
        app = _build_app(args, logger)
        if app is None:
            return EXIT_FATAL

        try:
            if command != "list":
                app.prepare()
            asyncio.run(_async_run(app, command, getattr(args, "databases", [])))
        except BackupRootError as e:
            logger.error(str(e))
            return EXIT_FATAL
        except (CommandError, OSError) as e:
            logger.error(f"{command.capitalize()} failed: {e}")
            return EXIT_FATAL
        return 0
    finally:
        logger.close()


# ============================================================================
# Command handlers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Back up databases.

    Returns:
        0 once every job has been attempted (job failures are logged, not
        reflected in the status); 255 on configuration or startup errors.
    """
    return _run_command(args, "backup")


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore databases.

    Returns:
        0 once every job has been attempted; 255 on configuration or
        startup errors.
    """
    return _run_command(args, "restore")


def cmd_list(args: argparse.Namespace) -> int:
    """List the databases a backup would process."""
    return _run_command(args, "list")


def cmd_clear(args: argparse.Namespace) -> int:
    """Remove every backup from the backups directory."""
    logger = _make_logger(args)
    try:
        app = _build_app(args, logger)
        if app is None:
            return EXIT_FATAL
        app.exec_clear()
        return 0
    finally:
        logger.close()


def cmd_version(args: argparse.Namespace) -> int:
    """Print version information."""
    if args.verbose or args.version_verbose:
        console.print(get_version_verbose(PROG), markup=False)
    else:
        console.print(get_version(PROG), markup=False)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _add_selection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "databases",
        nargs="*",
        help="Database names (default: all)",
    )
    parser.add_argument(
        "--format",
        choices=["dir", "sql"],
        help=(
            "dir: directory backups (<db>.backup/), parallel dump/restore; "
            "sql: SQL script backups (<db>.sql) (default: dir)"
        ),
    )
    parser.add_argument(
        "--regexp",
        help="Also select databases matching this regular expression",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for ``pg-backup``."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Parallel PostgreSQL backup and restore",
    )
    parser.add_argument(
        "--config",
        help="TOML file with [backup] and [tools] settings",
    )
    parser.add_argument(
        "--backups-dir",
        help="Directory where backups are stored (default: ./backups)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print tool commands and their output as they run",
    )
    parser.add_argument(
        "--log-file",
        help="Write log messages to this file instead of the console",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Back up databases")
    _add_selection_args(p_backup)
    p_backup.add_argument(
        "--split",
        nargs="?",
        const=DEFAULT_SPLIT,
        help=(
            "Split SQL script backups into parts of this size "
            "(KiB/MiB/GiB powers of 1024, KB/MB/GB powers of 10; "
            f"default {DEFAULT_SPLIT}); only used with --format sql"
        ),
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore databases")
    _add_selection_args(p_restore)
    p_restore.add_argument(
        "--join",
        action="store_true",
        help="Restore SQL scripts from split <db>.chunk directories",
    )
    p_restore.set_defaults(func=cmd_restore)

    # list command
    p_list = subparsers.add_parser("list", help="List databases to back up")
    p_list.add_argument(
        "--regexp",
        help="Only list databases matching this regular expression",
    )
    p_list.set_defaults(func=cmd_list)

    # clear command
    p_clear = subparsers.add_parser("clear", help="Remove all backups")
    p_clear.set_defaults(func=cmd_clear)

    # version command
    p_version = subparsers.add_parser("version", help="Print version information")
    p_version.add_argument(
        "--verbose",
        "-v",
        dest="version_verbose",
        action="store_true",
        help="Include interpreter and platform details",
    )
    p_version.set_defaults(func=cmd_version)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 255 for fatal errors).
    """
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
