"""Backup and restore orchestration.

``App`` resolves which databases to process, sizes the worker pool from
the host CPUs, and drives one ``DB`` job per database through
``run_pool``.  Job failures are logged and counted; only failing to create
the backups directory is fatal.

Usage:
    from pg_backup.app import App

    app = App(load_config(backups_dir=Path("backups")), logger=ConsoleLogger())
    app.prepare()
    app.install_signal_handlers()
    summary = await app.exec_backup(["mydb"])
"""

import asyncio
import shutil
import signal
from pathlib import Path

from pg_backup.concurrency import ConcurrencyPlan, calc_concurrency
from pg_backup.config.models import BackupConfig, BackupFormat
from pg_backup.log import Logger, NullLogger
from pg_backup.pool import PoolSummary, run_pool
from pg_backup.psql.commands import (
    CHUNK_SUFFIX,
    DIRECTORY_SUFFIX,
    PSQL,
    SCRIPT_SUFFIX,
)
from pg_backup.psql.db import DB
from pg_backup.psql.listing import parse_database_list

# Everything ``clear`` removes from the backups directory
ARTIFACT_PATTERNS = ("*.backup", "*.chunk", "*.sql", "*.sha512")


class BackupRootError(Exception):
    """Raised when the backups directory cannot be created."""

    pass


class App:
    """Backup/restore application state for one run.

    Args:
        config: Validated run configuration.
        logger: Application log sink.  Tool commands and their output are
            only sent to it when ``config.verbose`` is set.
        plan: Concurrency plan.  Defaults to one computed from the host.
        cancel: Cancellation event shared by every job.  Defaults to a new
            event.
    """

    def __init__(
        self,
        config: BackupConfig,
        logger: Logger | None = None,
        plan: ConcurrencyPlan | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or NullLogger()
        self.plan = plan or calc_concurrency()
        self.cancel = cancel or asyncio.Event()
        self.psql = PSQL(
            config.backups_dir,
            jobs=self.plan.job_parallelism,
            logger=self.logger if config.verbose else NullLogger(),
            tools=config.tools,
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        """Create the backups directory.

        Raises:
            BackupRootError: If the directory cannot be created.
        """
        try:
            self.config.backups_dir.mkdir(mode=0o770, parents=True, exist_ok=True)
        except OSError as e:
            raise BackupRootError(
                f"Cannot create backups directory {self.config.backups_dir}: {e}"
            ) from e

    def install_signal_handlers(self) -> None:
        """Set the cancellation event on SIGINT.  Call inside the event loop."""
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self.interrupt)

    def interrupt(self) -> None:
        """Cancel the run: no new jobs start and running tools are terminated."""
        if not self.cancel.is_set():
            self.logger.warning("Interrupted; terminating running jobs")
            self.cancel.set()

    def summarize(self, action: str) -> None:
        """Log the concurrency used for ``backup`` or ``restore``."""
        if action == "backup":
            self.logger.info(
                f"Backing up with {self.plan.pool_size} concurrent backups "
                f"across {self.plan.cpus} CPUs"
            )
        else:
            self.logger.info(
                f"Restoring with {self.plan.pool_size} concurrent restores "
                f"across {self.plan.cpus} CPUs"
            )
        if self.config.format == BackupFormat.DIRECTORY:
            self.logger.info(f"\tEach {action} uses {self.plan.job_parallelism} jobs.")

    # ------------------------------------------------------------------
    # Target selection
    # ------------------------------------------------------------------

    async def get_list(self) -> list[str]:
        """Databases on the server that pass the regexp filter.

        Raises:
            CommandError: If ``psql -l`` fails.
        """
        output = await self.psql.run(
            self.psql.list_databases(), self.cancel, merge_stderr=False
        )
        return parse_database_list(output, self.config.regexp)

    async def backup_targets(self, names: list[str]) -> list[str]:
        """Explicit names, plus listed matches when a regexp is set.

        With no names every listed database is selected.
        """
        if names:
            targets = list(names)
            if self.config.regexp is not None:
                targets += await self.get_list()
        else:
            targets = await self.get_list()
        return list(dict.fromkeys(targets))

    def restore_suffix(self) -> str:
        """Artifact suffix restores read from for the configured format."""
        if self.config.format == BackupFormat.SCRIPT:
            return CHUNK_SUFFIX if self.config.join else SCRIPT_SUFFIX
        return DIRECTORY_SUFFIX

    def restore_targets(self, names: list[str]) -> list[str]:
        """Explicit names, plus artifacts matching the regexp.

        With no names every artifact with the restore suffix is selected.
        The regexp is matched against the artifact filename.
        """
        suffix = self.restore_suffix()
        found = [
            p.name[: -len(suffix)]
            for p in sorted(self.config.backups_dir.glob("*" + suffix))
            if self.config.matches(p.name)
        ]

        if names:
            targets = list(names)
            if self.config.regexp is not None:
                targets += found
        else:
            targets = found
        return list(dict.fromkeys(targets))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def exec_backup(self, names: list[str] | None = None) -> PoolSummary:
        """Back up the selected databases concurrently."""
        self.logger.info("Start backups...")
        self.summarize("backup")

        targets = await self.backup_targets(names or [])
        fmt = self.config.format

        async def backup_one(dbname: str) -> None:
            self.logger.info(f"Starting {dbname}...")
            db = DB(dbname, self.psql)
            dest = await db.backup(fmt, self.cancel)
            if self.config.split_enabled:
                await db.chunk(dest, int(self.config.split_size), self.config.suffix_length)
            self.logger.info(f"Finished {dbname}")

        summary = await run_pool(
            targets,
            self.plan.pool_size,
            backup_one,
            self.cancel,
            self.logger,
            action="Backing up",
        )
        self.logger.info(f"\tdone: {summary.format_report()}")
        return summary

    async def exec_restore(self, names: list[str] | None = None) -> PoolSummary:
        """Restore the selected databases concurrently."""
        self.logger.info("Start restore...")
        self.summarize("restore")

        targets = self.restore_targets(names or [])
        suffix = self.restore_suffix()
        fmt = self.config.format

        async def restore_one(dbname: str) -> None:
            path = self.config.backups_dir / (dbname + suffix)
            self.logger.info(f"Restoring {dbname} from {path}")
            db = DB(dbname, self.psql)
            source = path if suffix == CHUNK_SUFFIX else None
            await db.restore(fmt, self.cancel, source=source)
            self.logger.info(f"Finished {dbname}")

        summary = await run_pool(
            targets,
            self.plan.pool_size,
            restore_one,
            self.cancel,
            self.logger,
            action="Restoring",
        )
        self.logger.info(f"\tdone: {summary.format_report()}")
        return summary

    async def exec_list(self) -> list[str]:
        """Log and return the databases a backup would select."""
        names = await self.get_list()
        for name in names:
            self.logger.info(name)
        return names

    def exec_clear(self) -> list[Path]:
        """Remove every backup artifact from the backups directory.

        Failures to remove an entry are logged as warnings.

        Returns:
            Paths that were removed.
        """
        removed: list[Path] = []
        for pattern in ARTIFACT_PATTERNS:
            for path in sorted(self.config.backups_dir.glob(pattern)):
                self.logger.info(f"Removing {path.name}")
                try:
                    if path.is_dir() and not path.is_symlink():
                        shutil.rmtree(path)
                    else:
                        path.unlink()
                except OSError as e:
                    self.logger.warning(str(e))
                    continue
                removed.append(path)
        return removed
