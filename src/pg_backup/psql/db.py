"""Per-database backup and restore.

``DB`` pairs a database name with a ``PSQL`` tool wrapper and sequences
the steps of one backup (pre-clean, dump, hash) or one restore (drop,
create, join, restore).  Errors propagate to the caller; only the steps
documented as best-effort are logged and skipped.

Usage:
    from pg_backup.psql.db import DB

    db = DB("mydb", psql)
    dest = await db.backup(BackupFormat.SCRIPT, cancel)
    await db.chunk(dest, size=8 * 1024**2)
    await db.restore(BackupFormat.SCRIPT, cancel, source=psql.chunk_dir("mydb"))
"""

import asyncio
import shutil
from enum import Enum
from pathlib import Path

from pg_backup.checksum import CHECKSUM_SUFFIX, checksum_path, sha512_file, sha512_hex
from pg_backup.chunk import join_chunks, split_file
from pg_backup.config.models import BackupFormat
from pg_backup.log import Logger
from pg_backup.psql.commands import CHUNK_SUFFIX, PSQL, SCRIPT_SUFFIX, CommandError


class JobState(str, Enum):
    """Progress of a single database job."""

    PENDING = "pending"
    PRE_CLEAN = "pre_clean"
    DUMPING = "dumping"
    HASHING = "hashing"
    CHUNKING = "chunking"
    DROPPING = "dropping"
    CREATING = "creating"
    JOINING = "joining"
    RESTORING = "restoring"
    DONE = "done"
    FAILED = "failed"


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _chunk_script(src: Path, size: int, suffix_length: int, logger: Logger) -> Path:
    """Move ``src`` and its digest into a ``.chunk`` directory of parts."""
    directory = src.with_suffix(CHUNK_SUFFIX)
    if directory.exists():
        shutil.rmtree(directory)
    directory.mkdir(parents=True)

    split_file(src, size, basepath=directory / src.stem, suffix_length=suffix_length)
    src.unlink()

    digest = checksum_path(src)
    if digest.exists():
        shutil.move(digest, directory / f"hash.{digest.name}")
    else:
        logger.warning(f"No digest for {src}; chunks are not covered by a hash")

    return directory


class DB:
    """One database and the tool wrapper used to back it up or restore it.

    Args:
        dbname: Database name.
        psql: Tool wrapper; its logger is used for this job's messages.
    """

    def __init__(self, dbname: str, psql: PSQL) -> None:
        self.dbname = dbname
        self.psql = psql
        self.state = JobState.PENDING

    @property
    def logger(self) -> Logger:
        return self.psql.logger

    async def _run(self, argv: list[str], cancel: asyncio.Event | None) -> None:
        """Run ``argv`` and log its combined output whatever the outcome."""
        try:
            output = await self.psql.run(argv, cancel)
        except CommandError as e:
            self.psql.log_output(e.output)
            raise
        self.psql.log_output(output)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    async def backup(self, format: BackupFormat, cancel: asyncio.Event | None = None) -> Path:
        """Dump the database to its artifact path.

        Anything already at the destination is removed first since
        ``pg_dump -Fd`` refuses to write into an existing directory.
        Script dumps are then hashed; a hashing failure is logged as a
        warning and does not fail the backup.

        Returns:
            Path of the artifact written.

        Raises:
            CommandError: If ``pg_dump`` fails or is cancelled.
            OSError: If the old artifact cannot be removed.
        """
        try:
            self.state = JobState.PRE_CLEAN
            dest, argv = self.psql.backup(self.dbname, format)
            if dest.exists() or dest.is_symlink():
                await asyncio.to_thread(_remove_path, dest)

            self.state = JobState.DUMPING
            await self._run(argv, cancel)

            if format == BackupFormat.SCRIPT:
                self.state = JobState.HASHING
                try:
                    await asyncio.to_thread(sha512_file, dest)
                except OSError as e:
                    self.logger.warning(f"While hashing {dest}: {e}")
        except Exception:
            self.state = JobState.FAILED
            raise

        self.state = JobState.DONE
        return dest

    async def chunk(self, src: Path, size: int, suffix_length: int = 9) -> Path | None:
        """Split a script backup into ``<db>.chunk/<db>.<NNN>`` parts.

        The source script is removed and its digest moved into the chunk
        directory as ``hash.<db>.sha512``.  Non-script sources are left
        alone.

        Returns:
            The chunk directory, or ``None`` when ``src`` is not a script.

        Raises:
            OSError: If splitting or moving files fails.
        """
        src = Path(src)
        if src.suffix != SCRIPT_SUFFIX:
            return None

        self.state = JobState.CHUNKING
        try:
            directory = await asyncio.to_thread(
                _chunk_script, src, size, suffix_length, self.logger
            )
        except Exception:
            self.state = JobState.FAILED
            raise

        self.state = JobState.DONE
        return directory

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def join(self, src: Path, dst: Path | None = None) -> Path | None:
        """Join a ``.chunk`` directory back into a ``.sql`` script.

        The script is written to ``dst``, by default beside the directory.
        When the directory carries a digest copy the joined script is
        checked against it; a mismatch is logged as a warning.

        Returns:
            Path of the joined script, or ``None`` when ``src`` is not a
            chunk directory.

        Raises:
            OSError: If the directory cannot be listed or a part copied.
        """
        src = Path(src)
        if src.suffix != CHUNK_SUFFIX:
            return None

        dst = Path(dst) if dst is not None else src.with_suffix(SCRIPT_SUFFIX)
        await asyncio.to_thread(join_chunks, src, src.stem, dst, self.logger)

        digest = src / f"hash.{src.stem}{CHECKSUM_SUFFIX}"
        if digest.exists():
            expected = digest.read_text().strip()
            actual = await asyncio.to_thread(sha512_hex, dst)
            if actual != expected:
                self.logger.warning(f"Checksum mismatch for {dst} joined from {src}")

        return dst

    async def restore(
        self,
        format: BackupFormat,
        cancel: asyncio.Event | None = None,
        source: Path | None = None,
    ) -> None:
        """Drop, recreate and restore the database.

        Dropping is best-effort (the database may not exist).  Creating is
        required.  When ``source`` is a ``.chunk`` directory it is joined
        into a temporary ``<db>.sql`` inside that directory first, which is
        removed afterwards whether or not the join or restore succeeds.
        A script backup beside the directory is left untouched.

        Args:
            format: Artifact format to restore from.
            cancel: Cancellation event passed to every tool run.
            source: Optional chunk directory to join before restoring.

        Raises:
            CommandError: If create or restore fails or is cancelled.
            OSError: If joining fails.
        """
        joined: Path | None = None
        try:
            self.state = JobState.DROPPING
            try:
                await self._run(self.psql.drop(self.dbname), cancel)
            except CommandError:
                self.logger.warning(f"While dropping {self.dbname}; database may not exist.")

            self.state = JobState.CREATING
            await self._run(self.psql.create(self.dbname), cancel)

            if source is not None:
                self.state = JobState.JOINING
                source = Path(source)
                joined = source / f"{source.stem}{SCRIPT_SUFFIX}"
                if await self.join(source, joined) is None:
                    joined = None

            self.state = JobState.RESTORING
            argv = self.psql.restore(self.dbname, format, joined)
            if format == BackupFormat.SCRIPT:
                # Script restores are verbose; stream stderr only
                await self.psql.run_streaming(argv, cancel)
            else:
                await self._run(argv, cancel)
        except Exception:
            self.state = JobState.FAILED
            raise
        finally:
            if joined is not None and joined.exists():
                joined.unlink()

        self.state = JobState.DONE
