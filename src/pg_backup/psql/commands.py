"""Wrapper around the PostgreSQL client programs.

``PSQL`` builds the argument lists for ``pg_dump``, ``pg_restore`` and
``psql`` and runs them as asyncio subprocesses.  Every wait on a process
also watches a cancellation event; when the event fires the process is
sent SIGTERM and reaped.

Usage:
    from pg_backup.psql.commands import PSQL

    psql = PSQL(Path("backups"), jobs=2, logger=ConsoleLogger())
    dest, argv = psql.backup("mydb", BackupFormat.DIRECTORY)
    output = await psql.run(argv, cancel)
"""

import asyncio
import shlex
from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from pg_backup.config.models import BackupFormat, ToolPaths
from pg_backup.log import Logger, NullLogger

T = TypeVar("T")

# Lines of stderr kept for the error raised by a failed streaming run
STDERR_TAIL_LINES = 100

# StreamReader line limit for streamed stderr
_LINE_LIMIT = 1024 * 1024

DIRECTORY_SUFFIX = ".backup"
SCRIPT_SUFFIX = ".sql"
CHUNK_SUFFIX = ".chunk"


class CommandError(Exception):
    """Raised when an external tool exits non-zero or is cancelled.

    Attributes:
        argv: Command line that was run.
        returncode: Exit status, negative when killed by a signal, ``None``
            when the command never started.
        output: Captured output for diagnostics (may be empty).
    """

    def __init__(
        self,
        argv: list[str],
        returncode: int | None,
        output: str = "",
        reason: str | None = None,
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        if reason is None:
            reason = f"exit status {returncode}"
        super().__init__(f"{shlex.join(self.argv)}: {reason}")


def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Send SIGTERM to ``proc`` unless it has already exited."""
    if proc.returncode is None:
        try:
            proc.terminate()
        except ProcessLookupError:
            pass


async def _wait_or_cancel(
    proc: asyncio.subprocess.Process,
    waiter: Awaitable[T],
    cancel: asyncio.Event | None,
) -> T:
    """Await ``waiter``, terminating ``proc`` if ``cancel`` fires first.

    If the calling task is itself cancelled the process is terminated and
    reaped before the cancellation propagates.
    """
    task = asyncio.ensure_future(waiter)
    waiting = {task}
    stop = None
    if cancel is not None:
        stop = asyncio.ensure_future(cancel.wait())
        waiting.add(stop)

    try:
        await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        _terminate(proc)
        task.cancel()
        await asyncio.shield(proc.wait())
        raise
    finally:
        if stop is not None:
            stop.cancel()

    if not task.done():
        _terminate(proc)
    return await task


class PSQL:
    """Builds and runs ``pg_dump``, ``pg_restore`` and ``psql`` commands.

    Args:
        backups_dir: Directory where backups are stored.
        jobs: ``-j`` value for directory-format dump and restore.
        logger: Receives each command line and its output.  Defaults to
            ``NullLogger``.
        tools: Binary names or paths.  Defaults to the names on ``PATH``.
    """

    def __init__(
        self,
        backups_dir: Path,
        jobs: int = 1,
        logger: Logger | None = None,
        tools: ToolPaths | None = None,
    ) -> None:
        self.backups_dir = Path(backups_dir)
        self.jobs = jobs
        self.logger = logger or NullLogger()
        self.tools = tools or ToolPaths()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def backup_path(self, dbname: str, format: BackupFormat) -> Path:
        """Artifact path for ``dbname`` in the given format."""
        suffix = SCRIPT_SUFFIX if format == BackupFormat.SCRIPT else DIRECTORY_SUFFIX
        return self.backups_dir / (dbname + suffix)

    def chunk_dir(self, dbname: str) -> Path:
        """Directory holding the chunked script of ``dbname``."""
        return self.backups_dir / (dbname + CHUNK_SUFFIX)

    # ------------------------------------------------------------------
    # Command builders
    # ------------------------------------------------------------------

    def _command(self, binary: str, args: list[str]) -> list[str]:
        argv = [binary, *args]
        self.logger.info(shlex.join(argv))
        return argv

    def backup(self, dbname: str, format: BackupFormat) -> tuple[Path, list[str]]:
        """Destination and ``pg_dump`` command line for backing up ``dbname``."""
        dest = self.backup_path(dbname, format)
        if format == BackupFormat.SCRIPT:
            args = ["--column-inserts", "-d", dbname, "-f", str(dest)]
        else:
            args = ["-Fd", "-j", str(self.jobs), "-f", str(dest), dbname]
        return dest, self._command(self.tools.pg_dump, args)

    def restore(
        self, dbname: str, format: BackupFormat, src: Path | None = None
    ) -> list[str]:
        """Command line restoring ``dbname`` from its artifact.

        Script format is replayed with ``psql -f``; directory format uses
        ``pg_restore``.  ``src`` overrides the artifact path, e.g. a script
        joined from chunks.
        """
        src = src or self.backup_path(dbname, format)
        if format == BackupFormat.SCRIPT:
            return self._command(self.tools.psql, ["-d", dbname, "-f", str(src)])
        return self._command(
            self.tools.pg_restore,
            ["-Fd", "-j", str(self.jobs), "-d", dbname, str(src)],
        )

    def create(self, dbname: str) -> list[str]:
        """Command line creating database ``dbname``."""
        return self._command(self.tools.psql, ["-c", f'create database "{dbname}"'])

    def drop(self, dbname: str) -> list[str]:
        """Command line dropping database ``dbname``."""
        return self._command(self.tools.psql, ["-c", f'drop database "{dbname}"'])

    def list_databases(self) -> list[str]:
        """Command line listing the server's databases."""
        return self._command(self.tools.psql, ["-l"])

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(
        self,
        argv: list[str],
        cancel: asyncio.Event | None = None,
        merge_stderr: bool = True,
    ) -> str:
        """Run ``argv`` to completion and return its output.

        Args:
            argv: Command line.
            cancel: When set, the process is terminated.  A command is
                not started at all if the event is already set.
            merge_stderr: Capture stderr together with stdout.  When
                ``False`` only stdout is returned and stderr is kept for
                the error.

        Returns:
            Decoded output.

        Raises:
            CommandError: If the command exits non-zero or is cancelled.
            OSError: If the program cannot be started.
        """
        if cancel is not None and cancel.is_set():
            raise CommandError(argv, None, reason="cancelled")

        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
        )
        stdout, stderr = await _wait_or_cancel(proc, proc.communicate(), cancel)

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            if stderr:
                output += stderr.decode(errors="replace")
            raise CommandError(argv, proc.returncode, output)
        return output

    async def run_streaming(
        self,
        argv: list[str],
        cancel: asyncio.Event | None = None,
        on_line: Callable[[str], None] | None = None,
    ) -> None:
        """Run ``argv`` while draining stderr line by line.

        Stdout is discarded.  Each stderr line goes to ``on_line``
        (``logger.warning`` by default) as soon as it is read, so verbose
        tools never buffer unbounded output in memory.

        Raises:
            CommandError: If the command exits non-zero or is cancelled;
                ``output`` holds the last stderr lines.
            OSError: If the program cannot be started.
        """
        if cancel is not None and cancel.is_set():
            raise CommandError(argv, None, reason="cancelled")

        on_line = on_line or self.logger.warning
        tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)

        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            limit=_LINE_LIMIT,
        )
        drain = asyncio.create_task(self._drain(proc.stderr, on_line, tail))
        try:
            await _wait_or_cancel(proc, proc.wait(), cancel)
        finally:
            await drain

        if proc.returncode != 0:
            raise CommandError(argv, proc.returncode, "\n".join(tail))

    async def _drain(
        self,
        stream: asyncio.StreamReader,
        on_line: Callable[[str], None],
        tail: deque[str],
    ) -> None:
        try:
            async for raw in stream:
                line = raw.decode(errors="replace").rstrip("\r\n")
                tail.append(line)
                on_line(line)
        except (ValueError, OSError) as e:
            self.logger.warning(f"Piping stderr {e}")
            # Keep reading so the process never blocks on a full pipe
            while await stream.read(65536):
                pass

    def log_output(self, output: str) -> None:
        """Log command output at info level when it is not blank."""
        output = output.strip()
        if output:
            self.logger.info(output)
