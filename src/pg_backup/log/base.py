"""Leveled logging protocol.

Defines the ``Logger`` Protocol every log sink implements.  Components
receive a logger explicitly; ``NullLogger`` is the default when none is
given.

Usage:
    from pg_backup.log.base import Logger

    def report(logger: Logger) -> None:
        logger.info("Starting mydb...")
        logger.warning("While hashing mydb.sql: permission denied")
        logger.error("cannot create backups directory")
"""

from typing import Protocol


class Logger(Protocol):
    """Log sink interface with info, warning and error levels."""

    def info(self, msg: str) -> None:
        """Log an informational message."""
        ...

    def warning(self, msg: str) -> None:
        """Log a warning."""
        ...

    def error(self, msg: str) -> None:
        """Log an error."""
        ...

    def close(self) -> None:
        """Release any handles held by the sink."""
        ...
