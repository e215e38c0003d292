"""Log sinks: protocol, null object, rich console and stdlib logging.

Usage:
    from pg_backup.log import ConsoleLogger, Logger, NullLogger, StdlibLogger
"""

from pg_backup.log.base import Logger
from pg_backup.log.console import ConsoleLogger
from pg_backup.log.null import NullLogger
from pg_backup.log.stdlib import StdlibLogger

__all__ = ["Logger", "NullLogger", "ConsoleLogger", "StdlibLogger"]
