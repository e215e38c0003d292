"""pg-backup: parallel PostgreSQL backup and restore.

Drives ``pg_dump``, ``pg_restore`` and ``psql`` for many databases at
once, with a worker pool sized from the host CPUs, SHA-512 digests for
script backups, and splitting of large scripts into fixed-size parts.

Usage:
    from pg_backup import App, load_config, plan_concurrency
    from pg_backup import SplitWriter, join_chunks, split_file, sha512_file
    from pg_backup import DB, PSQL, run_pool
"""

__version__ = "0.1.0"

# Concurrency
from pg_backup.concurrency import ConcurrencyPlan, calc_concurrency, plan_concurrency

# Chunking and digests
from pg_backup.checksum import sha512_file
from pg_backup.chunk import SplitWriter, join_chunks, split_file

# Config
from pg_backup.config import BackupConfig, BackupFormat, load_config

# Logging
from pg_backup.log import ConsoleLogger, Logger, NullLogger

# Tools and jobs
from pg_backup.pool import PoolSummary, run_pool
from pg_backup.psql import DB, PSQL, CommandError

# Application
from pg_backup.app import App, BackupRootError

__all__ = [
    # Concurrency
    "ConcurrencyPlan",
    "calc_concurrency",
    "plan_concurrency",
    # Chunking and digests
    "SplitWriter",
    "split_file",
    "join_chunks",
    "sha512_file",
    # Config
    "BackupConfig",
    "BackupFormat",
    "load_config",
    # Logging
    "Logger",
    "NullLogger",
    "ConsoleLogger",
    # Tools and jobs
    "PSQL",
    "DB",
    "CommandError",
    "run_pool",
    "PoolSummary",
    # Application
    "App",
    "BackupRootError",
]
