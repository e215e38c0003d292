"""PostgreSQL tool wrapper, per-database jobs and listing parser.

Usage:
    from pg_backup.psql import DB, PSQL, CommandError, parse_database_list
"""

from pg_backup.psql.commands import PSQL, CommandError
from pg_backup.psql.db import DB, JobState
from pg_backup.psql.listing import parse_database_list

__all__ = ["PSQL", "CommandError", "DB", "JobState", "parse_database_list"]
