"""Pydantic models for backup configuration."""

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ByteSize, Field, field_validator


class BackupFormat(str, Enum):
    """Backup artifact format."""

    DIRECTORY = "dir"   # <db>.backup/ written by pg_dump -Fd
    SCRIPT = "sql"      # <db>.sql written by pg_dump --column-inserts


class ToolPaths(BaseModel):
    """Names or paths of the external PostgreSQL client programs."""

    pg_dump: str = "pg_dump"
    pg_restore: str = "pg_restore"
    psql: str = "psql"


class BackupConfig(BaseModel):
    """Complete configuration for one backup or restore run."""

    format: BackupFormat = BackupFormat.DIRECTORY
    regexp: re.Pattern | None = None           # database name filter (search semantics)
    split_size: ByteSize = ByteSize(0)         # 0 = never split scripts
    suffix_length: int = Field(default=9, ge=1)
    join: bool = False                         # restore scripts from <db>.chunk/
    verbose: bool = False                      # echo tool commands and output
    backups_dir: Path = Field(default_factory=lambda: Path.cwd() / "backups")
    tools: ToolPaths = Field(default_factory=ToolPaths)

    @field_validator("regexp", mode="before")
    @classmethod
    def _match_all_is_unset(cls, v):
        if v in ("", ".*"):
            return None
        return v

    @property
    def split_enabled(self) -> bool:
        """Whether script backups are chunked after they are written."""
        return self.format == BackupFormat.SCRIPT and self.split_size > 0

    def matches(self, name: str) -> bool:
        """Whether ``name`` passes the regexp filter (always true when unset)."""
        return self.regexp is None or self.regexp.search(name) is not None
