"""Configuration: backup format, run options, and TOML loading.

Usage:
    >>> from pg_backup.config import BackupConfig, BackupFormat, load_config
"""

from pg_backup.config.loader import load_config
from pg_backup.config.models import BackupConfig, BackupFormat, ToolPaths

__all__ = ["load_config", "BackupConfig", "BackupFormat", "ToolPaths"]
