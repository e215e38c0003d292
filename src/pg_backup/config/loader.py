"""Load backup configuration from a TOML file."""

import tomllib
from pathlib import Path
from typing import Any

from pg_backup.config.models import BackupConfig, ToolPaths


def load_config(config_path: Path | None = None, **overrides: Any) -> BackupConfig:
    """Load backup configuration from TOML, applying keyword overrides.

    The file holds a ``[backup]`` table with ``BackupConfig`` fields and an
    optional ``[tools]`` table with ``ToolPaths`` fields::

        [backup]
        format = "sql"
        split_size = "64MiB"
        backups_dir = "/var/backups/pg"

        [tools]
        psql = "/usr/lib/postgresql/16/bin/psql"

    Args:
        config_path: Path to the TOML file.  When ``None`` only defaults and
            overrides are used.
        **overrides: Field values that replace file values; ``None`` values
            are ignored so unset CLI flags fall through.

    Returns:
        Validated ``BackupConfig``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        pydantic.ValidationError: If a value is invalid.
    """
    data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(
                f"Backup config not found: {config_path}\n"
                f"Create it or drop the --config option."
            )
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)

        data.update(raw.get("backup", {}))
        if "tools" in raw:
            data["tools"] = ToolPaths(**raw["tools"])

    data.update({k: v for k, v in overrides.items() if v is not None})

    return BackupConfig(**data)
