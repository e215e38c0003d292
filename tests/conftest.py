"""Shared fixtures: stand-in PostgreSQL tools and a recording logger."""

import os
import textwrap
from pathlib import Path

import pytest

from pg_backup.config import ToolPaths

PG_DUMP = """\
#!/bin/sh
BIN="$(dirname "$0")"
echo "pg_dump $*" >> "$BIN/calls.log"
if [ -e "$BIN/fail_dump" ]; then
    echo "pg_dump: error: connection refused" >&2
    exit 1
fi
if [ -e "$BIN/slow" ]; then
    touch "$BIN/started.$$"
    exec sleep 30
fi
dest=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "-f" ]; then dest="$arg"; fi
    prev="$arg"
done
case "$dest" in
    *.backup)
        mkdir "$dest" || exit 1
        echo toc > "$dest/toc.dat"
        ;;
    *)
        printf 'CREATE TABLE t (id int);\\nINSERT INTO t VALUES (1);\\n' > "$dest"
        ;;
esac
echo "dumped $dest"
"""

PSQL = """\
#!/bin/sh
BIN="$(dirname "$0")"
echo "psql $*" >> "$BIN/calls.log"
case "$*" in
    "-l")
        cat "$BIN/listing.txt"
        ;;
    *"drop database"*)
        if [ -e "$BIN/fail_drop" ]; then
            echo 'ERROR:  database does not exist' >&2
            exit 1
        fi
        echo "DROP DATABASE"
        ;;
    *"create database"*)
        if [ -e "$BIN/fail_create" ]; then
            echo 'ERROR:  permission denied to create database' >&2
            exit 1
        fi
        echo "CREATE DATABASE"
        ;;
    *)
        src=""
        prev=""
        for arg in "$@"; do
            if [ "$prev" = "-f" ]; then src="$arg"; fi
            prev="$arg"
        done
        cp "$src" "$BIN/restored.$(basename "$src")" || exit 2
        echo "INSERT 0 1"
        echo "NOTICE:  replaying $(basename "$src")" >&2
        if [ -e "$BIN/fail_restore" ]; then
            echo 'ERROR:  syntax error at or near "x"' >&2
            exit 3
        fi
        ;;
esac
"""

PG_RESTORE = """\
#!/bin/sh
BIN="$(dirname "$0")"
echo "pg_restore $*" >> "$BIN/calls.log"
if [ -e "$BIN/fail_restore" ]; then
    echo "pg_restore: error: could not open input file" >&2
    exit 1
fi
echo "restored"
"""

LISTING = textwrap.dedent("""\
                                  List of databases
       Name    |  Owner   | Encoding |   Collate   |    Ctype    |   Access privileges
    -----------+----------+----------+-------------+-------------+-----------------------
     app       | app      | UTF8     | en_US.UTF-8 | en_US.UTF-8 |
     postgres  | postgres | UTF8     | en_US.UTF-8 | en_US.UTF-8 |
     reports   | app      | UTF8     | en_US.UTF-8 | en_US.UTF-8 |
     template0 | postgres | UTF8     | en_US.UTF-8 | en_US.UTF-8 | =c/postgres          +
               |          |          |             |             | postgres=CTc/postgres
     template1 | postgres | UTF8     | en_US.UTF-8 | en_US.UTF-8 | =c/postgres          +
               |          |          |             |             | postgres=CTc/postgres
     tenant_a  | app      | UTF8     | en_US.UTF-8 | en_US.UTF-8 |
     tenant_b  | app      | UTF8     | en_US.UTF-8 | en_US.UTF-8 |
    (6 rows)

""")


class FakeTools:
    """Directory of shell scripts standing in for the PostgreSQL tools.

    Behaviour is switched by marker files: ``fail_dump``, ``fail_drop``,
    ``fail_create``, ``fail_restore`` and ``slow``.
    """

    def __init__(self, bin_dir: Path) -> None:
        self.bin = bin_dir
        self.bin.mkdir()
        for name, body in (("pg_dump", PG_DUMP), ("psql", PSQL), ("pg_restore", PG_RESTORE)):
            path = self.bin / name
            path.write_text(body)
            os.chmod(path, 0o755)
        (self.bin / "listing.txt").write_text(LISTING)

    @property
    def tools(self) -> ToolPaths:
        return ToolPaths(
            pg_dump=str(self.bin / "pg_dump"),
            pg_restore=str(self.bin / "pg_restore"),
            psql=str(self.bin / "psql"),
        )

    def flag(self, name: str) -> None:
        (self.bin / name).touch()

    def calls(self) -> list[str]:
        log = self.bin / "calls.log"
        if not log.exists():
            return []
        return log.read_text().splitlines()

    def started(self) -> list[Path]:
        return sorted(self.bin.glob("started.*"))


class RecordingLogger:
    """Logger that keeps every message with its level."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []
        self.closed = False

    def info(self, msg: str) -> None:
        self.records.append(("info", msg))

    def warning(self, msg: str) -> None:
        self.records.append(("warning", msg))

    def error(self, msg: str) -> None:
        self.records.append(("error", msg))

    def close(self) -> None:
        self.closed = True

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m in self.records if level is None or lvl == level]


@pytest.fixture
def fake_tools(tmp_path) -> FakeTools:
    return FakeTools(tmp_path / "bin")


@pytest.fixture
def recorder() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def backups_dir(tmp_path) -> Path:
    path = tmp_path / "backups"
    path.mkdir()
    return path
