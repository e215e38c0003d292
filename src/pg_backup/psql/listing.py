"""Parse the database table printed by ``psql -l``."""

import re

# Databases that are never backed up or listed
SYSTEM_DATABASES = frozenset({"postgres", "template0", "template1"})


def parse_database_list(output: str, regexp: re.Pattern | None = None) -> list[str]:
    """Extract database names from ``psql -l`` output.

    Rows before the ``------`` separator are headers.  Each following row
    is split on ``|`` and its first column is the database name; rows with
    fewer than two columns (footers, access-privilege continuations) are
    skipped, as are the system databases.

    Args:
        output: Text printed by ``psql -l``.
        regexp: Optional filter applied with ``re.search``.

    Returns:
        Database names in listing order.

    Example:
        >>> parse_database_list(LISTING)
        ['app', 'reports']
    """
    names: list[str] = []
    skip = True

    for line in output.splitlines():
        if line.startswith("------"):
            skip = False
            continue
        if skip:
            continue

        parts = line.split("|")
        if len(parts) < 2:
            continue

        name = parts[0].strip()
        if not name or name in SYSTEM_DATABASES:
            continue
        if regexp is None or regexp.search(name):
            names.append(name)

    return names
