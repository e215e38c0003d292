"""SHA-512 digest sidecar files.

Usage:
    from pg_backup.checksum import sha512_file

    sidecar = sha512_file("backups/mydb.sql")   # writes backups/mydb.sha512
"""

import hashlib
from pathlib import Path

CHECKSUM_SUFFIX = ".sha512"

_BLOCK_SIZE = 1024 * 1024


def checksum_path(path: str | Path) -> Path:
    """Sidecar path for ``path``: its extension replaced by ``.sha512``."""
    return Path(path).with_suffix(CHECKSUM_SUFFIX)


def sha512_hex(path: str | Path) -> str:
    """Lowercase hex SHA-512 of the full contents of ``path``."""
    digest = hashlib.sha512()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def sha512_file(path: str | Path) -> Path:
    """Hash ``path`` and write the hex digest to its sidecar file.

    Must run before the file is chunked so the digest reflects the
    unsplit content.

    Returns:
        Path of the sidecar file written.

    Raises:
        OSError: If the file cannot be read or the sidecar written.
    """
    hexdigest = sha512_hex(path)
    sidecar = checksum_path(path)
    sidecar.write_text(hexdigest)
    return sidecar
