"""File-level split and join of chunked scripts.

Usage:
    from pg_backup.chunk.files import join_chunks, split_file

    parts = split_file("backups/mydb.sql", size=8 * 1024**2,
                       basepath="backups/mydb.chunk/mydb")
    join_chunks("backups/mydb.chunk", "mydb", "backups/mydb.sql")
"""

import os
import re
import shutil
from pathlib import Path

from pg_backup.chunk.writer import SplitWriter
from pg_backup.log import Logger, NullLogger


def split_file(
    src: str | Path,
    size: int,
    basepath: str | Path | None = None,
    suffix_length: int = 9,
) -> list[Path]:
    """Split ``src`` into numbered parts of ``size`` bytes.

    Args:
        src: File to split.  It is left in place.
        size: Part size in bytes.
        basepath: Path the numeric suffix is appended to.  Defaults to
            ``src`` without its extension.
        suffix_length: Width of the zero-padded suffix.

    Returns:
        Paths of the parts written, in order.
    """
    src = Path(src)
    if basepath is None:
        basepath = src.with_suffix("")

    with open(src, "rb") as sfd, SplitWriter(basepath, size, suffix_length) as split:
        shutil.copyfileobj(sfd, split)

    return split.paths


def chunk_paths(directory: str | Path, base: str) -> list[Path]:
    """List the parts of ``base`` in ``directory`` in join order.

    Only names of the form ``<base>.<digits>`` match.  They are sorted by
    name, which equals numeric order because the suffix is zero-padded to
    a fixed width.

    Raises:
        OSError: If the directory cannot be read.
    """
    directory = Path(directory)
    pattern = re.compile(re.escape(base) + r"\.\d+")
    names = sorted(n for n in os.listdir(directory) if pattern.fullmatch(n))
    return [directory / n for n in names]


def join_chunks(
    directory: str | Path,
    base: str,
    dst: str | Path,
    logger: Logger | None = None,
    remove: bool = False,
) -> list[Path]:
    """Concatenate the parts of ``base`` in ``directory`` into ``dst``.

    ``dst`` is created (truncated) before any copying.  A read or write
    failure aborts the join and removes the partial ``dst``; failing to
    close a part after a successful copy is only logged.

    Args:
        directory: Directory holding the parts.
        base: Filename the numeric suffixes were appended to.
        dst: Destination file.
        logger: Receives close warnings.  Defaults to ``NullLogger``.
        remove: Delete each part after the whole join succeeds.

    Returns:
        Paths of the parts joined, in order.

    Raises:
        OSError: If the directory cannot be listed or a part cannot be
            copied.
    """
    logger = logger or NullLogger()
    parts = chunk_paths(directory, base)

    dst = Path(dst)
    dfd = open(dst, "wb")
    try:
        with dfd:
            for part in parts:
                sfd = open(part, "rb")
                try:
                    shutil.copyfileobj(sfd, dfd)
                except BaseException:
                    sfd.close()
                    raise
                try:
                    sfd.close()
                except OSError as e:
                    logger.warning(f"Closing {part}: {e}")
    except BaseException:
        dst.unlink(missing_ok=True)
        raise

    if remove:
        for part in parts:
            part.unlink()

    return parts
