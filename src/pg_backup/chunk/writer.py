"""Streaming writer that splits its input into numbered files.

``SplitWriter`` is a writable file-like object: every ``write()`` is
spread across sibling files named ``<basepath>.<NNN>`` holding at most
``split_size`` bytes each.  It can be the destination of
``shutil.copyfileobj``.

Usage:
    from pg_backup.chunk.writer import SplitWriter

    with open("mydb.sql", "rb") as src, SplitWriter("out/mydb", 30, 2) as dst:
        shutil.copyfileobj(src, dst)
    # out/mydb.00, out/mydb.01, ...
"""

from pathlib import Path
from typing import BinaryIO


class SplitWriter:
    """Split written bytes into sequentially numbered files.

    Every file except the last holds exactly ``split_size`` bytes.  A new
    file is only opened when there are bytes to put in it, so input that
    divides evenly never leaves an empty trailing file.

    Partially written files are left in place when an I/O error occurs;
    the error propagates to the caller.

    Args:
        basepath: Path and filename the numeric suffix is appended to.
        split_size: Maximum size in bytes of each file (must be > 0).
        suffix_length: Width of the zero-padded numeric suffix.

    Raises:
        ValueError: If ``split_size`` or ``suffix_length`` is not positive.
    """

    def __init__(self, basepath: str | Path, split_size: int, suffix_length: int = 9) -> None:
        if split_size <= 0:
            raise ValueError(f"split_size must be positive, got {split_size}")
        if suffix_length <= 0:
            raise ValueError(f"suffix_length must be positive, got {suffix_length}")

        self.basepath = str(basepath)
        self.split_size = split_size
        self.suffix_length = suffix_length
        self.paths: list[Path] = []

        self._file_no = 0
        self._remaining = 0
        self._dst: BinaryIO | None = None

    def part_path(self, index: int) -> Path:
        """Path of the part with the given index."""
        return Path(f"{self.basepath}.{index:0{self.suffix_length}d}")

    def _open_next(self) -> None:
        path = self.part_path(self._file_no)
        self._dst = open(path, "wb")
        self.paths.append(path)
        self._file_no += 1
        self._remaining = self.split_size

    def write(self, data: bytes) -> int:
        """Write ``data``, opening new part files as each one fills.

        Returns:
            Number of bytes written (always ``len(data)`` unless an
            exception is raised).
        """
        view = memoryview(data)
        total = 0

        while total < len(view):
            # Current part is full
            if self._remaining == 0 and self._dst is not None:
                self._dst.close()
                self._dst = None

            if self._dst is None:
                self._open_next()

            piece = view[total:total + self._remaining]
            self._dst.write(piece)
            total += len(piece)
            self._remaining -= len(piece)

        return total

    def close(self) -> None:
        """Close the current part in place; a no-op if none is open."""
        if self._dst is not None:
            self._remaining = 0
            dst, self._dst = self._dst, None
            dst.close()

    def __enter__(self) -> "SplitWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
