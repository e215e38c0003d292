"""Chunked files: streaming split writer plus file split/join helpers.

Usage:
    from pg_backup.chunk import SplitWriter, chunk_paths, join_chunks, split_file
"""

from pg_backup.chunk.files import chunk_paths, join_chunks, split_file
from pg_backup.chunk.writer import SplitWriter

__all__ = ["SplitWriter", "split_file", "chunk_paths", "join_chunks"]
