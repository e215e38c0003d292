"""Version strings for the command line."""

import platform

from pg_backup import __version__


def get_version(binary: str) -> str:
    """Short version line, e.g. ``pg-backup version 0.1.0``."""
    return f"{binary} version {__version__}"


def get_version_verbose(binary: str) -> str:
    """Version line plus interpreter details."""
    return (
        f"{get_version(binary)}\n"
        f"\tbuilt with {platform.python_implementation()} {platform.python_version()}\n"
        f"\trunning on {platform.system()} {platform.machine()}"
    )
