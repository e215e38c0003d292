"""Console log sink backed by ``rich``.

Messages are printed verbatim (no rich markup interpretation) after
non-printable characters are escaped so tool output cannot garble the
terminal.
"""

from rich.console import Console
from rich.text import Text

_KEEP = {"\r", "\n", "\t"}


def sanitize(msg: str) -> str:
    """Escape control and non-printable characters as ``\\xNN``.

    Carriage returns, newlines and tabs are kept.

    Example:
        >>> sanitize("ok\\x1b[31m")
        'ok\\\\x1b[31m'
    """
    out = []
    for ch in msg:
        if ch.isprintable() or ch in _KEEP:
            out.append(ch)
        else:
            out.append(f"\\x{ord(ch):02x}")
    return "".join(out)


class ConsoleLogger:
    """``Logger`` implementation writing to a ``rich`` console.

    Args:
        console: Console to print to.  Defaults to a new stdout console.

    Example:
        logger = ConsoleLogger()
        logger.warning("While dropping mydb; database may not exist.")
        # [WARN] While dropping mydb; database may not exist.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)

    def _print(self, msg: str, style: str | None = None) -> None:
        self._console.print(Text(sanitize(msg), style=style or ""), soft_wrap=True)

    def info(self, msg: str) -> None:
        self._print(msg)

    def warning(self, msg: str) -> None:
        self._print("[WARN] " + msg, style="yellow")

    def error(self, msg: str) -> None:
        self._print("[ERROR] " + msg, style="bold red")

    def close(self) -> None:
        self._console.file.flush()
