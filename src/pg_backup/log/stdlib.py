"""Log sink forwarding to the standard ``logging`` module."""

import logging


class StdlibLogger:
    """``Logger`` implementation backed by a ``logging.Logger``.

    Args:
        logger: Target logger.  Defaults to ``logging.getLogger("pg_backup")``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("pg_backup")

    def info(self, msg: str) -> None:
        self._logger.info(msg)

    def warning(self, msg: str) -> None:
        self._logger.warning(msg)

    def error(self, msg: str) -> None:
        self._logger.error(msg)

    def close(self) -> None:
        for handler in self._logger.handlers + logging.getLogger().handlers:
            handler.flush()
