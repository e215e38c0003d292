"""Log sink that discards everything."""


class NullLogger:
    """``Logger`` implementation where every call is a no-op."""

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass

    def error(self, msg: str) -> None:
        pass

    def close(self) -> None:
        pass
