"""Error kinds raised by the statement engine."""


class StatementError(Exception):
    """Base class for failures surfaced to callers of the engine."""


class UnsupportedFormat(StatementError, ValueError):
    """Raised when no parser is registered for a file extension."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension}")


class FormatError(StatementError):
    """Raised when a file cannot be decoded as the format its extension claims.

    The underlying exception is chained as ``__cause__``.
    """
