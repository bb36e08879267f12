"""AgentDB exceptions."""


class AgentDBError(Exception):
    """Base class for errors raised by the pattern store."""


class DimensionMismatchError(AgentDBError, ValueError):
    """Raised when a vector's dimension differs from the store's configured dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class StorageError(AgentDBError):
    """Raised when the store cannot be written to (or read from) disk."""


class InvalidTrainingDataError(AgentDBError, ValueError):
    """Raised when an imported training-data document is malformed."""


class StoreClosedError(AgentDBError):
    """Raised when an operation targets a store that has been closed."""
