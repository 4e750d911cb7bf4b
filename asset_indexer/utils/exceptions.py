"""
Exception types.

Defines categorized exception types for proper error handling.
"""


class IndexerError(Exception):
    """Base exception for indexer errors."""
    pass


class ChainSourceError(IndexerError):
    """Raised when the chain data source is unreachable (transient)."""
    pass


class ChainTimeoutError(ChainSourceError):
    """Raised when a chain RPC call times out."""
    pass


class ChainRpcError(IndexerError):
    """Raised when the node answers a call with an RPC error object."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"RPC error in {method}: {message} (code={code})")


class MalformedBlockError(IndexerError):
    """Raised when a block cannot be turned into valid records."""

    def __init__(self, height: int | None, reason: str) -> None:
        self.height = height
        self.reason = reason
        super().__init__(f"Malformed block {height}: {reason}")


class InvariantViolationError(IndexerError):
    """Raised by the writer when a record breaks a storage invariant."""

    def __init__(self, record: str, key: str, reason: str) -> None:
        self.record = record
        self.key = key
        self.reason = reason
        super().__init__(f"{record} {key} rejected: {reason}")


class ConfirmationRequiredError(IndexerError):
    """Raised when a destructive operation runs without confirmation."""
    pass


class SyncHaltedError(IndexerError):
    """Raised when the sync daemon gives up on a block."""

    def __init__(self, height: int, attempts: int, cause: Exception) -> None:
        self.height = height
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Sync halted at block {height} after {attempts} attempts: {cause}"
        )


# Exception categories based on handling strategy

# Retried with backoff, watermark not advanced
TRANSIENT = (
    ChainSourceError,
)


def is_transient(exc: Exception) -> bool:
    """
    Check if exception is a transient source failure.

    Args:
        exc: Exception to check

    Returns:
        True if the operation should simply be retried later
    """
    return isinstance(exc, TRANSIENT)
