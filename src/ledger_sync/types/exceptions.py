"""Exception hierarchy for ledger synchronization."""

from __future__ import annotations


class LedgerSyncError(Exception):
    """
    Base exception for all synchronization errors.

    Errors are annotated with the block number they concern so that a log of
    failures is actionable on its own, without the surrounding call stack.

    Attributes:
        message: Human-readable error description.
        block_number: Block the failure concerns, if known.
    """

    def __init__(self, message: str, *, block_number: int | None = None) -> None:
        self.message = message
        self.block_number = block_number
        if block_number is not None:
            message = f"block {block_number}: {message}"
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, block_number={self.block_number!r})"


class NotFoundError(LedgerSyncError):
    """
    Raised when a lookup misses.

    Routine and expected: gap detection and watcher preconditions rely on it.
    """

    def __init__(self, block_number: int, *, what: str = "block") -> None:
        self.what = what
        super().__init__(f"{what} does not exist", block_number=block_number)


class BackingStoreError(LedgerSyncError):
    """
    Raised when the storage medium is unreachable or rejects a write.

    Fatal to the current operation only. The affected block stays missing
    and is picked up again on the next sync pass.

    Attributes:
        operation: Storage operation that failed (e.g. "put_block").
    """

    def __init__(
        self,
        operation: str,
        detail: str,
        *,
        block_number: int | None = None,
    ) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}", block_number=block_number)


class DependencyMissingError(LedgerSyncError):
    """
    Raised when a watcher runs for a block that has not been ingested yet.

    Retryable once ingestion catches up.
    """

    def __init__(self, block_number: int, *, watcher: str | None = None) -> None:
        self.watcher = watcher
        who = f"{watcher} " if watcher else ""
        super().__init__(f"{who}requires a stored block", block_number=block_number)


class TransientError(LedgerSyncError):
    """
    Raised when the chain reader fails in a way that may succeed later.

    Network errors, timeouts and malformed node responses all end up here.
    The number is simply left unfetched and retried on the next pass.
    """


class ConversionError(LedgerSyncError):
    """
    Raised when a raw block cannot be converted to the local shape.

    Attributes:
        field: Raw field that failed to convert, if known.
    """

    def __init__(
        self,
        detail: str,
        *,
        block_number: int | None = None,
        field: str | None = None,
    ) -> None:
        self.field = field
        msg = f"cannot convert field '{field}': {detail}" if field else detail
        super().__init__(msg, block_number=block_number)


class InvalidRangeError(LedgerSyncError):
    """
    Raised when a caller passes an impossible block range or window.

    This is a programming error, so it is never retried.

    Attributes:
        start: Lower bound as given.
        end: Upper bound as given.
    """

    def __init__(self, detail: str, *, start: int | None = None, end: int | None = None) -> None:
        self.start = start
        self.end = end
        super().__init__(detail)
