"""
Ledger Store Exceptions.

Stores catch backend errors (SQLAlchemy, I/O) and re-raise them as
ledger exceptions carrying the store and operation. The writer catches
these per partition so one failing partition never aborts the others.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for all ledger store operations."""

    def __init__(
        self,
        message: str,
        store_name: str,
        operation: str,
        details: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.message = message
        self.store_name = store_name
        self.operation = operation
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.store_name}] {self.operation}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "store_name": self.store_name,
            "operation": self.operation,
            "details": self.details,
            "original_error": str(self.original_error) if self.original_error else None,
        }


class LedgerReadError(LedgerError):
    """Raised when a partition cannot be read."""
    pass


class LedgerWriteError(LedgerError):
    """Raised when rows cannot be appended or the status table replaced."""
    pass


class UnknownPartitionError(LedgerError):
    """Raised when an operation names a partition the store does not have."""

    def __init__(self, store_name: str, partition: str, operation: str) -> None:
        super().__init__(
            message=f"Unknown partition '{partition}'",
            store_name=store_name,
            operation=operation,
            details={"partition": partition},
        )
        self.partition = partition


__all__ = [
    "LedgerError",
    "LedgerReadError",
    "LedgerWriteError",
    "UnknownPartitionError",
]
