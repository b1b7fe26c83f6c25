from __future__ import annotations


class LendingError(Exception):
    """Base class for business-rule rejections raised by the lending engine."""

    default_message = "Lending operation rejected."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class CannotBorrowError(LendingError):
    # Covers a missing book, a missing member, an unavailable book and a member at the limit
    default_message = "Cannot borrow the book."


class NoActiveTransactionError(LendingError):
    default_message = "No active transaction found for the book and member."
