"""Borrow records.

A transaction is created when a member borrows a book and is closed when the
book comes back. Closing sets ``returned_date`` once; a closed transaction
never reopens. Whether a transaction is overdue is derived from its dates at
query time and is never stored.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

from lending.timeutils import from_iso, to_iso, utcnow

# How long a member may keep a borrowed book
LOAN_PERIOD = timedelta(days=14)


class Transaction:
    """A borrow record linking one book to one member."""

    def __init__(self, book_id: str, member_id: str, borrowed_date: datetime,
                 due_date: Optional[datetime] = None, returned_date: Optional[datetime] = None,
                 id: Optional[str] = None, created_at: Optional[datetime] = None,
                 updated_at: Optional[datetime] = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.book_id = book_id
        self.member_id = member_id
        self.borrowed_date = borrowed_date
        self.due_date = due_date
        self.returned_date = returned_date
        self.created_at = created_at or borrowed_date
        self.updated_at = updated_at or self.created_at

    @classmethod
    def open(cls, book_id: str, member_id: str, now: datetime) -> "Transaction":
        """Start a new loan at ``now``, due one loan period later."""
        return cls(book_id=book_id, member_id=member_id, borrowed_date=now, due_date=now + LOAN_PERIOD)

    @property
    def is_open(self) -> bool:
        return self.returned_date is None

    @property
    def status(self) -> str:
        """BORROWED or RETURNED."""
        return "BORROWED" if self.is_open else "RETURNED"

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True if the loan is still open and its due date is strictly before ``now``."""
        if not self.is_open or self.due_date is None:
            return False
        return self.due_date < (now or utcnow())

    def close(self, now: datetime) -> None:
        if not self.is_open:
            raise ValueError(f"Transaction {self.id} is already closed.")
        self.returned_date = now
        self.updated_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "member_id": self.member_id,
            "borrowed_date": to_iso(self.borrowed_date),
            "due_date": to_iso(self.due_date),
            "returned_date": to_iso(self.returned_date),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @staticmethod
    def from_dict(data: dict) -> "Transaction":
        return Transaction(
            id=data["id"],
            book_id=data["book_id"],
            member_id=data["member_id"],
            borrowed_date=from_iso(data["borrowed_date"]),
            due_date=from_iso(data.get("due_date")),
            returned_date=from_iso(data.get("returned_date")),
            created_at=from_iso(data.get("created_at")),
            updated_at=from_iso(data.get("updated_at")),
        )
