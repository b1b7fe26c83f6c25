from __future__ import annotations

import uuid
from datetime import datetime

from lending.timeutils import from_iso, to_iso, utcnow

# Maximum number of books a member may hold at once
BORROW_LIMIT = 5


class Member:
    """A library member and the number of books they currently hold."""

    def __init__(self, name: str, id: str | None = None, borrowed_books_count: int = 0,
                 created_at: datetime | None = None, updated_at: datetime | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.name = name.strip()
        self.borrowed_books_count = int(borrowed_books_count)
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} ({self.borrowed_books_count}/{BORROW_LIMIT} books)"

    @property
    def can_borrow(self) -> bool:
        return self.borrowed_books_count < BORROW_LIMIT

    def record_borrow(self, now: datetime) -> None:
        self.borrowed_books_count += 1
        self.updated_at = now

    def record_return(self, now: datetime) -> None:
        self.borrowed_books_count -= 1
        self.updated_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "borrowed_books_count": self.borrowed_books_count,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=data["id"],
            name=data["name"],
            borrowed_books_count=data.get("borrowed_books_count") or 0,
            created_at=from_iso(data.get("created_at")),
            updated_at=from_iso(data.get("updated_at")),
        )
