from __future__ import annotations

import uuid
from datetime import datetime

from lending.timeutils import from_iso, to_iso, utcnow


class Book:
    """A single book on the library shelf."""

    def __init__(self, title: str, author: str, category: str, id: str | None = None,
                 is_available: bool = True, created_at: datetime | None = None,
                 updated_at: datetime | None = None) -> None:
        self.id = id or uuid.uuid4().hex
        self.title = title.strip()
        self.author = author.strip()
        self.category = (category or "").strip()
        self.is_available = bool(is_available)
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} [{self.category}]"

    def mark_borrowed(self, now: datetime) -> None:
        self.is_available = False
        self.updated_at = now

    def mark_returned(self, now: datetime) -> None:
        self.is_available = True
        self.updated_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "category": self.category,
            "is_available": self.is_available,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite hands booleans back as 0/1
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            category=data.get("category") or "",
            is_available=bool(data.get("is_available", True)),
            created_at=from_iso(data.get("created_at")),
            updated_at=from_iso(data.get("updated_at")),
        )
