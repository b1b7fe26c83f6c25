"""SQLite record stores for books, members and transactions.

Each store wraps a connection handed in by the caller, so several stores can
take part in the same ``unit_of_work``. ``update`` replaces a record by id and
silently does nothing when the id is absent; ``delete`` is a no-op for unknown
ids.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from lending.book import Book
from lending.member import Member
from lending.timeutils import to_iso
from lending.transaction import Transaction

BOOK_COLUMNS = "id, title, author, category, is_available, created_at, updated_at"
MEMBER_COLUMNS = "id, name, borrowed_books_count, created_at, updated_at"
TRANSACTION_COLUMNS = "id, book_id, member_id, borrowed_date, due_date, returned_date, created_at, updated_at"


class BookRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get_all(self) -> List[Book]:
        rows = self.conn.execute(f"SELECT {BOOK_COLUMNS} FROM books ORDER BY title").fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def get_by_id(self, book_id: str) -> Optional[Book]:
        row = self.conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def add(self, book: Book) -> None:
        data = book.to_dict()
        self.conn.execute(
            f"INSERT INTO books ({BOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (data["id"], data["title"], data["author"], data["category"],
             int(book.is_available), data["created_at"], data["updated_at"]),
        )

    def update(self, book: Book) -> None:
        data = book.to_dict()
        self.conn.execute(
            """
            UPDATE books
            SET title = ?, author = ?, category = ?, is_available = ?, updated_at = ?
            WHERE id = ?
            """,
            (data["title"], data["author"], data["category"], int(book.is_available),
             data["updated_at"], data["id"]),
        )

    def delete(self, book_id: str) -> None:
        self.conn.execute("DELETE FROM books WHERE id = ?", (book_id,))

    def search(self, title: Optional[str] = None, author: Optional[str] = None,
               category: Optional[str] = None) -> List[Book]:
        """Case-insensitive substring search; every filter given must match."""
        clauses = []
        params = []
        for column, term in (("title", title), ("author", author), ("category", category)):
            if term:
                clauses.append(f"instr(casefold({column}), ?) > 0")
                params.append(term.casefold())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(
            f"SELECT {BOOK_COLUMNS} FROM books {where} ORDER BY title", params
        ).fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def get_borrowed_by_member(self, member_id: str) -> List[Book]:
        """Books with a currently open transaction for the member."""
        rows = self.conn.execute(
            """
            SELECT b.*
            FROM books b
            JOIN transactions t ON t.book_id = b.id
            WHERE t.member_id = ? AND t.returned_date IS NULL
            ORDER BY b.title
            """,
            (member_id,),
        ).fetchall()
        return [Book.from_dict(dict(row)) for row in rows]


class MemberRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get_all(self) -> List[Member]:
        rows = self.conn.execute(f"SELECT {MEMBER_COLUMNS} FROM members ORDER BY name").fetchall()
        return [Member.from_dict(dict(row)) for row in rows]

    def get_by_id(self, member_id: str) -> Optional[Member]:
        row = self.conn.execute(f"SELECT {MEMBER_COLUMNS} FROM members WHERE id = ?", (member_id,)).fetchone()
        return Member.from_dict(dict(row)) if row else None

    def add(self, member: Member) -> None:
        data = member.to_dict()
        self.conn.execute(
            f"INSERT INTO members ({MEMBER_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
            (data["id"], data["name"], data["borrowed_books_count"], data["created_at"], data["updated_at"]),
        )

    def update(self, member: Member) -> None:
        data = member.to_dict()
        self.conn.execute(
            "UPDATE members SET name = ?, borrowed_books_count = ?, updated_at = ? WHERE id = ?",
            (data["name"], data["borrowed_books_count"], data["updated_at"], data["id"]),
        )

    def delete(self, member_id: str) -> None:
        self.conn.execute("DELETE FROM members WHERE id = ?", (member_id,))


class TransactionRepository:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _fetch(self, where: str = "", params: tuple = ()) -> List[Transaction]:
        rows = self.conn.execute(
            f"SELECT {TRANSACTION_COLUMNS} FROM transactions {where} ORDER BY borrowed_date, rowid", params
        ).fetchall()
        return [Transaction.from_dict(dict(row)) for row in rows]

    def get_all(self) -> List[Transaction]:
        return self._fetch()

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        found = self._fetch("WHERE id = ?", (transaction_id,))
        return found[0] if found else None

    def add(self, transaction: Transaction) -> None:
        data = transaction.to_dict()
        self.conn.execute(
            f"INSERT INTO transactions ({TRANSACTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (data["id"], data["book_id"], data["member_id"], data["borrowed_date"],
             data["due_date"], data["returned_date"], data["created_at"], data["updated_at"]),
        )

    def update(self, transaction: Transaction) -> None:
        data = transaction.to_dict()
        self.conn.execute(
            """
            UPDATE transactions
            SET book_id = ?, member_id = ?, borrowed_date = ?, due_date = ?,
                returned_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (data["book_id"], data["member_id"], data["borrowed_date"], data["due_date"],
             data["returned_date"], data["updated_at"], data["id"]),
        )

    def delete(self, transaction_id: str) -> None:
        self.conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    def find_open(self, book_id: str, member_id: str) -> Optional[Transaction]:
        """The open transaction for this exact book and member, if any."""
        found = self._fetch(
            "WHERE book_id = ? AND member_id = ? AND returned_date IS NULL", (book_id, member_id)
        )
        return found[0] if found else None

    def get_open(self, member_id: Optional[str] = None) -> List[Transaction]:
        if member_id is None:
            return self._fetch("WHERE returned_date IS NULL")
        return self._fetch("WHERE returned_date IS NULL AND member_id = ?", (member_id,))

    def get_by_member(self, member_id: str) -> List[Transaction]:
        return self._fetch("WHERE member_id = ?", (member_id,))

    def count_open_for_book(self, book_id: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM transactions WHERE book_id = ? AND returned_date IS NULL", (book_id,)
        ).fetchone()
        return row[0]

    def get_overdue(self, now: datetime) -> List[Transaction]:
        """Open transactions due strictly before ``now``."""
        return self._fetch(
            "WHERE returned_date IS NULL AND due_date IS NOT NULL AND due_date < ?", (to_iso(now),)
        )
