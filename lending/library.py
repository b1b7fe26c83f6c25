import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from lending import database
from lending.book import Book
from lending.database import get_db_connection, initialize_database, unit_of_work
from lending.member import Member
from lending.repositories import BookRepository, MemberRepository, TransactionRepository
from lending.timeutils import utcnow
from lending.validators import TextValidator

logger = logging.getLogger(__name__)


class Library:
    """Manages the book and member catalog.

    Availability and borrowed counts belong to the lending engine
    (TransactionService); nothing here changes them.
    """

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self.clock = clock
        # Make sure the schema exists on every start
        initialize_database(self.db_file)

    def _read(self):
        return get_db_connection(self.db_file)

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> Book:
        """Add a prebuilt Book. Rejects blank fields and duplicate ids."""
        if not TextValidator.validate_title(book.title):
            raise ValueError("Title cannot be empty.")
        if not TextValidator.validate_author(book.author):
            raise ValueError("Author cannot be empty or numeric.")
        book.title = TextValidator.sanitize_text(book.title)
        book.author = TextValidator.sanitize_text(book.author)
        book.category = TextValidator.sanitize_text(book.category)

        try:
            with unit_of_work(self.db_file) as conn:
                BookRepository(conn).add(book)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Book with id {book.id} already exists.") from e
        logger.info(f"Added book {book.id}: {book.title}")
        return book

    def list_books(self) -> List[Book]:
        """List every book (fresh from the database on each call)."""
        conn = self._read()
        try:
            return BookRepository(conn).get_all()
        finally:
            conn.close()

    def find_book(self, book_id: str) -> Optional[Book]:
        conn = self._read()
        try:
            return BookRepository(conn).get_by_id(book_id)
        finally:
            conn.close()

    def update_book(self, book_id: str, *, title: Optional[str] = None, author: Optional[str] = None,
                    category: Optional[str] = None) -> Optional[Book]:
        """Update title, author and/or category. Returns the updated book, or None if not found."""
        if not any(value is not None and value.strip() for value in (title, author, category)):
            raise ValueError("Nothing to update. Provide a title, author and/or category.")
        if author is not None and author.strip() and not TextValidator.validate_author(author):
            raise ValueError("Author cannot be empty or numeric.")

        with unit_of_work(self.db_file) as conn:
            books = BookRepository(conn)
            book = books.get_by_id(book_id)
            if book is None:
                return None
            if title is not None and title.strip():
                book.title = TextValidator.sanitize_text(title)
            if author is not None and author.strip():
                book.author = TextValidator.sanitize_text(author)
            if category is not None and category.strip():
                book.category = TextValidator.sanitize_text(category)
            book.updated_at = self.clock()
            books.update(book)
        return book

    def remove_book(self, book_id: str) -> bool:
        """Delete a book. Returns False if it does not exist; refuses while it is on loan."""
        with unit_of_work(self.db_file) as conn:
            books = BookRepository(conn)
            if books.get_by_id(book_id) is None:
                return False
            if TransactionRepository(conn).count_open_for_book(book_id):
                raise ValueError(f"Book {book_id} is currently on loan and cannot be removed.")
            books.delete(book_id)
        logger.info(f"Removed book {book_id}")
        return True

    def search_books(self, title: Optional[str] = None, author: Optional[str] = None,
                     category: Optional[str] = None) -> List[Book]:
        """Search by title, author and category; all given filters must match."""
        conn = self._read()
        try:
            return BookRepository(conn).search(title=title, author=author, category=category)
        finally:
            conn.close()

    def books_borrowed_by(self, member_id: str) -> List[Book]:
        conn = self._read()
        try:
            return BookRepository(conn).get_borrowed_by_member(member_id)
        finally:
            conn.close()

    # ------------------------- Members ------------------------- #
    def add_member(self, member: Member) -> Member:
        if not TextValidator.validate_name(member.name):
            raise ValueError("Member name must contain letters.")
        member.name = TextValidator.sanitize_text(member.name)
        try:
            with unit_of_work(self.db_file) as conn:
                MemberRepository(conn).add(member)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Member with id {member.id} already exists.") from e
        logger.info(f"Added member {member.id}: {member.name}")
        return member

    def list_members(self) -> List[Member]:
        conn = self._read()
        try:
            return MemberRepository(conn).get_all()
        finally:
            conn.close()

    def find_member(self, member_id: str) -> Optional[Member]:
        conn = self._read()
        try:
            return MemberRepository(conn).get_by_id(member_id)
        finally:
            conn.close()

    def update_member(self, member_id: str, *, name: Optional[str] = None) -> Optional[Member]:
        """Rename a member. Returns the updated member, or None if not found."""
        if not TextValidator.validate_name(name):
            raise ValueError("Member name must contain letters.")
        with unit_of_work(self.db_file) as conn:
            members = MemberRepository(conn)
            member = members.get_by_id(member_id)
            if member is None:
                return None
            member.name = TextValidator.sanitize_text(name)
            member.updated_at = self.clock()
            members.update(member)
        return member

    def remove_member(self, member_id: str) -> bool:
        """Delete a member. Returns False if absent; refuses while they still hold books."""
        with unit_of_work(self.db_file) as conn:
            members = MemberRepository(conn)
            member = members.get_by_id(member_id)
            if member is None:
                return False
            if member.borrowed_books_count > 0 or TransactionRepository(conn).get_open(member_id):
                raise ValueError(f"Member {member_id} still has borrowed books and cannot be removed.")
            members.delete(member_id)
        logger.info(f"Removed member {member_id}")
        return True

    # ------------------------- Statistics ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        now = self.clock()
        conn = self._read()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM books")
            total_books = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM books WHERE is_available = 1")
            available_books = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM members")
            total_members = cursor.fetchone()[0]

            open_loans = TransactionRepository(conn).get_open()

            return {
                "total_books": total_books,
                "available_books": available_books,
                "total_members": total_members,
                "open_loans": len(open_loans),
                "overdue_loans": sum(1 for t in open_loans if t.is_overdue(now)),
            }
        finally:
            conn.close()

    def close(self) -> None:
        """Compatibility helper for tests: connections are opened per call, nothing to close."""
        return None
