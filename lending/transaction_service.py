"""Borrow and return engine.

Every borrow and return reads, validates and writes the book, the member and
the transaction inside one ``unit_of_work``, so other callers see either all
three changes or none of them.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from lending import database
from lending.database import get_db_connection, initialize_database, unit_of_work
from lending.errors import CannotBorrowError, NoActiveTransactionError
from lending.repositories import BookRepository, MemberRepository, TransactionRepository
from lending.timeutils import utcnow
from lending.transaction import Transaction

logger = logging.getLogger(__name__)


class TransactionService:
    """Borrow, return and overdue queries across the three record stores."""

    def __init__(self, db_file: Optional[str] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        self.clock = clock
        initialize_database(self.db_file)

    def borrow_book(self, book_id: str, member_id: str) -> Transaction:
        """Lend a book to a member.

        Raises CannotBorrowError when the book or member does not exist, the
        book is already out, or the member already holds the maximum number
        of books. The error does not say which.
        """
        with unit_of_work(self.db_file) as conn:
            books = BookRepository(conn)
            members = MemberRepository(conn)
            transactions = TransactionRepository(conn)

            book = books.get_by_id(book_id)
            member = members.get_by_id(member_id)
            reason = self._borrow_rejection(book, member)
            if reason:
                logger.debug(f"Borrow rejected for book={book_id} member={member_id}: {reason}")
                raise CannotBorrowError()

            now = self.clock()
            book.mark_borrowed(now)
            member.record_borrow(now)
            transaction = Transaction.open(book_id, member_id, now)

            try:
                transactions.add(transaction)
            except sqlite3.IntegrityError:
                # An open transaction already exists even though the book row says available
                logger.warning(f"Borrow rejected for book={book_id}: open transaction already recorded")
                raise CannotBorrowError()
            books.update(book)
            members.update(member)

        logger.info(f"Book {book_id} borrowed by member {member_id}, due {transaction.due_date.isoformat()}")
        return transaction

    @staticmethod
    def _borrow_rejection(book, member) -> Optional[str]:
        if book is None:
            return "book not found"
        if member is None:
            return "member not found"
        if not book.is_available:
            return "book not available"
        if not member.can_borrow:
            return "borrow limit reached"
        return None

    def return_book(self, book_id: str, member_id: str) -> Transaction:
        """Close the open loan of this book by this member.

        Raises NoActiveTransactionError when no open transaction matches both
        ids. A book or member record that has disappeared is skipped with a
        warning; the transaction is still closed.
        """
        with unit_of_work(self.db_file) as conn:
            books = BookRepository(conn)
            members = MemberRepository(conn)
            transactions = TransactionRepository(conn)

            transaction = transactions.find_open(book_id, member_id)
            if transaction is None:
                raise NoActiveTransactionError()

            now = self.clock()
            transaction.close(now)
            transactions.update(transaction)

            book = books.get_by_id(book_id)
            if book is not None:
                book.mark_returned(now)
                books.update(book)
            else:
                logger.warning(f"Returning transaction {transaction.id}: book {book_id} no longer exists")

            member = members.get_by_id(member_id)
            if member is not None:
                member.record_return(now)
                members.update(member)
            else:
                logger.warning(f"Returning transaction {transaction.id}: member {member_id} no longer exists")

        logger.info(f"Book {book_id} returned by member {member_id}")
        return transaction

    def get_overdue_transactions(self) -> List[Transaction]:
        """Open transactions whose due date is strictly before now."""
        now = self.clock()
        conn = get_db_connection(self.db_file)
        try:
            candidates = TransactionRepository(conn).get_overdue(now)
        finally:
            conn.close()
        return [t for t in candidates if t.is_overdue(now)]

    def list_transactions(self, member_id: Optional[str] = None, open_only: bool = False) -> List[Transaction]:
        conn = get_db_connection(self.db_file)
        try:
            repo = TransactionRepository(conn)
            if open_only:
                return repo.get_open(member_id)
            if member_id is not None:
                return repo.get_by_member(member_id)
            return repo.get_all()
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are opened per call, so there is nothing to release."""
        return None
