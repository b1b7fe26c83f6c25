from datetime import datetime, timedelta, timezone

import pytest

from lending.book import Book
from lending.errors import CannotBorrowError, LendingError, NoActiveTransactionError
from lending.member import BORROW_LIMIT, Member
from lending.timeutils import from_iso, to_iso
from lending.transaction import LOAN_PERIOD, Transaction
from lending.validators import IdValidator, TextValidator

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def test_book_from_sqlite_row():
    book = Book.from_dict({
        "id": "b" * 32,
        "title": "Dune",
        "author": "Frank Herbert",
        "category": None,
        "is_available": 0,
        "created_at": to_iso(NOW),
        "updated_at": to_iso(NOW),
    })
    assert book.is_available is False
    assert book.category == ""
    assert book.created_at == NOW


def test_member_limit():
    member = Member("Ada", borrowed_books_count=BORROW_LIMIT - 1)
    assert member.can_borrow
    member.record_borrow(NOW)
    assert not member.can_borrow
    member.record_return(NOW)
    assert member.can_borrow


def test_transaction_lifecycle():
    loan = Transaction.open("b" * 32, "m" * 32, NOW)
    assert loan.due_date == NOW + LOAN_PERIOD
    assert loan.status == "BORROWED"
    assert not loan.is_overdue(NOW + LOAN_PERIOD)
    assert loan.is_overdue(NOW + LOAN_PERIOD + timedelta(seconds=1))

    loan.close(NOW + timedelta(days=20))
    assert loan.status == "RETURNED"
    assert not loan.is_overdue(NOW + timedelta(days=30))
    with pytest.raises(ValueError):
        loan.close(NOW + timedelta(days=21))


def test_transaction_from_dict_keeps_dates():
    loan = Transaction.open("b" * 32, "m" * 32, NOW)
    restored = Transaction.from_dict(loan.to_dict())
    assert restored.borrowed_date == NOW
    assert restored.returned_date is None


def test_iso_timestamps_sort_as_text():
    earlier = to_iso(NOW)
    later = to_iso(NOW + timedelta(microseconds=1))
    assert earlier < later
    assert len(earlier) == len(later)
    assert from_iso(to_iso(datetime(2026, 3, 2, 9, 30))) == NOW


def test_error_messages():
    assert str(CannotBorrowError()) == "Cannot borrow the book."
    assert str(NoActiveTransactionError()) == "No active transaction found for the book and member."
    assert issubclass(CannotBorrowError, LendingError)
    assert str(CannotBorrowError("custom")) == "custom"


@pytest.mark.parametrize("raw, expected", [
    ("0123456789abcdef0123456789abcdef", True),
    (" 01234567-89AB-CDEF-0123-456789ABCDEF ", True),
    ("xyz", False),
    ("", False),
    (None, False),
])
def test_id_validator(raw, expected):
    assert IdValidator.is_valid_id(raw) is expected


def test_text_validator():
    assert TextValidator.validate_title("Dune")
    assert not TextValidator.validate_title("   ")
    assert not TextValidator.validate_author("1984")
    assert TextValidator.validate_name("Ada")
    assert not TextValidator.validate_name("!!!")
    assert TextValidator.sanitize_text("  <b>Dune</b>   Messiah ") == "Dune Messiah"
