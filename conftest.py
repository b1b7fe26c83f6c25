from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from lending.api import app, get_library, get_transaction_service
from lending.book import Book
from lending.client import LendingClient
from lending.library import Library
from lending.member import Member
from lending.transaction_service import TransactionService

START = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_file(tmp_path):
    # A fresh database file per test
    return str(tmp_path / "lending.db")


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def lib(db_file, clock):
    lib = Library(db_file=db_file, clock=clock)
    yield lib
    lib.close()


@pytest.fixture
def service(db_file, clock):
    return TransactionService(db_file=db_file, clock=clock)


@pytest.fixture
def book(lib):
    return lib.add_book(Book("Dune", "Frank Herbert", "Science Fiction"))


@pytest.fixture
def member(lib):
    return lib.add_member(Member("Ada Lovelace"))


@pytest.fixture
def client(lib, service):
    app.dependency_overrides[get_library] = lambda: lib
    app.dependency_overrides[get_transaction_service] = lambda: service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def api_client(client):
    """LendingClient talking to the in-process app."""
    return LendingClient(http=client)
