import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from lending.config import settings

logger = logging.getLogger(__name__)

# Default database file; callers may pass their own path to every helper.
DATABASE_FILE = settings.database_file

# Serializes read-validate-write sequences inside this process. BEGIN IMMEDIATE
# covers other processes sharing the same file.
_write_lock = threading.RLock()


def _casefold(value):
    return value.casefold() if value is not None else None


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database in autocommit mode.

    Transactions are opened explicitly by ``unit_of_work``; plain reads run
    without one.
    """
    conn = sqlite3.connect(
        db_file or DATABASE_FILE,
        timeout=settings.database_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    # Unicode case folding for catalog search
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    return conn


@contextmanager
def unit_of_work(db_file: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Yield a connection inside one write transaction.

    Everything done through the yielded connection is committed together when
    the block exits normally and rolled back when it raises.
    """
    with _write_lock:
        conn = get_db_connection(db_file)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables and indexes if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT '',
                is_available INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                borrowed_books_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        # No foreign keys: a transaction outlives a book or member removed directly from the store.
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                book_id TEXT NOT NULL,
                member_id TEXT NOT NULL,
                borrowed_date TEXT NOT NULL,
                due_date TEXT,
                returned_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_category ON books(category)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_members_name ON members(name)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_member_id ON transactions(member_id)")
        # At most one open loan per book
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS ux_transactions_open_book
            ON transactions(book_id) WHERE returned_date IS NULL
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_open_book_member
            ON transactions(book_id, member_id) WHERE returned_date IS NULL
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_due_date ON transactions(due_date)")
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables when needed."""
    create_tables(db_file)
    logger.debug(f"Database ready at {db_file or DATABASE_FILE}")
