import logging
import time
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lending.book import Book
from lending.config import configure_logging, settings
from lending.database import get_db_connection
from lending.errors import CannotBorrowError, NoActiveTransactionError
from lending.library import Library
from lending.member import Member
from lending.timeutils import utcnow
from lending.transaction import Transaction
from lending.transaction_service import TransactionService

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
    return response


# --- Dependencies ---
_library: Optional[Library] = None
_transactions: Optional[TransactionService] = None


def get_library() -> Library:
    global _library
    if _library is None:
        _library = Library()
    return _library


def get_transaction_service() -> TransactionService:
    global _transactions
    if _transactions is None:
        _transactions = TransactionService()
    return _transactions


# --- Models ---
class BookModel(BaseModel):
    id: str
    title: str
    author: str
    category: str
    is_available: bool


class BookCreateModel(BaseModel):
    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    category: str = ""


class UpdateBookModel(BaseModel):
    title: str | None = None
    author: str | None = None
    category: str | None = None


class MemberModel(BaseModel):
    id: str
    name: str
    borrowed_books_count: int


class MemberCreateModel(BaseModel):
    name: str = Field(..., min_length=1)


class UpdateMemberModel(BaseModel):
    name: str


class TransactionRequest(BaseModel):
    book_id: str
    member_id: str


class TransactionModel(BaseModel):
    id: str
    book_id: str
    member_id: str
    borrowed_date: datetime
    due_date: datetime | None = None
    returned_date: datetime | None = None
    status: str
    is_overdue: bool


class StatsModel(BaseModel):
    total_books: int
    available_books: int
    total_members: int
    open_loans: int
    overdue_loans: int


def _book_model(book: Book) -> BookModel:
    return BookModel(**book.to_dict())


def _member_model(member: Member) -> MemberModel:
    return MemberModel(**member.to_dict())


def _transaction_model(transaction: Transaction, now: datetime) -> TransactionModel:
    return TransactionModel(
        **transaction.to_dict(),
        status=transaction.status,
        is_overdue=transaction.is_overdue(now),
    )


# --- Health ---
@app.get("/health")
def health(library: Library = Depends(get_library)):
    """Lightweight health endpoint with a quick database probe."""
    db_ok = True
    try:
        conn = get_db_connection(library.db_file)
        conn.execute("SELECT 1")
        conn.close()
    except Exception:
        logger.exception("Health check database probe failed")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": utcnow().isoformat(),
        "db": db_ok,
        "version": settings.app_version,
    }


@app.get("/stats", response_model=StatsModel)
def get_stats(library: Library = Depends(get_library)):
    return StatsModel(**library.get_statistics())


# --- Books ---
@app.get("/books", response_model=List[BookModel])
def list_books(library: Library = Depends(get_library)):
    """List every book."""
    return [_book_model(b) for b in library.list_books()]


@app.get("/books/search", response_model=List[BookModel])
def search_books(
    title: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    library: Library = Depends(get_library),
):
    """Case-insensitive substring search; all given filters must match."""
    return [_book_model(b) for b in library.search_books(title=title, author=author, category=category)]


@app.get("/books/member/{member_id}/borrowed", response_model=List[BookModel])
def get_books_borrowed_by_member(member_id: str, library: Library = Depends(get_library)):
    """Books currently on loan to a member."""
    return [_book_model(b) for b in library.books_borrowed_by(member_id)]


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, library: Library = Depends(get_library)):
    book = library.find_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return _book_model(book)


@app.post("/books", response_model=BookModel, status_code=201)
def add_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    """Add a new book; it starts out available."""
    try:
        book = library.add_book(Book(title=payload.title, author=payload.author, category=payload.category))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _book_model(book)


@app.put("/books/{book_id}", response_model=BookModel)
def update_book(book_id: str, update: UpdateBookModel, library: Library = Depends(get_library)):
    """Update a book's title, author and/or category."""
    try:
        book = library.update_book(book_id, title=update.title, author=update.author, category=update.category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return _book_model(book)


@app.delete("/books/{book_id}")
def delete_book(book_id: str, library: Library = Depends(get_library)):
    try:
        removed = library.remove_book(book_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Book not found.")
    return {"message": "Book removed."}


# --- Members ---
@app.get("/members", response_model=List[MemberModel])
def list_members(library: Library = Depends(get_library)):
    return [_member_model(m) for m in library.list_members()]


@app.get("/members/{member_id}", response_model=MemberModel)
def get_member(member_id: str, library: Library = Depends(get_library)):
    member = library.find_member(member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found.")
    return _member_model(member)


@app.post("/members", response_model=MemberModel, status_code=201)
def add_member(payload: MemberCreateModel, library: Library = Depends(get_library)):
    try:
        member = library.add_member(Member(name=payload.name))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _member_model(member)


@app.put("/members/{member_id}", response_model=MemberModel)
def update_member(member_id: str, update: UpdateMemberModel, library: Library = Depends(get_library)):
    try:
        member = library.update_member(member_id, name=update.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not member:
        raise HTTPException(status_code=404, detail="Member not found.")
    return _member_model(member)


@app.delete("/members/{member_id}")
def delete_member(member_id: str, library: Library = Depends(get_library)):
    try:
        removed = library.remove_member(member_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Member not found.")
    return {"message": "Member removed."}


# --- Transactions ---
@app.post("/transactions/borrow", response_model=TransactionModel, status_code=201)
def borrow_book(payload: TransactionRequest, service: TransactionService = Depends(get_transaction_service)):
    """Lend a book to a member."""
    try:
        transaction = service.borrow_book(payload.book_id, payload.member_id)
    except CannotBorrowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _transaction_model(transaction, service.clock())


@app.post("/transactions/return", response_model=TransactionModel)
def return_book(payload: TransactionRequest, service: TransactionService = Depends(get_transaction_service)):
    """Close the open loan of a book by a member."""
    try:
        transaction = service.return_book(payload.book_id, payload.member_id)
    except NoActiveTransactionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _transaction_model(transaction, service.clock())


@app.get("/transactions/overdue", response_model=List[TransactionModel])
def get_overdue_transactions(service: TransactionService = Depends(get_transaction_service)):
    now = service.clock()
    return [_transaction_model(t, now) for t in service.get_overdue_transactions()]


@app.get("/transactions", response_model=List[TransactionModel])
def list_transactions(
    member_id: Optional[str] = Query(None),
    open_only: bool = Query(False),
    service: TransactionService = Depends(get_transaction_service),
):
    now = service.clock()
    return [_transaction_model(t, now) for t in service.list_transactions(member_id=member_id, open_only=open_only)]


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})
