import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LENDING_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_records(records: List[Dict[str, Any]], empty_message: str, title: str,
                   columns: List[tuple], plain_line) -> None:
    mode = get_output_mode()

    if not records:
        # Same message in every mode so the empty state is predictable
        print(empty_message)
        return

    if mode == "json":
        payload = [{key: r.get(key) for key, _ in columns} for r in records]
        print(json.dumps(payload, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for _, label in columns:
            table.add_column(label)
        for r in records:
            table.add_row(*[str(r.get(key, "")) for key, _ in columns])
        _console.print(table)
    else:
        for r in records:
            print(plain_line(r))


def print_books(books: List[Dict[str, Any]]) -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author [Category] (available|on loan)'
    - json: array of id, title, author, category, is_available
    - rich: table
    """
    _print_records(
        books,
        "No books in library.",
        "Books",
        [("id", "ID"), ("title", "Title"), ("author", "Author"), ("category", "Category"),
         ("is_available", "Available")],
        lambda b: (f"{b['id']} - {b['title']} by {b['author']} [{b.get('category', '')}] "
                   f"({'available' if b.get('is_available') else 'on loan'})"),
    )


def print_members(members: List[Dict[str, Any]]) -> None:
    _print_records(
        members,
        "No members registered.",
        "Members",
        [("id", "ID"), ("name", "Name"), ("borrowed_books_count", "Borrowed")],
        lambda m: f"{m['id']} - {m['name']} ({m.get('borrowed_books_count', 0)} borrowed)",
    )


def print_transactions(transactions: List[Dict[str, Any]], empty_message: str = "No transactions.") -> None:
    _print_records(
        transactions,
        empty_message,
        "Transactions",
        [("id", "Transaction ID"), ("book_id", "Book ID"), ("member_id", "Member ID"),
         ("due_date", "Due Date"), ("returned_date", "Returned")],
        lambda t: (f"Transaction ID: {t['id']}, Book ID: {t['book_id']}, "
                   f"Member ID: {t['member_id']}, Due Date: {t.get('due_date')}"),
    )


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = [
        ("total_books", "Total Books"),
        ("available_books", "Available Books"),
        ("total_members", "Members"),
        ("open_loans", "Open Loans"),
        ("overdue_loans", "Overdue Loans"),
    ]

    if mode == "json":
        print(json.dumps({key: stats.get(key, 0) for key, _ in labels}, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats.get(key, 0)}" for key, label in labels)
        _console.print(Panel.fit(content, title="Stats", border_style="blue"))
    else:
        for key, label in labels:
            print(f"{label}: {stats.get(key, 0)}")
