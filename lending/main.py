import os
import subprocess
import sys
import webbrowser
from functools import wraps
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from lending.client import ExternalServiceError, LendingAPIError, LendingClient
from lending.config import configure_logging, settings
from lending.ui_helpers import (
    print_books,
    print_members,
    print_stats_result,
    print_transactions,
    set_output_mode,
)
from lending.validators import IdValidator, TextValidator

APP_NAME = "Library Lending CLI"

console = Console()


def get_client() -> LendingClient:
    """Client for the configured lending API."""
    return LendingClient(base_url=settings.api_base_url)


def handle_api_errors(func):
    """Print API and connection failures instead of a traceback."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LendingAPIError as e:
            print(f"Error: {e.detail}")
        except ExternalServiceError as e:
            print(f"Error: {e}. Is the server running at {settings.api_base_url}?")
    return wrapper


def _require_id(raw: str, label: str) -> Optional[str]:
    if not IdValidator.is_valid_id(raw):
        print(f"Invalid {label} ID.")
        return None
    return IdValidator.normalize_id(raw)


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    configure_logging()
    if output:
        set_output_mode(output)


@app.command("books")
@handle_api_errors
def cli_books():
    """List all books."""
    print_books(get_client().list_books())


@app.command("search")
@handle_api_errors
def cli_search(
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Filter by title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Filter by author"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
):
    """Search books; every filter given must match."""
    print_books(get_client().search_books(title=title, author=author, category=category))


@app.command("add-book")
@handle_api_errors
def cli_add_book(
    title: str = typer.Argument(..., help="Book title"),
    author: str = typer.Argument(..., help="Book author"),
    category: str = typer.Option("", "--category", "-c", help="Book category"),
):
    """Add a book to the catalog."""
    book = get_client().add_book(title, author, category)
    print(f"Book added successfully: {book['title']} by {book['author']} (ID: {book['id']})")


@app.command("members")
@handle_api_errors
def cli_members():
    """List all members."""
    print_members(get_client().list_members())


@app.command("add-member")
@handle_api_errors
def cli_add_member(name: str = typer.Argument(..., help="Member name")):
    """Register a new member."""
    member = get_client().add_member(name)
    print(f"Member added successfully: {member['name']} (ID: {member['id']})")


@app.command("borrow")
@handle_api_errors
def cli_borrow(book_id: str, member_id: str):
    """Lend a book to a member."""
    book_id = _require_id(book_id, "book")
    if not book_id:
        return
    member_id = _require_id(member_id, "member")
    if not member_id:
        return
    transaction = get_client().borrow_book(book_id, member_id)
    print(f"Book borrowed successfully. Due Date: {transaction['due_date']}")


@app.command("return")
@handle_api_errors
def cli_return(book_id: str, member_id: str):
    """Return a borrowed book."""
    book_id = _require_id(book_id, "book")
    if not book_id:
        return
    member_id = _require_id(member_id, "member")
    if not member_id:
        return
    get_client().return_book(book_id, member_id)
    print("Book returned successfully.")


@app.command("overdue")
@handle_api_errors
def cli_overdue():
    """Show overdue loans."""
    print_transactions(get_client().overdue_transactions(), empty_message="No overdue books.")


@app.command("borrowed")
@handle_api_errors
def cli_borrowed(member_id: str):
    """Show the books a member currently holds."""
    member_id = _require_id(member_id, "member")
    if not member_id:
        return
    print_books(get_client().borrowed_books(member_id))


@app.command("stats")
@handle_api_errors
def cli_stats():
    """Show library statistics."""
    print_stats_result(get_client().stats())


@app.command("serve")
def cli_serve(timeout: int = typer.Option(0, "--timeout", help="Seconds to run before exiting (0 = no timeout)")):
    """Start the lending API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting lending API on http://{host}:{port}/")
    try:
        webbrowser.open(url)
    except Exception:
        pass

    args = [
        sys.executable,
        "-m", "uvicorn",
        "lending.api:app",
        "--host", host,
        "--port", str(port),
    ]
    if timeout and timeout > 0:
        start_new_session = os.name != "nt"
        proc = subprocess.Popen(args, start_new_session=start_new_session)
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
    else:
        args.append("--reload")
        subprocess.run(args)


@app.command("menu")
def cli_menu():
    """Open the interactive menu."""
    run_menu()


# --- Interactive menu ---
def _prompt_id(label: str) -> Optional[str]:
    return _require_id(Prompt.ask(f"Enter {label} ID"), label)


@handle_api_errors
def add_book():
    title = Prompt.ask("Enter book title")
    author = Prompt.ask("Enter book author")
    category = Prompt.ask("Enter book category", default="")
    if not TextValidator.validate_title(title) or not TextValidator.validate_author(author):
        console.print("[yellow]Title and author are required.[/]")
        return
    book = get_client().add_book(title, author, category)
    console.print(f"[green]Book added successfully.[/] ID: [bold]{book['id']}[/]")


@handle_api_errors
def add_member():
    name = Prompt.ask("Enter member name")
    if not TextValidator.validate_name(name):
        console.print("[yellow]Member name must contain letters.[/]")
        return
    member = get_client().add_member(name)
    console.print(f"[green]Member added successfully.[/] ID: [bold]{member['id']}[/]")


@handle_api_errors
def borrow_book():
    book_id = _prompt_id("book")
    if not book_id:
        return
    member_id = _prompt_id("member")
    if not member_id:
        return
    get_client().borrow_book(book_id, member_id)
    console.print("[green]Book borrowed successfully.[/]")


@handle_api_errors
def return_book():
    book_id = _prompt_id("book")
    if not book_id:
        return
    member_id = _prompt_id("member")
    if not member_id:
        return
    get_client().return_book(book_id, member_id)
    console.print("[green]Book returned successfully.[/]")


@handle_api_errors
def show_overdue():
    console.print("[bold]Overdue Books:[/]")
    print_transactions(get_client().overdue_transactions(), empty_message="No overdue books.")


@handle_api_errors
def show_books():
    print_books(get_client().list_books())


@handle_api_errors
def show_members():
    print_members(get_client().list_members())


@handle_api_errors
def search_books():
    title = Prompt.ask("Title contains", default="") or None
    author = Prompt.ask("Author contains", default="") or None
    category = Prompt.ask("Category contains", default="") or None
    print_books(get_client().search_books(title=title, author=author, category=category))


@handle_api_errors
def show_borrowed():
    member_id = _prompt_id("member")
    if not member_id:
        return
    print_books(get_client().borrowed_books(member_id))


MENU_ITEMS = [
    ("1", "Add Book", add_book),
    ("2", "Add Member", add_member),
    ("3", "Borrow Book", borrow_book),
    ("4", "Return Book", return_book),
    ("5", "Display Overdue Books", show_overdue),
    ("6", "Display All Books", show_books),
    ("7", "Display All Members", show_members),
    ("8", "Search Books", search_books),
    ("9", "Get Member's Borrowed Books", show_borrowed),
    ("0", "Exit", None),
]


def run_menu():
    """Simple interactive menu for the lending CLI."""
    def render_menu() -> None:
        table = Table.grid(padding=(0, 2))
        table.add_column(justify="right", style="bold cyan", width=4)
        table.add_column(justify="left", style="white")
        for key, label, _ in MENU_ITEMS:
            table.add_row(f"[reverse]{key}[/]", label)

        console.print(Panel(
            table,
            title=APP_NAME,
            border_style="cyan",
            box=box.HEAVY,
            padding=(1, 2),
        ))

    actions = {key: action for key, _, action in MENU_ITEMS}
    while True:
        render_menu()
        choice = Prompt.ask("Select an option", choices=list(actions), default="6").strip()
        action = actions.get(choice)
        if action is None:
            console.print("[green]Goodbye![/]")
            break
        action()
        print()  # blank line between operations


if __name__ == "__main__":
    if len(sys.argv) > 1:
        app()
    else:
        run_menu()
