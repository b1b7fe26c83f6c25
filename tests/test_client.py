import httpx
import pytest

from lending.client import ExternalServiceError, LendingAPIError, LendingClient


def test_book_and_member_round_trip(api_client):
    book = api_client.add_book("Dune", "Frank Herbert", "Science Fiction")
    member = api_client.add_member("Ada Lovelace")

    assert api_client.get_book(book["id"])["title"] == "Dune"
    assert [b["id"] for b in api_client.list_books()] == [book["id"]]
    assert [m["id"] for m in api_client.list_members()] == [member["id"]]
    assert api_client.search_books(title="dune")[0]["author"] == "Frank Herbert"


def test_borrow_return_cycle(api_client):
    book = api_client.add_book("Dune", "Frank Herbert")
    member = api_client.add_member("Ada Lovelace")

    loan = api_client.borrow_book(book["id"], member["id"])
    assert loan["status"] == "BORROWED"
    assert [b["id"] for b in api_client.borrowed_books(member["id"])] == [book["id"]]

    returned = api_client.return_book(book["id"], member["id"])
    assert returned["status"] == "RETURNED"
    assert api_client.stats()["open_loans"] == 0
    assert api_client.overdue_transactions() == []


def test_api_errors_carry_status_and_detail(api_client):
    with pytest.raises(LendingAPIError) as excinfo:
        api_client.get_book("0" * 32)
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Book not found."

    with pytest.raises(LendingAPIError) as excinfo:
        api_client.borrow_book("0" * 32, "0" * 32)
    assert excinfo.value.status_code == 400
    assert str(excinfo.value) == "Cannot borrow the book."


def test_unreachable_server():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(base_url="http://lending.invalid", transport=httpx.MockTransport(refuse))
    client = LendingClient(http=http)

    with pytest.raises(ExternalServiceError):
        client.list_books()
    http.close()
