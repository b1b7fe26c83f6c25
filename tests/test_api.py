from datetime import timedelta


def _add_book(client, title="Dune", author="Frank Herbert", category="Science Fiction"):
    response = client.post("/books", json={"title": title, "author": author, "category": category})
    assert response.status_code == 201
    return response.json()


def _add_member(client, name="Ada Lovelace"):
    response = client.post("/members", json={"name": name})
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_get_books(client):
    response = client.get("/books")
    assert response.status_code == 200
    assert response.json() == []


def test_add_and_get_book(client):
    book = _add_book(client)
    assert book["is_available"] is True

    response = client.get(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Dune"


def test_get_missing_book(client):
    response = client.get("/books/" + "0" * 32)
    assert response.status_code == 404
    assert response.json()["detail"] == "Book not found."


def test_add_book_validation(client):
    assert client.post("/books", json={"title": "", "author": "Someone"}).status_code == 422
    response = client.post("/books", json={"title": "Numbers", "author": "12345"})
    assert response.status_code == 400


def test_update_and_delete_book(client):
    book = _add_book(client)

    response = client.put(f"/books/{book['id']}", json={"category": "Classics"})
    assert response.status_code == 200
    assert response.json()["category"] == "Classics"
    assert response.json()["title"] == "Dune"

    assert client.put(f"/books/{book['id']}", json={}).status_code == 400
    assert client.put("/books/" + "0" * 32, json={"title": "X"}).status_code == 404

    response = client.delete(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Book removed."}
    assert client.delete(f"/books/{book['id']}").status_code == 404


def test_search_books(client):
    _add_book(client, "The Hobbit", "J.R.R. Tolkien", "Fantasy")
    _add_book(client, "Neuromancer", "William Gibson", "Cyberpunk")

    response = client.get("/books/search", params={"author": "tolkien"})
    assert response.status_code == 200
    assert [b["title"] for b in response.json()] == ["The Hobbit"]

    response = client.get("/books/search", params={"author": "tolkien", "category": "cyber"})
    assert response.json() == []


def test_member_endpoints(client):
    member = _add_member(client)
    assert member["borrowed_books_count"] == 0

    assert client.get(f"/members/{member['id']}").json()["name"] == "Ada Lovelace"
    assert len(client.get("/members").json()) == 1

    response = client.put(f"/members/{member['id']}", json={"name": "Ada King"})
    assert response.status_code == 200
    assert response.json()["name"] == "Ada King"

    assert client.post("/members", json={"name": "42"}).status_code == 400
    assert client.delete(f"/members/{member['id']}").status_code == 200
    assert client.get(f"/members/{member['id']}").status_code == 404


def test_borrow_and_return(client, clock):
    book = _add_book(client)
    member = _add_member(client)
    payload = {"book_id": book["id"], "member_id": member["id"]}

    response = client.post("/transactions/borrow", json=payload)
    assert response.status_code == 201
    loan = response.json()
    assert loan["status"] == "BORROWED"
    assert loan["is_overdue"] is False
    assert loan["returned_date"] is None

    assert client.get(f"/books/{book['id']}").json()["is_available"] is False
    assert client.get(f"/members/{member['id']}").json()["borrowed_books_count"] == 1
    borrowed = client.get(f"/books/member/{member['id']}/borrowed").json()
    assert [b["id"] for b in borrowed] == [book["id"]]

    clock.advance(days=2)
    response = client.post("/transactions/return", json=payload)
    assert response.status_code == 200
    assert response.json()["id"] == loan["id"]
    assert response.json()["status"] == "RETURNED"

    assert client.get(f"/books/{book['id']}").json()["is_available"] is True
    assert client.get(f"/books/member/{member['id']}/borrowed").json() == []


def test_borrow_rejected(client):
    book = _add_book(client)
    member = _add_member(client)
    payload = {"book_id": book["id"], "member_id": member["id"]}
    client.post("/transactions/borrow", json=payload)

    response = client.post("/transactions/borrow", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot borrow the book."

    response = client.post("/transactions/borrow", json={"book_id": "x", "member_id": member["id"]})
    assert response.status_code == 400


def test_return_without_active_transaction(client):
    book = _add_book(client)
    member = _add_member(client)

    response = client.post("/transactions/return", json={"book_id": book["id"], "member_id": member["id"]})
    assert response.status_code == 404
    assert response.json()["detail"] == "No active transaction found for the book and member."


def test_delete_guards(client):
    book = _add_book(client)
    member = _add_member(client)
    client.post("/transactions/borrow", json={"book_id": book["id"], "member_id": member["id"]})

    assert client.delete(f"/books/{book['id']}").status_code == 409
    assert client.delete(f"/members/{member['id']}").status_code == 409


def test_overdue_transactions(client, clock):
    book = _add_book(client)
    member = _add_member(client)
    client.post("/transactions/borrow", json={"book_id": book["id"], "member_id": member["id"]})

    assert client.get("/transactions/overdue").json() == []

    clock.advance(days=15)
    overdue = client.get("/transactions/overdue").json()
    assert len(overdue) == 1
    assert overdue[0]["book_id"] == book["id"]
    assert overdue[0]["is_overdue"] is True


def test_list_transactions(client, clock):
    member = _add_member(client)
    other = _add_member(client, "Grace Hopper")
    first = _add_book(client, "Book A", "Author")
    second = _add_book(client, "Book B", "Author")

    client.post("/transactions/borrow", json={"book_id": first["id"], "member_id": member["id"]})
    clock.advance(minutes=5)
    client.post("/transactions/borrow", json={"book_id": second["id"], "member_id": other["id"]})
    client.post("/transactions/return", json={"book_id": first["id"], "member_id": member["id"]})

    assert len(client.get("/transactions").json()) == 2
    open_loans = client.get("/transactions", params={"open_only": True}).json()
    assert [t["book_id"] for t in open_loans] == [second["id"]]
    mine = client.get("/transactions", params={"member_id": member["id"]}).json()
    assert [t["status"] for t in mine] == ["RETURNED"]


def test_stats(client, clock):
    book = _add_book(client)
    member = _add_member(client)
    client.post("/transactions/borrow", json={"book_id": book["id"], "member_id": member["id"]})
    clock.advance(days=15)

    response = client.get("/stats")
    assert response.status_code == 200
    assert response.json() == {
        "total_books": 1,
        "available_books": 0,
        "total_members": 1,
        "open_loans": 1,
        "overdue_loans": 1,
    }


def test_due_date_is_fourteen_days_out(client, clock):
    book = _add_book(client)
    member = _add_member(client)
    loan = client.post("/transactions/borrow", json={"book_id": book["id"], "member_id": member["id"]}).json()

    assert loan["borrowed_date"].startswith(clock.now.date().isoformat())
    assert loan["due_date"].startswith((clock.now + timedelta(days=14)).date().isoformat())
