"""HTTP client for the lending API, used by the console application."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from lending.config import settings

logger = logging.getLogger(__name__)


class ExternalServiceError(Exception):
    """The lending API could not be reached."""


class LendingAPIError(Exception):
    """The lending API answered with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class LendingClient:
    """Thin synchronous wrapper over the lending HTTP endpoints.

    Any ``httpx.Client`` can be injected, e.g. FastAPI's ``TestClient``.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 http: Optional[httpx.Client] = None) -> None:
        self._owns_http = http is None
        self._http = http or httpx.Client(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.http_timeout,
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = self._http.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise ExternalServiceError("Cannot reach the lending API") from exc

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.reason_phrase)
            except ValueError:
                detail = resp.reason_phrase
            raise LendingAPIError(resp.status_code, str(detail))
        if not resp.content:
            return None
        return resp.json()

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/books")

    def get_book(self, book_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/books/{book_id}")

    def search_books(self, title: Optional[str] = None, author: Optional[str] = None,
                     category: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("title", title), ("author", author), ("category", category)) if v}
        return self._request("GET", "/books/search", params=params)

    def add_book(self, title: str, author: str, category: str = "") -> Dict[str, Any]:
        return self._request("POST", "/books", json={"title": title, "author": author, "category": category})

    def borrowed_books(self, member_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/books/member/{member_id}/borrowed")

    # ------------------------- Members ------------------------- #
    def list_members(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/members")

    def add_member(self, name: str) -> Dict[str, Any]:
        return self._request("POST", "/members", json={"name": name})

    # ------------------------- Transactions ------------------------- #
    def borrow_book(self, book_id: str, member_id: str) -> Dict[str, Any]:
        return self._request("POST", "/transactions/borrow", json={"book_id": book_id, "member_id": member_id})

    def return_book(self, book_id: str, member_id: str) -> Dict[str, Any]:
        return self._request("POST", "/transactions/return", json={"book_id": book_id, "member_id": member_id})

    def overdue_transactions(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/transactions/overdue")

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", "/stats")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()
