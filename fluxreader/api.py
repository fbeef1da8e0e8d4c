"""Miniflux REST API client for fluxreader."""

import logging
from typing import Any, Iterable, Optional, Union

import requests

from .direction import NavigationQuery
from .models import Category, ContextKind, EntriesPage, Entry, Feed, FeedCounters

logger = logging.getLogger(__name__)

USER_AGENT = "fluxreader/1.0"


class MinifluxError(Exception):
    """Base error for Miniflux API calls."""

    pass


class NetworkError(MinifluxError):
    """Raised when the server cannot be reached (DNS, connect, timeout)."""

    pass


class AuthenticationError(MinifluxError):
    """Raised when the server rejects the API token."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class APIError(MinifluxError):
    """Raised for any other non-success HTTP response."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class InvalidResponseError(MinifluxError):
    """Raised when the server answers with something that is not JSON."""

    pass


class MinifluxClient:
    """Thin client over the Miniflux v1 API."""

    def __init__(
        self,
        server_address: str,
        api_token: str,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            server_address: Base URL of the Miniflux server
            api_token: API token sent as X-Auth-Token
            connect_timeout: Seconds to wait for the TCP connection
            read_timeout: Seconds to wait for the response once connected
            session: Optional requests session (for connection reuse and tests)
        """
        self.server_address = (server_address or "").rstrip("/")
        self.api_token = api_token or ""
        self.timeout = (connect_timeout, read_timeout)
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "MinifluxClient":
        return cls(
            settings.server_address,
            settings.api_token,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
        )

    # Entries

    def get_entries(self, params: Optional[dict[str, Any]] = None) -> EntriesPage:
        return self._entries_page(self._request("GET", "/entries", params=params))

    def get_feed_entries(self, feed_id: int, params: Optional[dict[str, Any]] = None) -> EntriesPage:
        return self._entries_page(self._request("GET", f"/feeds/{feed_id}/entries", params=params))

    def get_category_entries(
        self, category_id: int, params: Optional[dict[str, Any]] = None
    ) -> EntriesPage:
        data = self._request("GET", f"/categories/{category_id}/entries", params=params)
        return self._entries_page(data)

    def get_entry(self, entry_id: int) -> Entry:
        return _entry(self._request("GET", f"/entries/{entry_id}"))

    def query(self, navigation_query: NavigationQuery) -> EntriesPage:
        """Run a navigation query against the endpoint matching its scope.

        Feed and category scopes use their own endpoints so the scope is
        always part of the request.
        """
        params = navigation_query.to_params()
        if navigation_query.scope_kind is ContextKind.FEED:
            return self.get_feed_entries(navigation_query.scope_id, params)
        if navigation_query.scope_kind is ContextKind.CATEGORY:
            return self.get_category_entries(navigation_query.scope_id, params)
        return self.get_entries(params)

    def update_entries(self, entry_ids: Union[int, Iterable[int]], status: str) -> None:
        """Set the status of one or more entries."""
        if isinstance(entry_ids, int):
            entry_ids = [entry_ids]
        self._request("PUT", "/entries", json={"entry_ids": list(entry_ids), "status": status})

    # Feeds

    def get_feeds(self) -> list[Feed]:
        return [self._feed(item) for item in self._request("GET", "/feeds") or []]

    def get_feed_counters(self) -> FeedCounters:
        data = self._request("GET", "/feeds/counters") or {}
        return FeedCounters(
            reads={int(k): v for k, v in (data.get("reads") or {}).items()},
            unreads={int(k): v for k, v in (data.get("unreads") or {}).items()},
        )

    def mark_feed_read(self, feed_id: int) -> None:
        self._request("PUT", f"/feeds/{feed_id}/mark-all-as-read")

    # Categories

    def get_categories(self, counts: bool = False) -> list[Category]:
        params = {"counts": "true"} if counts else None
        return [
            Category(
                id=item["id"],
                title=item.get("title") or "",
                total_unread=item.get("total_unread"),
            )
            for item in self._request("GET", "/categories", params=params) or []
        ]

    def mark_category_read(self, category_id: int) -> None:
        self._request("PUT", f"/categories/{category_id}/mark-all-as-read")

    # User

    def get_me(self) -> dict[str, Any]:
        return self._request("GET", "/me")

    def entries_url(self, params: Optional[dict[str, Any]] = None) -> str:
        """Full URL of the entries endpoint, usable as a cache key."""
        request = requests.Request("GET", self._url("/entries"), params=params).prepare()
        return request.url

    def _url(self, endpoint: str) -> str:
        return f"{self.server_address}/v1{endpoint}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and decode the JSON answer.

        Raises:
            MinifluxError: If the client is not configured
            NetworkError: If the server cannot be reached in time
            AuthenticationError: On HTTP 401/403
            APIError: On any other error status
            InvalidResponseError: If the body is not JSON
        """
        if not self.server_address or not self.api_token:
            raise MinifluxError("Server address and API token must be configured")

        url = self._url(endpoint)
        headers = {"X-Auth-Token": self.api_token, "User-Agent": USER_AGENT}
        try:
            response = self.session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.warning("Timeout: %s %s", method, url)
            raise NetworkError(f"Request timed out: {e}") from e
        except requests.RequestException as e:
            logger.warning("Network error: %s %s: %s", method, url, e)
            raise NetworkError(f"Network error occurred: {e}") from e

        logger.debug("%s %s -> %s", method, url, response.status_code)

        if response.status_code in (200, 201, 204):
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise InvalidResponseError("Invalid JSON response from server") from e

        message = _error_message(response)
        if response.status_code in (401, 403):
            raise AuthenticationError(response.status_code, message)
        raise APIError(response.status_code, message)

    @staticmethod
    def _entries_page(data: Any) -> EntriesPage:
        if not isinstance(data, dict):
            raise InvalidResponseError("Unexpected entries response from server")
        items = data.get("entries") or []
        if not isinstance(items, list):
            raise InvalidResponseError("Unexpected entries response from server")
        entries = [_entry(item) for item in items]
        return EntriesPage(total=data.get("total", len(entries)), entries=entries)

    @staticmethod
    def _feed(item: dict[str, Any]) -> Feed:
        category = item.get("category")
        return Feed(
            id=item["id"],
            title=item.get("title") or "",
            site_url=item.get("site_url"),
            feed_url=item.get("feed_url"),
            category=(
                Category(id=category["id"], title=category.get("title") or "")
                if category
                else None
            ),
            parsing_error_message=item.get("parsing_error_message") or None,
        )


def _error_message(response: requests.Response) -> str:
    """Prefer the server's error_message, else a generic message per status."""
    try:
        data = response.json()
        if isinstance(data, dict) and data.get("error_message"):
            return data["error_message"]
    except ValueError:
        pass

    defaults = {
        400: "Bad request",
        401: "Unauthorized - please check your API token",
        403: "Forbidden - access denied",
        404: "Not found",
        500: "Internal server error",
    }
    return defaults.get(response.status_code, f"HTTP error: {response.status_code}")


def _entry(data: Any) -> Entry:
    """Decode one entry, rejecting payloads without a usable id."""
    try:
        return Entry.from_api(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvalidResponseError(f"Malformed entry in server response: {e!r}") from e
