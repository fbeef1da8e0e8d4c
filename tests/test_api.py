"""Tests for the Miniflux API client."""

from unittest.mock import Mock

import pytest
import requests

from fluxreader.api import (
    APIError,
    AuthenticationError,
    InvalidResponseError,
    MinifluxClient,
    MinifluxError,
    NetworkError,
)
from fluxreader.config import Settings
from fluxreader.direction import NavigationQuery, SortDirection
from fluxreader.models import ContextKind


def make_response(status_code=200, json_data=None, content=b"{}"):
    response = Mock()
    response.status_code = status_code
    response.content = content
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(session):
    return MinifluxClient("https://rss.example.com/", "secret", connect_timeout=5, read_timeout=20, session=session)


def make_query(kind, scope_id=None):
    return NavigationQuery(
        kind, scope_id, ("unread",), "published_at", SortDirection.ASC, published_after=1000
    )


class TestRequest:
    """Tests for request handling."""

    def test_sends_token_and_timeouts(self, client, session):
        """Test auth header, URL and (connect, read) timeout."""
        session.request.return_value = make_response(json_data={"username": "me"})

        assert client.get_me() == {"username": "me"}

        args, kwargs = session.request.call_args
        assert args == ("GET", "https://rss.example.com/v1/me")
        assert kwargs["headers"]["X-Auth-Token"] == "secret"
        assert kwargs["timeout"] == (5, 20)

    def test_timeout_raises_network_error(self, client, session):
        """Test that timeouts become NetworkError."""
        session.request.side_effect = requests.Timeout("too slow")

        with pytest.raises(NetworkError):
            client.get_me()

    def test_connection_error_raises_network_error(self, client, session):
        """Test that connection failures become NetworkError."""
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NetworkError):
            client.get_me()

    def test_unauthorized(self, client, session):
        """Test that 401 raises AuthenticationError."""
        session.request.return_value = make_response(401, json_data={"error_message": "Access Unauthorized"})

        with pytest.raises(AuthenticationError) as exc_info:
            client.get_me()

        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Access Unauthorized"

    def test_server_error_uses_default_message(self, client, session):
        """Test that a non-JSON error body gives a default message."""
        session.request.return_value = make_response(500, json_data=ValueError("no json"))

        with pytest.raises(APIError) as exc_info:
            client.get_me()

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Internal server error"

    def test_invalid_json(self, client, session):
        """Test that a non-JSON success body raises InvalidResponseError."""
        session.request.return_value = make_response(json_data=ValueError("bad"), content=b"<html>")

        with pytest.raises(InvalidResponseError):
            client.get_me()

    def test_empty_body(self, client, session):
        """Test that 204 with no body succeeds."""
        session.request.return_value = make_response(204, content=b"")

        client.update_entries(1, "read")

    def test_unconfigured_client(self, session):
        """Test that a client without token refuses to send requests."""
        client = MinifluxClient("https://rss.example.com", "", session=session)

        with pytest.raises(MinifluxError):
            client.get_me()
        session.request.assert_not_called()

    def test_from_settings(self):
        """Test building a client from settings."""
        settings = Settings(server_address="https://rss.example.com", api_token="t", connect_timeout=3.0)
        client = MinifluxClient.from_settings(settings)

        assert client.server_address == "https://rss.example.com"
        assert client.timeout == (3.0, 30.0)


class TestEntries:
    """Tests for entry endpoints."""

    def test_get_entries(self, client, session):
        """Test converting an entries page."""
        session.request.return_value = make_response(
            json_data={"total": 2, "entries": [{"id": 1, "title": "One"}, {"id": 2, "title": "Two"}]}
        )

        page = client.get_entries({"status": ["unread"]})

        assert page.total == 2
        assert [entry.id for entry in page.entries] == [1, 2]
        assert session.request.call_args[1]["params"] == {"status": ["unread"]}

    @pytest.mark.parametrize(
        "kind,scope_id,path",
        [
            (ContextKind.GLOBAL, None, "/v1/entries"),
            (ContextKind.FEED, 7, "/v1/feeds/7/entries"),
            (ContextKind.CATEGORY, 3, "/v1/categories/3/entries"),
        ],
    )
    def test_query_uses_scoped_endpoint(self, client, session, kind, scope_id, path):
        """Test that navigation queries hit the endpoint of their scope."""
        session.request.return_value = make_response(json_data={"total": 0, "entries": []})

        client.query(make_query(kind, scope_id))

        args, kwargs = session.request.call_args
        assert args[1] == "https://rss.example.com" + path
        assert kwargs["params"]["published_after"] == 1000
        assert kwargs["params"]["limit"] == 1

    def test_update_entries(self, client, session):
        """Test the status update body."""
        session.request.return_value = make_response(204, content=b"")

        client.update_entries([1, 2], "read")

        args, kwargs = session.request.call_args
        assert args == ("PUT", "https://rss.example.com/v1/entries")
        assert kwargs["json"] == {"entry_ids": [1, 2], "status": "read"}

    @pytest.mark.parametrize(
        "body",
        [
            [],
            "entries",
            {"total": 1, "entries": {"id": 1}},
            {"total": 1, "entries": [{"title": "no id"}]},
            {"total": 1, "entries": [{"id": "abc"}]},
            {"total": 1, "entries": ["not an object"]},
        ],
    )
    def test_malformed_entries_page(self, client, session, body):
        """Test that a success status with an unexpected body raises InvalidResponseError."""
        session.request.return_value = make_response(json_data=body)

        with pytest.raises(InvalidResponseError):
            client.get_entries()

    def test_malformed_single_entry(self, client, session):
        """Test that an entry without an id raises InvalidResponseError."""
        session.request.return_value = make_response(json_data={"title": "no id"})

        with pytest.raises(InvalidResponseError):
            client.get_entry(5)

    def test_entries_url_repeats_list_params(self, client):
        """Test that list values become repeated query parameters."""
        url = client.entries_url({"status": ["unread", "read"], "limit": 1})

        assert url == "https://rss.example.com/v1/entries?status=unread&status=read&limit=1"


class TestFeedsAndCategories:
    """Tests for feed and category endpoints."""

    def test_get_feeds(self, client, session):
        """Test converting feeds."""
        session.request.return_value = make_response(
            json_data=[
                {
                    "id": 7,
                    "title": "Example",
                    "site_url": "https://example.com",
                    "feed_url": "https://example.com/feed",
                    "category": {"id": 3, "title": "News"},
                    "parsing_error_message": "",
                }
            ]
        )

        feeds = client.get_feeds()

        assert len(feeds) == 1
        assert feeds[0].category.title == "News"
        assert feeds[0].parsing_error_message is None

    def test_get_feed_counters(self, client, session):
        """Test that counter keys become ints."""
        session.request.return_value = make_response(json_data={"reads": {"7": 3}, "unreads": {"7": 2}})

        counters = client.get_feed_counters()

        assert counters.reads == {7: 3}
        assert counters.unreads == {7: 2}

    def test_get_categories_with_counts(self, client, session):
        """Test category counts."""
        session.request.return_value = make_response(json_data=[{"id": 3, "title": "News", "total_unread": 4}])

        categories = client.get_categories(counts=True)

        assert categories[0].total_unread == 4
        assert session.request.call_args[1]["params"] == {"counts": "true"}

    def test_mark_feed_read(self, client, session):
        """Test marking a feed read."""
        session.request.return_value = make_response(204, content=b"")

        client.mark_feed_read(7)

        assert session.request.call_args[0] == ("PUT", "https://rss.example.com/v1/feeds/7/mark-all-as-read")
