"""
Tests for the Google Books client, against a mocked transport.
"""

import httpx
import pytest

from bookshelf.exceptions import ConfigurationError, LookupNotFoundError, LookupUnavailableError
from bookshelf.isbn_lookup import GOOGLE_BOOKS_URL, GoogleBooksClient


def _client(handler, api_key="test-google-key") -> GoogleBooksClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleBooksClient(http_client, api_key)


@pytest.mark.asyncio
async def test_lookup_returns_first_volume(sample_volume_payload):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=sample_volume_payload)

    volume = await _client(handler).lookup("9780544003415")

    assert volume.title == "The Hobbit"
    assert volume.authors == ["J.R.R. Tolkien", "Christopher Tolkien"]
    assert volume.published_date == "2012-02-15"
    assert volume.image_links.thumbnail.startswith("http://books.google.com/")

    request = seen[0]
    assert str(request.url).startswith(GOOGLE_BOOKS_URL)
    assert request.url.params["q"] == "isbn:9780544003415"
    assert request.url.params["key"] == "test-google-key"


@pytest.mark.asyncio
async def test_unknown_fields_are_ignored(sample_volume_payload):
    sample_volume_payload["items"][0]["volumeInfo"]["pageCount"] = 300
    sample_volume_payload["items"][0]["saleInfo"] = {"country": "US"}

    volume = await _client(lambda request: httpx.Response(200, json=sample_volume_payload)).lookup("9780544003415")

    assert volume.title == "The Hobbit"


@pytest.mark.asyncio
@pytest.mark.parametrize("api_key", ["", "   ", None])
async def test_missing_api_key_is_configuration_error(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(ConfigurationError):
        await _client(handler, api_key=api_key).lookup("9780544003415")
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 403, 500, 503])
async def test_error_status_is_unavailable(status):
    with pytest.raises(LookupUnavailableError):
        await _client(lambda request: httpx.Response(status)).lookup("9780544003415")


@pytest.mark.asyncio
async def test_connection_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LookupUnavailableError):
        await _client(handler).lookup("9780544003415")


@pytest.mark.asyncio
async def test_timeout_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(LookupUnavailableError):
        await _client(handler).lookup("9780544003415")


@pytest.mark.asyncio
async def test_unreadable_body_is_unavailable():
    with pytest.raises(LookupUnavailableError):
        await _client(lambda request: httpx.Response(200, content=b"<html>oops</html>")).lookup("9780544003415")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"kind": "books#volumes", "totalItems": 0},
    {"kind": "books#volumes", "totalItems": 0, "items": []},
])
async def test_no_match_is_not_found(payload):
    with pytest.raises(LookupNotFoundError) as exc_info:
        await _client(lambda request: httpx.Response(200, json=payload)).lookup("9780544003415")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Book not found in Google Books database"


@pytest.mark.asyncio
async def test_match_without_volume_info_is_not_found():
    payload = {"totalItems": 1, "items": [{"id": "abc"}]}

    with pytest.raises(LookupNotFoundError) as exc_info:
        await _client(lambda request: httpx.Response(200, json=payload)).lookup("9780544003415")
    assert exc_info.value.message == "Book information incomplete in database"
