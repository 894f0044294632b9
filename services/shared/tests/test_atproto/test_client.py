"""Tests for AtprotoClient."""

import json
from datetime import UTC, datetime, timedelta
from email.utils import format_datetime

import httpx
import pytest
import respx

from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.exceptions import (
    AtprotoAuthError,
    AtprotoRateLimitError,
    AtprotoRequestError,
    AtprotoServerError,
)
from teal_shared.atproto.models import AtprotoSession

PDS = "https://pds.example.com"
LIST_URL = f"{PDS}/xrpc/com.atproto.repo.listRecords"
APPLY_URL = f"{PDS}/xrpc/com.atproto.repo.applyWrites"
DELETE_URL = f"{PDS}/xrpc/com.atproto.repo.deleteRecord"
SESSION_URL = f"{PDS}/xrpc/com.atproto.server.createSession"
COLLECTION = "fm.teal.alpha.feed.play"


def _session() -> AtprotoSession:
    return AtprotoSession(did="did:plc:abc123", handle="alice.test", access_jwt="jwt-token")


def _client(**kwargs: object) -> AtprotoClient:
    return AtprotoClient(PDS, session=_session(), **kwargs)  # type: ignore[arg-type]


def _list_json(count: int = 1, cursor: str | None = None) -> dict[str, object]:
    records = [
        {
            "uri": f"at://did:plc:abc123/{COLLECTION}/3kabc{i}",
            "cid": f"bafy{i}",
            "value": {
                "$type": COLLECTION,
                "trackName": f"Track {i}",
                "artists": [{"artistName": f"Artist {i}"}],
                "playedTime": f"2024-01-15T10:{i:02d}:00Z",
            },
        }
        for i in range(count)
    ]
    body: dict[str, object] = {"records": records}
    if cursor is not None:
        body["cursor"] = cursor
    return body


@respx.mock
async def test_create_session_stores_did() -> None:
    """createSession response becomes the client's session."""
    route = respx.post(SESSION_URL).mock(
        return_value=httpx.Response(
            200,
            json={"did": "did:plc:xyz", "handle": "bob.test", "accessJwt": "a", "refreshJwt": "r"},
        )
    )

    client = AtprotoClient(PDS, max_retries=0)
    assert client.did is None
    session = await client.create_session("bob.test", "app-password")

    assert session.did == "did:plc:xyz"
    assert client.did == "did:plc:xyz"
    body = json.loads(route.calls[0].request.content)
    assert body == {"identifier": "bob.test", "password": "app-password"}
    assert "Authorization" not in route.calls[0].request.headers


@respx.mock
async def test_create_session_bad_password_raises_auth_error() -> None:
    """401 from createSession raises AtprotoAuthError with the server's message."""
    respx.post(SESSION_URL).mock(
        return_value=httpx.Response(401, json={"error": "AuthenticationRequired", "message": "Invalid password"})
    )

    client = AtprotoClient(PDS, max_retries=0)
    with pytest.raises(AtprotoAuthError, match="Invalid password"):
        await client.create_session("bob.test", "wrong")


async def test_repo_call_without_session_raises_auth_error() -> None:
    """Authenticated calls fail fast before any HTTP request without a session."""
    client = AtprotoClient(PDS, max_retries=0)
    with pytest.raises(AtprotoAuthError):
        await client.list_records(COLLECTION)


@respx.mock
async def test_list_records_passes_repo_collection_and_cursor() -> None:
    """listRecords sends repo, collection, limit and cursor and parses the page."""
    route = respx.get(LIST_URL).mock(return_value=httpx.Response(200, json=_list_json(2, cursor="next-page")))

    client = _client(max_retries=0)
    page = await client.list_records(COLLECTION, limit=500, cursor="abc")

    assert len(page.records) == 2
    assert page.cursor == "next-page"
    request = route.calls[0].request
    assert request.url.params["repo"] == "did:plc:abc123"
    assert request.url.params["collection"] == COLLECTION
    assert request.url.params["limit"] == "100"  # clamped to the listing maximum
    assert request.url.params["cursor"] == "abc"
    assert request.headers["Authorization"] == "Bearer jwt-token"


@respx.mock
async def test_apply_writes_sends_writes_and_parses_results() -> None:
    """applyWrites posts the batch for the session repo."""
    route = respx.post(APPLY_URL).mock(
        return_value=httpx.Response(
            200,
            json={"results": [{"uri": "at://x/y/z", "cid": "c1", "validationStatus": "valid"}]},
        )
    )
    writes = [{"$type": "com.atproto.repo.applyWrites#create", "collection": COLLECTION, "value": {}}]

    client = _client(max_retries=0)
    response = await client.apply_writes(writes)

    assert response.results is not None
    assert len(response.results) == 1
    body = json.loads(route.calls[0].request.content)
    assert body["repo"] == "did:plc:abc123"
    assert body["writes"] == writes


@respx.mock
async def test_apply_writes_empty_body() -> None:
    """A 200 with no body parses as a response without results."""
    respx.post(APPLY_URL).mock(return_value=httpx.Response(200))

    client = _client(max_retries=0)
    response = await client.apply_writes([])
    assert response.results is None


@respx.mock
async def test_delete_record() -> None:
    """deleteRecord posts repo, collection and rkey."""
    route = respx.post(DELETE_URL).mock(return_value=httpx.Response(200, json={}))

    client = _client(max_retries=0)
    await client.delete_record(COLLECTION, "3kabc0")

    body = json.loads(route.calls[0].request.content)
    assert body == {"repo": "did:plc:abc123", "collection": COLLECTION, "rkey": "3kabc0"}


@respx.mock
async def test_429_retries_and_succeeds() -> None:
    """429 with Retry-After header retries and eventually succeeds."""
    respx.get(LIST_URL).mock(
        side_effect=[
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json=_list_json(1)),
        ]
    )

    client = _client(max_retries=1, retry_base_delay=0.0)
    page = await client.list_records(COLLECTION)
    assert len(page.records) == 1


@respx.mock
async def test_429_exhausted_raises_rate_limit_error() -> None:
    """Persistent 429 raises AtprotoRateLimitError."""
    respx.post(APPLY_URL).mock(return_value=httpx.Response(429, headers={"Retry-After": "0"}))

    client = _client(max_retries=1, retry_base_delay=0.0)
    with pytest.raises(AtprotoRateLimitError):
        await client.apply_writes([])


@respx.mock
async def test_5xx_retries_and_succeeds() -> None:
    """5xx retries with backoff and succeeds on next attempt."""
    respx.get(LIST_URL).mock(
        side_effect=[
            httpx.Response(503, text="Service Unavailable"),
            httpx.Response(200, json=_list_json(1)),
        ]
    )

    client = _client(max_retries=1, retry_base_delay=0.0)
    page = await client.list_records(COLLECTION)
    assert len(page.records) == 1


@respx.mock
async def test_5xx_exhausted_raises_server_error() -> None:
    """Persistent 5xx raises AtprotoServerError."""
    respx.get(LIST_URL).mock(return_value=httpx.Response(500, text="Internal Server Error"))

    client = _client(max_retries=1, retry_base_delay=0.0)
    with pytest.raises(AtprotoServerError, match="500"):
        await client.list_records(COLLECTION)


@respx.mock
async def test_4xx_raises_request_error_immediately() -> None:
    """Non-retryable 4xx raises AtprotoRequestError without retrying."""
    route = respx.post(APPLY_URL).mock(
        return_value=httpx.Response(400, json={"error": "InvalidRequest", "message": "Record already exists"})
    )

    client = _client(max_retries=3)
    with pytest.raises(AtprotoRequestError, match="Record already exists"):
        await client.apply_writes([])
    assert route.call_count == 1


@respx.mock
async def test_429_with_http_date_retry_after_retries() -> None:
    """Retry-After given as an HTTP-date is honored instead of crashing."""
    respx.get(LIST_URL).mock(
        side_effect=[
            httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            httpx.Response(200, json=_list_json(1)),
        ]
    )

    client = _client(max_retries=1, retry_base_delay=0.0)
    page = await client.list_records(COLLECTION)
    assert len(page.records) == 1


@respx.mock
async def test_429_with_unparseable_retry_after_falls_back_to_backoff() -> None:
    """A garbage Retry-After value is ignored and backoff is used."""
    respx.post(APPLY_URL).mock(return_value=httpx.Response(429, headers={"Retry-After": "soon-ish"}))

    client = _client(max_retries=1, retry_base_delay=0.0)
    with pytest.raises(AtprotoRateLimitError) as exc_info:
        await client.apply_writes([])
    assert exc_info.value.retry_after == 0.0


def test_retry_delay_from_headers() -> None:
    """Delay seconds, HTTP-dates and ratelimit-reset all map to a wait in seconds."""
    future = datetime.now(UTC) + timedelta(seconds=120)

    assert AtprotoClient._retry_delay_from_headers(httpx.Response(429, headers={"Retry-After": "7"})) == 7.0
    from_date = AtprotoClient._retry_delay_from_headers(
        httpx.Response(429, headers={"Retry-After": format_datetime(future, usegmt=True)})
    )
    assert from_date is not None
    assert 100 < from_date <= 120
    past = httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
    assert AtprotoClient._retry_delay_from_headers(past) == 0.0
    assert AtprotoClient._retry_delay_from_headers(httpx.Response(429, headers={"ratelimit-reset": "bogus"})) is None
    assert AtprotoClient._retry_delay_from_headers(httpx.Response(429)) is None
