"""Shared fixtures for importer tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from teal_importer.cancellation import CancellationToken
from teal_importer.settings import ImporterSettings
from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.models import ApplyWritesResponse, ApplyWritesResult, ListRecordsResponse, RepoRecord
from teal_shared.records.models import PlayArtist, PlayRecord

COLLECTION = "fm.teal.alpha.feed.play"
TEST_DID = "did:plc:testuser"
BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def _played_time(index: int) -> str:
    return (BASE_TIME + timedelta(minutes=index * 4)).isoformat().replace("+00:00", "Z")


@pytest.fixture
def make_record() -> Callable[..., PlayRecord]:
    """Factory for play records; distinct ``index`` values give distinct plays."""

    def _make(
        index: int = 0,
        *,
        artist: str | None = None,
        track: str | None = None,
        played_time: str | None = None,
    ) -> PlayRecord:
        return PlayRecord(
            track_name=track or f"Track {index}",
            artists=[PlayArtist(artist_name=artist or f"Artist {index}")],
            release_name=f"Album {index}",
            played_time=played_time or _played_time(index),
            origin_url=f"https://www.last.fm/music/Artist+{index}/_/Track+{index}",
        )

    return _make


@pytest.fixture
def make_records(make_record: Callable[..., PlayRecord]) -> Callable[[int], list[PlayRecord]]:
    def _make(count: int) -> list[PlayRecord]:
        return [make_record(i) for i in range(count)]

    return _make


@pytest.fixture
def make_page() -> Callable[..., ListRecordsResponse]:
    """Build a listRecords page from play records."""

    def _make(records: list[PlayRecord], cursor: str | None = None, *, rkey_prefix: str = "r") -> ListRecordsResponse:
        return ListRecordsResponse(
            records=[
                RepoRecord(
                    uri=f"at://{TEST_DID}/{COLLECTION}/{rkey_prefix}{i}",
                    cid=f"cid-{rkey_prefix}{i}",
                    value=record.to_record_value(COLLECTION),
                )
                for i, record in enumerate(records)
            ],
            cursor=cursor,
        )

    return _make


async def _accept_all(writes: list[dict[str, Any]]) -> ApplyWritesResponse:
    results = [ApplyWritesResult(uri=f"at://{TEST_DID}/{w['collection']}/{w['rkey']}") for w in writes]
    return ApplyWritesResponse(results=results)


@pytest.fixture
def client() -> AsyncMock:
    """Authenticated AtprotoClient mock that accepts every write."""
    mock = AsyncMock(spec=AtprotoClient)
    mock.did = TEST_DID
    mock.apply_writes.side_effect = _accept_all
    mock.list_records.return_value = ListRecordsResponse()
    return mock


@pytest.fixture
def cancel_token() -> CancellationToken:
    """Token whose waits return immediately; ``sleep`` records requested durations."""
    token = CancellationToken()

    async def _no_wait(seconds: float) -> bool:
        return token.cancelled

    token.sleep = AsyncMock(side_effect=_no_wait)  # type: ignore[method-assign]
    return token


@pytest.fixture
def reporter() -> MagicMock:
    return MagicMock()


def make_settings(**overrides: object) -> ImporterSettings:
    defaults: dict[str, object] = {
        "ATPROTO_IDENTIFIER": "alice.test",
        "ATPROTO_APP_PASSWORD": "app-password",
        "DAILY_WRITE_LIMIT": 10_000,
        "DAY_PAUSE_SECONDS": 86_400,
    }
    defaults.update(overrides)
    return ImporterSettings(**defaults)  # type: ignore[arg-type]


@pytest.fixture
def settings_factory() -> Callable[..., ImporterSettings]:
    return make_settings
