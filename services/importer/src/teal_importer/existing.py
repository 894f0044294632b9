"""Existing-state fetcher: snapshot what the destination repo already holds.

Both read paths walk the same listRecords pagination. ``fetch_existing_records``
keeps one record per key for membership checks; ``fetch_all_records`` keeps
every occurrence so duplicates stay visible to the sweeper.
"""

import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from datetime import datetime

import httpx
from pydantic import BaseModel, ValidationError

from teal_importer.exceptions import ListingFailedError, MissingAuthenticationError
from teal_importer.reporting import ProgressReporter
from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.exceptions import AtprotoClientError
from teal_shared.atproto.models import ExistingRecord, RepoRecord
from teal_shared.records.keys import create_record_key
from teal_shared.records.models import PlayRecord

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 500
FETCH_INDICATOR = "Fetching existing records"


def _to_existing(raw: RepoRecord) -> ExistingRecord | None:
    """Parse one listed record; None when its value is not a valid play."""
    try:
        return ExistingRecord.from_repo_record(raw)
    except ValidationError as exc:
        logger.warning("Skipping stored record %s: not a valid play (%d validation errors)", raw.uri, exc.error_count())
        return None


async def _iter_pages(
    client: AtprotoClient,
    collection: str,
    page_size: int,
    reporter: ProgressReporter | None,
) -> AsyncGenerator[list[ExistingRecord]]:
    """Yield listRecords pages until the PDS stops returning a cursor."""
    if not client.did:
        raise MissingAuthenticationError()

    cursor: str | None = None
    fetched = 0
    skipped = 0
    next_report = PROGRESS_EVERY
    if reporter:
        reporter.start(FETCH_INDICATOR)

    while True:
        try:
            response = await client.list_records(collection, limit=page_size, cursor=cursor)
        except (AtprotoClientError, httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to fetch existing records after %d: %s", fetched, exc)
            if reporter:
                reporter.stop(FETCH_INDICATOR, "failed")
            raise ListingFailedError(collection, fetched, str(exc)) from exc

        page: list[ExistingRecord] = []
        for raw in response.records:
            record = _to_existing(raw)
            if record is None:
                skipped += 1
            else:
                page.append(record)

        fetched += len(page)
        if reporter and fetched >= next_report:
            reporter.update(FETCH_INDICATOR, fetched)
            next_report = (fetched // PROGRESS_EVERY + 1) * PROGRESS_EVERY

        yield page

        cursor = response.cursor
        if not cursor:
            break

    if reporter:
        summary = f"{fetched} records"
        if skipped:
            summary += f", {skipped} skipped as invalid"
        reporter.stop(FETCH_INDICATOR, summary)
    if skipped:
        logger.warning("Skipped %d stored records that are not valid plays", skipped)


async def fetch_existing_records(
    client: AtprotoClient,
    collection: str,
    *,
    page_size: int = 100,
    reporter: ProgressReporter | None = None,
) -> dict[str, ExistingRecord]:
    """Index the destination by record key. Later occurrences overwrite earlier ones."""
    existing: dict[str, ExistingRecord] = {}
    async for page in _iter_pages(client, collection, page_size, reporter):
        for record in page:
            existing[create_record_key(record.value)] = record

    logger.info("Found %d existing records in %s", len(existing), collection)
    return existing


async def fetch_all_records(
    client: AtprotoClient,
    collection: str,
    *,
    page_size: int = 100,
    reporter: ProgressReporter | None = None,
) -> list[ExistingRecord]:
    """List every destination record in listing order, duplicates included."""
    records: list[ExistingRecord] = []
    async for page in _iter_pages(client, collection, page_size, reporter):
        records.extend(page)

    logger.info("Listed %d records in %s", len(records), collection)
    return records


def filter_new_records(
    records: Sequence[PlayRecord],
    existing: Mapping[str, object],
) -> tuple[list[PlayRecord], list[PlayRecord]]:
    """Split source records into (new, duplicates).

    A record is a duplicate when its key is already in ``existing`` or when an
    earlier record of the same input had the same key. Order is preserved.
    """
    new_records: list[PlayRecord] = []
    duplicates: list[PlayRecord] = []
    seen: set[str] = set()

    for record in records:
        key = create_record_key(record)
        if key in existing or key in seen:
            duplicates.append(record)
        else:
            seen.add(key)
            new_records.append(record)

    logger.info(
        "Source records: %d, already imported: %d, new: %d",
        len(records),
        len(duplicates),
        len(new_records),
    )
    for record in duplicates[:5]:
        logger.debug("Skipping existing: %s - %s (%s)", record.artist_name, record.track_name, record.played_time)
    return new_records, duplicates


class SyncStats(BaseModel):
    """Source-vs-destination comparison shown before publishing."""

    source_total: int
    existing_total: int
    new_total: int
    duplicates_skipped: int
    match_rate: float  # share of source records already present, 0..1
    source_earliest: datetime | None = None
    source_latest: datetime | None = None
    existing_earliest: datetime | None = None
    existing_latest: datetime | None = None


def _time_range(records: Sequence[PlayRecord]) -> tuple[datetime | None, datetime | None]:
    times: list[datetime] = []
    for record in records:
        try:
            times.append(record.played_at)
        except ValueError:
            continue
    if not times:
        return None, None
    return min(times), max(times)


def summarize_sync(
    source: Sequence[PlayRecord],
    existing: Mapping[str, ExistingRecord],
    new_records: Sequence[PlayRecord],
) -> SyncStats:
    """Compute and log sync statistics."""
    source_earliest, source_latest = _time_range(source)
    existing_earliest, existing_latest = _time_range([r.value for r in existing.values()])
    match_rate = 1 - len(new_records) / len(source) if source else 0.0

    stats = SyncStats(
        source_total=len(source),
        existing_total=len(existing),
        new_total=len(new_records),
        duplicates_skipped=len(source) - len(new_records),
        match_rate=match_rate,
        source_earliest=source_earliest,
        source_latest=source_latest,
        existing_earliest=existing_earliest,
        existing_latest=existing_latest,
    )
    logger.info(
        "Sync: source=%d (%s to %s), destination=%d (%s to %s), to import=%d, match rate=%.1f%%",
        stats.source_total,
        stats.source_earliest,
        stats.source_latest,
        stats.existing_total,
        stats.existing_earliest,
        stats.existing_latest,
        stats.new_total,
        stats.match_rate * 100,
    )
    return stats
