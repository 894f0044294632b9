"""Duplicate sweeper: remove redundant copies of the same play from the repo."""

import logging
from collections.abc import Sequence

import httpx
from pydantic import BaseModel

from teal_importer.cancellation import CancellationToken
from teal_importer.exceptions import MissingAuthenticationError
from teal_importer.reporting import LoggingReporter, ProgressReporter
from teal_importer.settings import ImporterSettings
from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.exceptions import AtprotoClientError
from teal_shared.atproto.models import ExistingRecord
from teal_shared.records.keys import create_record_key

logger = logging.getLogger(__name__)

SWEEP_INDICATOR = "Removing duplicates"


class DuplicateGroup(BaseModel):
    """Records sharing one record key, in listing order (at least two)."""

    key: str
    records: list[ExistingRecord]

    model_config = {"frozen": True}

    @property
    def keep(self) -> ExistingRecord:
        return self.records[0]

    @property
    def redundant(self) -> list[ExistingRecord]:
        return self.records[1:]


class SweepResult(BaseModel):
    """Outcome of one duplicate sweep."""

    total_duplicate_records: int = 0
    records_removed: int = 0

    model_config = {"frozen": True}


def find_duplicate_groups(records: Sequence[ExistingRecord]) -> list[DuplicateGroup]:
    """Group records by key and return only the keys seen more than once.

    Groups come out in order of first occurrence; members keep listing order.
    """
    by_key: dict[str, list[ExistingRecord]] = {}
    for record in records:
        by_key.setdefault(create_record_key(record.value), []).append(record)

    return [DuplicateGroup(key=key, records=members) for key, members in by_key.items() if len(members) > 1]


class DuplicateSweeper:
    """Deletes every copy but the first of each duplicate group, one at a time.

    The first copy in listing order is assumed to be the original. Deletes are
    spaced by DELETE_PAUSE_SECONDS; a failed delete is logged and skipped.
    """

    def __init__(
        self,
        client: AtprotoClient,
        settings: ImporterSettings,
        *,
        reporter: ProgressReporter | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._reporter = reporter or LoggingReporter()
        self._cancel_token = cancel_token or CancellationToken()

    async def sweep(self, records: Sequence[ExistingRecord], *, dry_run: bool = False) -> SweepResult:
        groups = find_duplicate_groups(records)
        to_delete = [record for group in groups for record in group.redundant]
        total_duplicates = len(to_delete)

        if not groups:
            self._reporter.message("No duplicate records found")
            return SweepResult()

        self._reporter.message(
            f"Found {len(groups)} duplicated plays with {total_duplicates} redundant records "
            f"out of {len(records)} total"
        )
        for group in groups[:5]:
            value = group.keep.value
            self._reporter.message(
                f"  {value.artist_name} - {value.track_name} ({value.played_time}): {len(group.records)} copies"
            )

        if dry_run:
            self._reporter.message(f"Dry run: would remove {total_duplicates} records")
            return SweepResult(total_duplicate_records=total_duplicates, records_removed=0)

        if not self._client.did:
            raise MissingAuthenticationError()

        removed = 0
        self._reporter.start(SWEEP_INDICATOR, total_duplicates)
        for index, record in enumerate(to_delete):
            if self._cancel_token.cancelled:
                logger.warning("Sweep cancelled after removing %d/%d records", removed, total_duplicates)
                break
            try:
                await self._client.delete_record(self._settings.RECORD_TYPE, record.rkey)
            except (AtprotoClientError, httpx.HTTPError) as exc:
                logger.error("Failed to delete %s: %s", record.uri, exc)
            else:
                removed += 1
            self._reporter.update(SWEEP_INDICATOR, index + 1)

            if index + 1 < total_duplicates:
                await self._cancel_token.sleep(self._settings.DELETE_PAUSE_SECONDS)

        self._reporter.stop(SWEEP_INDICATOR, f"{removed} of {total_duplicates} removed")
        return SweepResult(total_duplicate_records=total_duplicates, records_removed=removed)
