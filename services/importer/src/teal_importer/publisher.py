"""Publish pipeline: write new play records to the PDS in paced applyWrites batches."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from teal_importer.cancellation import CancellationToken
from teal_importer.exceptions import MissingAuthenticationError
from teal_importer.rate_limiter import RateLimitPlan, describe_plan, plan_rate_limit
from teal_importer.reporting import LoggingReporter, ProgressReporter, format_duration
from teal_importer.settings import ImporterSettings
from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.constants import APPLY_WRITES_CREATE
from teal_shared.atproto.exceptions import AtprotoClientError
from teal_shared.atproto.tid import tid_from_iso
from teal_shared.records.models import PlayRecord

logger = logging.getLogger(__name__)

PUBLISH_INDICATOR = "Publishing records"
PREVIEW_COUNT = 5


class PublishResult(BaseModel):
    """Outcome of one publish run."""

    success_count: int = 0
    error_count: int = 0
    cancelled: bool = False

    model_config = {"frozen": True}


def build_create_write(record: PlayRecord, record_type: str) -> dict[str, Any]:
    """One applyWrites create op, keyed by the TID of the play time."""
    return {
        "$type": APPLY_WRITES_CREATE,
        "collection": record_type,
        "rkey": tid_from_iso(record.played_time),
        "value": record.to_record_value(record_type),
    }


def render_dry_run_preview(records: Sequence[PlayRecord], plan: RateLimitPlan) -> list[str]:
    """Lines describing what a real run would do."""
    lines = ["=== DRY RUN ==="]
    lines.extend(describe_plan(plan))

    if plan.is_multi_day:
        lines.append("Multi-day import schedule:")
        for day in plan.daily_schedule:
            lines.append(
                f"  Day {day.day}: records {day.records_start + 1}-{day.records_end} ({day.records_count} total)"
            )
            if day.pause_after:
                lines.append(f"    then pause {format_duration(day.pause_duration)}")

    lines.append(f"Would publish {len(records)} records in batches of {plan.batch_size}")

    preview = records[:PREVIEW_COUNT]
    if preview:
        lines.append(f"Preview of first {len(preview)} records (in processing order):")
    for index, record in enumerate(preview, start=1):
        lines.append(f"{index}. {record.artist_name} - {record.track_name}")
        lines.append(f"   Album: {record.release_name or 'N/A'}")
        lines.append(f"   Played: {record.played_time}")
        lines.append(f"   URL: {record.origin_url or 'N/A'}")
        mbids = []
        if record.artists and record.artists[0].artist_mb_id:
            mbids.append(f"Artist: {record.artists[0].artist_mb_id}")
        if record.recording_mb_id:
            mbids.append(f"Recording: {record.recording_mb_id}")
        if record.release_mb_id:
            mbids.append(f"Release: {record.release_mb_id}")
        if mbids:
            lines.append(f"   MBIDs: {', '.join(mbids)}")

    if len(records) > len(preview):
        lines.append(f"... and {len(records) - len(preview)} more records")

    lines.append("=== DRY RUN COMPLETE: no records were published ===")
    return lines


class Publisher:
    """Sequential, cancellation-aware batch writer.

    Batches run strictly one after another: the next applyWrites call starts
    only after the previous one returned. A failed batch is counted and
    skipped; re-running the whole import picks up whatever did not land.
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

    async def publish(
        self,
        records: Sequence[PlayRecord],
        *,
        dry_run: bool = False,
        batch_delay: float | None = None,
    ) -> PublishResult:
        """Publish ``records`` and return the aggregate outcome."""
        plan = plan_rate_limit(len(records), self._settings, batch_delay)

        if dry_run:
            for line in render_dry_run_preview(records, plan):
                self._reporter.message(line)
            return PublishResult(success_count=len(records), error_count=0, cancelled=False)

        if not self._client.did:
            raise MissingAuthenticationError()

        if plan.needs_rate_limiting:
            logger.warning(
                "Import exceeds the PDS daily write quota at full speed; pacing to %d records/day",
                plan.records_per_day,
            )
        for line in describe_plan(plan):
            self._reporter.message(line)

        total = len(records)
        self._reporter.start(PUBLISH_INDICATOR, total)
        success_count = 0
        error_count = 0

        if plan.is_multi_day:
            for day in plan.daily_schedule:
                self._reporter.message(
                    f"Day {day.day} of {plan.estimated_days}: records "
                    f"{day.records_start + 1}-{day.records_end} ({day.records_count} total)"
                )
                result = await self._publish_range(
                    records[day.records_start : day.records_end],
                    plan,
                    offset=day.records_start,
                    total=total,
                    done_before=success_count + error_count,
                    day=day.day,
                )
                success_count += result.success_count
                error_count += result.error_count

                logger.info(
                    "Day %d finished: %d published, %d failed so far",
                    day.day,
                    success_count,
                    error_count,
                    extra={"day": day.day},
                )
                if result.cancelled:
                    return self._finish(success_count, error_count, total, cancelled=True)

                if day.pause_after:
                    self._reporter.message(
                        f"Pausing {format_duration(day.pause_duration)} before day {day.day + 1} "
                        f"({success_count}/{total} records done). Safe to stop and restart later."
                    )
                    if await self._cancel_token.sleep(day.pause_duration):
                        return self._finish(success_count, error_count, total, cancelled=True)
        else:
            result = await self._publish_range(records, plan, offset=0, total=total, done_before=0)
            success_count = result.success_count
            error_count = result.error_count
            if result.cancelled:
                return self._finish(success_count, error_count, total, cancelled=True)

        return self._finish(success_count, error_count, total, cancelled=False)

    async def _publish_range(
        self,
        records: Sequence[PlayRecord],
        plan: RateLimitPlan,
        *,
        offset: int,
        total: int,
        done_before: int,
        day: int | None = None,
    ) -> PublishResult:
        """Run the batch loop over one day's slice (or the whole import)."""
        batch_size = plan.batch_size
        success_count = 0
        error_count = 0

        for start in range(0, len(records), batch_size):
            if self._cancel_token.cancelled:
                return PublishResult(success_count=success_count, error_count=error_count, cancelled=True)

            batch = records[start : start + batch_size]
            batch_number = (offset + start) // batch_size + 1
            try:
                writes = [build_create_write(record, self._settings.RECORD_TYPE) for record in batch]
                response = await self._client.apply_writes(writes)
            except (AtprotoClientError, httpx.HTTPError, ValidationError, ValueError) as exc:
                error_count += len(batch)
                logger.error(
                    "Batch %d failed (%d records): %s",
                    batch_number,
                    len(batch),
                    exc,
                    extra={"batch": batch_number, "day": day},
                )
                for record in batch:
                    logger.error("  - %s by %s (%s)", record.track_name, record.artist_name, record.played_time)
            else:
                accepted = min(len(response.results), len(batch)) if response.results else len(batch)
                success_count += accepted
                if accepted < len(batch):
                    error_count += len(batch) - accepted
                    logger.warning(
                        "Batch %d: %d of %d records were not accepted",
                        batch_number,
                        len(batch) - accepted,
                        len(batch),
                        extra={"batch": batch_number, "day": day},
                    )

            self._reporter.update(
                PUBLISH_INDICATOR,
                done_before + success_count + error_count,
                f"batch {batch_number}, records {offset + start + 1}-{offset + start + len(batch)}",
            )

            if self._cancel_token.cancelled:
                return PublishResult(success_count=success_count, error_count=error_count, cancelled=True)

            if start + batch_size < len(records):
                await self._cancel_token.sleep(plan.batch_delay)

        return PublishResult(success_count=success_count, error_count=error_count, cancelled=False)

    def _finish(self, success_count: int, error_count: int, total: int, *, cancelled: bool) -> PublishResult:
        if cancelled:
            self._reporter.stop(PUBLISH_INDICATOR, "cancelled")
            logger.warning(
                "Import cancelled: %d/%d records published, %d remaining. Re-run to resume.",
                success_count,
                total,
                total - success_count,
            )
        else:
            self._reporter.stop(PUBLISH_INDICATOR, f"{success_count} published, {error_count} failed")
        return PublishResult(success_count=success_count, error_count=error_count, cancelled=cancelled)
