"""Rate-limit planning: batch size, inter-batch delay and multi-day schedules.

The PDS enforces a daily write quota per account. Plans are pure functions
of the number of records still to import, so a restarted import recomputes
a plan for whatever is left.
"""

import logging
import math

from pydantic import BaseModel, Field

from teal_importer.exceptions import ConfigurationError
from teal_importer.reporting import format_duration
from teal_importer.settings import ImporterSettings
from teal_shared.atproto.constants import MAX_APPLY_WRITES_OPS

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
MIN_BATCH_SIZE = 3
MODERATE_BATCH_SIZE = 15
TIGHT_DELAY_REDUCTION = 0.75


class DaySchedule(BaseModel):
    """One day of a multi-day import: records ``[records_start, records_end)``."""

    day: int
    records_start: int
    records_end: int
    records_count: int
    pause_after: bool
    pause_duration: float = 0.0  # seconds

    model_config = {"frozen": True}


class RateLimitPlan(BaseModel):
    """How to pace an import of ``total_records``."""

    total_records: int
    batch_size: int
    batch_delay: float  # seconds
    needs_rate_limiting: bool
    records_per_day: int
    estimated_days: int
    daily_schedule: list[DaySchedule] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_multi_day(self) -> bool:
        return bool(self.daily_schedule)

    @property
    def total_batches(self) -> int:
        return math.ceil(self.total_records / self.batch_size) if self.total_records else 0


def _check_settings(settings: ImporterSettings) -> None:
    for name in (
        "SMALL_DATASET_THRESHOLD",
        "MIN_RECORDS_FOR_SCALING",
        "BASE_BATCH_SIZE",
        "MAX_BATCH_SIZE",
        "SCALING_FACTOR",
        "DAILY_WRITE_LIMIT",
    ):
        if getattr(settings, name) <= 0:
            raise ConfigurationError(f"{name} must be positive, got {getattr(settings, name)}")
    if settings.MAX_BATCH_SIZE < MIN_BATCH_SIZE:
        raise ConfigurationError(f"MAX_BATCH_SIZE must be at least {MIN_BATCH_SIZE}")


def calculate_optimal_batch_size(total_records: int, batch_delay: float, settings: ImporterSettings) -> int:
    """Pick a batch size that grows logarithmically with the dataset.

    Small datasets use minimal batches, medium ones the base size, and larger
    ones ``base + factor * log2(total / threshold)`` capped at MAX_BATCH_SIZE.
    When the delay is tight, sizes above MODERATE_BATCH_SIZE are cut by a
    quarter, never below MODERATE_BATCH_SIZE. The result is non-decreasing in
    ``total_records`` and always within ``[3, MAX_BATCH_SIZE]``.
    """
    _check_settings(settings)

    if total_records <= settings.SMALL_DATASET_THRESHOLD:
        return MIN_BATCH_SIZE

    if total_records <= settings.MIN_RECORDS_FOR_SCALING:
        size = settings.BASE_BATCH_SIZE
    else:
        log_scale = math.log2(total_records / settings.MIN_RECORDS_FOR_SCALING)
        size = math.floor(settings.BASE_BATCH_SIZE + log_scale * settings.SCALING_FACTOR)
    size = min(size, settings.MAX_BATCH_SIZE)

    if batch_delay < settings.SAFE_BATCH_DELAY_SECONDS and size > MODERATE_BATCH_SIZE:
        size = max(MODERATE_BATCH_SIZE, math.floor(size * TIGHT_DELAY_REDUCTION))

    return max(MIN_BATCH_SIZE, min(size, settings.MAX_BATCH_SIZE))


def calculate_daily_schedule(
    total_records: int,
    records_per_day: int,
    pause_duration: float = SECONDS_PER_DAY,
) -> list[DaySchedule]:
    """Split ``total_records`` into contiguous day-sized ranges.

    Every day but the last pauses for ``pause_duration`` seconds afterwards.
    """
    if records_per_day <= 0:
        raise ConfigurationError(f"records_per_day must be positive, got {records_per_day}")

    days = math.ceil(total_records / records_per_day)
    schedule: list[DaySchedule] = []
    for index in range(days):
        start = index * records_per_day
        end = min(start + records_per_day, total_records)
        is_last = index == days - 1
        schedule.append(
            DaySchedule(
                day=index + 1,
                records_start=start,
                records_end=end,
                records_count=end - start,
                pause_after=not is_last,
                pause_duration=0.0 if is_last else pause_duration,
            )
        )
    return schedule


def plan_rate_limit(
    total_records: int,
    settings: ImporterSettings,
    batch_delay: float | None = None,
) -> RateLimitPlan:
    """Compute the batch size, delay and (if needed) daily schedule for an import."""
    delay = settings.DEFAULT_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
    if delay <= 0:
        raise ConfigurationError(f"Batch delay must be positive, got {delay}")

    batch_size = calculate_optimal_batch_size(total_records, delay, settings)
    records_per_day = settings.DAILY_WRITE_LIMIT

    projected_per_day = batch_size / delay * SECONDS_PER_DAY
    needs_rate_limiting = projected_per_day > records_per_day

    # applyWrites ceiling always wins
    batch_size = min(batch_size, MAX_APPLY_WRITES_OPS)

    if needs_rate_limiting:
        paced_delay = math.ceil(SECONDS_PER_DAY * batch_size / records_per_day * 1000) / 1000
        delay = max(delay, paced_delay)
        logger.debug(
            "Projected %.0f writes/day exceeds the %d cap; pacing at %d records every %.3fs",
            projected_per_day,
            records_per_day,
            batch_size,
            delay,
        )

    daily_schedule: list[DaySchedule] = []
    estimated_days = 1
    if total_records > records_per_day:
        daily_schedule = calculate_daily_schedule(total_records, records_per_day, settings.DAY_PAUSE_SECONDS)
        estimated_days = len(daily_schedule)

    return RateLimitPlan(
        total_records=total_records,
        batch_size=batch_size,
        batch_delay=delay,
        needs_rate_limiting=needs_rate_limiting,
        records_per_day=records_per_day,
        estimated_days=estimated_days,
        daily_schedule=daily_schedule,
    )


def describe_plan(plan: RateLimitPlan) -> list[str]:
    """Human-readable rate-limit summary lines."""
    lines = [
        "Rate limiting information:",
        f"  Total records: {plan.total_records:,}",
        f"  Daily limit: {plan.records_per_day:,} records/day",
        f"  Estimated duration: {plan.estimated_days} day{'s' if plan.estimated_days > 1 else ''}",
        f"  Batch size: {plan.batch_size} records",
        f"  Batch delay: {plan.batch_delay:.1f}s",
    ]
    if plan.is_multi_day:
        lines.append("  The import pauses automatically between days.")
        lines.append("  It is safe to stop and restart: already imported records are skipped.")
    else:
        lines.append(f"  Estimated time: {format_duration(plan.total_batches * plan.batch_delay)}")
    return lines
