"""Time-bucketed transaction statistics."""

import logging
import math
from bisect import bisect_right
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.types import (
    StatBucket,
    StatsSummary,
    Timeframe,
    Transaction,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

Periods = Union[int, str]

ALL_PERIODS = "all"

# Used only to size the window for "all"; months are treated as 30 days
APPROX_PERIOD = {
    Timeframe.DAY: timedelta(days=1),
    Timeframe.WEEK: timedelta(days=7),
    Timeframe.MONTH: timedelta(days=30),
}

SUNDAY = 6


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(moment: datetime, months: int) -> datetime:
    """Return the first day of the month ``months`` away from ``moment``."""
    index = moment.year * 12 + (moment.month - 1) + months
    return moment.replace(year=index // 12, month=index % 12 + 1, day=1,
                          hour=0, minute=0, second=0, microsecond=0)


def period_bounds(
    timeframe: Timeframe, now: datetime, offset: int, week_start: int = SUNDAY
) -> Tuple[datetime, datetime, str]:
    """Return ``(start, end, label)`` for the period ``offset`` steps before now.

    Offset 0 is the period containing ``now``.
    """
    today = _start_of_day(now)

    if timeframe == Timeframe.DAY:
        start = today - timedelta(days=offset)
        end = start + timedelta(days=1)
        label = start.strftime("%Y-%m-%d")
    elif timeframe == Timeframe.WEEK:
        this_week = today - timedelta(days=(today.weekday() - week_start) % 7)
        start = this_week - timedelta(weeks=offset)
        end = start + timedelta(days=7)
        last_day = end - timedelta(days=1)
        label = f"{start.strftime('%b %d')} - {last_day.strftime('%b %d')}"
    else:
        start = _add_months(today, -offset)
        end = _add_months(start, 1)
        label = start.strftime("%b %Y")

    return start, end, label


def resolve_period_count(
    transactions: Sequence[Transaction],
    timeframe: Timeframe,
    periods: Periods,
    now: datetime,
) -> int:
    """Turn a requested period count (or ``"all"``) into a concrete count.

    For ``"all"`` the window is sized from the earliest transaction; with no
    transactions there is nothing to cover and 0 is returned.
    """
    if periods != ALL_PERIODS:
        return max(0, int(periods))

    if not transactions:
        return 0

    earliest = min(tx.timestamp for tx in transactions)
    span = (now - earliest) / APPROX_PERIOD[timeframe]
    count = max(1, math.ceil(span) + 1)

    # Calendar months can be longer than the approximation
    while period_bounds(timeframe, now, count - 1)[0] > earliest:
        count += 1
    return count


def _fill_buckets(buckets: List[StatBucket], transactions: Iterable[Transaction]) -> None:
    """Place each transaction into the bucket whose ``[start, end)`` holds it.

    Buckets must be contiguous and oldest first.
    """
    starts = [b.start for b in buckets]
    for tx in transactions:
        index = bisect_right(starts, tx.timestamp) - 1
        if index < 0 or tx.timestamp >= buckets[index].end:
            continue

        bucket = buckets[index]
        bucket.total_count += 1
        if tx.status == TransactionStatus.COMPLETED and tx.amount_msat > 0:
            bucket.total_volume_msat += tx.amount_msat
        bucket.per_type_counts[tx.type] += 1
        bucket.per_status_counts[tx.status] += 1


def bucketize(
    transactions: Sequence[Transaction],
    timeframe: Timeframe,
    periods: Periods,
    now: Optional[datetime] = None,
    week_start: int = SUNDAY,
) -> List[StatBucket]:
    """Group transactions into consecutive periods ending with the current one.

    Buckets are returned oldest first and are contiguous: each covers
    ``[start, end)`` and the next one starts where it ends. Empty buckets are
    kept.

    Args:
        transactions: Decoded transactions, in any order
        timeframe: Day, week or month buckets
        periods: Number of buckets, or ``"all"`` to cover the full history
        now: Reference time (UTC); defaults to the current time
        week_start: First day of the week as ``datetime.weekday()`` number

    Returns:
        List of filled StatBucket
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    count = resolve_period_count(transactions, timeframe, periods, now)

    buckets = []
    for offset in range(count - 1, -1, -1):
        start, end, label = period_bounds(timeframe, now, offset, week_start)
        buckets.append(StatBucket(period_label=label, start=start, end=end))
    _fill_buckets(buckets, transactions)

    logger.debug(f"Built {len(buckets)} {timeframe.value} buckets from {len(transactions)} transactions")
    return buckets


def most_active_type(type_counts: Dict[TransactionType, int]) -> TransactionType:
    """Return the type with the highest count; ties go to the lexically first value."""
    return min(type_counts, key=lambda t: (-type_counts[t], t.value))


def summarize(buckets: Sequence[StatBucket], periods: Periods) -> StatsSummary:
    """Compute totals, average volume, success rate and dominant type."""
    total_transactions = sum(b.total_count for b in buckets)
    total_volume = sum(b.total_volume_msat for b in buckets)

    period_count = len(buckets) if periods == ALL_PERIODS else int(periods)
    avg_volume = total_volume / period_count if period_count > 0 else 0.0

    completed = sum(b.per_status_counts[TransactionStatus.COMPLETED] for b in buckets)
    failed = sum(b.per_status_counts[TransactionStatus.FAILED] for b in buckets)
    success_rate = completed / (completed + failed) * 100 if completed + failed > 0 else 0.0

    type_counts = {t: sum(b.per_type_counts[t] for b in buckets) for t in TransactionType}

    return StatsSummary(
        total_transactions=total_transactions,
        total_volume_msat=total_volume,
        avg_volume_per_period=avg_volume,
        success_rate=success_rate,
        most_active_type=most_active_type(type_counts),
    )


def build_stats(
    transactions: Sequence[Transaction],
    timeframe: Timeframe,
    periods: Periods,
    now: Optional[datetime] = None,
) -> Tuple[List[StatBucket], StatsSummary]:
    buckets = bucketize(transactions, timeframe, periods, now=now)
    return buckets, summarize(buckets, periods)
