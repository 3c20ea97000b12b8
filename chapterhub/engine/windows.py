"""
chapterhub.engine.windows — Aggregation Windows & Chart Buckets
================================================================

Turns a :class:`~chapterhub.constants.Window` into concrete time bounds.

* ``week``    — trailing seven days (``now - 7 days`` .. ``now``).
* ``month``   — calendar month to date.
* ``quarter`` — calendar quarter to date.
* ``year``    — calendar year to date.
* ``all``     — unbounded.

Calendar periods start at local midnight in the chapter's configured
timezone; every bound returned here is an aware UTC datetime so it can be
compared directly against ``created_at`` columns.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from chapterhub.constants import Window
from chapterhub.errors import ValidationError

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def parse_window(value: str | Window) -> Window:
    try:
        return Window(str(value).lower())
    except ValueError as exc:
        valid = ", ".join(w.value for w in Window)
        raise ValidationError(f"Unknown window {value!r} (expected one of: {valid})") from exc


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _local_now(now: datetime | None, tz: str) -> datetime:
    current = as_utc(now) if now is not None else datetime.now(UTC)
    return current.astimezone(ZoneInfo(tz))


def _local_midnight(local: datetime, *, year: int, month: int, day: int = 1) -> datetime:
    return local.replace(year=year, month=month, day=day,
                         hour=0, minute=0, second=0, microsecond=0)


def _add_months(local: datetime, months: int) -> datetime:
    index = local.month - 1 + months
    return local.replace(year=local.year + index // 12, month=index % 12 + 1)


# ---------------------------------------------------------------------------
# Window bounds
# ---------------------------------------------------------------------------
def window_start(window: Window | str, now: datetime | None = None, tz: str = "UTC") -> datetime | None:
    """Return the inclusive lower bound of *window* (UTC), or ``None`` for ``all``."""
    window = parse_window(window)
    local = _local_now(now, tz)

    if window is Window.ALL:
        return None
    if window is Window.WEEK:
        start = local - timedelta(days=7)
    elif window is Window.MONTH:
        start = _local_midnight(local, year=local.year, month=local.month)
    elif window is Window.QUARTER:
        first_month = 3 * ((local.month - 1) // 3) + 1
        start = _local_midnight(local, year=local.year, month=first_month)
    else:
        start = _local_midnight(local, year=local.year, month=1)
    return start.astimezone(UTC)


def in_window(ts: datetime, window: Window | str, now: datetime | None = None, tz: str = "UTC") -> bool:
    start = window_start(window, now, tz)
    return start is None or as_utc(ts) >= start


# ---------------------------------------------------------------------------
# Chart buckets
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Bucket:
    """Half-open ``[start, end)`` interval with a display label."""

    label: str
    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= as_utc(ts) < self.end


def buckets_for(
    window: Window | str,
    now: datetime | None = None,
    tz: str = "UTC",
    *,
    first_year: int | None = None,
) -> list[Bucket]:
    """Chart buckets covering *window*.

    ``week`` → 7 daily buckets ending today; ``month`` → W1..W4 plus W5
    when the month has more than 28 days; ``quarter`` → 3 months; ``year``
    → 12 months; ``all`` → one bucket per year from *first_year*.
    """
    window = parse_window(window)
    local = _local_now(now, tz)
    today = _local_midnight(local, year=local.year, month=local.month, day=local.day)
    edges: list[tuple[str, datetime, datetime]] = []

    if window is Window.WEEK:
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            edges.append((day.date().isoformat(), day, day + timedelta(days=1)))

    elif window is Window.MONTH:
        month_start = _local_midnight(local, year=local.year, month=local.month)
        month_end = _add_months(month_start, 1)
        week = 0
        cursor = month_start
        while cursor < month_end:
            week += 1
            nxt = min(cursor + timedelta(days=7), month_end)
            edges.append((f"W{week}", cursor, nxt))
            cursor = nxt

    elif window in (Window.QUARTER, Window.YEAR):
        if window is Window.QUARTER:
            first = _local_midnight(local, year=local.year, month=3 * ((local.month - 1) // 3) + 1)
            count = 3
        else:
            first = _local_midnight(local, year=local.year, month=1)
            count = 12
        for i in range(count):
            start = _add_months(first, i)
            edges.append((MONTH_LABELS[start.month - 1], start, _add_months(start, 1)))

    else:
        start_year = min(first_year or local.year, local.year)
        for year in range(start_year, local.year + 1):
            start = _local_midnight(local, year=year, month=1)
            edges.append((str(year), start, _local_midnight(local, year=year + 1, month=1)))

    return [Bucket(label, s.astimezone(UTC), e.astimezone(UTC)) for label, s, e in edges]


def fill_buckets(buckets: list[Bucket], entries: Iterable[tuple[datetime, int]]) -> list[dict]:
    """Sum ``(timestamp, points)`` pairs into *buckets*.

    Entries falling outside every bucket are ignored.
    """
    totals = [0] * len(buckets)
    for ts, points in entries:
        for i, bucket in enumerate(buckets):
            if bucket.contains(ts):
                totals[i] += points
                break
    return [
        {"label": b.label, "start": b.start.isoformat(), "points": total}
        for b, total in zip(buckets, totals)
    ]
