"""Free-time computation: the complement of busy intervals within a day."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, time, timedelta, tzinfo

from lifeops.modules.calendar.models import FreeInterval, Interval


def end_of_day(moment: datetime) -> datetime:
    """Return the last representable instant of *moment*'s day in its own timezone."""
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def compute_free_intervals(
    busy: Iterable[Interval],
    day_end: datetime,
    reference_start: datetime,
) -> list[FreeInterval]:
    """Return the free intervals between *reference_start* and *day_end*.

    Busy intervals may overlap, arrive unsorted, or start before
    *reference_start*; the result is ascending and non-overlapping with
    every interval clipped to *day_end*.
    """
    free: list[FreeInterval] = []
    cursor = reference_start
    if cursor >= day_end:
        return free

    for interval in sorted(busy, key=lambda item: (item.start, item.end)):
        if cursor >= day_end:
            break
        if interval.start > cursor:
            gap_end = min(interval.start, day_end)
            free.append(FreeInterval(start=cursor, end=gap_end))
        cursor = max(cursor, interval.end)

    if day_end > cursor:
        free.append(FreeInterval(start=cursor, end=day_end))
    return free


def free_intervals_for_window(
    busy: Iterable[Interval],
    start: datetime,
    days: int,
    tz: tzinfo,
) -> list[FreeInterval]:
    """Compute free intervals for each day of a *days*-long horizon.

    The first day starts at *start*; later days start at local midnight in
    *tz*. Each day ends at :func:`end_of_day`.
    """
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")

    busy_list = list(busy)
    local_start = start.astimezone(tz)
    result: list[FreeInterval] = []
    for offset in range(days):
        if offset == 0:
            day_start = local_start
        else:
            day = local_start.date() + timedelta(days=offset)
            day_start = datetime.combine(day, time.min, tzinfo=tz)
        result.extend(compute_free_intervals(busy_list, end_of_day(day_start), day_start))
    return result
