# autoschedule/availability.py
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Iterable, List, Tuple

import pandas as pd

from .models import MINUTES_PER_DAY, Block, Event, FreeInterval

logger = logging.getLogger(__name__)

_STEP_DAYS = {"daily": 1, "weekly": 7}


def days_in_range(range_start: date, range_end: date) -> List[date]:
    """Calendar days from range_start to range_end, both inclusive."""
    if range_end < range_start:
        return []
    return [ts.date() for ts in pd.date_range(range_start, range_end, freq="D")]


def expand_occurrences(event: Event, range_start: date, range_end: date) -> List[Event]:
    """
    Concrete occurrences of a (possibly recurring) event that touch the range.
    Occurrences keep the duration of the original event.
    """
    if event.recurring in (None, "", "none"):
        return [event]

    span = event.end - event.start
    window_start = datetime.combine(range_start, datetime.min.time())
    window_end = datetime.combine(range_end, datetime.min.time()) + timedelta(days=1)

    def shifted(start: datetime) -> Event:
        end = start + span
        return replace(
            event,
            start_date=start.date(),
            start_time=start.hour * 60 + start.minute,
            end_date=end.date(),
            end_time=end.hour * 60 + end.minute,
            recurring="none",
        )

    out = []
    if event.recurring in _STEP_DAYS:
        step = timedelta(days=_STEP_DAYS[event.recurring])
        # skip whole periods that end before the window opens
        k = max(0, (window_start - event.end) // step)
        start = event.start + k * step
        while start < window_end:
            if start + span > window_start:
                out.append(shifted(start))
            start += step
    elif event.recurring == "monthly":
        base = pd.Timestamp(event.start)
        k = 0
        start = event.start
        while start < window_end:
            if start + span > window_start:
                out.append(shifted(start))
            k += 1
            start = (base + pd.DateOffset(months=k)).to_pydatetime()
    else:
        raise ValueError(f"unknown recurrence {event.recurring!r}")
    return out


def block_as_event(block: Block) -> Event:
    """Treat an already placed block as an immovable obstacle."""
    return Event(
        id=f"block:{block.task_id}",
        start_date=block.date,
        start_time=block.start_minute,
        end_date=block.date,
        end_time=block.end_minute,
        name=block.task_id,
    )


def _busy_on_day(day: date, events: Iterable[Event],
                 work_start: int, work_end: int) -> List[Tuple[int, int]]:
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    busy = []
    for ev in events:
        s, e = max(ev.start, day_start), min(ev.end, day_end)
        if e <= s:
            continue
        s_min = int((s - day_start).total_seconds() // 60)
        e_min = int((e - day_start).total_seconds() // 60)
        s_min, e_min = max(s_min, work_start), min(e_min, work_end)
        if e_min > s_min:
            busy.append((s_min, e_min))
    busy.sort()
    return busy


def compute_free_intervals(range_start: date,
                           range_end: date,
                           work_start_min: int,
                           work_end_min: int,
                           events: Iterable[Event]) -> List[FreeInterval]:
    """
    Free time inside working hours for every day in [range_start, range_end].

    Each day starts as one interval [work_start_min, work_end_min) from which
    the parts of events falling on that day are subtracted. Output is ordered
    by date, then start minute. Empty working hours give no intervals.
    """
    if work_start_min >= work_end_min:
        logger.warning("working hours %d-%d are empty, no free time",
                       work_start_min, work_end_min)
        return []
    work_start_min = max(work_start_min, 0)
    work_end_min = min(work_end_min, MINUTES_PER_DAY)

    occurrences: List[Event] = []
    for ev in events:
        occurrences.extend(expand_occurrences(ev, range_start, range_end))

    free: List[FreeInterval] = []
    for day in days_in_range(range_start, range_end):
        cursor = work_start_min
        for s, e in _busy_on_day(day, occurrences, work_start_min, work_end_min):
            if s > cursor:
                free.append(FreeInterval(day, cursor, s))
            cursor = max(cursor, e)
        if cursor < work_end_min:
            free.append(FreeInterval(day, cursor, work_end_min))

    logger.debug("free intervals %s..%s: %d (%d min)", range_start, range_end,
                 len(free), sum(i.length for i in free))
    return free


def clip_before(intervals: Iterable[FreeInterval], moment: datetime) -> List[FreeInterval]:
    """Copy of ``intervals`` with all time before ``moment`` removed."""
    out = []
    for iv in intervals:
        if iv.end <= moment:
            continue
        if iv.start >= moment:
            out.append(FreeInterval(iv.date, iv.start_minute, iv.end_minute))
            continue
        offset = int((moment - iv.start).total_seconds() // 60)
        # round a partial minute up so nothing starts before the moment
        if iv.start + timedelta(minutes=offset) < moment:
            offset += 1
        if iv.start_minute + offset < iv.end_minute:
            out.append(FreeInterval(iv.date, iv.start_minute + offset, iv.end_minute))
    return out
