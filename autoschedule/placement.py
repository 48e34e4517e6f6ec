# autoschedule/placement.py
import logging
from datetime import date, datetime
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .models import (
    BALANCED, DEADLINE_FIRST, PRIORITY_FIRST,
    Block, FreeInterval, PlacementFailure, ScheduleReport, Task,
)

logger = logging.getLogger(__name__)

# hard deadlines due within this many days of the first schedulable day
# always go before everything else in the balanced strategy
URGENT_DAYS = 3


def _deadline_key(task: Task) -> datetime:
    return task.deadline or datetime.max


def balanced_key(task: Task, reference: Optional[date]) -> Tuple:
    if task.due_date is None:
        days = float("inf")
    elif reference is None:
        days = task.due_date.toordinal()
    else:
        days = (task.due_date - reference).days
    urgent = task.hard_deadline and reference is not None and days <= URGENT_DAYS
    return (0 if urgent else 1, days, task.priority_rank, _deadline_key(task), task.id)


def sort_tasks(tasks: Iterable[Task], strategy: str = BALANCED,
               reference: Optional[date] = None) -> List[Task]:
    """
    Order in which tasks get to claim free time.

    deadline-first: due moment, then priority, then id.
    priority-first: priority, then due moment, then id.
    balanced: urgent hard deadlines first, then days until due, then
    priority, then id. Tasks without a due date sort after dated ones.
    """
    if strategy == DEADLINE_FIRST:
        key = lambda t: (_deadline_key(t), t.priority_rank, t.id)
    elif strategy == PRIORITY_FIRST:
        key = lambda t: (t.priority_rank, _deadline_key(t), t.id)
    else:
        key = lambda t: balanced_key(t, reference)
    return sorted(tasks, key=key)


def _minute_of(moment: datetime, day: date) -> int:
    return int((moment - datetime.combine(day, datetime.min.time())).total_seconds() // 60)


def _windows(pool: Sequence[FreeInterval],
             lower: Optional[datetime],
             upper: Optional[datetime]) -> Iterator[Tuple[int, int, int]]:
    """(pool index, start minute, end minute) of free time inside [lower, upper)."""
    for idx, iv in enumerate(pool):
        start, end = iv.start_minute, iv.end_minute
        if lower is not None:
            if iv.end <= lower:
                continue
            if iv.start < lower:
                start = _minute_of(lower, iv.date)
        if upper is not None:
            if iv.start >= upper:
                break
            if iv.end > upper:
                end = _minute_of(upper, iv.date)
        if end > start:
            yield idx, start, end


def _take(pool: List[FreeInterval], idx: int, start: int, end: int) -> None:
    """Remove [start, end) from pool[idx], keeping what is left on either side."""
    iv = pool[idx]
    rest = []
    if iv.start_minute < start:
        rest.append(FreeInterval(iv.date, iv.start_minute, start))
    if end < iv.end_minute:
        rest.append(FreeInterval(iv.date, end, iv.end_minute))
    pool[idx:idx + 1] = rest


def _place_whole(task: Task, pool: List[FreeInterval],
                 lower: Optional[datetime], upper: Optional[datetime]) -> List[Block]:
    need = task.duration_minutes
    for idx, start, end in _windows(pool, lower, upper):
        if end - start >= need:
            day = pool[idx].date
            _take(pool, idx, start, start + need)
            return [Block(task.id, day, start, start + need)]
    return []


def _place_chunks(task: Task, pool: List[FreeInterval],
                  lower: Optional[datetime], upper: Optional[datetime]) -> List[Block]:
    blocks = []
    remaining = task.duration_minutes
    while remaining > 0:
        window = next(_windows(pool, lower, upper), None)
        if window is None:
            break
        idx, start, end = window
        size = min(task.chunk_size_minutes, remaining, end - start)
        day = pool[idx].date
        _take(pool, idx, start, start + size)
        blocks.append(Block(task.id, day, start, start + size))
        remaining -= size
    return blocks


def place_tasks(tasks: Iterable[Task],
                free_intervals: Iterable[FreeInterval],
                strategy: str = BALANCED,
                reference: Optional[date] = None) -> ScheduleReport:
    """
    Greedily assign free time to tasks.

    Tasks claim time in ``sort_tasks`` order, each taking the earliest free
    time it is allowed to use. ``free_intervals`` is copied first, so the
    caller's list is left as it was. Tasks that cannot be fully placed are
    reported in ``failures``: "full" when no block was placed, "partial" when
    the blocks placed cover only part of the duration.

    ``reference`` is the day urgency is measured from in the balanced
    strategy; it defaults to the first free day.
    """
    pool = sorted(
        (FreeInterval(iv.date, iv.start_minute, iv.end_minute)
         for iv in free_intervals if iv.length > 0),
        key=lambda iv: (iv.date, iv.start_minute),
    )
    if reference is None and pool:
        reference = pool[0].date

    report = ScheduleReport()
    for task in sort_tasks((t for t in tasks if not t.completed), strategy, reference):
        need = task.duration_minutes
        if need <= 0:
            logger.debug("task %s has nothing to schedule", task.id)
            continue

        lower = task.earliest_start
        upper = task.deadline if task.hard_deadline else None

        if task.chunk_size_minutes is None:
            blocks = _place_whole(task, pool, lower, upper)
        else:
            capacity = sum(end - start for _, start, end in _windows(pool, lower, upper))
            if upper is not None and capacity < need:
                # a hard deadline is all or nothing
                blocks = []
            else:
                blocks = _place_chunks(task, pool, lower, upper)

        placed = sum(b.minutes for b in blocks)
        report.placements[task.id] = blocks
        for b in blocks:
            logger.debug("task %s -> %s %s-%s", task.id, b.date, b.start_time, b.end_time)

        if placed < need:
            kind = "partial" if blocks else "full"
            where = " before its deadline" if upper is not None else ""
            if task.chunk_size_minutes is None:
                reason = f"no free slot of {need} min{where}"
            else:
                reason = f"only {placed} of {need} min could be placed{where}"
            report.failures.append(PlacementFailure(task.id, kind, need - placed, reason))

    return report
