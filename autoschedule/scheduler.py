# autoschedule/scheduler.py
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

import pandas as pd
from prometheus_client import Counter, Summary

from .availability import block_as_event, clip_before, compute_free_intervals
from .models import Block, Event, ScheduleReport, Task
from .normalize import normalize_block, normalize_events, normalize_tasks, to_date
from .placement import place_tasks
from .settings import Settings
from .writer import BLOCKS_FIELD, UpdateTaskFn, apply_placements

logger = logging.getLogger(__name__)

SCHEDULE_TIME = Summary(
    "autoschedule_generation_seconds",
    "Time spent computing a schedule",
)
PLACEMENT_FAILURES = Counter(
    "autoschedule_placement_failures_total",
    "Tasks that could not be fully placed",
    ["kind"],  # full | partial
)
WRITE_ERRORS = Counter(
    "autoschedule_write_errors_total",
    "Task schedule updates rejected by the task store",
)


def local_naive(moment: datetime, tz: str) -> datetime:
    """Naive local time of `moment`; aware moments are converted to `tz` first."""
    ts = pd.Timestamp(moment)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz).tz_localize(None)
    return ts.to_pydatetime()


TaskInput = Union[Task, Mapping[str, Any]]
EventInput = Union[Event, Mapping[str, Any]]


def generate_schedule(tasks: Iterable[TaskInput],
                      events: Iterable[EventInput],
                      settings: Optional[Union[Settings, Mapping[str, Any]]],
                      range_start: Union[date, str],
                      range_end: Union[date, str],
                      reserved_blocks: Optional[Iterable[Union[Block, Mapping[str, Any]]]] = None,
                      start_from: Optional[datetime] = None) -> ScheduleReport:
    """
    Compute a fresh schedule for ``tasks`` over [range_start, range_end].

    tasks / events: model objects or stored records (camelCase or snake_case).
    reserved_blocks: time that must stay free of tasks, e.g. sessions the user
                     missed or blocks pinned by hand.
    start_from: earliest moment anything may be placed (typically "now");
                timezone-aware moments are converted to settings.tz, naive
                ones are taken as local time like the task and event fields.

    Raises InvalidInputError listing every malformed task or event. Tasks that
    do not fit are reported in the returned report, not raised.
    """
    if not isinstance(settings, Settings):
        settings = Settings.from_mapping(settings)
    settings.check()

    range_start, range_end = to_date(range_start), to_date(range_end)
    if range_start is None or range_end is None:
        raise ValueError("range_start and range_end are required")

    task_list = normalize_tasks(tasks, settings)
    obstacles: List[Event] = normalize_events(events)
    for raw in reserved_blocks or []:
        if isinstance(raw, Block):
            block = raw
        else:
            block = normalize_block(raw, str(raw.get("taskId") or raw.get("task_id") or "reserved"))
        obstacles.append(block_as_event(block))

    with SCHEDULE_TIME.time():
        free = compute_free_intervals(
            range_start, range_end,
            settings.work_start_minute, settings.work_end_minute,
            obstacles,
        )
        if start_from is not None:
            free = clip_before(free, local_naive(start_from, settings.tz))
        report = place_tasks(task_list, free, settings.strategy, reference=range_start)

    for failure in report.failures:
        PLACEMENT_FAILURES.labels(kind=failure.kind).inc()
        logger.warning("task %s not fully scheduled (%s): %s",
                       failure.task_id, failure.kind, failure.reason)
    logger.info("scheduled %d task(s) into %d block(s) for %s..%s, %d failure(s)",
                sum(1 for blocks in report.placements.values() if blocks),
                len(report.blocks()),
                range_start, range_end, len(report.failures))
    return report


def generate_schedule_for_all(tasks: Iterable[TaskInput],
                              events: Iterable[EventInput],
                              settings: Optional[Union[Settings, Mapping[str, Any]]],
                              range_start: Union[date, str],
                              range_end: Union[date, str],
                              update_task_fn: UpdateTaskFn,
                              reserved_blocks: Optional[Iterable[Union[Block, Mapping[str, Any]]]] = None,
                              start_from: Optional[datetime] = None,
                              max_workers: int = 1,
                              field: str = BLOCKS_FIELD) -> ScheduleReport:
    """Compute a schedule and save every placed task through ``update_task_fn``."""
    report = generate_schedule(
        tasks, events, settings, range_start, range_end,
        reserved_blocks=reserved_blocks,
        start_from=start_from,
    )
    report.write_errors = apply_placements(
        report.placements, update_task_fn,
        max_workers=max_workers, field=field,
    )
    if report.write_errors:
        WRITE_ERRORS.inc(len(report.write_errors))
    logger.info(report.summary())
    return report
