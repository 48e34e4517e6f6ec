# autoschedule/normalize.py
"""
Translation from stored task/event records to the scheduler's model.

Stored rows use snake_case (``due_date``) while client-side objects use
camelCase (``dueDate``); both are accepted here so the rest of the package only
ever sees ``Task``/``Event``/``Block`` instances. Validation is batch-wise: every
offending record is reported in one ``InvalidInputError``.
"""
import logging
from datetime import date, datetime, time
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .errors import InvalidInputError
from .models import (
    MEDIUM, PRIORITY_RANK, RECURRENCES,
    Block, Event, Task, parse_hhmm,
)
from .settings import Settings

logger = logging.getLogger(__name__)

Record = Union[Mapping[str, Any], Task]


def _get(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return default


def to_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return pd.Timestamp(value).date()
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid date {value!r}") from exc


def to_minute(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return parse_hhmm(value)


def to_minutes_count(value: Any, what: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{what} must be a number of minutes, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{what} must be a number of minutes, got {value!r}") from exc
    if not number.is_integer():
        raise ValueError(f"{what} must be a whole number of minutes, got {value!r}")
    return int(number)


def to_flag(value: Any, what: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{what} must be true or false, got {value!r}")


def normalize_block(raw: Union[Mapping[str, Any], Block], task_id: str) -> Block:
    """Block from a stored block dict, stamped with ``task_id`` when it has none."""
    if isinstance(raw, Block):
        if raw.task_id == task_id:
            return raw
        return Block(task_id, raw.date, raw.start_minute, raw.end_minute)
    start = to_minute(_get(raw, "startTime", "start_time"))
    end = to_minute(_get(raw, "endTime", "end_time"))
    if start is None and _get(raw, "startMinute", "start_minute") is not None:
        start = int(_get(raw, "startMinute", "start_minute"))
        end = start + int(_get(raw, "duration", default=0))
    day = to_date(_get(raw, "date"))
    if day is None or start is None or end is None:
        raise ValueError(f"incomplete block {dict(raw)!r}")
    if end <= start:
        raise ValueError(f"block ends before it starts: {dict(raw)!r}")
    return Block(str(_get(raw, "taskId", "task_id", default=task_id)), day, start, end)


def normalize_task(raw: Record, settings: Optional[Settings] = None) -> Task:
    if isinstance(raw, Task):
        return raw
    settings = settings or Settings()

    task_id = _get(raw, "id")
    if task_id is None:
        raise ValueError("task without id")
    task_id = str(task_id)

    duration = to_minutes_count(
        _get(raw, "durationMinutes", "duration_minutes", "duration"), "duration")
    if duration is None:
        duration = settings.default_task_duration
    chunk = to_minutes_count(
        _get(raw, "chunkSizeMinutes", "chunk_size_minutes", "chunkSize", "chunk_size"), "chunk size")

    status = _get(raw, "status", default="")

    return Task(
        id=task_id,
        name=str(_get(raw, "name", default="")),
        duration_minutes=duration,
        chunk_size_minutes=chunk or None,
        due_date=to_date(_get(raw, "dueDate", "due_date")),
        due_time=to_minute(_get(raw, "dueTime", "due_time")),
        hard_deadline=to_flag(_get(raw, "hardDeadline", "hard_deadline", default=False), "hard deadline"),
        priority=str(_get(raw, "priority", default=MEDIUM)).lower(),
        start_date=to_date(_get(raw, "startDate", "start_date")),
        start_time=to_minute(_get(raw, "startTime", "start_time")),
        completed=to_flag(_get(raw, "completed", default=False), "completed") or status == "completed",
    )


def normalize_event(raw: Union[Mapping[str, Any], Event]) -> Event:
    if isinstance(raw, Event):
        return raw
    event_id = str(_get(raw, "id", default=""))
    start_date = to_date(_get(raw, "startDate", "start_date", "date"))
    end_date = to_date(_get(raw, "endDate", "end_date")) or start_date
    start_time = to_minute(_get(raw, "startTime", "start_time"))
    end_time = to_minute(_get(raw, "endTime", "end_time"))
    missing = [name for name, value in (("start date", start_date),
                                        ("start time", start_time),
                                        ("end time", end_time)) if value is None]
    if missing:
        raise ValueError("event missing " + ", ".join(missing))
    return Event(
        id=event_id,
        name=str(_get(raw, "name", default="")),
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        recurring=str(_get(raw, "recurring", default="none")).lower(),
    )


def task_problems(task: Task) -> List[str]:
    problems = []
    if task.duration_minutes < 0:
        problems.append(f"negative duration {task.duration_minutes}")
    if task.chunk_size_minutes is not None and task.chunk_size_minutes <= 0:
        problems.append(f"chunk size must be positive, got {task.chunk_size_minutes}")
    if task.priority not in PRIORITY_RANK:
        problems.append(f"unknown priority {task.priority!r}")
    if task.hard_deadline and task.due_date is None:
        problems.append("hard deadline without a due date")
    if task.due_time is not None and task.due_date is None:
        problems.append("due time without a due date")
    if task.start_time is not None and task.start_date is None:
        problems.append("start time without a start date")
    for name in ("due_time", "start_time"):
        value = getattr(task, name)
        if value is not None and not 0 <= value <= 24 * 60:
            problems.append(f"{name} out of range: {value}")
    return problems


def event_problems(event: Event) -> List[str]:
    problems = []
    if event.end < event.start:
        problems.append("event ends before it starts")
    if event.recurring not in RECURRENCES:
        problems.append(f"unknown recurrence {event.recurring!r}")
    return problems


def validate_tasks(tasks: Iterable[Task]) -> None:
    problems: List[Tuple[str, str]] = []
    seen = set()
    for task in tasks:
        if task.id in seen:
            problems.append((task.id, "duplicate task id"))
        seen.add(task.id)
        problems.extend((task.id, p) for p in task_problems(task))
    if problems:
        raise InvalidInputError(problems)


def validate_events(events: Iterable[Event]) -> None:
    problems = [(e.id, p) for e in events for p in event_problems(e)]
    if problems:
        raise InvalidInputError(problems)


def _record_id(raw: Any, index: int) -> str:
    if isinstance(raw, (Task, Event)):
        return raw.id
    if isinstance(raw, Mapping) and raw.get("id") is not None:
        return str(raw["id"])
    return f"#{index}"


def normalize_tasks(raws: Iterable[Record], settings: Optional[Settings] = None) -> List[Task]:
    """Normalize and validate a batch of tasks, reporting all problems at once."""
    tasks: List[Task] = []
    problems: List[Tuple[str, str]] = []
    for index, raw in enumerate(raws):
        try:
            tasks.append(normalize_task(raw, settings))
        except ValueError as exc:
            problems.append((_record_id(raw, index), str(exc)))
    try:
        validate_tasks(tasks)
    except InvalidInputError as exc:
        problems.extend(exc.problems)
    if problems:
        raise InvalidInputError(problems)
    logger.debug("normalized %d task(s)", len(tasks))
    return tasks


def normalize_events(raws: Iterable[Union[Mapping[str, Any], Event]]) -> List[Event]:
    events: List[Event] = []
    problems: List[Tuple[str, str]] = []
    for index, raw in enumerate(raws):
        try:
            event = normalize_event(raw)
        except ValueError as exc:
            problems.append((_record_id(raw, index), str(exc)))
            continue
        found = event_problems(event)
        problems.extend((event.id or f"#{index}", p) for p in found)
        if not found:
            events.append(event)
    if problems:
        raise InvalidInputError(problems)
    logger.debug("normalized %d event(s)", len(events))
    return events
