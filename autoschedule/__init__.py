from .availability import block_as_event, compute_free_intervals, expand_occurrences
from .errors import InvalidInputError, SchedulerError
from .models import (
    Block, Event, FreeInterval, PlacementFailure, ScheduleReport, Task, WriteError,
)
from .normalize import normalize_event, normalize_events, normalize_task, normalize_tasks
from .placement import place_tasks, sort_tasks
from .scheduler import generate_schedule, generate_schedule_for_all
from .settings import Settings, horizon_range, today_range, week_range
from .writer import apply_placements, update_task_schedule

__all__ = [
    "Block", "Event", "FreeInterval", "PlacementFailure", "ScheduleReport", "Task", "WriteError",
    "InvalidInputError", "SchedulerError", "Settings",
    "apply_placements", "block_as_event", "compute_free_intervals", "expand_occurrences",
    "generate_schedule", "generate_schedule_for_all", "horizon_range",
    "normalize_event", "normalize_events", "normalize_task", "normalize_tasks",
    "place_tasks", "sort_tasks", "today_range", "update_task_schedule", "week_range",
]
