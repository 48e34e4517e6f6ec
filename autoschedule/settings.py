# autoschedule/settings.py
import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Mapping, Optional, Tuple

import pandas as pd

from .models import BALANCED, STRATEGIES, parse_hhmm

logger = logging.getLogger(__name__)

_ALIASES = {
    "workingHoursStart": "working_hours_start",
    "workingHoursEnd": "working_hours_end",
    "defaultTaskDuration": "default_task_duration",
    "defaultChunkDuration": "default_chunk_duration",
    "taskSchedulingStrategy": "task_scheduling_strategy",
    "timezone": "tz",
    "horizonDays": "horizon_days",
}


@dataclass
class Settings:
    working_hours_start: str = "09:00"
    working_hours_end: str = "17:00"
    default_task_duration: int = 60       # minutes, used when a task has none
    default_chunk_duration: int = 30      # minutes, form default for new tasks
    task_scheduling_strategy: str = BALANCED
    tz: str = "UTC"
    horizon_days: int = 30                # window of horizon_range()

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "Settings":
        """
        Build settings from a stored settings row. Keys may be camelCase or
        snake_case; keys the scheduler does not use (theme, views) are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (raw or {}).items():
            name = _ALIASES.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    @property
    def work_start_minute(self) -> int:
        return parse_hhmm(self.working_hours_start)

    @property
    def work_end_minute(self) -> int:
        return parse_hhmm(self.working_hours_end)

    @property
    def strategy(self) -> str:
        if self.task_scheduling_strategy in STRATEGIES:
            return self.task_scheduling_strategy
        logger.warning("unknown scheduling strategy %r, using %r",
                       self.task_scheduling_strategy, BALANCED)
        return BALANCED

    def check(self) -> None:
        """Log configuration problems that degrade scheduling without failing it."""
        if self.work_start_minute >= self.work_end_minute:
            logger.warning(
                "working hours %s-%s are empty; every day has zero capacity",
                self.working_hours_start, self.working_hours_end,
            )


def local_today(settings: Settings, now: Optional[pd.Timestamp] = None) -> date:
    if now is None:
        now = pd.Timestamp.now(tz=settings.tz)
    return now.date()


def today_range(settings: Settings, now: Optional[pd.Timestamp] = None) -> Tuple[date, date]:
    today = local_today(settings, now)
    return today, today


def week_range(settings: Settings, now: Optional[pd.Timestamp] = None) -> Tuple[date, date]:
    """Monday..Sunday of the current week."""
    today = pd.Timestamp(local_today(settings, now))
    monday = today - pd.Timedelta(days=today.weekday())
    return monday.date(), (monday + pd.Timedelta(days=6)).date()


def horizon_range(settings: Settings, now: Optional[pd.Timestamp] = None) -> Tuple[date, date]:
    today = pd.Timestamp(local_today(settings, now))
    last = today + pd.Timedelta(days=max(settings.horizon_days, 1) - 1)
    return today.date(), last.date()
