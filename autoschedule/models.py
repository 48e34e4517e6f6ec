# autoschedule/models.py
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import pandas as pd

MINUTES_PER_DAY = 24 * 60

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
PRIORITY_RANK = {HIGH: 0, MEDIUM: 1, LOW: 2}

BALANCED = "balanced"
DEADLINE_FIRST = "deadline-first"
PRIORITY_FIRST = "priority-first"
STRATEGIES = (BALANCED, DEADLINE_FIRST, PRIORITY_FIRST)

RECURRENCES = ("none", "daily", "weekly", "monthly")


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" (or "HH:MM:SS") into minutes since midnight."""
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= minutes < 60) or not (0 <= hours <= 24):
        raise ValueError(f"invalid time {value!r}")
    total = hours * 60 + minutes
    if total > MINUTES_PER_DAY:
        raise ValueError(f"invalid time {value!r}")
    return total


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def at_minute(d: date, minute: int) -> datetime:
    # minute may be 1440 (end of day)
    return datetime.combine(d, time.min) + timedelta(minutes=minute)


@dataclass
class Task:
    id: str
    name: str = ""
    duration_minutes: int = 0
    chunk_size_minutes: Optional[int] = None
    due_date: Optional[date] = None
    due_time: Optional[int] = None        # minutes since midnight
    hard_deadline: bool = False
    priority: str = MEDIUM
    start_date: Optional[date] = None
    start_time: Optional[int] = None      # minutes since midnight
    completed: bool = False

    @property
    def deadline(self) -> Optional[datetime]:
        """Due moment; a due date without a time means the end of that day."""
        if self.due_date is None:
            return None
        minute = self.due_time if self.due_time is not None else MINUTES_PER_DAY
        return at_minute(self.due_date, minute)

    @property
    def earliest_start(self) -> Optional[datetime]:
        if self.start_date is None:
            return None
        return at_minute(self.start_date, self.start_time or 0)

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK[self.priority]


@dataclass
class Event:
    id: str
    start_date: date
    start_time: int                       # minutes since midnight
    end_date: date
    end_time: int
    name: str = ""
    recurring: str = "none"

    @property
    def start(self) -> datetime:
        return at_minute(self.start_date, self.start_time)

    @property
    def end(self) -> datetime:
        return at_minute(self.end_date, self.end_time)


@dataclass(frozen=True)
class Block:
    task_id: str
    date: date
    start_minute: int
    end_minute: int

    @property
    def start_time(self) -> str:
        return format_hhmm(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_hhmm(self.end_minute)

    @property
    def minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def start(self) -> datetime:
        return at_minute(self.date, self.start_minute)

    @property
    def end(self) -> datetime:
        return at_minute(self.date, self.end_minute)

    def to_dict(self) -> Dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "taskId": self.task_id,
        }


@dataclass
class FreeInterval:
    date: date
    start_minute: int
    end_minute: int

    @property
    def length(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def start(self) -> datetime:
        return at_minute(self.date, self.start_minute)

    @property
    def end(self) -> datetime:
        return at_minute(self.date, self.end_minute)


@dataclass(frozen=True)
class PlacementFailure:
    task_id: str
    kind: str                 # "full" | "partial"
    unplaced_minutes: int
    reason: str = ""


@dataclass(frozen=True)
class WriteError:
    task_id: str
    error: str


@dataclass
class ScheduleReport:
    placements: "OrderedDict[str, List[Block]]" = field(default_factory=OrderedDict)
    failures: List[PlacementFailure] = field(default_factory=list)
    write_errors: List[WriteError] = field(default_factory=list)

    @property
    def failed_ids(self) -> List[str]:
        return [f.task_id for f in self.failures]

    @property
    def ok(self) -> bool:
        return not self.failures and not self.write_errors

    def blocks(self) -> List[Block]:
        return [b for blocks in self.placements.values() for b in blocks]

    def summary(self) -> str:
        """Short user-facing message describing the run."""
        n_failed = len(self.failures)
        n_write = len(self.write_errors)
        if not n_failed and not n_write:
            return "Schedule generated."
        parts = []
        if n_failed:
            noun = "task" if n_failed == 1 else "tasks"
            parts.append(f"{n_failed} {noun} could not be placed")
        if n_write:
            noun = "task" if n_write == 1 else "tasks"
            parts.append(f"{n_write} {noun} could not be saved")
        return "Schedule generated, but " + " and ".join(parts) + "."

    def to_frame(self) -> pd.DataFrame:
        """
        Blocks as a dataframe with columns: id, date, start, end, minutes.
        Rows are ordered by start time.
        """
        rows = [{
            "id": b.task_id,
            "date": b.date.isoformat(),
            "start": pd.Timestamp(b.start),
            "end": pd.Timestamp(b.end),
            "minutes": b.minutes,
        } for b in self.blocks()]
        if not rows:
            return pd.DataFrame(columns=["id", "date", "start", "end", "minutes"])
        return pd.DataFrame(rows).sort_values(["start", "id"], kind="mergesort").reset_index(drop=True)
