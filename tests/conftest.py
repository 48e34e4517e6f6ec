from datetime import date

import pytest

from autoschedule.models import Event, Task
from autoschedule.settings import Settings

DAY = date(2025, 11, 3)  # a Monday


def hm(text):
    h, m = text.split(":")
    return int(h) * 60 + int(m)


@pytest.fixture
def day():
    return DAY


@pytest.fixture
def settings():
    return Settings(working_hours_start="09:00", working_hours_end="17:00")


@pytest.fixture
def make_task():
    def _make(task_id, duration=60, **kwargs):
        return Task(id=task_id, name=task_id, duration_minutes=duration, **kwargs)
    return _make


@pytest.fixture
def make_event():
    def _make(event_id, start, end, start_date=DAY, end_date=None, **kwargs):
        return Event(
            id=event_id,
            start_date=start_date,
            start_time=hm(start),
            end_date=end_date or start_date,
            end_time=hm(end),
            **kwargs,
        )
    return _make
