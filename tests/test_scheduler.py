import logging
from datetime import date, datetime, timedelta

import pandas as pd
import pytest
from prometheus_client import REGISTRY

from autoschedule.errors import InvalidInputError
from autoschedule.models import Block
from autoschedule.scheduler import generate_schedule, generate_schedule_for_all
from autoschedule.settings import Settings, horizon_range, today_range, week_range

MON = date(2025, 11, 3)
FRI = date(2025, 11, 7)

SETTINGS = {"workingHoursStart": "09:00", "workingHoursEnd": "17:00",
            "taskSchedulingStrategy": "balanced", "theme": "dark"}

EVENTS = [
    {"id": "class", "start_date": "2025-11-03", "start_time": "12:00",
     "end_date": "2025-11-03", "end_time": "13:30"},
    {"id": "standup", "startDate": "2025-11-03", "startTime": "09:00",
     "endDate": "2025-11-03", "endTime": "09:30", "recurring": "daily"},
    {"id": "offsite", "start_date": "2025-11-05", "start_time": "14:00",
     "end_date": "2025-11-06", "end_time": "11:00"},
]

TASKS = [
    {"id": "t1", "duration": 240, "chunk_size": 60, "priority": "high",
     "due_date": "2025-11-04", "hard_deadline": True},
    {"id": "t2", "duration": 90, "priority": "medium", "due_date": "2025-11-05"},
    {"id": "t3", "duration": 600, "chunkSize": 90, "priority": "low",
     "dueDate": "2025-11-07", "dueTime": "12:00", "hardDeadline": True},
    {"id": "t4", "duration": 2000, "chunk_size": 120, "priority": "low"},
    {"id": "t5", "duration": 45, "start_date": "2025-11-06", "start_time": "15:00"},
    {"id": "done", "duration": 60, "completed": True},
]


@pytest.fixture
def report():
    return generate_schedule(TASKS, EVENTS, SETTINGS, MON, FRI)


def durations(report):
    return {task_id: sum(b.minutes for b in blocks) for task_id, blocks in report.placements.items()}


class TestGenerateSchedule:
    def test_no_double_booking_against_tasks_or_events(self, report):
        blocks = report.blocks()
        for i, x in enumerate(blocks):
            for y in blocks[i + 1:]:
                if x.date == y.date:
                    assert x.end_minute <= y.start_minute or y.end_minute <= x.start_minute
            assert not (x.date == MON and x.start_minute < 810 and x.end_minute > 720)
            assert x.start_minute >= 570  # daily standup until 09:30
            assert 540 <= x.start_minute < x.end_minute <= 1020

    def test_capacity_conservation(self, report):
        wanted = {t["id"]: t["duration"] for t in TASKS}
        for task_id, minutes in durations(report).items():
            assert minutes <= wanted[task_id]
            if task_id not in report.failed_ids:
                assert minutes == wanted[task_id]

    def test_hard_deadlines(self, report):
        assert "t1" not in report.failed_ids
        assert all(b.date <= date(2025, 11, 4) for b in report.placements["t1"])
        assert "t3" not in report.failed_ids
        assert all(b.end <= datetime(2025, 11, 7, 12) for b in report.placements["t3"])

    def test_chunk_bound(self, report):
        assert all(b.minutes <= 60 for b in report.placements["t1"])
        assert all(b.minutes <= 90 for b in report.placements["t3"])

    def test_overbooked_task_reported_partial(self, report):
        failure = {f.task_id: f for f in report.failures}["t4"]
        assert failure.kind == "partial"
        assert report.placements["t4"]
        assert "could not be placed" in report.summary()

    def test_completed_tasks_ignored(self, report):
        assert "done" not in report.placements

    def test_start_bound(self, report):
        block, = report.placements["t5"]
        assert block.start >= datetime(2025, 11, 6, 15)

    def test_deterministic_and_replayable(self, report):
        again = generate_schedule(TASKS, EVENTS, SETTINGS, MON, FRI)
        assert again == report
        assert again.to_frame().equals(report.to_frame())

    def test_rerun_with_own_blocks_reserved_adds_nothing(self):
        tasks = [{"id": "a", "duration": 120, "chunk_size": 60}, {"id": "b", "duration": 60}]
        first = generate_schedule(tasks, [], SETTINGS, MON, MON)
        second = generate_schedule([], [], SETTINGS, MON, MON, reserved_blocks=first.blocks())
        assert second.blocks() == []
        # reserved time is busy for new tasks
        third = generate_schedule([{"id": "c", "duration": 60}], [], SETTINGS, MON, MON,
                                  reserved_blocks=first.blocks())
        assert third.placements["c"][0].start_time == "12:00"

    def test_reserved_dict_blocks(self):
        reserved = [{"date": "2025-11-03", "startTime": "09:00", "endTime": "10:00", "taskId": "x"}]
        report = generate_schedule([{"id": "a", "duration": 30}], [], SETTINGS, MON, MON,
                                   reserved_blocks=reserved)
        assert report.placements["a"][0].start_time == "10:00"

    def test_start_from_skips_past(self):
        report = generate_schedule([{"id": "a", "duration": 30}], [], SETTINGS, MON, MON,
                                   start_from=datetime(2025, 11, 3, 14, 7))
        assert report.placements["a"][0].start_time == "14:07"

    def test_aware_start_from_converted_to_local(self):
        settings = dict(SETTINGS, timezone="America/New_York")
        for moment in (pd.Timestamp("2025-11-03 14:07", tz="America/New_York"),
                       pd.Timestamp("2025-11-03 19:07", tz="UTC")):
            report = generate_schedule([{"id": "a", "duration": 30}], [], settings, MON, MON,
                                       start_from=moment)
            assert report.placements["a"][0].start_time == "14:07"

    def test_string_range_and_settings_object(self):
        report = generate_schedule([{"id": "a", "duration": 30}], [], Settings(),
                                   "2025-11-03", "2025-11-03")
        assert report.placements["a"] == [Block("a", MON, 540, 570)]

    def test_invalid_input_raises_before_scheduling(self):
        with pytest.raises(InvalidInputError) as exc:
            generate_schedule([{"id": "a", "duration": -1},
                               {"id": "b", "hard_deadline": True}], EVENTS, SETTINGS, MON, FRI)
        assert [i for i, _ in exc.value.problems] == ["a", "b"]

    def test_empty_working_hours_fail_every_task(self):
        settings = dict(SETTINGS, workingHoursStart="17:00", workingHoursEnd="09:00")
        report = generate_schedule([{"id": "a"}, {"id": "b"}], [], settings, MON, FRI)
        assert report.failed_ids == ["a", "b"]
        assert all(f.kind == "full" for f in report.failures)

    def test_unknown_strategy_falls_back(self):
        settings = dict(SETTINGS, taskSchedulingStrategy="random")
        report = generate_schedule([{"id": "a", "duration": 30}], [], settings, MON, MON)
        assert report.ok

    def test_failure_metric(self):
        before = REGISTRY.get_sample_value(
            "autoschedule_placement_failures_total", {"kind": "full"}) or 0
        generate_schedule([{"id": "big", "duration": 1000}], [], SETTINGS, MON, MON)
        after = REGISTRY.get_sample_value("autoschedule_placement_failures_total", {"kind": "full"})
        assert after == before + 1

    def test_log_counts_only_placed_tasks(self, caplog):
        caplog.set_level(logging.INFO, logger="autoschedule.scheduler")
        generate_schedule([{"id": "a", "duration": 30}, {"id": "big", "duration": 1000}],
                          [], SETTINGS, MON, MON)
        assert "scheduled 1 task(s) into 1 block(s)" in caplog.text

    def test_frame(self, report):
        df = report.to_frame()
        assert list(df.columns) == ["id", "date", "start", "end", "minutes"]
        assert df["start"].is_monotonic_increasing
        assert int(df["minutes"].sum()) == sum(durations(report).values())


class TestGenerateForAll:
    def test_saves_and_reports(self):
        saved = {}

        def update(task_id, data):
            if task_id == "b":
                raise RuntimeError("row locked")
            saved[task_id] = data

        tasks = [{"id": "a", "duration": 60, "priority": "high"},
                 {"id": "b", "duration": 60},
                 {"id": "c", "duration": 10000}]
        report = generate_schedule_for_all(tasks, [], SETTINGS, MON, MON, update)
        assert list(saved) == ["a"]
        assert saved["a"]["scheduledBlocks"][0]["startTime"] == "09:00"
        assert [e.task_id for e in report.write_errors] == ["b"]
        assert report.failed_ids == ["c"]
        assert report.summary() == (
            "Schedule generated, but 1 task could not be placed and 1 task could not be saved."
        )

    def test_clean_run_summary(self):
        report = generate_schedule_for_all([{"id": "a", "duration": 60}], [], SETTINGS,
                                           MON, MON, lambda task_id, data: None)
        assert report.ok
        assert report.summary() == "Schedule generated."


class TestRanges:
    NOW = pd.Timestamp("2025-11-05 22:30", tz="UTC")

    def test_today(self):
        assert today_range(Settings(), now=self.NOW) == (date(2025, 11, 5), date(2025, 11, 5))

    def test_week_starts_monday(self):
        assert week_range(Settings(), now=self.NOW) == (MON, date(2025, 11, 9))

    def test_horizon(self):
        start, end = horizon_range(Settings(horizon_days=30), now=self.NOW)
        assert end - start == timedelta(days=29)

    def test_settings_from_mapping(self):
        s = Settings.from_mapping(SETTINGS)
        assert (s.work_start_minute, s.work_end_minute) == (540, 1020)
        assert s.strategy == "balanced"
