# main.py
import logging

import pandas as pd
import matplotlib.pyplot as plt

from autoschedule import Settings, generate_schedule_for_all, week_range


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = Settings.from_mapping({
        "workingHoursStart": "09:00",
        "workingHoursEnd": "17:00",
        "taskSchedulingStrategy": "balanced",
        "timezone": "America/New_York",
    })

    # Week of 2025-11-03 (Mon..Sun)
    week_start, week_end = week_range(settings, now=pd.Timestamp("2025-11-05 10:00", tz=settings.tz))

    events = [
        {"id": "class-os", "name": "OS Class", "start_date": "2025-11-03",
         "start_time": "12:50", "end_date": "2025-11-03", "end_time": "14:45"},
        {"id": "standup", "name": "Standup", "start_date": "2025-11-03",
         "start_time": "09:00", "end_date": "2025-11-03", "end_time": "09:15",
         "recurring": "daily"},
        {"id": "offsite", "name": "Offsite", "start_date": "2025-11-06",
         "start_time": "13:00", "end_date": "2025-11-07", "end_time": "11:00"},
    ]

    tasks = [
        {"id": "dw1", "name": "Deep Work: Project", "duration": 180, "chunk_size": 90,
         "priority": "high", "due_date": "2025-11-07", "due_time": "17:00",
         "hard_deadline": True},
        {"id": "study1", "name": "Study: OS", "duration": 120, "priority": "medium",
         "due_date": "2025-11-08"},
        {"id": "report", "name": "Quarterly report", "duration": 300, "chunk_size": 60,
         "priority": "low", "due_date": "2025-11-04", "hard_deadline": False},
        {"id": "gym", "name": "Gym", "duration": 60, "priority": "low"},
    ]

    store = {t["id"]: dict(t) for t in tasks}

    def update_task(task_id, data):
        store[task_id].update(data)

    report = generate_schedule_for_all(
        tasks, events, settings, week_start, week_end, update_task,
    )

    print("=== Schedule ===")
    print(report.to_frame())
    print(report.summary())
    for failure in report.failures:
        print(f"  {failure.task_id}: {failure.kind} ({failure.reason})")

    # Booked minutes per day
    df = report.to_frame()
    per_day = df.groupby("date")["minutes"].sum() if not df.empty else pd.Series(dtype=int)
    plt.figure(figsize=(10, 3))
    plt.bar(per_day.index, per_day.values)
    plt.title("Scheduled Task Minutes per Day")
    plt.xlabel("Date")
    plt.ylabel("Minutes")
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
