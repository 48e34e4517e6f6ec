# autoschedule/errors.py
from typing import List, Tuple


class SchedulerError(Exception):
    pass


class InvalidInputError(SchedulerError, ValueError):
    """Raised once per batch, listing every offending record."""

    def __init__(self, problems: List[Tuple[str, str]]):
        self.problems = list(problems)
        lines = [f"{record_id}: {message}" for record_id, message in self.problems]
        super().__init__(
            f"{len(self.problems)} invalid record(s):\n  " + "\n  ".join(lines)
        )
