"""Derive "currently complete" from completion facts."""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from tasktracker.periods import next_period_start, period_start


def index_facts(facts: Iterable[tuple[int, date]]) -> dict[int, set[date]]:
    """Group ``(task_id, day)`` pairs by task."""
    index = defaultdict(set)
    for task_id, day in facts:
        index[task_id].add(day)
    return dict(index)


class StatusResolver:
    """Answers completion questions against one fixed ``today``.

    Build one resolver per request so every task in a response is judged
    against the same date even if the clock ticks past midnight midway.
    """

    def __init__(self, today: date):
        self.today = today

    def period_start(self, task) -> date:
        return period_start(self.today, task.frequency, task.reset_day)

    def next_period_start(self, task) -> date | None:
        return next_period_start(self.today, task.frequency, task.reset_day)

    def earliest_period_start(self, tasks) -> date:
        """Lower bound for fetching every fact the given tasks depend on."""
        return min((self.period_start(task) for task in tasks), default=self.today)

    def is_complete(self, task, facts: dict[int, set[date]]) -> bool:
        start = self.period_start(task)
        return any(day >= start for day in facts.get(task.id, ()))

    def was_completed_on(self, task_id: int, day: date, facts: dict[int, set[date]]) -> bool:
        return day in facts.get(task_id, ())
