"""
Append-only log of completion facts.

A fact says "task T was done on day D". There is at most one fact per
(task, day); writing an existing fact or deleting a missing one is a no-op.
Every mutating call commits before it returns.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from tasktracker.models import Completion, Task

logger = logging.getLogger(__name__)


class CompletionLedger:
    def __init__(self, session):
        self.session = session

    def record(self, task: Task, day: date) -> None:
        stmt = (
            sqlite_insert(Completion)
            .values(task_id=task.id, user_id=task.user_id, completed_date=day)
            .on_conflict_do_nothing(index_elements=['task_id', 'completed_date'])
        )
        self.session.execute(stmt)
        self.session.commit()

    def unrecord(self, task_id: int, day: date) -> None:
        self.session.execute(
            delete(Completion).where(
                Completion.task_id == task_id,
                Completion.completed_date == day,
            )
        )
        self.session.commit()

    def clear_period(self, task_id: int, start: date, end: date) -> int:
        """Delete the task's facts dated within ``start``..``end`` inclusive."""
        result = self.session.execute(
            delete(Completion).where(
                Completion.task_id == task_id,
                Completion.completed_date >= start,
                Completion.completed_date <= end,
            )
        )
        self.session.commit()
        return result.rowcount

    def facts_for(self, user_id: str, since: date) -> list[tuple[int, date]]:
        rows = self.session.execute(
            select(Completion.task_id, Completion.completed_date)
            .join(Task, Task.id == Completion.task_id)
            .where(Task.user_id == user_id, Completion.completed_date >= since)
        ).all()
        return [(row.task_id, row.completed_date) for row in rows]

    def history(self, user_id: str, start: date, end: date) -> list[dict]:
        """Facts in ``start``..``end`` inclusive with their task titles, newest first."""
        rows = self.session.execute(
            select(Completion, Task.title)
            .join(Task, Task.id == Completion.task_id)
            .where(
                Task.user_id == user_id,
                Completion.completed_date >= start,
                Completion.completed_date <= end,
            )
            .order_by(Completion.completed_date.desc(), Completion.task_id)
        ).all()
        return [
            {
                'id': completion.id,
                'task_id': completion.task_id,
                'task_title': title,
                'completed_date': completion.completed_date.isoformat(),
                'created_at': completion.created_at.isoformat() if completion.created_at else None,
            }
            for completion, title in rows
        ]

    def sweep(self, before: date) -> int:
        """Delete every fact older than ``before``, for all users."""
        result = self.session.execute(
            delete(Completion).where(Completion.completed_date < before)
        )
        self.session.commit()
        logger.debug('Swept %s completion facts dated before %s', result.rowcount, before)
        return result.rowcount
