"""
Task tracker operations.

Every method takes the owner's token and filters on it; a row owned by
somebody else is reported exactly like a missing row. Mutations run under
the application's write lock.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError

from tasktracker.errors import ConflictError, NotFoundError, ValidationError
from tasktracker.ledger import CompletionLedger
from tasktracker.models import DEFAULT_RESET_DAY, RESET_DAY_RANGE, Category, Frequency, Task
from tasktracker.status import StatusResolver, index_facts

logger = logging.getLogger(__name__)

_MISSING = object()


def parse_date(value, field):
    if not value:
        raise ValidationError(f'{field} is required (YYYY-MM-DD format)')
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format') from None


def _parse_id(value, field):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer') from None


def _parse_frequency(value):
    frequency = Frequency.parse(value)
    if frequency is None:
        choices = ', '.join(f.value for f in Frequency)
        raise ValidationError(f'Frequency must be one of: {choices}')
    return frequency


def _normalize_reset_day(frequency, reset_day):
    """Apply the frequency's default anchor and check its range."""
    if frequency not in RESET_DAY_RANGE:
        return None
    if reset_day is None:
        return DEFAULT_RESET_DAY[frequency]
    reset_day = _parse_id(reset_day, 'reset_day')
    low, high = RESET_DAY_RANGE[frequency]
    if not low <= reset_day <= high:
        raise ValidationError(f'reset_day for {frequency.value} tasks must be between {low} and {high}')
    return reset_day


class TrackerService:
    def __init__(self, session, clock, write_lock, sweeper=None):
        self.session = session
        self.clock = clock
        self.write_lock = write_lock
        self.ledger = CompletionLedger(session)
        self.sweeper = sweeper

    # -------------------- Lookups --------------------
    def _get_category(self, user_id, category_id):
        category = self.session.get(Category, _parse_id(category_id, 'category_id'))
        if category is None or category.user_id != user_id:
            raise NotFoundError('Category not found')
        return category

    def _get_task(self, user_id, task_id):
        task = self.session.get(Task, _parse_id(task_id, 'task_id'))
        if task is None or task.user_id != user_id:
            raise NotFoundError('Task not found')
        return task

    def _task_view(self, task, resolver, facts, include_history=False):
        data = task.to_dict()
        data['completed'] = resolver.is_complete(task, facts)
        start = resolver.period_start(task)
        data['period_start'] = None if start == date.min else start.isoformat()
        resets_on = resolver.next_period_start(task)
        data['resets_on'] = resets_on.isoformat() if resets_on else None
        if include_history:
            days = sorted(facts.get(task.id, ()), reverse=True)
            data['completions'] = [d.isoformat() for d in days]
        return data

    def _single_task_view(self, task):
        resolver = StatusResolver(self.clock())
        facts = index_facts(
            (task.id, day)
            for task_id, day in self.ledger.facts_for(task.user_id, resolver.period_start(task))
            if task_id == task.id
        )
        return self._task_view(task, resolver, facts)

    # -------------------- Categories --------------------
    def list_categories(self, user_id):
        categories = (
            Category.query.filter_by(user_id=user_id).order_by(Category.name).all()
        )
        return [c.to_dict() for c in categories]

    def create_category(self, user_id, name):
        if name is not None and not isinstance(name, str):
            raise ValidationError('Name must be text')
        name = (name or '').strip()
        if not name:
            raise ValidationError('Name is required')
        with self.write_lock:
            category = Category(user_id=user_id, name=name)
            self.session.add(category)
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                if 'UNIQUE constraint' in str(exc.orig):
                    raise ConflictError('Category name already exists') from exc
                raise
        logger.info('Created category %s for %s', category.id, user_id)
        return category.to_dict()

    def delete_category(self, user_id, category_id):
        with self.write_lock:
            category = self._get_category(user_id, category_id)
            self.session.delete(category)
            self.session.commit()
        logger.info('Deleted category %s for %s', category_id, user_id)

    # -------------------- Tasks --------------------
    def list_tasks(self, user_id, category_id=None, include_history=False):
        query = Task.query.join(Category).filter(Task.user_id == user_id)
        if category_id is not None:
            query = query.filter(Task.category_id == _parse_id(category_id, 'category_id'))
            query = query.order_by(Task.created_at.desc(), Task.id.desc())
        else:
            query = query.order_by(Category.name, Task.created_at.desc(), Task.id.desc())
        tasks = query.all()

        resolver = StatusResolver(self.clock())
        since = date.min if include_history else resolver.earliest_period_start(tasks)
        facts = index_facts(self.ledger.facts_for(user_id, since))
        return [self._task_view(t, resolver, facts, include_history) for t in tasks]

    def create_task(self, user_id, title, frequency, category_id, reset_day=None):
        if not title or not frequency or category_id in (None, ''):
            raise ValidationError('Title, frequency, and category_id are required')
        frequency = _parse_frequency(frequency)
        reset_day = _normalize_reset_day(frequency, reset_day)
        with self.write_lock:
            category = self._get_category(user_id, category_id)
            task = Task(
                user_id=user_id, title=title, frequency=frequency.value,
                category_id=category.id, reset_day=reset_day,
            )
            self.session.add(task)
            self.session.commit()
        logger.info('Created %s task %s for %s', frequency.value, task.id, user_id)
        return self._single_task_view(task)

    def toggle_task(self, user_id, task_id):
        """Flip today's completion.

        A task that is currently complete loses today's fact; otherwise
        today's fact is recorded.
        """
        with self.write_lock:
            task = self._get_task(user_id, task_id)
            resolver = StatusResolver(self.clock())
            facts = index_facts(self.ledger.facts_for(user_id, resolver.period_start(task)))
            if resolver.is_complete(task, facts):
                self.ledger.unrecord(task.id, resolver.today)
            else:
                self.ledger.record(task, resolver.today)
        return self._single_task_view(task)

    def reset_task(self, user_id, task_id):
        """Force the task back to incomplete by clearing its current period."""
        with self.write_lock:
            task = self._get_task(user_id, task_id)
            resolver = StatusResolver(self.clock())
            removed = self.ledger.clear_period(task.id, resolver.period_start(task), resolver.today)
        logger.info('Reset task %s; removed %s completion facts', task.id, removed)
        return self._single_task_view(task)

    def update_task(self, user_id, task_id, title=_MISSING, frequency=_MISSING, reset_day=_MISSING):
        if title is _MISSING and frequency is _MISSING and reset_day is _MISSING:
            raise ValidationError('No fields to update')
        with self.write_lock:
            task = self._get_task(user_id, task_id)
            if title is not _MISSING and not title:
                raise ValidationError('Title cannot be empty')

            new_frequency = Frequency(task.frequency)
            if frequency is not _MISSING:
                new_frequency = _parse_frequency(frequency)
            if reset_day is _MISSING:
                # keep the anchor unless it no longer fits the frequency
                reset_day = task.reset_day if new_frequency.value == task.frequency else None
            reset_day = _normalize_reset_day(new_frequency, reset_day)

            if title is not _MISSING:
                task.title = title
            task.frequency = new_frequency.value
            task.reset_day = reset_day
            self.session.commit()
        return self._single_task_view(task)

    def delete_task(self, user_id, task_id):
        with self.write_lock:
            task = self._get_task(user_id, task_id)
            self.session.delete(task)
            self.session.commit()
        logger.info('Deleted task %s for %s', task_id, user_id)

    # -------------------- History --------------------
    def completion_history(self, user_id, start_date, end_date):
        start = parse_date(start_date, 'start_date')
        end = parse_date(end_date, 'end_date')
        if self.sweeper is not None:
            with self.write_lock:
                self.sweeper.sweep()
        return self.ledger.history(user_id, start, end)
