"""
SQLAlchemy models for the task tracker.

Completion status is not a column: a task is complete when the
``task_completions`` ledger holds a fact inside the task's current period
(see ``status.py``).
"""
from datetime import datetime, timezone
from enum import Enum

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Frequency(str, Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    ONE_TIME = 'one-time'

    @classmethod
    def parse(cls, value):
        """Return the member for ``value`` or None when it is not a frequency."""
        try:
            return cls(value)
        except ValueError:
            return None


# Sunday for weekly tasks, the 1st for monthly ones
DEFAULT_RESET_DAY = {
    Frequency.WEEKLY: 0,
    Frequency.MONTHLY: 1,
}

RESET_DAY_RANGE = {
    Frequency.WEEKLY: (0, 6),
    Frequency.MONTHLY: (1, 31),
}


# -------------------- Models --------------------
class Setting(db.Model):
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False)
    value = db.Column(db.String(1024), nullable=True)

    @staticmethod
    def get(key, default=None):
        s = Setting.query.filter_by(key=key).first()
        return s.value if s else default


class Category(db.Model):
    __tablename__ = 'categories'
    __table_args__ = (db.UniqueConstraint('user_id', 'name'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    tasks = db.relationship(
        'Task', back_populates='category',
        cascade='all, delete-orphan', passive_deletes=True,
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Task(db.Model):
    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    frequency = db.Column(db.String(16), nullable=False)
    category_id = db.Column(
        db.Integer, db.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False,
    )
    reset_day = db.Column(db.Integer, nullable=True)  # weekday 0..6 or day of month 1..31
    created_at = db.Column(db.DateTime, default=_utcnow)

    category = db.relationship('Category', back_populates='tasks')
    completions = db.relationship(
        'Completion', back_populates='task',
        cascade='all, delete-orphan', passive_deletes=True,
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'frequency': self.frequency,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category else None,
            'reset_day': self.reset_day,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Completion(db.Model):
    """One completion fact: ``task`` was done on ``completed_date``."""

    __tablename__ = 'task_completions'
    __table_args__ = (db.UniqueConstraint('task_id', 'completed_date'),)

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False,
    )
    user_id = db.Column(db.String(64), nullable=False, index=True)
    completed_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    task = db.relationship('Task', back_populates='completions')
