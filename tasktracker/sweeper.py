"""Housekeeping: drop completion facts past the retention horizon."""
from __future__ import annotations

import logging
from datetime import date

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_MONTHS = 3


def retention_cutoff(today: date, months: int = DEFAULT_RETENTION_MONTHS) -> date:
    """Oldest date that is kept: ``today`` minus ``months`` calendar months."""
    return today - relativedelta(months=months)


class RetentionSweeper:
    def __init__(self, ledger, clock, months=DEFAULT_RETENTION_MONTHS):
        self.ledger = ledger
        self.clock = clock
        self.months = months

    def sweep(self):
        """Delete old facts. Returns the number removed, or None on failure.

        Failures are logged and never raised: retention only bounds storage.
        """
        cutoff = retention_cutoff(self.clock(), self.months)
        try:
            removed = self.ledger.sweep(cutoff)
        except SQLAlchemyError:
            self.ledger.session.rollback()
            logger.exception('Error cleaning up completions older than %s', cutoff)
            return None
        logger.info('Cleaned up %s completion records older than %s', removed, cutoff.isoformat())
        return removed
