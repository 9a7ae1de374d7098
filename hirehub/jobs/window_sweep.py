"""Shared machinery for jobs that watch a deadline column.

A sweep looks at rows whose deadline falls ``lead_days`` ahead of now
(within ``tolerance_days`` either side) and at rows whose deadline has
already passed. Each row is handled in its own transaction.
"""
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..utils.batch import batch_process
from ..utils.timeutil import utcnow


class TimeWindowSweep:
    job_name = 'sweep'
    model = None
    deadline = None  # name of the DateTime column being watched

    def __init__(self, now=None, lead_days=None, tolerance_days=None):
        cfg = current_app.config
        self.now = now or utcnow()
        self.lead_days = cfg.get('EXPIRY_WARNING_DAYS', 7) if lead_days is None else lead_days
        self.tolerance_days = cfg.get('EXPIRY_WARNING_TOLERANCE_DAYS', 1) if tolerance_days is None else tolerance_days
        self.errors = []

    # subclasses narrow this to the rows still being watched
    def active_query(self):
        return self.model.query

    def window(self):
        centre = self.now + timedelta(days=self.lead_days)
        tol = timedelta(days=self.tolerance_days)
        return centre - tol, centre + tol

    def expiring_ids(self):
        col = getattr(self.model, self.deadline)
        lo, hi = self.window()
        rows = self.active_query().filter(col >= lo, col <= hi).order_by(col).with_entities(self.model.id)
        return [r.id for r in rows]

    def ended_ids(self):
        col = getattr(self.model, self.deadline)
        rows = self.active_query().filter(col < self.now).order_by(col).with_entities(self.model.id)
        return [r.id for r in rows]

    def on_expiring(self, row):
        raise NotImplementedError

    def on_ended(self, row):
        raise NotImplementedError

    def log(self, msg, *args):
        current_app.logger.info(f'[{self.job_name}] {msg}', *args)

    def error(self, row_id, message):
        self.errors.append(f'{self.model.__name__} {row_id}: {message}')

    def _apply(self, ids, handler):
        def run_one(row_id):
            row = db.session.get(self.model, row_id)
            if row is None:
                return
            handler(row)
            db.session.commit()

        def failed(row_id, exc):
            db.session.rollback()
            current_app.logger.exception('[%s] %s %s failed', self.job_name, self.model.__name__, row_id)
            self.error(row_id, str(exc))

        batch_process(ids, run_one, on_error=failed)

    def sweep(self):
        expiring = self.expiring_ids()
        self.log('%d rows inside the warning window', len(expiring))
        self._apply(expiring, self.on_expiring)
        ended = self.ended_ids()
        self.log('%d rows past their deadline', len(ended))
        self._apply(ended, self.on_ended)
        return len(expiring), len(ended)
