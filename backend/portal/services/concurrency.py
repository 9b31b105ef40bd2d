# Overview: Retry and locking helpers for stock movements that race other requests.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """Row lock for the read that decides a stock movement (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(op, *, label: str = "inventory write", attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a stock movement, re-running it from a clean session when it loses a race.

    A lost race shows up as StaleDataError (InventoryItem.version_id moved
    under us) or OperationalError (SQLite busy). Each retry re-reads the item,
    so the stock check runs against the winner's quantity. Business errors
    such as an overdraw propagate on the first attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return op()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("%s gave up after %s attempts: %s", label, attempts, exc)
                raise
            current_app.logger.warning("%s conflicted (attempt %s/%s), retrying", label, attempt, attempts)
            time.sleep(backoff_base * (2 ** (attempt - 1)))
