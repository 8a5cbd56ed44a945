# Overview: Service-layer operations for concurrency; row locks and transaction retry.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of DB work as one transaction, retrying on concurrency failures.

    func must perform all of its reads and writes and finish with a single
    db.session.commit(). Any exception rolls the session back, so a failed
    unit never leaves partial writes behind.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts); every other exception propagates after
    rollback.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.info("Retrying transaction after %s (attempt %d)", type(exc).__name__, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
