# Overview: Unit-of-work helpers for ledger writes: row locks, rollback and retry.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id optimistic lock is what serializes writers.
    """
    return query.with_for_update()


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute func as one unit of work on session.

    - Any exception rolls the session back before it propagates, so a failed
      operation never leaves flushed-but-uncommitted rows behind.
    - OperationalError (deadlocks, lock timeouts) and StaleDataError
      (optimistic locking conflicts) are retried with exponential backoff.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "retrying ledger write after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
