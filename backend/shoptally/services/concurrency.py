# Overview: Transaction retry and storage-failure classification for service operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import StorageUnavailableError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work as one DB transaction, retrying on transient failures.

    Retries OperationalError (locks, deadlocks, dropped connections) and
    StaleDataError. The session is rolled back before every retry and on any
    other exception, so a failed operation never leaves half-applied stock
    changes pending in the session.

    After the last attempt, storage-level failures surface as
    StorageUnavailableError; domain errors propagate unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, PoolTimeoutError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Storage unavailable after %d attempts: %s", attempts, exc)
                raise StorageUnavailableError("Cannot connect to database. Please try again later.") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except DBAPIError as exc:
            db.session.rollback()
            if exc.connection_invalidated:
                raise StorageUnavailableError("Cannot connect to database. Please try again later.") from exc
            raise
        except Exception:
            db.session.rollback()
            raise
