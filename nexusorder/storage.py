"""
nexusorder/storage.py

Persistence boundary around the SQLAlchemy session.

- Reads: bounded retry with fixed backoff on connectivity errors, then fall back to a default.
- Writes: whole-record, one commit, NEVER retried. Failure -> rollback + PersistenceError.

IMPORTANT:
- Audit rows added to the session before save_record()/delete_record() are committed
  (or rolled back) together with the record.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from flask import current_app
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError

from .extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class PersistenceError(Exception):
    """A write did not reach the database. Stored state is unchanged."""


def read_with_retry(
    loader: Callable[[], Any],
    default: Any = None,
    *,
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
) -> Any:
    """
    Run `loader` (e.g. lambda: Order.query.all()) up to `attempts` times.

    Returns `default` ([] when omitted) once attempts are exhausted.
    """
    if default is None:
        default = []
    if attempts is None:
        attempts = int(current_app.config.get("READ_RETRY_ATTEMPTS", 3))
    if delay is None:
        delay = float(current_app.config.get("READ_RETRY_DELAY", 1.0))

    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return loader()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                logger.warning("Read failed after %s attempts: %s", attempts, exc)
                break
            logger.info("Read failed (attempt %s/%s), retrying in %.1fs", attempt, attempts, delay)
            if delay > 0:
                time.sleep(delay)

    return default


def flush_record(instance: Any) -> Any:
    """Add + flush so the row gets its id (audit needs it). Same failure contract as save_record."""
    try:
        db.session.add(instance)
        db.session.flush()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Flush failed for %s: %s", instance.__class__.__name__, exc)
        raise PersistenceError("No se pudo guardar el registro.") from exc
    return instance


def save_record(instance: Any = None) -> Any:
    """Add (if given) and commit. No retry."""
    try:
        if instance is not None:
            db.session.add(instance)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Write failed for %s: %s", instance.__class__.__name__, exc)
        raise PersistenceError("No se pudo guardar el registro.") from exc
    return instance


def delete_record(instance: Any) -> None:
    try:
        db.session.delete(instance)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Delete failed for %s: %s", instance.__class__.__name__, exc)
        raise PersistenceError("No se pudo eliminar el registro.") from exc
