# Overview: Transaction and locking helpers shared by the mutating sales process services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError, SalesFlowError, StoreFailure
from ..logging_config import get_logger

logger = get_logger("services.concurrency")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The SalesProcess version column still catches lost updates there.
    """
    return query.with_for_update()


@contextmanager
def atomic(session: Session, operation: str):
    """
    Run a read-check-write sequence as one transaction.

    Commits when the block finishes; rolls back on any error. Domain errors
    propagate unchanged, optimistic-lock failures become
    ConcurrencyConflictError and any other SQLAlchemy error becomes
    StoreFailure naming the operation. Nothing is retried.
    """
    try:
        yield session
        session.commit()
    except SalesFlowError:
        session.rollback()
        raise
    except StaleDataError as exc:
        session.rollback()
        logger.warning("concurrent modification detected", extra={"store_operation": operation})
        raise ConcurrencyConflictError(operation, exc) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("store operation failed", extra={"store_operation": operation}, exc_info=True)
        raise StoreFailure(operation, exc) from exc


@contextmanager
def store_errors(operation: str):
    """Translate SQLAlchemy errors raised by a read into StoreFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("store read failed", extra={"store_operation": operation}, exc_info=True)
        raise StoreFailure(operation, exc) from exc
