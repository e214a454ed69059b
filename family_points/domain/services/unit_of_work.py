import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from family_points.data.session import WRITE_LOCK_OPTION
from family_points.domain.errors import DuplicateApplicationError, StorageFailureError
from family_points.domain.services import events

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Commit everything done inside the block as one transaction.

    The block runs in a fresh transaction that holds the SQLite write lock from
    its first statement; reads made on the session before it are committed first.
    Any exception rolls the whole block back, so an event row never survives
    without its balance effect. Integrity violations surface as duplicate
    applications; other driver errors surface as retryable storage failures.
    Queued ledger notifications are delivered only after a successful commit.
    """
    try:
        _begin_write(session)
        yield session
        session.commit()
    except IntegrityError as exc:
        _rollback(session)
        raise DuplicateApplicationError("This event has already been recorded.") from exc
    except (DBAPIError, SQLAlchemyError) as exc:
        _rollback(session)
        logger.warning("Storage failure, transaction rolled back: %s", exc)
        raise StorageFailureError() from exc
    except BaseException:
        _rollback(session)
        raise
    events.deliver_pending(session)


def _begin_write(session: Session) -> None:
    if session.in_transaction():
        session.commit()
    session.connection(execution_options={WRITE_LOCK_OPTION: True})


def _rollback(session: Session) -> None:
    events.discard_pending(session)
    try:
        session.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed")
        raise
