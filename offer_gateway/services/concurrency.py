"""Per-offer serialization and transactional units of work"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from offer_gateway.domain.exceptions import (
    DomainException,
    InternalFailureError,
    PreconditionFailedError,
)
from offer_gateway.infrastructure.observability.metrics import offer_conflict_counter

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One mutex per key, created on first use and dropped when nobody holds or awaits it"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]


# Shared by every service in the process: recomputes and transitions on one offer run one at a time
offer_locks = KeyedLocks()


@contextmanager
def unit_of_work(db: Session) -> Iterator[None]:
    """
    Commit everything done in the block, or roll all of it back.

    Raises:
        PreconditionFailedError: a concurrent writer updated the offer first
        InternalFailureError: any other persistence failure
    """
    try:
        yield
        db.commit()
    except StaleDataError as e:
        db.rollback()
        offer_conflict_counter.inc()
        raise PreconditionFailedError("Offer was modified by another request, reload and try again") from e
    except DomainException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Persistence failure: {e}")
        raise InternalFailureError("Error saving changes") from e
    except Exception:
        db.rollback()
        raise
