"""
SQLAlchemy unit of work.

One session, the repositories bound to it, and the per-coach lock that
makes "check for overlap, then write" safe under concurrent requests.

How the coach lock works depends on the dialect:
- PostgreSQL: pg_advisory_xact_lock, released by the database when the
  transaction ends.
- Anything else: SELECT ... FOR UPDATE on the coach row (a no-op on
  SQLite) plus an in-process striped lock. The striped lock only
  protects a single process, which is what SQLite deployments are.
"""

import logging
import threading
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from src.core.billing.errors import ConflictError

from .client import Database
from .repositories import (
    AdminRepository,
    CoachRepository,
    PlanRepository,
    SettingsRepository,
    SubscriptionRepository,
)
from .tables import CoachRow


logger = logging.getLogger(__name__)

# First key of the two-int advisory lock; keeps coach locks apart from
# any other advisory locks sharing the database.
ADVISORY_LOCK_NAMESPACE = 7301


class CoachLockTimeoutError(ConflictError):
    """Another transaction held the coach lock for too long."""
    pass


class CoachLocks:
    """
    Striped locks keyed by coach id.

    Plain Locks rather than RLocks: FastAPI may run a request's setup,
    handler and teardown on different worker threads, and a lock owned
    by a thread couldn't be released from another one. Re-entrancy is
    tracked per unit of work instead.
    """

    def __init__(self, stripes: int = 64) -> None:
        self._locks = [threading.Lock() for _ in range(stripes)]

    def stripe(self, coach_id: int) -> int:
        return coach_id % len(self._locks)

    def acquire(self, stripe: int, timeout: float) -> bool:
        return self._locks[stripe].acquire(timeout=timeout)

    def release(self, stripe: int) -> None:
        self._locks[stripe].release()


# Shared by every unit of work in the process
COACH_LOCKS = CoachLocks()


class SqlAlchemyUnitOfWork:
    """
    Request-scoped transaction over a SQLAlchemy session.

    Coach locks taken through lock_coach() are held until commit(),
    rollback() or close(), whichever comes first.
    """

    def __init__(
        self,
        session: Session,
        locks: Optional[CoachLocks] = None,
        lock_timeout: float = 30.0,
    ) -> None:
        self.session = session
        self.admins = AdminRepository(session)
        self.coaches = CoachRepository(session)
        self.plans = PlanRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.settings = SettingsRepository(session)

        self._locks = locks or COACH_LOCKS
        self._lock_timeout = lock_timeout
        self._held_stripes: set[int] = set()

    @classmethod
    def from_database(cls, database: Database, **kwargs) -> "SqlAlchemyUnitOfWork":
        return cls(database.session(), **kwargs)

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def lock_coach(self, coach_id: int) -> None:
        """Serialize writers touching this coach until the transaction ends."""
        if self.dialect == "postgresql":
            self.session.execute(
                text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
                {"namespace": ADVISORY_LOCK_NAMESPACE, "key": coach_id},
            )
            return

        stripe = self._locks.stripe(coach_id)
        if stripe not in self._held_stripes:
            if not self._locks.acquire(stripe, self._lock_timeout):
                logger.warning(
                    "Timed out waiting for coach lock",
                    extra={"coach_id": coach_id, "timeout": self._lock_timeout}
                )
                raise CoachLockTimeoutError("Another change to this coach is in progress")
            self._held_stripes.add(stripe)

        self.session.execute(
            select(CoachRow.id).where(CoachRow.id == coach_id).with_for_update()
        )

    def commit(self) -> None:
        try:
            self.session.commit()
        finally:
            self._release_locks()

    def rollback(self) -> None:
        try:
            self.session.rollback()
        finally:
            self._release_locks()

    def close(self) -> None:
        """Discard anything uncommitted and return the connection to the pool."""
        try:
            self.session.close()
        finally:
            self._release_locks()

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _release_locks(self) -> None:
        while self._held_stripes:
            self._locks.release(self._held_stripes.pop())
