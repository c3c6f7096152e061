"""
Concurrent booking tests.

Several threads, each with its own unit of work on a file-backed SQLite
database, try to book overlapping periods for the same coach. The coach
lock must let exactly one of them through.
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from src.core.billing.directory import CoachDirectory, PlanDirectory
from src.core.billing.errors import OverlapConflictError
from src.core.billing.lifecycle import SubscriptionLifecycle
from src.infrastructure.database.client import Database
from src.infrastructure.database.unit_of_work import (
    CoachLocks,
    CoachLockTimeoutError,
    SqlAlchemyUnitOfWork,
)
from src.infrastructure.security import BcryptPasswordHasher

from tests.conftest import fixed_clock


WRITERS = 6


@pytest.fixture
def file_database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'billing.db'}")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def locks() -> CoachLocks:
    return CoachLocks()


@pytest.fixture
def seeded(file_database):
    """Two coaches and a plan, committed before any writer starts."""
    with SqlAlchemyUnitOfWork.from_database(file_database, locks=CoachLocks()) as uow:
        coaches = CoachDirectory(uow, BcryptPasswordHasher(rounds=4))
        first = coaches.create("Coach One", "one@example.com", "pw")
        second = coaches.create("Coach Two", "two@example.com", "pw")
        plan = PlanDirectory(uow).create("Monthly", Decimal("29.99"), 30)
        return first.id, second.id, plan.id


def run_writers(database, locks, bookings):
    """Start one thread per (coach_id, plan_id, start, end) at the same moment; collect outcomes."""
    barrier = threading.Barrier(len(bookings))
    outcomes: list = [None] * len(bookings)

    def book(index, coach_id, plan_id, start, end):
        with SqlAlchemyUnitOfWork.from_database(database, locks=locks, lock_timeout=10.0) as uow:
            lifecycle = SubscriptionLifecycle(uow, clock=fixed_clock)
            barrier.wait()
            try:
                outcomes[index] = lifecycle.create(coach_id, plan_id, start, end)
            except OverlapConflictError as e:
                outcomes[index] = e

    threads = [
        threading.Thread(target=book, args=(i, *booking))
        for i, booking in enumerate(bookings)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    return outcomes


# ---------------------------------------------------------------------------
# Overlapping Writers
# ---------------------------------------------------------------------------

class TestConcurrentCreate:

    def test_exactly_one_overlapping_booking_wins(self, file_database, locks, seeded):
        coach_id, _, plan_id = seeded
        bookings = [
            (coach_id, plan_id, date(2025, 6, 1 + i), date(2025, 6, 30))
            for i in range(WRITERS)
        ]

        outcomes = run_writers(file_database, locks, bookings)

        conflicts = [o for o in outcomes if isinstance(o, OverlapConflictError)]
        winners = [o for o in outcomes if o is not None and not isinstance(o, OverlapConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == WRITERS - 1
        assert all(c.conflicting_ids == [winners[0].id] for c in conflicts)

        with SqlAlchemyUnitOfWork.from_database(file_database, locks=locks) as uow:
            assert len(uow.subscriptions.list_for_coach(coach_id)) == 1

    def test_different_coaches_do_not_block_each_other(self, file_database, locks, seeded):
        first, second, plan_id = seeded

        outcomes = run_writers(
            file_database,
            locks,
            [
                (first, plan_id, date(2025, 6, 1), date(2025, 6, 30)),
                (second, plan_id, date(2025, 6, 1), date(2025, 6, 30)),
            ],
        )

        assert {o.coach_id for o in outcomes} == {first, second}


# ---------------------------------------------------------------------------
# Lock Timeout
# ---------------------------------------------------------------------------

class TestCoachLockTimeout:

    def test_held_lock_times_out_as_conflict(self, file_database, locks, seeded):
        coach_id, _, plan_id = seeded
        stripe = locks.stripe(coach_id)
        assert locks.acquire(stripe, timeout=1)

        try:
            with SqlAlchemyUnitOfWork.from_database(file_database, locks=locks, lock_timeout=0.1) as uow:
                lifecycle = SubscriptionLifecycle(uow, clock=fixed_clock)
                with pytest.raises(CoachLockTimeoutError):
                    lifecycle.create(coach_id, plan_id, date(2025, 6, 1), date(2025, 6, 30))
        finally:
            locks.release(stripe)

    def test_lock_is_released_after_commit(self, file_database, locks, seeded):
        coach_id, _, plan_id = seeded

        with SqlAlchemyUnitOfWork.from_database(file_database, locks=locks) as uow:
            SubscriptionLifecycle(uow, clock=fixed_clock).create(
                coach_id, plan_id, date(2025, 6, 1), date(2025, 6, 30)
            )

        stripe = locks.stripe(coach_id)
        assert locks.acquire(stripe, timeout=0.1)
        locks.release(stripe)
