"""
Unit tests for how timestamps come back from the database.

SQLite stores no timezone; every timestamp must still read back as an
aware UTC datetime, whichever session loads it.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from src.core.billing.lifecycle import SubscriptionLifecycle
from src.infrastructure.database.tables import UTCDateTime
from src.infrastructure.database.unit_of_work import CoachLocks, SqlAlchemyUnitOfWork

from tests.conftest import NOW, fixed_clock


@pytest.fixture
def fresh_uow(database):
    """A second unit of work, so reads go to the database instead of the first session's identity map."""
    unit = SqlAlchemyUnitOfWork.from_database(database, locks=CoachLocks())
    yield unit
    unit.close()


# ---------------------------------------------------------------------------
# Column Type
# ---------------------------------------------------------------------------

class TestUTCDateTime:

    def test_naive_results_get_utc(self):
        value = UTCDateTime().process_result_value(datetime(2025, 6, 15, 12, 0), dialect=None)
        assert value == NOW
        assert value.tzinfo is timezone.utc

    def test_binds_are_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = UTCDateTime().process_bind_param(datetime(2025, 6, 15, 14, 0, tzinfo=plus_two), dialect=None)
        assert value == NOW
        assert value.utcoffset() == timedelta(0)

    def test_none_passes_through(self):
        assert UTCDateTime().process_result_value(None, dialect=None) is None
        assert UTCDateTime().process_bind_param(None, dialect=None) is None


# ---------------------------------------------------------------------------
# Round Trips
# ---------------------------------------------------------------------------

class TestStoredTimestamps:

    def test_cancel_is_idempotent_across_sessions(self, lifecycle, fresh_uow, make_subscription):
        subscription = make_subscription(date(2025, 1, 1), date(2025, 1, 31))
        first = lifecycle.cancel(subscription.id, "First reason")

        second = SubscriptionLifecycle(fresh_uow, clock=fixed_clock).cancel(subscription.id, "Second reason")

        assert second.cancellation_reason == "First reason"
        assert second.cancelled_at == first.cancelled_at == NOW
        assert second.cancelled_at.tzinfo is not None

    def test_payment_date_reads_back_aware(self, lifecycle, fresh_uow, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30), payment_status="pending")
        lifecycle.record_payment(subscription.id, "paid")

        stored = fresh_uow.subscriptions.get(subscription.id)

        assert stored.payment_date == NOW
        assert stored.payment_date.utcoffset() == timedelta(0)
        assert stored.created_at.tzinfo is not None

    def test_admin_last_login_reads_back_aware(self, admins, fresh_uow):
        admins.register("Ada", "ada@example.com", "s3cret")
        admin = admins.authenticate("ada@example.com", "s3cret")

        assert fresh_uow.admins.get(admin.id).last_login == NOW
