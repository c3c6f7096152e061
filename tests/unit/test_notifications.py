"""
Unit tests for the NotificationCenter.

Today is 2025-06-15 in every test (see conftest.NOW).
"""

from datetime import date

import pytest

from src.core.billing.errors import InvalidArgumentError, NotFoundError, ValidationError
from src.core.billing.models import PageRequest
from src.core.billing.notifications import (
    EXPIRING_TEMPLATE,
    NotificationCenter,
    NotificationSettings,
    render,
)
from src.core.billing.patches import NotificationSettingsPatch

from tests.conftest import NOW, RecordingSender, fixed_clock


@pytest.fixture
def center(uow, sender) -> NotificationCenter:
    return NotificationCenter(uow, sender, clock=fixed_clock)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class TestRender:

    def test_fills_placeholders(self):
        assert render("Hi {{coach_name}}, {{ plan_name }}", {"coach_name": "Sam", "plan_name": "Pro"}) == "Hi Sam, Pro"

    def test_unknown_placeholders_are_left_as_written(self):
        assert render("Hi {{nickname}}", {"coach_name": "Sam"}) == "Hi {{nickname}}"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:

    def test_defaults_when_nothing_is_stored(self, center):
        settings = center.get_settings()

        assert settings.expiring_subscription_days == 7
        assert settings.enable_email_notifications is True
        assert settings.enable_sms_notifications is False
        assert "{{coach_name}}" in settings.email_templates[EXPIRING_TEMPLATE]["body"]

    def test_update_persists_and_merges_templates(self, center):
        center.update_settings(NotificationSettingsPatch(
            expiring_subscription_days=14,
            email_templates={EXPIRING_TEMPLATE: {"subject": "Time to renew"}},
        ))

        settings = center.get_settings()

        assert settings.expiring_subscription_days == 14
        assert settings.email_templates[EXPIRING_TEMPLATE]["subject"] == "Time to renew"
        # the body wasn't sent, so the default body is kept
        assert "{{plan_name}}" in settings.email_templates[EXPIRING_TEMPLATE]["body"]

    def test_rejects_unknown_template(self, center):
        with pytest.raises(InvalidArgumentError, match="Unknown sms_templates"):
            center.update_settings(NotificationSettingsPatch(sms_templates={"welcome": "Hi"}))

    def test_rejects_non_positive_window(self, center):
        with pytest.raises(InvalidArgumentError, match="positive integer"):
            center.update_settings(NotificationSettingsPatch(expiring_subscription_days=0))

    def test_from_dict_tolerates_partial_documents(self):
        settings = NotificationSettings.from_dict({"enable_sms_notifications": True})

        assert settings.enable_sms_notifications is True
        assert settings.expiring_subscription_days == 7


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------

class TestOverview:

    def test_candidate_lists(self, center, lifecycle, make_subscription):
        expiring = make_subscription(date(2025, 6, 1), date(2025, 6, 20))
        make_subscription(date(2025, 6, 1), date(2025, 6, 30))
        expired_yesterday = make_subscription(date(2025, 5, 1), date(2025, 6, 14))
        expired_last_week = make_subscription(date(2025, 5, 1), date(2025, 6, 8), status="expired")
        make_subscription(date(2025, 5, 1), date(2025, 6, 7))
        cancelled = make_subscription(date(2025, 5, 1), date(2025, 6, 12))
        lifecycle.cancel(cancelled.id)
        pending = make_subscription(date(2025, 7, 1), date(2025, 7, 31), payment_status="pending")

        overview = center.overview(PageRequest())

        assert overview.expiring_days == 7
        assert [d.subscription.id for d in overview.expiring.items] == [expiring.id]
        assert [d.subscription.id for d in overview.recently_expired.items] == [
            expired_yesterday.id,
            expired_last_week.id,
        ]
        assert [d.subscription.id for d in overview.pending_payments.items] == [pending.id]

    def test_window_follows_saved_settings(self, center, make_subscription):
        later = make_subscription(date(2025, 6, 1), date(2025, 6, 28))
        center.update_settings(NotificationSettingsPatch(expiring_subscription_days=14))

        overview = center.overview(PageRequest())

        assert [d.subscription.id for d in overview.expiring.items] == [later.id]


# ---------------------------------------------------------------------------
# Single Sends
# ---------------------------------------------------------------------------

class TestSendExpiring:

    def test_sends_rendered_email_and_flags_subscription(self, center, sender, uow, make_coach, make_plan, make_subscription):
        coach = make_coach(name="Sam Rivers", email="sam@example.com")
        plan = make_plan(name="Pro")
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 20), coach=coach, plan=plan)

        result = center.send_expiring(subscription.id)

        assert [m.to for m in result.messages] == ["sam@example.com"]
        message = sender.sent[0]
        assert message.channel == "email"
        assert "Dear Sam Rivers" in message.body
        assert "Pro plan is expiring on 2025-06-20" in message.body

        stored = uow.subscriptions.get(subscription.id)
        assert stored.notification_sent is True
        assert stored.last_notification_date == NOW

    def test_sms_goes_to_coaches_with_a_phone(self, center, sender, make_coach, make_subscription):
        center.update_settings(NotificationSettingsPatch(enable_sms_notifications=True))
        with_phone = make_subscription(date(2025, 6, 1), date(2025, 6, 20), coach=make_coach(phone="+15550100"))
        without_phone = make_subscription(date(2025, 6, 1), date(2025, 6, 20))

        center.send_expiring(with_phone.id)
        center.send_expiring(without_phone.id)

        assert [m.channel for m in sender.sent] == ["email", "sms", "email"]
        assert sender.sent[1].to == "+15550100"

    def test_all_channels_disabled(self, center, make_subscription):
        center.update_settings(NotificationSettingsPatch(enable_email_notifications=False))
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 20))

        with pytest.raises(ValidationError, match="channels are disabled"):
            center.send_expiring(subscription.id)

    def test_failed_delivery_leaves_subscription_unflagged(self, uow, make_coach, make_subscription):
        failing = NotificationCenter(uow, RecordingSender(fail_for=("down@example.com",)), clock=fixed_clock)
        subscription = make_subscription(
            date(2025, 6, 1), date(2025, 6, 20), coach=make_coach(email="down@example.com")
        )

        with pytest.raises(ConnectionError):
            failing.send_expiring(subscription.id)

        assert uow.subscriptions.get(subscription.id).notification_sent is False

    def test_unknown_subscription(self, center):
        with pytest.raises(NotFoundError):
            center.send_expiring(404)


class TestPaymentReminder:

    def test_requires_pending_payment(self, center, make_subscription):
        paid = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        with pytest.raises(ValidationError, match="does not have a pending payment"):
            center.send_payment_reminder(paid.id)

    def test_sends_reminder_with_price(self, center, sender, uow, make_plan, make_subscription):
        plan = make_plan(price="49.5")
        pending = make_subscription(date(2025, 6, 1), date(2025, 6, 30), plan=plan, payment_status="pending")

        center.send_payment_reminder(pending.id)

        assert "$49.50" in sender.sent[0].body
        stored = uow.subscriptions.get(pending.id)
        assert stored.payment_reminder_sent is True
        assert stored.last_payment_reminder_date == NOW


# ---------------------------------------------------------------------------
# Bulk Send
# ---------------------------------------------------------------------------

class TestBulkExpiring:

    def test_skips_already_notified(self, center, sender, make_subscription):
        first = make_subscription(date(2025, 6, 1), date(2025, 6, 18))
        second = make_subscription(date(2025, 6, 1), date(2025, 6, 19))
        center.send_expiring(first.id)
        sender.sent.clear()

        result = center.send_bulk_expiring(7)

        assert [s.subscription_id for s in result.sent] == [second.id]
        assert result.failed == []

    def test_continues_after_a_failure(self, uow, make_coach, make_subscription):
        sender = RecordingSender(fail_for=("down@example.com",))
        center = NotificationCenter(uow, sender, clock=fixed_clock)
        ok_before = make_subscription(date(2025, 6, 1), date(2025, 6, 16))
        broken = make_subscription(date(2025, 6, 1), date(2025, 6, 17), coach=make_coach(email="down@example.com"))
        ok_after = make_subscription(date(2025, 6, 1), date(2025, 6, 18))

        result = center.send_bulk_expiring(7)

        assert [s.subscription_id for s in result.sent] == [ok_before.id, ok_after.id]
        assert [(f.subscription_id, f.coach_email) for f in result.failed] == [(broken.id, "down@example.com")]
        assert "Mailbox unavailable" in result.failed[0].error
        assert uow.subscriptions.get(ok_after.id).notification_sent is True
        assert uow.subscriptions.get(broken.id).notification_sent is False

    def test_nothing_to_send(self, center, make_subscription):
        make_subscription(date(2025, 6, 1), date(2025, 7, 30))

        with pytest.raises(NotFoundError):
            center.send_bulk_expiring(7)

    @pytest.mark.parametrize("days", [-1, True])
    def test_rejects_bad_days(self, center, days):
        with pytest.raises(InvalidArgumentError):
            center.send_bulk_expiring(days)
