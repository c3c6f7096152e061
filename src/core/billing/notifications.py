"""
Notification Center.

Finds subscriptions that need a nudge (about to expire, recently
expired, payment pending), renders messages from the stored templates
and hands them to a NotificationSender. Delivery is pluggable; the
default sender only logs.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Optional, Protocol

from .errors import InvalidArgumentError, NotFoundError, ValidationError
from .lifecycle import Clock, utc_now
from .models import (
    NotificationMessage,
    Page,
    PageRequest,
    PaymentStatus,
    SubscriptionDetail,
    SubscriptionStatus,
)
from .patches import NotificationSettingsPatch, provided
from .repositories import UnitOfWork, atomic


logger = logging.getLogger(__name__)

SETTINGS_KEY = "notifications"
RECENTLY_EXPIRED_DAYS = 7

EXPIRING_TEMPLATE = "expiring_subscription"
PAYMENT_TEMPLATE = "payment_reminder"
TEMPLATE_NAMES = (EXPIRING_TEMPLATE, PAYMENT_TEMPLATE)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _default_email_templates() -> dict[str, dict[str, str]]:
    return {
        EXPIRING_TEMPLATE: {
            "subject": "Your subscription is expiring soon",
            "body": (
                "Dear {{coach_name}},\n\n"
                "Your subscription to the {{plan_name}} plan is expiring on {{expiry_date}}. "
                "Please renew your subscription to continue enjoying our services.\n\n"
                "Thank you,\nSuper Sheets Team"
            ),
        },
        PAYMENT_TEMPLATE: {
            "subject": "Payment Reminder",
            "body": (
                "Dear {{coach_name}},\n\n"
                "This is a reminder that your payment of ${{plan_price}} for the {{plan_name}} "
                "plan is pending. Please complete your payment to continue enjoying our services.\n\n"
                "Thank you,\nSuper Sheets Team"
            ),
        },
    }


def _default_sms_templates() -> dict[str, str]:
    return {
        EXPIRING_TEMPLATE: (
            "Super Sheets: Your {{plan_name}} subscription expires on {{expiry_date}}. "
            "Please renew to continue service."
        ),
        PAYMENT_TEMPLATE: (
            "Super Sheets: Your payment of ${{plan_price}} for {{plan_name}} is pending. "
            "Please complete payment to continue service."
        ),
    }


def render(template: str, context: dict[str, Any]) -> str:
    """Fill {{name}} placeholders. Unknown placeholders are left as written."""
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        return str(context[key]) if key in context else match.group(0)
    return _PLACEHOLDER.sub(substitute, template)


def template_context(detail: SubscriptionDetail) -> dict[str, Any]:
    return {
        "coach_name": detail.coach.name,
        "coach_email": detail.coach.email,
        "plan_name": detail.plan.name,
        "plan_price": f"{detail.plan.price:.2f}",
        "expiry_date": detail.subscription.end_date.isoformat(),
        "start_date": detail.subscription.start_date.isoformat(),
    }


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class NotificationSender(Protocol):
    """Delivers a rendered message. Raise to signal a failed delivery."""

    def send(self, message: NotificationMessage) -> None: ...


@dataclass
class NotificationSettings:
    """The persisted notification configuration document."""
    expiring_subscription_days: int = 7
    enable_email_notifications: bool = True
    enable_sms_notifications: bool = False
    email_templates: dict[str, dict[str, str]] = field(default_factory=_default_email_templates)
    sms_templates: dict[str, str] = field(default_factory=_default_sms_templates)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]], expiring_days: int = 7) -> "NotificationSettings":
        """Build from a stored document, falling back to defaults for missing keys."""
        settings = cls(expiring_subscription_days=expiring_days)
        if not data:
            return settings
        if "expiring_subscription_days" in data:
            settings.expiring_subscription_days = int(data["expiring_subscription_days"])
        if "enable_email_notifications" in data:
            settings.enable_email_notifications = bool(data["enable_email_notifications"])
        if "enable_sms_notifications" in data:
            settings.enable_sms_notifications = bool(data["enable_sms_notifications"])
        for name, template in (data.get("email_templates") or {}).items():
            settings.email_templates[name] = dict(template)
        for name, template in (data.get("sms_templates") or {}).items():
            settings.sms_templates[name] = str(template)
        return settings

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NotificationOverview:
    expiring: Page[SubscriptionDetail]
    recently_expired: Page[SubscriptionDetail]
    pending_payments: Page[SubscriptionDetail]
    expiring_days: int


@dataclass
class DispatchResult:
    """What was sent for one subscription."""
    subscription_id: int
    coach_name: str
    coach_email: str
    messages: list[NotificationMessage]


@dataclass
class DispatchFailure:
    subscription_id: int
    coach_email: str
    error: str


@dataclass
class BulkDispatchResult:
    sent: list[DispatchResult] = field(default_factory=list)
    failed: list[DispatchFailure] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class NotificationCenter:
    """
    Candidate lists, single and bulk sends, and the settings document.

    Sends are synchronous. A message is handed to the sender first and
    the subscription is flagged only after the sender returns, so a failed
    delivery leaves the subscription eligible for the next run.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        sender: NotificationSender,
        clock: Clock = utc_now,
        default_expiring_days: int = 7,
        recently_expired_days: int = RECENTLY_EXPIRED_DAYS,
    ) -> None:
        self._uow = uow
        self._sender = sender
        self._clock = clock
        self._default_expiring_days = default_expiring_days
        self._recently_expired_days = recently_expired_days

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def overview(self, page: PageRequest) -> NotificationOverview:
        """
        Three paginated candidate lists:

        - expiring: active, ending within the configured window (soonest first)
        - recently expired: not cancelled, ended in the last week (latest first)
        - pending payments: payment_status pending (newest first)
        """
        today = self._clock().date()
        days = self.get_settings().expiring_subscription_days
        subscriptions = self._uow.subscriptions

        return NotificationOverview(
            expiring=subscriptions.find_ending_between(
                today,
                today + timedelta(days=days),
                statuses=[SubscriptionStatus.ACTIVE],
                page=page,
            ),
            recently_expired=subscriptions.find_ending_between(
                today - timedelta(days=self._recently_expired_days),
                today - timedelta(days=1),
                statuses=[SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED],
                descending=True,
                page=page,
            ),
            pending_payments=subscriptions.find_pending_payments(page=page),
            expiring_days=days,
        )

    def get_settings(self) -> NotificationSettings:
        return NotificationSettings.from_dict(
            self._uow.settings.get(SETTINGS_KEY),
            expiring_days=self._default_expiring_days,
        )

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def update_settings(self, patch: NotificationSettingsPatch) -> NotificationSettings:
        changes = provided(patch)

        with atomic(self._uow):
            settings = self.get_settings()

            if "expiring_subscription_days" in changes:
                days = changes["expiring_subscription_days"]
                if isinstance(days, bool) or not isinstance(days, int) or days < 1:
                    raise InvalidArgumentError("expiring_subscription_days must be a positive integer")
                settings.expiring_subscription_days = days

            for name in ("enable_email_notifications", "enable_sms_notifications"):
                if name in changes:
                    if not isinstance(changes[name], bool):
                        raise InvalidArgumentError(f"{name} must be true or false")
                    setattr(settings, name, changes[name])

            if "email_templates" in changes:
                for name, template in _checked_templates(changes["email_templates"], "email_templates"):
                    if not isinstance(template, dict):
                        raise InvalidArgumentError(f"email_templates.{name} must have a subject and body")
                    merged = {**settings.email_templates.get(name, {}), **template}
                    if set(merged) - {"subject", "body"} or not all(
                        isinstance(merged.get(part), str) for part in ("subject", "body")
                    ):
                        raise InvalidArgumentError(f"email_templates.{name} must have a subject and body")
                    settings.email_templates[name] = merged

            if "sms_templates" in changes:
                for name, template in _checked_templates(changes["sms_templates"], "sms_templates"):
                    if not isinstance(template, str):
                        raise InvalidArgumentError(f"sms_templates.{name} must be a string")
                    settings.sms_templates[name] = template

            self._uow.settings.put(SETTINGS_KEY, settings.to_dict())

        logger.info("Notification settings updated", extra={"fields": sorted(changes)})
        return settings

    def send_expiring(self, subscription_id: int) -> DispatchResult:
        """Send the expiring-subscription notice for one subscription."""
        settings = self.get_settings()

        with atomic(self._uow):
            detail = self._require(subscription_id)
            result = self._dispatch(detail, EXPIRING_TEMPLATE, settings)
            subscription = detail.subscription
            subscription.notification_sent = True
            subscription.last_notification_date = self._clock()
            self._uow.subscriptions.save(subscription)

        logger.info(
            "Expiring notification sent",
            extra={"subscription_id": subscription_id, "coach_id": detail.coach.id}
        )
        return result

    def send_payment_reminder(self, subscription_id: int) -> DispatchResult:
        """Only subscriptions with a pending payment get a reminder."""
        settings = self.get_settings()

        with atomic(self._uow):
            detail = self._require(subscription_id)
            subscription = detail.subscription
            if subscription.payment_status != PaymentStatus.PENDING:
                raise ValidationError("This subscription does not have a pending payment")

            result = self._dispatch(detail, PAYMENT_TEMPLATE, settings)
            subscription.payment_reminder_sent = True
            subscription.last_payment_reminder_date = self._clock()
            self._uow.subscriptions.save(subscription)

        logger.info(
            "Payment reminder sent",
            extra={"subscription_id": subscription_id, "coach_id": detail.coach.id}
        )
        return result

    def send_bulk_expiring(self, days: int) -> BulkDispatchResult:
        """
        Notify every active subscription ending within `days` days that
        hasn't been notified yet.

        Fail-soft: each candidate is sent and committed on its own. A
        failure is recorded in the result and the loop moves on.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise InvalidArgumentError("days must be zero or a positive integer")

        today = self._clock().date()
        candidates = self._uow.subscriptions.find_ending_between(
            today,
            today + timedelta(days=days),
            statuses=[SubscriptionStatus.ACTIVE],
            notification_sent=False,
        ).items
        if not candidates:
            raise NotFoundError("Subscriptions needing an expiry notification")

        settings = self.get_settings()
        result = BulkDispatchResult()

        for detail in candidates:
            subscription = detail.subscription
            try:
                with atomic(self._uow):
                    sent = self._dispatch(detail, EXPIRING_TEMPLATE, settings)
                    subscription.notification_sent = True
                    subscription.last_notification_date = self._clock()
                    self._uow.subscriptions.save(subscription)
                result.sent.append(sent)
            except Exception as e:
                logger.error(
                    "Bulk notification failed",
                    extra={"subscription_id": subscription.id, "error": str(e)},
                    exc_info=True
                )
                result.failed.append(DispatchFailure(
                    subscription_id=subscription.id,
                    coach_email=detail.coach.email,
                    error=str(e),
                ))

        logger.info(
            "Bulk expiring notifications finished",
            extra={"days": days, "sent": len(result.sent), "failed": len(result.failed)}
        )
        return result

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require(self, subscription_id: int) -> SubscriptionDetail:
        detail = self._uow.subscriptions.get_detail(subscription_id)
        if detail is None:
            raise NotFoundError("Subscription", subscription_id)
        return detail

    def _dispatch(
        self,
        detail: SubscriptionDetail,
        template_name: str,
        settings: NotificationSettings,
    ) -> DispatchResult:
        messages = self._render(detail, template_name, settings)
        if not messages:
            raise ValidationError("All notification channels are disabled")
        for message in messages:
            self._sender.send(message)
        return DispatchResult(
            subscription_id=detail.subscription.id,
            coach_name=detail.coach.name,
            coach_email=detail.coach.email,
            messages=messages,
        )

    def _render(
        self,
        detail: SubscriptionDetail,
        template_name: str,
        settings: NotificationSettings,
    ) -> list[NotificationMessage]:
        context = template_context(detail)
        messages = []

        if settings.enable_email_notifications:
            template = settings.email_templates[template_name]
            messages.append(NotificationMessage(
                to=detail.coach.email,
                subject=render(template["subject"], context),
                body=render(template["body"], context),
                channel="email",
            ))

        # SMS needs a phone number; coaches without one just get the email
        if settings.enable_sms_notifications and detail.coach.phone:
            messages.append(NotificationMessage(
                to=detail.coach.phone,
                subject="",
                body=render(settings.sms_templates[template_name], context),
                channel="sms",
            ))

        return messages


def _checked_templates(templates: Any, field_name: str) -> list[tuple[str, Any]]:
    if not isinstance(templates, dict):
        raise InvalidArgumentError(f"{field_name} must be an object")
    unknown = set(templates) - set(TEMPLATE_NAMES)
    if unknown:
        raise InvalidArgumentError(
            f"Unknown {field_name}: {', '.join(sorted(unknown))}. "
            f"Allowed values: {', '.join(TEMPLATE_NAMES)}"
        )
    return list(templates.items())
