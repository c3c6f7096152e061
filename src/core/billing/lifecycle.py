"""
Subscription lifecycle and overlap validation.

This is the heart of the billing core. Every path that can widen the
time a coach holds (create, a date or owner change, renew) goes through
_ensure_no_overlap while the coach is locked, so two subscriptions of
the same coach never share a calendar day, whatever their status.

Renewal checks the extension [old end_date, new end_date] only, not the
whole new period. The start of the subscription was already validated
when it was booked; renewing only adds days at the end.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from .errors import (
    InvalidArgumentError,
    NotFoundError,
    OverlapConflictError,
    ValidationError,
)
from .models import (
    DateRange,
    Page,
    PageRequest,
    PaymentStatus,
    Subscription,
    SubscriptionDetail,
    SubscriptionFilter,
    SubscriptionStatus,
    parse_enum,
)
from .patches import UNSET, PaymentPatch, SubscriptionPatch, is_set, provided
from .repositories import UnitOfWork, atomic


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_CANCELLATION_REASON = "Cancelled by admin"
DEFAULT_PAYMENT_METHOD = "manual"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionLifecycle:
    """
    Creates, changes and retires subscriptions.

    Stateless beyond its dependencies: the unit of work is request-scoped
    and the clock is injectable so tests can pin "now".
    """

    def __init__(self, uow: UnitOfWork, clock: Clock = utc_now) -> None:
        self._uow = uow
        self._clock = clock

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get(self, subscription_id: int) -> SubscriptionDetail:
        detail = self._uow.subscriptions.get_detail(subscription_id)
        if detail is None:
            raise NotFoundError("Subscription", subscription_id)
        return detail

    def list(self, filters: SubscriptionFilter, page: PageRequest) -> Page[SubscriptionDetail]:
        return self._uow.subscriptions.list(filters, page)

    def list_for_coach(self, coach_id: int) -> list[SubscriptionDetail]:
        if self._uow.coaches.get(coach_id) is None:
            raise NotFoundError("Coach", coach_id)
        return self._uow.subscriptions.list_for_coach(coach_id)

    def expiring_soon(self, days: int = 7) -> list[SubscriptionDetail]:
        """Active subscriptions whose end_date falls within the next `days` days."""
        if days < 0:
            raise InvalidArgumentError("days cannot be negative")
        today = self._today()
        result = self._uow.subscriptions.find_ending_between(
            today,
            today + timedelta(days=days),
            statuses=[SubscriptionStatus.ACTIVE],
        )
        return result.items

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def create(
        self,
        coach_id: int,
        plan_id: int,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> Subscription:
        """
        Book a new subscription period for a coach.

        The date range is validated before anything touches the database,
        so an inverted range can never produce a stored row.
        """
        period = DateRange(start_date, end_date)
        status_value = parse_enum(
            SubscriptionStatus,
            SubscriptionStatus.ACTIVE if status is None else status,
            "status",
        )
        payment_value = parse_enum(
            PaymentStatus,
            PaymentStatus.PAID if payment_status is None else payment_status,
            "payment_status",
        )

        with atomic(self._uow):
            self._require_coach(coach_id)
            self._require_plan(plan_id)

            self._uow.lock_coach(coach_id)
            self._ensure_no_overlap(coach_id, period)

            subscription = self._uow.subscriptions.add(Subscription(
                coach_id=coach_id,
                plan_id=plan_id,
                start_date=period.start,
                end_date=period.end,
                status=status_value,
                payment_status=payment_value,
            ))

        logger.info(
            "Subscription created",
            extra={
                "subscription_id": subscription.id,
                "coach_id": coach_id,
                "plan_id": plan_id,
                "start_date": period.start.isoformat(),
                "end_date": period.end.isoformat(),
            }
        )
        return subscription

    def update(self, subscription_id: int, patch: SubscriptionPatch) -> Subscription:
        """
        Apply a partial update.

        Dates are merged with the stored ones. If the merged range or the
        owning coach changes, the overlap check runs again against every
        other subscription of the (possibly new) coach.
        """
        changes = provided(patch)
        for name in ("coach_id", "plan_id", "start_date", "end_date", "status", "payment_status"):
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be null")

        status_value = (
            parse_enum(SubscriptionStatus, changes["status"], "status")
            if "status" in changes else None
        )
        payment_value = (
            parse_enum(PaymentStatus, changes["payment_status"], "payment_status")
            if "payment_status" in changes else None
        )

        with atomic(self._uow):
            subscription = self._require(subscription_id)

            coach_id = changes.get("coach_id", subscription.coach_id)
            if "coach_id" in changes:
                self._require_coach(coach_id)
            if "plan_id" in changes:
                self._require_plan(changes["plan_id"])
                subscription.plan_id = changes["plan_id"]

            period = DateRange(
                changes.get("start_date", subscription.start_date),
                changes.get("end_date", subscription.end_date),
            )
            if period != subscription.period or coach_id != subscription.coach_id:
                self._uow.lock_coach(coach_id)
                self._ensure_no_overlap(coach_id, period, exclude_id=subscription.id)

            subscription.coach_id = coach_id
            subscription.start_date = period.start
            subscription.end_date = period.end
            if status_value is not None:
                subscription.status = status_value
            if payment_value is not None:
                subscription.payment_status = payment_value

            subscription = self._uow.subscriptions.save(subscription)

        logger.info(
            "Subscription updated",
            extra={"subscription_id": subscription_id, "fields": sorted(changes)}
        )
        return subscription

    def update_dates(
        self,
        subscription_id: int,
        new_start: Optional[date] = None,
        new_end: Optional[date] = None,
    ) -> Subscription:
        """Move one or both bounds of a subscription, re-checking overlap."""
        return self.update(subscription_id, SubscriptionPatch(
            start_date=UNSET if new_start is None else new_start,
            end_date=UNSET if new_end is None else new_end,
        ))

    def renew(self, subscription_id: int, duration_days: int) -> Subscription:
        """
        Extend a subscription by duration_days and make it active again.

        Only the extension [end_date, end_date + duration_days] is checked
        for overlap.
        """
        if isinstance(duration_days, bool) or not isinstance(duration_days, int):
            raise InvalidArgumentError("duration_days must be a positive integer")
        if duration_days <= 0:
            raise InvalidArgumentError("duration_days must be a positive integer")

        with atomic(self._uow):
            subscription = self._require(subscription_id)
            new_end = subscription.extended_end(duration_days)

            self._uow.lock_coach(subscription.coach_id)
            self._ensure_no_overlap(
                subscription.coach_id,
                DateRange(subscription.end_date, new_end),
                exclude_id=subscription.id,
            )

            previous_end = subscription.end_date
            subscription.end_date = new_end
            subscription.status = SubscriptionStatus.ACTIVE
            subscription = self._uow.subscriptions.save(subscription)

        logger.info(
            "Subscription renewed",
            extra={
                "subscription_id": subscription_id,
                "previous_end_date": previous_end.isoformat(),
                "end_date": new_end.isoformat(),
                "duration_days": duration_days,
            }
        )
        return subscription

    def cancel(self, subscription_id: int, reason: Optional[str] = None) -> Subscription:
        """
        Cancel a subscription without deleting it.

        Cancelling twice is not an error; the second call returns the
        subscription as it was, keeping the original reason and timestamp.
        """
        with atomic(self._uow):
            subscription = self._require(subscription_id)
            if subscription.is_cancelled:
                logger.info(
                    "Subscription already cancelled",
                    extra={"subscription_id": subscription_id}
                )
                return subscription

            subscription.status = SubscriptionStatus.CANCELLED
            subscription.cancellation_reason = (
                reason.strip() if reason and reason.strip() else DEFAULT_CANCELLATION_REASON
            )
            subscription.cancelled_at = self._clock()
            subscription = self._uow.subscriptions.save(subscription)

        logger.info(
            "Subscription cancelled",
            extra={"subscription_id": subscription_id, "reason": subscription.cancellation_reason}
        )
        return subscription

    def record_payment(
        self,
        subscription_id: int,
        payment_status: str,
        method: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Subscription:
        """
        Record the outcome of a payment.

        A successful payment reactivates a subscription that isn't active.
        The period was already part of the coach's committed time, so no
        overlap check is needed.
        """
        payment_value = parse_enum(PaymentStatus, payment_status, "payment_status")

        with atomic(self._uow):
            subscription = self._require(subscription_id)
            subscription.payment_status = payment_value
            subscription.payment_date = self._clock()
            subscription.payment_method = method or DEFAULT_PAYMENT_METHOD
            subscription.payment_reference = reference or ""
            subscription.payment_notes = notes or ""
            self._reconcile(subscription)
            subscription = self._uow.subscriptions.save(subscription)

        logger.info(
            "Payment recorded",
            extra={
                "subscription_id": subscription_id,
                "payment_status": payment_value.value,
                "payment_method": subscription.payment_method,
            }
        )
        return subscription

    def update_payment(self, subscription_id: int, patch: PaymentPatch) -> Subscription:
        """Change only the provided payment fields; payment_date is left alone."""
        changes = provided(patch)
        payment_value = (
            parse_enum(PaymentStatus, changes["payment_status"], "payment_status")
            if is_set(patch.payment_status) else None
        )

        with atomic(self._uow):
            subscription = self._require(subscription_id)
            if payment_value is not None:
                subscription.payment_status = payment_value
            for name in ("payment_method", "payment_reference", "payment_notes"):
                if name in changes:
                    setattr(subscription, name, changes[name])
            if payment_value is not None:
                self._reconcile(subscription)
            subscription = self._uow.subscriptions.save(subscription)

        logger.info(
            "Payment updated",
            extra={"subscription_id": subscription_id, "fields": sorted(changes)}
        )
        return subscription

    def delete(self, subscription_id: int) -> None:
        """Remove the row. No safeguard for paid history; this is an admin action."""
        with atomic(self._uow):
            subscription = self._require(subscription_id)
            self._uow.subscriptions.delete(subscription_id)

        logger.warning(
            "Subscription deleted",
            extra={
                "subscription_id": subscription_id,
                "coach_id": subscription.coach_id,
                "payment_status": subscription.payment_status.value,
            }
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _today(self) -> date:
        return self._clock().date()

    def _require(self, subscription_id: int) -> Subscription:
        subscription = self._uow.subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription", subscription_id)
        return subscription

    def _require_coach(self, coach_id: int) -> None:
        if self._uow.coaches.get(coach_id) is None:
            raise NotFoundError("Coach", coach_id)

    def _require_plan(self, plan_id: int) -> None:
        if self._uow.plans.get(plan_id) is None:
            raise NotFoundError("Plan", plan_id)

    def _ensure_no_overlap(
        self,
        coach_id: int,
        period: DateRange,
        exclude_id: Optional[int] = None,
    ) -> None:
        conflicts = self._uow.subscriptions.find_overlapping(coach_id, period, exclude_id)
        if conflicts:
            conflicting_ids = [s.id for s in conflicts]
            logger.warning(
                "Overlapping subscription rejected",
                extra={
                    "coach_id": coach_id,
                    "start_date": period.start.isoformat(),
                    "end_date": period.end.isoformat(),
                    "conflicting_ids": conflicting_ids,
                }
            )
            raise OverlapConflictError(coach_id, conflicting_ids)

    def _reconcile(self, subscription: Subscription) -> None:
        """Derive subscription status from payment status."""
        if subscription.payment_status == PaymentStatus.PAID and not subscription.is_active:
            logger.info(
                "Subscription reactivated by payment",
                extra={
                    "subscription_id": subscription.id,
                    "previous_status": subscription.status.value,
                }
            )
            subscription.status = SubscriptionStatus.ACTIVE
