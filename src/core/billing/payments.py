"""
Payment reconciliation surface.

Payments are not a separate entity: they are the payment fields of a
subscription. This service gives them their own read/report API and
routes writes through SubscriptionLifecycle, which owns the rule that a
successful payment reactivates the subscription.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import InvalidArgumentError, NotFoundError
from .lifecycle import Clock, SubscriptionLifecycle, utc_now
from .models import (
    Page,
    PageRequest,
    PaymentFilter,
    PaymentStatus,
    Subscription,
    SubscriptionDetail,
)
from .patches import PaymentPatch
from .reporting import (
    SUMMARY_MONTHS,
    BucketTotal,
    GroupTotal,
    as_date,
    bucket_totals,
    group_totals,
    month_label,
    subtract_months,
)
from .repositories import UnitOfWork


@dataclass
class PaymentStats:
    by_status: list[GroupTotal]
    by_method: list[GroupTotal]
    monthly: list[BucketTotal]


class PaymentLedger:
    """Records, lists and summarizes payments."""

    def __init__(
        self,
        uow: UnitOfWork,
        lifecycle: Optional[SubscriptionLifecycle] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._uow = uow
        self._clock = clock
        self._lifecycle = lifecycle or SubscriptionLifecycle(uow, clock=clock)

    def record(
        self,
        subscription_id: int,
        payment_status: str,
        method: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Subscription:
        return self._lifecycle.record_payment(
            subscription_id,
            payment_status,
            method=method,
            reference=reference,
            notes=notes,
        )

    def update(self, subscription_id: int, patch: PaymentPatch) -> Subscription:
        return self._lifecycle.update_payment(subscription_id, patch)

    def get(self, subscription_id: int) -> SubscriptionDetail:
        detail = self._uow.subscriptions.get_detail(subscription_id)
        if detail is None:
            raise NotFoundError("Payment", subscription_id)
        return detail

    def list(self, filters: PaymentFilter, page: PageRequest) -> Page[SubscriptionDetail]:
        return self._uow.subscriptions.list_payments(filters, page)

    def recent(self, limit: int = 10) -> list[SubscriptionDetail]:
        if limit < 1:
            raise InvalidArgumentError("limit must be 1 or greater")
        return self._uow.subscriptions.recent_payments(limit)

    def stats(self) -> PaymentStats:
        """
        Totals by payment status and by method, plus monthly paid totals.

        Amounts are the plan price of each subscription; the system does
        not store partial payments.
        """
        details = self._uow.subscriptions.list_all()
        since = subtract_months(self._clock().date(), SUMMARY_MONTHS)

        recent_paid = [
            d for d in details
            if d.subscription.payment_status == PaymentStatus.PAID
            and d.subscription.payment_date is not None
            and as_date(d.subscription.payment_date) >= since
        ]

        return PaymentStats(
            by_status=group_totals(details, lambda d: d.subscription.payment_status.value),
            by_method=group_totals(details, lambda d: d.subscription.payment_method),
            monthly=bucket_totals(
                recent_paid,
                when=lambda d: as_date(d.subscription.payment_date),
                label=month_label,
            ),
        )
