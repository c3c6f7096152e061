"""
SQLAlchemy repository for subscriptions and their payment fields.

Payments aren't a table of their own; the payment queries here read the
payment columns of the subscriptions table. Every listing joins the
coach and plan so callers get SubscriptionDetail read models in one
query.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from src.core.billing.models import (
    CoachRef,
    DateRange,
    Page,
    PageRequest,
    PaymentFilter,
    PaymentStatus,
    PlanRef,
    Subscription,
    SubscriptionDetail,
    SubscriptionFilter,
    SubscriptionStatus,
)

from ..tables import CoachRow, PlanRow, SubscriptionRow
from .pagination import paginate


logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Subscription persistence.

    The overlap query is the one the lifecycle engine depends on for
    correctness. It matches every status, because a cancelled or expired
    subscription still occupies its period.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, subscription_id: int) -> Optional[Subscription]:
        row = self._session.get(SubscriptionRow, subscription_id)
        return self._build_subscription(row) if row else None

    def get_detail(self, subscription_id: int) -> Optional[SubscriptionDetail]:
        result = self._session.execute(
            self._detail_query().where(SubscriptionRow.id == subscription_id)
        ).first()
        return self._build_detail(result) if result else None

    def add(self, subscription: Subscription) -> Subscription:
        row = SubscriptionRow()
        self._copy(subscription, row)
        self._session.add(row)
        self._session.flush()
        return self._build_subscription(row)

    def save(self, subscription: Subscription) -> Subscription:
        row = self._session.get(SubscriptionRow, subscription.id)
        self._copy(subscription, row)
        self._session.flush()
        return self._build_subscription(row)

    def delete(self, subscription_id: int) -> None:
        self._session.execute(delete(SubscriptionRow).where(SubscriptionRow.id == subscription_id))
        self._session.flush()

    # -----------------------------------------------------------------------
    # Lifecycle queries
    # -----------------------------------------------------------------------

    def find_overlapping(
        self,
        coach_id: int,
        period: DateRange,
        exclude_id: Optional[int] = None,
    ) -> list[Subscription]:
        statement = select(SubscriptionRow).where(
            SubscriptionRow.coach_id == coach_id,
            SubscriptionRow.start_date <= period.end,
            SubscriptionRow.end_date >= period.start,
        )
        if exclude_id is not None:
            statement = statement.where(SubscriptionRow.id != exclude_id)

        rows = self._session.scalars(statement.order_by(SubscriptionRow.start_date))
        return [self._build_subscription(row) for row in rows]

    def count_active(
        self,
        coach_id: Optional[int] = None,
        plan_id: Optional[int] = None,
    ) -> int:
        statement = select(func.count()).select_from(SubscriptionRow).where(
            SubscriptionRow.status == SubscriptionStatus.ACTIVE.value
        )
        if coach_id is not None:
            statement = statement.where(SubscriptionRow.coach_id == coach_id)
        if plan_id is not None:
            statement = statement.where(SubscriptionRow.plan_id == plan_id)
        return self._session.scalar(statement)

    # -----------------------------------------------------------------------
    # Listings
    # -----------------------------------------------------------------------

    def list(self, filters: SubscriptionFilter, page: PageRequest) -> Page[SubscriptionDetail]:
        """Filtered listing, latest start_date first."""
        statement = self._detail_query()
        if filters.status is not None:
            statement = statement.where(SubscriptionRow.status == filters.status.value)
        if filters.payment_status is not None:
            statement = statement.where(SubscriptionRow.payment_status == filters.payment_status.value)
        if filters.coach_id is not None:
            statement = statement.where(SubscriptionRow.coach_id == filters.coach_id)
        if filters.plan_id is not None:
            statement = statement.where(SubscriptionRow.plan_id == filters.plan_id)
        if filters.start_from is not None:
            statement = statement.where(SubscriptionRow.start_date >= filters.start_from)
        if filters.start_to is not None:
            statement = statement.where(SubscriptionRow.start_date <= filters.start_to)

        statement = statement.order_by(SubscriptionRow.start_date.desc(), SubscriptionRow.id.desc())
        return paginate(self._session, statement, page, self._build_detail, scalars=False)

    def list_for_coach(self, coach_id: int) -> list[SubscriptionDetail]:
        statement = (
            self._detail_query()
            .where(SubscriptionRow.coach_id == coach_id)
            .order_by(SubscriptionRow.start_date.desc(), SubscriptionRow.id.desc())
        )
        return [self._build_detail(result) for result in self._session.execute(statement)]

    def list_all(self) -> list[SubscriptionDetail]:
        statement = self._detail_query().order_by(SubscriptionRow.id)
        return [self._build_detail(result) for result in self._session.execute(statement)]

    def find_ending_between(
        self,
        start: date,
        end: date,
        statuses: Iterable[SubscriptionStatus],
        notification_sent: Optional[bool] = None,
        descending: bool = False,
        page: Optional[PageRequest] = None,
    ) -> Page[SubscriptionDetail]:
        """Subscriptions with end_date in [start, end], both inclusive."""
        statement = self._detail_query().where(
            SubscriptionRow.end_date >= start,
            SubscriptionRow.end_date <= end,
            SubscriptionRow.status.in_([status.value for status in statuses]),
        )
        if notification_sent is not None:
            statement = statement.where(SubscriptionRow.notification_sent == notification_sent)

        if descending:
            statement = statement.order_by(SubscriptionRow.end_date.desc(), SubscriptionRow.id.desc())
        else:
            statement = statement.order_by(SubscriptionRow.end_date.asc(), SubscriptionRow.id.asc())
        return paginate(self._session, statement, page, self._build_detail, scalars=False)

    def find_pending_payments(self, page: Optional[PageRequest] = None) -> Page[SubscriptionDetail]:
        statement = (
            self._detail_query()
            .where(SubscriptionRow.payment_status == PaymentStatus.PENDING.value)
            .order_by(SubscriptionRow.created_at.desc(), SubscriptionRow.id.desc())
        )
        return paginate(self._session, statement, page, self._build_detail, scalars=False)

    def list_payments(self, filters: PaymentFilter, page: PageRequest) -> Page[SubscriptionDetail]:
        """Latest payment first; rows never paid sort last."""
        statement = self._detail_query()
        if filters.payment_status is not None:
            statement = statement.where(SubscriptionRow.payment_status == filters.payment_status.value)
        if filters.coach_id is not None:
            statement = statement.where(SubscriptionRow.coach_id == filters.coach_id)
        if filters.plan_id is not None:
            statement = statement.where(SubscriptionRow.plan_id == filters.plan_id)
        if filters.paid_from is not None:
            statement = statement.where(SubscriptionRow.payment_date >= filters.paid_from)
        if filters.paid_to is not None:
            statement = statement.where(SubscriptionRow.payment_date <= filters.paid_to)

        statement = statement.order_by(
            SubscriptionRow.payment_date.desc().nulls_last(),
            SubscriptionRow.id.desc(),
        )
        return paginate(self._session, statement, page, self._build_detail, scalars=False)

    def recent_payments(self, limit: int) -> list[SubscriptionDetail]:
        statement = (
            self._detail_query()
            .where(SubscriptionRow.payment_date.is_not(None))
            .order_by(SubscriptionRow.payment_date.desc(), SubscriptionRow.id.desc())
            .limit(limit)
        )
        return [self._build_detail(result) for result in self._session.execute(statement)]

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _detail_query(self) -> Select:
        return (
            select(SubscriptionRow, CoachRow, PlanRow)
            .join(CoachRow, SubscriptionRow.coach_id == CoachRow.id)
            .join(PlanRow, SubscriptionRow.plan_id == PlanRow.id)
        )

    def _copy(self, subscription: Subscription, row: SubscriptionRow) -> None:
        row.coach_id = subscription.coach_id
        row.plan_id = subscription.plan_id
        row.start_date = subscription.start_date
        row.end_date = subscription.end_date
        row.status = subscription.status.value
        row.payment_status = subscription.payment_status.value
        row.payment_date = subscription.payment_date
        row.payment_method = subscription.payment_method
        row.payment_reference = subscription.payment_reference
        row.payment_notes = subscription.payment_notes
        row.cancellation_reason = subscription.cancellation_reason
        row.cancelled_at = subscription.cancelled_at
        row.notification_sent = subscription.notification_sent
        row.last_notification_date = subscription.last_notification_date
        row.payment_reminder_sent = subscription.payment_reminder_sent
        row.last_payment_reminder_date = subscription.last_payment_reminder_date

    def _build_subscription(self, row: SubscriptionRow) -> Subscription:
        return Subscription(
            id=row.id,
            coach_id=row.coach_id,
            plan_id=row.plan_id,
            start_date=row.start_date,
            end_date=row.end_date,
            status=SubscriptionStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            payment_date=row.payment_date,
            payment_method=row.payment_method,
            payment_reference=row.payment_reference,
            payment_notes=row.payment_notes,
            cancellation_reason=row.cancellation_reason,
            cancelled_at=row.cancelled_at,
            notification_sent=bool(row.notification_sent),
            last_notification_date=row.last_notification_date,
            payment_reminder_sent=bool(row.payment_reminder_sent),
            last_payment_reminder_date=row.last_payment_reminder_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _build_detail(self, result) -> SubscriptionDetail:
        """result is a (SubscriptionRow, CoachRow, PlanRow) row."""
        subscription_row, coach_row, plan_row = result
        return SubscriptionDetail(
            subscription=self._build_subscription(subscription_row),
            coach=CoachRef(
                id=coach_row.id,
                name=coach_row.name,
                email=coach_row.email,
                phone=coach_row.phone,
            ),
            plan=PlanRef(
                id=plan_row.id,
                name=plan_row.name,
                price=plan_row.price,
                duration_days=plan_row.duration_days,
            ),
        )
