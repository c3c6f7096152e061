"""
Read-side aggregation for dashboards and statistics.

Everything here is computed in Python from rows the repositories already
know how to load. That keeps the grouping logic (month buckets, ISO weeks)
identical on SQLite and PostgreSQL, and it keeps it testable without a
database. None of it writes.
"""

import calendar
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Optional

from .errors import InvalidArgumentError
from .lifecycle import Clock, utc_now
from .models import (
    Coach,
    CoachStatus,
    PaymentStatus,
    SubscriptionDetail,
    SubscriptionStatus,
)
from .repositories import UnitOfWork


SUMMARY_MONTHS = 6
RECENT_SUBSCRIPTIONS = 5
EXPIRING_WINDOW_DAYS = 7
TOP_COACHES = 5
INACTIVE_COACHES = 10


class RevenuePeriod(Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


@dataclass
class GroupTotal:
    """Count and summed plan price for one group."""
    key: str
    count: int = 0
    total_amount: Decimal = Decimal("0")


@dataclass
class BucketTotal:
    """Count and summed plan price for one time bucket (day, ISO week or month)."""
    label: str
    count: int = 0
    total_amount: Decimal = Decimal("0")


@dataclass
class PlanCount:
    plan_id: int
    plan_name: str
    count: int = 0
    revenue: Decimal = Decimal("0")


@dataclass
class CoachCount:
    coach_id: int
    name: str
    email: str
    subscription_count: int


@dataclass
class SubscriptionStats:
    status_counts: dict[str, int]
    payment_status_counts: dict[str, int]
    total_revenue: Decimal
    subscriptions_per_plan: list[PlanCount]


@dataclass
class DashboardSummary:
    total_coaches: int
    active_coaches: int
    total_subscriptions: int
    active_subscriptions: int
    total_revenue: Decimal
    monthly_revenue: list[BucketTotal]
    subscriptions_by_plan: list[PlanCount]
    recent_subscriptions: list[SubscriptionDetail]
    expiring_soon: int


@dataclass
class RevenueAnalytics:
    period: RevenuePeriod
    since: date
    revenue_data: list[BucketTotal]
    revenue_by_plan: list[PlanCount]


@dataclass
class CoachAnalytics:
    coaches_by_status: dict[str, int]
    new_coaches_per_month: list[BucketTotal]
    top_coaches: list[CoachCount]
    inactive_coaches: list[Coach] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def subtract_months(value: date, months: int) -> date:
    """Same day `months` months earlier, clamped to the end of shorter months."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_label(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def iso_week_label(value: date) -> str:
    year, week, _ = value.isocalendar()
    return f"{year:04d}-W{week:02d}"


def day_label(value: date) -> str:
    return value.isoformat()


def as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def group_totals(
    details: Iterable[SubscriptionDetail],
    key: Callable[[SubscriptionDetail], Optional[str]],
) -> list[GroupTotal]:
    """Group by key(detail), skipping details whose key is None."""
    groups: dict[str, GroupTotal] = {}
    for detail in details:
        group_key = key(detail)
        if group_key is None:
            continue
        total = groups.setdefault(group_key, GroupTotal(key=group_key))
        total.count += 1
        total.total_amount += detail.plan.price
    return sorted(groups.values(), key=lambda g: g.key)


def bucket_totals(
    details: Iterable[SubscriptionDetail],
    when: Callable[[SubscriptionDetail], Optional[date]],
    label: Callable[[date], str],
) -> list[BucketTotal]:
    """Time-bucket details by label(when(detail)), oldest bucket first."""
    buckets: dict[str, BucketTotal] = {}
    for detail in details:
        moment = when(detail)
        if moment is None:
            continue
        bucket_label = label(moment)
        bucket = buckets.setdefault(bucket_label, BucketTotal(label=bucket_label))
        bucket.count += 1
        bucket.total_amount += detail.plan.price
    return [buckets[k] for k in sorted(buckets)]


def plan_counts(details: Iterable[SubscriptionDetail]) -> list[PlanCount]:
    counts: dict[int, PlanCount] = {}
    for detail in details:
        entry = counts.setdefault(
            detail.plan.id,
            PlanCount(plan_id=detail.plan.id, plan_name=detail.plan.name),
        )
        entry.count += 1
        entry.revenue += detail.plan.price
    return sorted(counts.values(), key=lambda p: (-p.count, p.plan_id))


def total_revenue(details: Iterable[SubscriptionDetail]) -> Decimal:
    return sum(
        (d.plan.price for d in details if d.subscription.payment_status == PaymentStatus.PAID),
        Decimal("0"),
    )


def revenue_window(period: RevenuePeriod, today: date) -> tuple[date, Callable[[date], str]]:
    """Start date and bucket labeller for a revenue period."""
    if period == RevenuePeriod.WEEK:
        return today - timedelta(days=7), day_label
    if period == RevenuePeriod.MONTH:
        return subtract_months(today, 1), day_label
    if period == RevenuePeriod.QUARTER:
        return subtract_months(today, 3), iso_week_label
    return subtract_months(today, 12), month_label


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ReportingService:
    """Dashboard and statistics views over the whole book of subscriptions."""

    def __init__(self, uow: UnitOfWork, clock: Clock = utc_now) -> None:
        self._uow = uow
        self._clock = clock

    def subscription_stats(self) -> SubscriptionStats:
        details = self._uow.subscriptions.list_all()
        return SubscriptionStats(
            status_counts=dict(Counter(d.subscription.status.value for d in details)),
            payment_status_counts=dict(Counter(d.subscription.payment_status.value for d in details)),
            total_revenue=total_revenue(details),
            subscriptions_per_plan=plan_counts(details),
        )

    def summary(self) -> DashboardSummary:
        today = self._clock().date()
        details = self._uow.subscriptions.list_all()
        coaches = self._uow.coaches.list_all()

        active = [d for d in details if d.subscription.is_active]
        paid = [d for d in details if d.subscription.payment_status == PaymentStatus.PAID]
        since = subtract_months(today, SUMMARY_MONTHS)
        expiring_until = today + timedelta(days=EXPIRING_WINDOW_DAYS)

        # ids are assigned in insertion order
        recent = sorted(details, key=lambda d: d.subscription.id or 0, reverse=True)[:RECENT_SUBSCRIPTIONS]

        return DashboardSummary(
            total_coaches=len(coaches),
            active_coaches=len({d.subscription.coach_id for d in active}),
            total_subscriptions=len(details),
            active_subscriptions=len(active),
            total_revenue=total_revenue(details),
            monthly_revenue=bucket_totals(
                (d for d in paid if d.subscription.start_date >= since),
                when=lambda d: d.subscription.start_date,
                label=month_label,
            ),
            subscriptions_by_plan=plan_counts(active),
            recent_subscriptions=recent,
            expiring_soon=sum(
                1 for d in active
                if today <= d.subscription.end_date <= expiring_until
            ),
        )

    def revenue(self, period: str | RevenuePeriod = RevenuePeriod.YEAR) -> RevenueAnalytics:
        try:
            period_value = RevenuePeriod(period) if not isinstance(period, RevenuePeriod) else period
        except ValueError:
            raise InvalidArgumentError(
                f"Invalid period '{period}'. Allowed values: week, month, quarter, year"
            )

        today = self._clock().date()
        since, label = revenue_window(period_value, today)
        in_window = [
            d for d in self._uow.subscriptions.list_all()
            if d.subscription.payment_status == PaymentStatus.PAID
            and d.subscription.start_date >= since
        ]

        return RevenueAnalytics(
            period=period_value,
            since=since,
            revenue_data=bucket_totals(in_window, lambda d: d.subscription.start_date, label),
            revenue_by_plan=plan_counts(in_window),
        )

    def coaches(self) -> CoachAnalytics:
        today = self._clock().date()
        since = subtract_months(today, SUMMARY_MONTHS)
        coaches = self._uow.coaches.list_all()
        details = self._uow.subscriptions.list_all()

        by_status = Counter(c.status.value for c in coaches)
        for status in CoachStatus:
            by_status.setdefault(status.value, 0)

        new_per_month: dict[str, int] = defaultdict(int)
        for coach in coaches:
            if coach.created_at and as_date(coach.created_at) >= since:
                new_per_month[month_label(as_date(coach.created_at))] += 1

        subscription_counts = Counter(d.subscription.coach_id for d in details)
        top = sorted(
            coaches,
            key=lambda c: (-subscription_counts.get(c.id, 0), c.id or 0),
        )[:TOP_COACHES]

        with_active = {
            d.subscription.coach_id for d in details
            if d.subscription.status == SubscriptionStatus.ACTIVE
        }

        return CoachAnalytics(
            coaches_by_status=dict(by_status),
            new_coaches_per_month=[
                BucketTotal(label=label, count=count)
                for label, count in sorted(new_per_month.items())
            ],
            top_coaches=[
                CoachCount(
                    coach_id=c.id,
                    name=c.name,
                    email=c.email,
                    subscription_count=subscription_counts.get(c.id, 0),
                )
                for c in top
            ],
            inactive_coaches=[c for c in coaches if c.id not in with_active][:INACTIVE_COACHES],
        )
