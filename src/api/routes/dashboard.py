"""
Dashboard endpoints.

Read-only views for the back-office home screen. Open to admin, finance
and sales.
"""

import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..dependencies import ReportingDep, require_permission
from ..schemas import (
    BucketTotalResponse,
    CoachResponse,
    PlanCountResponse,
    SubscriptionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_permission("dashboard.read"))])


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class SummaryResponse(BaseModel):
    total_coaches: int
    active_coaches: int
    total_subscriptions: int
    active_subscriptions: int
    total_revenue: Decimal
    monthly_revenue: list[BucketTotalResponse]
    subscriptions_by_plan: list[PlanCountResponse]
    recent_subscriptions: list[SubscriptionResponse]
    expiring_soon: int


class RevenueResponse(BaseModel):
    period: str
    since: date
    revenue_data: list[BucketTotalResponse]
    revenue_by_plan: list[PlanCountResponse]


class CoachCountResponse(BaseModel):
    coach_id: int
    name: str
    email: str
    subscription_count: int


class NewCoachesResponse(BaseModel):
    label: str
    count: int


class CoachAnalyticsResponse(BaseModel):
    coaches_by_status: dict[str, int]
    new_coaches_per_month: list[NewCoachesResponse]
    top_coaches: list[CoachCountResponse]
    inactive_coaches: list[CoachResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Dashboard summary",
    description="Headline counts, paid revenue for the last 6 months and the newest subscriptions.",
)
def dashboard_summary(reporting: ReportingDep) -> SummaryResponse:
    summary = reporting.summary()
    return SummaryResponse(
        total_coaches=summary.total_coaches,
        active_coaches=summary.active_coaches,
        total_subscriptions=summary.total_subscriptions,
        active_subscriptions=summary.active_subscriptions,
        total_revenue=summary.total_revenue,
        monthly_revenue=[BucketTotalResponse.from_domain(b) for b in summary.monthly_revenue],
        subscriptions_by_plan=[PlanCountResponse.from_domain(p) for p in summary.subscriptions_by_plan],
        recent_subscriptions=[SubscriptionResponse.from_detail(d) for d in summary.recent_subscriptions],
        expiring_soon=summary.expiring_soon,
    )


@router.get(
    "/revenue",
    response_model=RevenueResponse,
    summary="Revenue analytics",
    description=(
        "Paid revenue since the start of the period. week and month are bucketed "
        "by day, quarter by ISO week, year by month."
    ),
)
def revenue_analytics(
    reporting: ReportingDep,
    period: str = Query("year", description="week, month, quarter or year"),
) -> RevenueResponse:
    analytics = reporting.revenue(period)
    return RevenueResponse(
        period=analytics.period.value,
        since=analytics.since,
        revenue_data=[BucketTotalResponse.from_domain(b) for b in analytics.revenue_data],
        revenue_by_plan=[PlanCountResponse.from_domain(p) for p in analytics.revenue_by_plan],
    )


@router.get(
    "/coaches",
    response_model=CoachAnalyticsResponse,
    summary="Coach analytics",
)
def coach_analytics(reporting: ReportingDep) -> CoachAnalyticsResponse:
    analytics = reporting.coaches()
    return CoachAnalyticsResponse(
        coaches_by_status=analytics.coaches_by_status,
        new_coaches_per_month=[
            NewCoachesResponse(label=b.label, count=b.count) for b in analytics.new_coaches_per_month
        ],
        top_coaches=[
            CoachCountResponse(
                coach_id=c.coach_id,
                name=c.name,
                email=c.email,
                subscription_count=c.subscription_count,
            )
            for c in analytics.top_coaches
        ],
        inactive_coaches=[CoachResponse.from_domain(c) for c in analytics.inactive_coaches],
    )
