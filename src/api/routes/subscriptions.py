"""
Subscription endpoints.

All writes go through SubscriptionLifecycle, which rejects any change
that would give a coach two subscriptions sharing a day (409).
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ...core.billing.models import PaymentStatus, SubscriptionFilter, SubscriptionStatus, parse_enum
from ...core.billing.patches import SubscriptionPatch
from ..dependencies import LifecycleDep, PageDep, ReportingDep, require_permission
from ..schemas import (
    MessageResponse,
    PlanCountResponse,
    SubscriptionActionResponse,
    SubscriptionResponse,
    patch_from,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateSubscriptionRequest(BaseModel):
    coach_id: int
    plan_id: int
    start_date: date
    end_date: date = Field(description="Inclusive; may equal start_date")
    status: Optional[str] = Field(None, description="Defaults to active")
    payment_status: Optional[str] = Field(None, description="Defaults to paid")


class UpdateSubscriptionRequest(BaseModel):
    """Only the fields sent are changed. Date changes are re-checked for overlap."""
    coach_id: Optional[int] = None
    plan_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None


class RenewRequest(BaseModel):
    duration_days: int = Field(gt=0, description="Days added to the current end date")


class CancelRequest(BaseModel):
    cancellation_reason: Optional[str] = Field(None, max_length=1000)


class SubscriptionListResponse(BaseModel):
    total: int
    page: int
    pages: int
    subscriptions: list[SubscriptionResponse]


class SubscriptionStatsResponse(BaseModel):
    status_counts: dict[str, int]
    payment_status_counts: dict[str, int]
    total_revenue: Decimal
    subscriptions_per_plan: list[PlanCountResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=SubscriptionListResponse,
    summary="List subscriptions",
    description="Latest start date first. start_date/end_date filter on start_date, both inclusive.",
    dependencies=[Depends(require_permission("subscriptions.read"))],
)
def list_subscriptions(
    lifecycle: LifecycleDep,
    page: PageDep,
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
    coach_id: Optional[int] = Query(None),
    plan_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> SubscriptionListResponse:
    filters = SubscriptionFilter(
        status=parse_enum(SubscriptionStatus, status_filter, "status") if status_filter else None,
        payment_status=(
            parse_enum(PaymentStatus, payment_status, "payment_status") if payment_status else None
        ),
        coach_id=coach_id,
        plan_id=plan_id,
        start_from=start_date,
        start_to=end_date,
    )
    result = lifecycle.list(filters, page)
    return SubscriptionListResponse(
        total=result.total,
        page=result.page,
        pages=result.pages,
        subscriptions=[SubscriptionResponse.from_detail(detail) for detail in result.items],
    )


@router.post(
    "",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a subscription",
    responses={409: {"description": "Coach already has a subscription for this period"}},
    dependencies=[Depends(require_permission("subscriptions.write"))],
)
def create_subscription(request: CreateSubscriptionRequest, lifecycle: LifecycleDep) -> SubscriptionResponse:
    subscription = lifecycle.create(
        coach_id=request.coach_id,
        plan_id=request.plan_id,
        start_date=request.start_date,
        end_date=request.end_date,
        status=request.status,
        payment_status=request.payment_status,
    )
    return SubscriptionResponse.from_domain(subscription)


@router.get(
    "/stats",
    response_model=SubscriptionStatsResponse,
    summary="Subscription statistics",
    dependencies=[Depends(require_permission("subscriptions.read"))],
)
def subscription_stats(reporting: ReportingDep) -> SubscriptionStatsResponse:
    stats = reporting.subscription_stats()
    return SubscriptionStatsResponse(
        status_counts=stats.status_counts,
        payment_status_counts=stats.payment_status_counts,
        total_revenue=stats.total_revenue,
        subscriptions_per_plan=[PlanCountResponse.from_domain(p) for p in stats.subscriptions_per_plan],
    )


@router.get(
    "/expiring-soon",
    response_model=list[SubscriptionResponse],
    summary="Subscriptions expiring soon",
    description="Active subscriptions ending within the next `days` days (default 7), soonest first.",
    dependencies=[Depends(require_permission("subscriptions.read"))],
)
def expiring_soon(
    lifecycle: LifecycleDep,
    days: int = Query(7, ge=0),
) -> list[SubscriptionResponse]:
    return [SubscriptionResponse.from_detail(detail) for detail in lifecycle.expiring_soon(days)]


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get a subscription",
    dependencies=[Depends(require_permission("subscriptions.read"))],
)
def get_subscription(subscription_id: int, lifecycle: LifecycleDep) -> SubscriptionResponse:
    return SubscriptionResponse.from_detail(lifecycle.get(subscription_id))


@router.put(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Update a subscription",
    responses={409: {"description": "New dates overlap another subscription of the coach"}},
    dependencies=[Depends(require_permission("subscriptions.write"))],
)
def update_subscription(
    subscription_id: int,
    request: UpdateSubscriptionRequest,
    lifecycle: LifecycleDep,
) -> SubscriptionResponse:
    subscription = lifecycle.update(subscription_id, patch_from(request, SubscriptionPatch))
    return SubscriptionResponse.from_domain(subscription)


@router.delete(
    "/{subscription_id}",
    response_model=MessageResponse,
    summary="Delete a subscription",
    dependencies=[Depends(require_permission("subscriptions.delete"))],
)
def delete_subscription(subscription_id: int, lifecycle: LifecycleDep) -> MessageResponse:
    lifecycle.delete(subscription_id)
    return MessageResponse(message="Subscription removed successfully")


@router.post(
    "/{subscription_id}/renew",
    response_model=SubscriptionActionResponse,
    summary="Renew a subscription",
    description="Extends end_date by duration_days and marks the subscription active.",
    responses={409: {"description": "The extension overlaps another subscription of the coach"}},
    dependencies=[Depends(require_permission("subscriptions.write"))],
)
def renew_subscription(
    subscription_id: int,
    request: RenewRequest,
    lifecycle: LifecycleDep,
) -> SubscriptionActionResponse:
    subscription = lifecycle.renew(subscription_id, request.duration_days)
    return SubscriptionActionResponse(
        message="Subscription renewed successfully",
        subscription=SubscriptionResponse.from_domain(subscription),
    )


@router.post(
    "/{subscription_id}/cancel",
    response_model=SubscriptionActionResponse,
    summary="Cancel a subscription",
    description="Idempotent: cancelling again keeps the original reason and timestamp.",
    dependencies=[Depends(require_permission("subscriptions.write"))],
)
def cancel_subscription(
    subscription_id: int,
    lifecycle: LifecycleDep,
    request: Optional[CancelRequest] = None,
) -> SubscriptionActionResponse:
    reason = request.cancellation_reason if request else None
    subscription = lifecycle.cancel(subscription_id, reason)
    return SubscriptionActionResponse(
        message="Subscription cancelled successfully",
        subscription=SubscriptionResponse.from_domain(subscription),
    )
