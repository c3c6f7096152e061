"""
Payment endpoints.

A payment is the payment side of a subscription, so every {id} here is
a subscription id. Finance can read; only admins record or change.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ...core.billing.models import PaymentFilter, PaymentStatus, parse_enum
from ...core.billing.patches import PaymentPatch
from ..dependencies import PageDep, PaymentLedgerDep, require_permission
from ..schemas import (
    BucketTotalResponse,
    GroupTotalResponse,
    SubscriptionActionResponse,
    SubscriptionResponse,
    patch_from,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class RecordPaymentRequest(BaseModel):
    subscription_id: int
    payment_status: str = Field(description="paid, pending or failed")
    payment_method: Optional[str] = Field(None, max_length=64, description="Defaults to manual")
    payment_reference: Optional[str] = Field(None, max_length=255)
    payment_notes: Optional[str] = None


class UpdatePaymentRequest(BaseModel):
    """Only the fields sent are changed. payment_date is never touched."""
    payment_status: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=64)
    payment_reference: Optional[str] = Field(None, max_length=255)
    payment_notes: Optional[str] = None


class PaymentListResponse(BaseModel):
    total: int
    page: int
    pages: int
    payments: list[SubscriptionResponse]


class PaymentStatsResponse(BaseModel):
    by_status: list[GroupTotalResponse]
    by_method: list[GroupTotalResponse]
    monthly: list[BucketTotalResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=PaymentListResponse,
    summary="List payments",
    description="Latest payment first; subscriptions never paid come last.",
    dependencies=[Depends(require_permission("payments.read"))],
)
def list_payments(
    ledger: PaymentLedgerDep,
    page: PageDep,
    payment_status: Optional[str] = Query(None),
    coach_id: Optional[int] = Query(None),
    plan_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None, description="payment_date on or after this day"),
    end_date: Optional[date] = Query(None, description="payment_date on or before this day"),
) -> PaymentListResponse:
    filters = PaymentFilter(
        payment_status=(
            parse_enum(PaymentStatus, payment_status, "payment_status") if payment_status else None
        ),
        coach_id=coach_id,
        plan_id=plan_id,
        paid_from=_start_of(start_date),
        paid_to=_end_of(end_date),
    )
    result = ledger.list(filters, page)
    return PaymentListResponse(
        total=result.total,
        page=result.page,
        pages=result.pages,
        payments=[SubscriptionResponse.from_detail(detail) for detail in result.items],
    )


@router.post(
    "",
    response_model=SubscriptionActionResponse,
    summary="Record a payment",
    description="A paid payment reactivates a subscription that isn't active.",
    dependencies=[Depends(require_permission("payments.write"))],
)
def record_payment(request: RecordPaymentRequest, ledger: PaymentLedgerDep) -> SubscriptionActionResponse:
    subscription = ledger.record(
        request.subscription_id,
        request.payment_status,
        method=request.payment_method,
        reference=request.payment_reference,
        notes=request.payment_notes,
    )
    return SubscriptionActionResponse(
        message="Payment recorded successfully",
        subscription=SubscriptionResponse.from_domain(subscription),
    )


@router.get(
    "/stats",
    response_model=PaymentStatsResponse,
    summary="Payment statistics",
    dependencies=[Depends(require_permission("payments.read"))],
)
def payment_stats(ledger: PaymentLedgerDep) -> PaymentStatsResponse:
    stats = ledger.stats()
    return PaymentStatsResponse(
        by_status=[GroupTotalResponse.from_domain(g) for g in stats.by_status],
        by_method=[GroupTotalResponse.from_domain(g) for g in stats.by_method],
        monthly=[BucketTotalResponse.from_domain(b) for b in stats.monthly],
    )


@router.get(
    "/recent",
    response_model=list[SubscriptionResponse],
    summary="Most recent payments",
    dependencies=[Depends(require_permission("payments.read"))],
)
def recent_payments(
    ledger: PaymentLedgerDep,
    limit: int = Query(10, ge=1, le=100),
) -> list[SubscriptionResponse]:
    return [SubscriptionResponse.from_detail(detail) for detail in ledger.recent(limit)]


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get a payment",
    dependencies=[Depends(require_permission("payments.read"))],
)
def get_payment(subscription_id: int, ledger: PaymentLedgerDep) -> SubscriptionResponse:
    return SubscriptionResponse.from_detail(ledger.get(subscription_id))


@router.put(
    "/{subscription_id}",
    response_model=SubscriptionActionResponse,
    summary="Update a payment",
    dependencies=[Depends(require_permission("payments.write"))],
)
def update_payment(
    subscription_id: int,
    request: UpdatePaymentRequest,
    ledger: PaymentLedgerDep,
) -> SubscriptionActionResponse:
    subscription = ledger.update(subscription_id, patch_from(request, PaymentPatch))
    return SubscriptionActionResponse(
        message="Payment updated successfully",
        subscription=SubscriptionResponse.from_domain(subscription),
    )


# ---------------------------------------------------------------------------
# Private Helpers
# ---------------------------------------------------------------------------

def _start_of(day: Optional[date]) -> Optional[datetime]:
    return datetime.combine(day, time.min, tzinfo=timezone.utc) if day else None


def _end_of(day: Optional[date]) -> Optional[datetime]:
    return datetime.combine(day, time.max, tzinfo=timezone.utc) if day else None
