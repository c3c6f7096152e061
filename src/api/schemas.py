"""
Response models shared by several routers.

Each model has a from_domain() builder so routes never hand dataclasses
straight to FastAPI. Request models live next to the route that accepts
them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, Field

from ..core.billing.models import (
    Admin,
    Coach,
    Plan,
    Subscription,
    SubscriptionDetail,
)
from ..core.billing.reporting import BucketTotal, GroupTotal, PlanCount


T = TypeVar("T")


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class AdminResponse(BaseModel):
    """An admin account. The password hash is never returned."""
    id: int
    name: str
    email: str
    role: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, admin: Admin) -> "AdminResponse":
        return cls(
            id=admin.id,
            name=admin.name,
            email=admin.email,
            role=admin.role.value,
            last_login=admin.last_login,
            created_at=admin.created_at,
            updated_at=admin.updated_at,
        )


class CoachResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    specialization: Optional[str] = None
    status: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, coach: Coach) -> "CoachResponse":
        return cls(
            id=coach.id,
            name=coach.name,
            email=coach.email,
            phone=coach.phone,
            profile_photo_url=coach.profile_photo_url,
            bio=coach.bio,
            specialization=coach.specialization,
            status=coach.status.value,
            last_login=coach.last_login,
            created_at=coach.created_at,
            updated_at=coach.updated_at,
        )


class PlanResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    duration_days: int
    features: dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            duration_days=plan.duration_days,
            features=plan.features,
            is_active=plan.is_active,
            description=plan.description,
            created_at=plan.created_at,
            updated_at=plan.updated_at,
        )


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

class CoachSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None


class PlanSummary(BaseModel):
    id: int
    name: str
    price: Decimal
    duration_days: int


class SubscriptionResponse(BaseModel):
    """
    A subscription with its payment and notification bookkeeping.

    coach and plan are included when the subscription was loaded as a
    detail (listings and lookups) and omitted after plain writes.
    """
    id: int
    coach_id: int
    plan_id: int
    start_date: date
    end_date: date
    status: str
    payment_status: str
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    notification_sent: bool = False
    last_notification_date: Optional[datetime] = None
    payment_reminder_sent: bool = False
    last_payment_reminder_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    coach: Optional[CoachSummary] = None
    plan: Optional[PlanSummary] = None

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            coach_id=subscription.coach_id,
            plan_id=subscription.plan_id,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            status=subscription.status.value,
            payment_status=subscription.payment_status.value,
            payment_date=subscription.payment_date,
            payment_method=subscription.payment_method,
            payment_reference=subscription.payment_reference,
            payment_notes=subscription.payment_notes,
            cancellation_reason=subscription.cancellation_reason,
            cancelled_at=subscription.cancelled_at,
            notification_sent=subscription.notification_sent,
            last_notification_date=subscription.last_notification_date,
            payment_reminder_sent=subscription.payment_reminder_sent,
            last_payment_reminder_date=subscription.last_payment_reminder_date,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
        )

    @classmethod
    def from_detail(cls, detail: SubscriptionDetail) -> "SubscriptionResponse":
        response = cls.from_domain(detail.subscription)
        response.coach = CoachSummary(
            id=detail.coach.id,
            name=detail.coach.name,
            email=detail.coach.email,
            phone=detail.coach.phone,
        )
        response.plan = PlanSummary(
            id=detail.plan.id,
            name=detail.plan.name,
            price=detail.plan.price,
            duration_days=detail.plan.duration_days,
        )
        return response


class SubscriptionActionResponse(BaseModel):
    """Result of renew/cancel: a message plus the updated subscription."""
    message: str
    subscription: SubscriptionResponse


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

class GroupTotalResponse(BaseModel):
    key: str
    count: int
    total_amount: Decimal

    @classmethod
    def from_domain(cls, total: GroupTotal) -> "GroupTotalResponse":
        return cls(key=total.key, count=total.count, total_amount=total.total_amount)


class BucketTotalResponse(BaseModel):
    label: str
    count: int
    total_amount: Decimal

    @classmethod
    def from_domain(cls, bucket: BucketTotal) -> "BucketTotalResponse":
        return cls(label=bucket.label, count=bucket.count, total_amount=bucket.total_amount)


class PlanCountResponse(BaseModel):
    plan_id: int
    plan_name: str
    count: int
    revenue: Decimal

    @classmethod
    def from_domain(cls, entry: PlanCount) -> "PlanCountResponse":
        return cls(
            plan_id=entry.plan_id,
            plan_name=entry.plan_name,
            count=entry.count,
            revenue=entry.revenue,
        )


def patch_from(request: BaseModel, patch_cls: type[T]) -> T:
    """
    Build a core patch from the fields the client actually sent.

    Omitted fields stay UNSET; an explicit null, 0 or false is passed on
    for the service to accept or reject.
    """
    return patch_cls(**{name: getattr(request, name) for name in request.model_fields_set})
