"""
Domain models for the subscription back office.

These models represent the core business concepts: who pays (coaches),
what they pay for (plans), and the time-bounded grants that tie the two
together (subscriptions). They have no dependencies on FastAPI or
SQLAlchemy; repositories translate them to and from database rows.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from .errors import DateRangeInvalidError, InvalidArgumentError


T = TypeVar("T")

CENTS = Decimal("0.01")


class SubscriptionStatus(Enum):
    """Lifecycle state of a subscription."""
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    """Where the money is for a subscription."""
    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"


class CoachStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class AdminRole(Enum):
    """
    Back-office roles.

    ADMIN can do everything. FINANCE and SALES get read access to the
    parts of the system they work with (see permissions.py).
    """
    ADMIN = "admin"
    FINANCE = "finance"
    SALES = "sales"


def parse_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Enum:
    """
    Coerce a raw value (string or enum member) into enum_cls.

    Raises InvalidArgumentError naming the allowed values so the caller
    can see what went wrong.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidArgumentError(
            f"Invalid {field_name} '{value}'. Allowed values: {allowed}"
        )


@dataclass(frozen=True)
class DateRange:
    """
    A closed interval of calendar days.

    Frozen because ranges are values. Both ends are inclusive, so a
    subscription ending on Jan 31 still covers Jan 31.
    """
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise DateRangeInvalidError(
                f"end_date {self.end.isoformat()} is before start_date {self.start.isoformat()}"
            )

    def overlaps(self, other: "DateRange") -> bool:
        """Boundary-touching ranges overlap: [Jan 1, Jan 31] and [Jan 31, Feb 15] share a day."""
        return self.start <= other.end and self.end >= other.start

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass
class Admin:
    """A back-office user."""
    name: str
    email: str
    password_hash: str
    role: AdminRole = AdminRole.ADMIN
    id: Optional[int] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Coach:
    """
    A service provider billed through subscriptions.

    A coach owns zero or more subscriptions and may only be removed
    while none of them is active.
    """
    name: str
    email: str
    password_hash: str
    id: Optional[int] = None
    phone: Optional[str] = None
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    specialization: Optional[str] = None
    status: CoachStatus = CoachStatus.ACTIVE
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Plan:
    """A priced, fixed-duration service tier."""
    name: str
    price: Decimal
    duration_days: int
    id: Optional[int] = None
    features: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidArgumentError("Plan name cannot be empty")
        try:
            self.price = Decimal(str(self.price)).quantize(CENTS)
        except InvalidOperation:
            raise InvalidArgumentError(f"Plan price '{self.price}' is not a number")
        if not self.price.is_finite() or self.price < 0:
            raise InvalidArgumentError("Plan price cannot be negative")
        if isinstance(self.duration_days, bool) or not isinstance(self.duration_days, int):
            raise InvalidArgumentError("Plan duration_days must be an integer")
        if self.duration_days <= 0:
            raise InvalidArgumentError("Plan duration_days must be positive")


@dataclass
class Subscription:
    """
    A time-bounded grant of a plan to a coach.

    Carries its own payment and notification bookkeeping. Status changes
    go through SubscriptionLifecycle, which enforces the no-overlap rule;
    nothing here checks other subscriptions.
    """
    coach_id: int
    plan_id: int
    start_date: date
    end_date: date
    id: Optional[int] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    payment_status: PaymentStatus = PaymentStatus.PAID

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

    @property
    def period(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED

    def extended_end(self, duration_days: int) -> date:
        try:
            return self.end_date + timedelta(days=duration_days)
        except OverflowError:
            raise InvalidArgumentError(
                f"duration_days {duration_days} extends end_date past {date.max.isoformat()}"
            )


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CoachRef:
    """The slice of a coach shown next to a subscription."""
    id: int
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class PlanRef:
    """The slice of a plan shown next to a subscription."""
    id: int
    name: str
    price: Decimal
    duration_days: int


@dataclass
class SubscriptionDetail:
    """A subscription joined with its coach and plan."""
    subscription: Subscription
    coach: CoachRef
    plan: PlanRef


@dataclass
class Page(Generic[T]):
    """
    One page of a listing.

    `pages` is derived so the API response shape (total, page, pages)
    can never disagree with itself.
    """
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidArgumentError("page must be 1 or greater")
        if self.limit < 1:
            raise InvalidArgumentError("limit must be 1 or greater")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class SubscriptionFilter:
    status: Optional[SubscriptionStatus] = None
    payment_status: Optional[PaymentStatus] = None
    coach_id: Optional[int] = None
    plan_id: Optional[int] = None
    start_from: Optional[date] = None  # start_date range, both bounds inclusive
    start_to: Optional[date] = None


@dataclass(frozen=True)
class PaymentFilter:
    payment_status: Optional[PaymentStatus] = None
    coach_id: Optional[int] = None
    plan_id: Optional[int] = None
    paid_from: Optional[datetime] = None  # payment_date range
    paid_to: Optional[datetime] = None


@dataclass
class NotificationMessage:
    """A rendered outbound message. Delivery is someone else's problem."""
    to: str
    subject: str
    body: str
    channel: str = "email"
