"""
Subscription billing logic.

Contains the lifecycle engine, payment ledger, directories, notification
center, reporting, and the persistence interfaces they depend on.
"""

from .directory import AdminDirectory, CoachDirectory, PlanDirectory
from .errors import (
    AuthenticationError,
    BillingError,
    ConflictError,
    DateRangeInvalidError,
    DeletionBlockedError,
    DuplicateEmailError,
    InvalidArgumentError,
    NotFoundError,
    OverlapConflictError,
    PermissionDeniedError,
    ValidationError,
)
from .lifecycle import SubscriptionLifecycle
from .models import (
    Admin,
    AdminRole,
    Coach,
    CoachStatus,
    DateRange,
    Page,
    PageRequest,
    PaymentFilter,
    PaymentStatus,
    Plan,
    Subscription,
    SubscriptionDetail,
    SubscriptionFilter,
    SubscriptionStatus,
)
from .notifications import NotificationCenter, NotificationSender, NotificationSettings
from .payments import PaymentLedger
from .reporting import ReportingService, RevenuePeriod

__all__ = [
    "AdminDirectory",
    "CoachDirectory",
    "PlanDirectory",
    "AuthenticationError",
    "BillingError",
    "ConflictError",
    "DateRangeInvalidError",
    "DeletionBlockedError",
    "DuplicateEmailError",
    "InvalidArgumentError",
    "NotFoundError",
    "OverlapConflictError",
    "PermissionDeniedError",
    "ValidationError",
    "SubscriptionLifecycle",
    "Admin",
    "AdminRole",
    "Coach",
    "CoachStatus",
    "DateRange",
    "Page",
    "PageRequest",
    "PaymentFilter",
    "PaymentStatus",
    "Plan",
    "Subscription",
    "SubscriptionDetail",
    "SubscriptionFilter",
    "SubscriptionStatus",
    "NotificationCenter",
    "NotificationSender",
    "NotificationSettings",
    "PaymentLedger",
    "ReportingService",
    "RevenuePeriod",
]
