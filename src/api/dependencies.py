"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests (a fixed clock, a failing sender)
- Configuration is centralized
- Resource lifecycle (sessions, locks) is managed properly

Each request gets one unit of work. Services built from it share the
same session, so a request sees its own writes.
"""

import logging
from typing import Annotated, Callable, Generator, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings
from ..core.billing.directory import AdminDirectory, CoachDirectory, PlanDirectory
from ..core.billing.errors import AuthenticationError
from ..core.billing.lifecycle import Clock, SubscriptionLifecycle, utc_now
from ..core.billing.models import Admin, PageRequest
from ..core.billing.notifications import NotificationCenter, NotificationSender
from ..core.billing.payments import PaymentLedger
from ..core.billing.permissions import check_permission
from ..core.billing.reporting import ReportingService
from ..infrastructure.database.client import Database
from ..infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork
from ..infrastructure.notifications import LoggingNotificationSender
from ..infrastructure.security import BcryptPasswordHasher, TokenService

logger = logging.getLogger(__name__)

# Bearer token security scheme. auto_error=False so a missing header
# produces our 401 shape instead of FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """The Settings the application was created with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_clock() -> Clock:
    """Source of "now". Tests override this to pin the date."""
    return utc_now


def get_unit_of_work(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Generator[SqlAlchemyUnitOfWork, None, None]:
    """
    Provide a request-scoped unit of work.

    This is a generator function (yields instead of returns) because
    we need to manage the session lifecycle:
    1. Open session
    2. Yield unit of work (FastAPI injects it)
    3. Close session and release any coach locks (cleanup after request)

    Services commit their own changes; anything left uncommitted when
    the request ends is discarded.
    """
    uow = SqlAlchemyUnitOfWork(
        database.session(),
        lock_timeout=settings.coach_lock_timeout_seconds,
    )
    try:
        yield uow
    finally:
        uow.close()


def get_password_hasher(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=settings.bcrypt_rounds)


def get_token_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> TokenService:
    return TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


def get_notification_sender(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> NotificationSender:
    return LoggingNotificationSender(sender_name=settings.notification_sender_name)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_current_admin(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Admin:
    """
    Resolve the admin behind the Bearer token.

    Raises AuthenticationError (401) if the header is missing, the token
    doesn't verify, or the admin no longer exists.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")

    admin_id = tokens.admin_id_from_token(credentials.credentials)
    if admin_id is None:
        logger.warning("Invalid access token presented")
        raise AuthenticationError("Not authorized, token failed")

    admin = uow.admins.get(admin_id)
    if admin is None:
        logger.warning("Token for unknown admin", extra={"admin_id": admin_id})
        raise AuthenticationError("Not authorized, admin not found")

    return admin


def require_permission(operation: str) -> Callable[..., Admin]:
    """
    Dependency factory: the current admin, if their role allows operation.

    Usage:
        @router.get("", dependencies=[Depends(require_permission("plans.read"))])
    or as a parameter when the handler needs the admin:
        admin: Annotated[Admin, Depends(require_permission("admins.write"))]
    """
    def checker(admin: Annotated[Admin, Depends(get_current_admin)]) -> Admin:
        check_permission(admin.role, operation)
        return admin

    return checker


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def get_page_request(
    settings: Annotated[Settings, Depends(get_app_settings)],
    page: Annotated[int, Query(ge=1, description="1-based page number")] = 1,
    limit: Annotated[Optional[int], Query(ge=1, description="Items per page")] = None,
) -> PageRequest:
    """Page/limit query parameters, with limit capped by configuration."""
    size = limit or settings.default_page_size
    return PageRequest(page=page, limit=min(size, settings.max_page_size))


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_lifecycle(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(uow, clock=clock)


def get_payment_ledger(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    lifecycle: Annotated[SubscriptionLifecycle, Depends(get_lifecycle)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> PaymentLedger:
    return PaymentLedger(uow, lifecycle=lifecycle, clock=clock)


def get_admin_directory(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    hasher: Annotated[BcryptPasswordHasher, Depends(get_password_hasher)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> AdminDirectory:
    return AdminDirectory(uow, hasher, clock=clock)


def get_coach_directory(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    hasher: Annotated[BcryptPasswordHasher, Depends(get_password_hasher)],
) -> CoachDirectory:
    return CoachDirectory(uow, hasher)


def get_plan_directory(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
) -> PlanDirectory:
    return PlanDirectory(uow)


def get_reporting(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> ReportingService:
    return ReportingService(uow, clock=clock)


def get_notification_center(
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_unit_of_work)],
    sender: Annotated[NotificationSender, Depends(get_notification_sender)],
    clock: Annotated[Clock, Depends(get_clock)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> NotificationCenter:
    return NotificationCenter(
        uow,
        sender,
        clock=clock,
        default_expiring_days=settings.expiring_subscription_days,
        recently_expired_days=settings.recently_expired_days,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
DatabaseDep = Annotated[Database, Depends(get_database)]
PageDep = Annotated[PageRequest, Depends(get_page_request)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]
LifecycleDep = Annotated[SubscriptionLifecycle, Depends(get_lifecycle)]
PaymentLedgerDep = Annotated[PaymentLedger, Depends(get_payment_ledger)]
AdminDirectoryDep = Annotated[AdminDirectory, Depends(get_admin_directory)]
CoachDirectoryDep = Annotated[CoachDirectory, Depends(get_coach_directory)]
PlanDirectoryDep = Annotated[PlanDirectory, Depends(get_plan_directory)]
ReportingDep = Annotated[ReportingService, Depends(get_reporting)]
NotificationCenterDep = Annotated[NotificationCenter, Depends(get_notification_center)]
