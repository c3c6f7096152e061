"""
Notification endpoints.

Candidate lists, manual and bulk sends, and the notification settings
document. Sends run synchronously inside the request.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...core.billing.models import NotificationMessage, Page, SubscriptionDetail
from ...core.billing.notifications import DispatchResult, NotificationSettings
from ...core.billing.patches import NotificationSettingsPatch
from ..dependencies import NotificationCenterDep, PageDep, require_permission
from ..schemas import SubscriptionResponse, patch_from

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SubscriptionPageResponse(BaseModel):
    total: int
    page: int
    pages: int
    subscriptions: list[SubscriptionResponse]

    @classmethod
    def from_page(cls, page: Page[SubscriptionDetail]) -> "SubscriptionPageResponse":
        return cls(
            total=page.total,
            page=page.page,
            pages=page.pages,
            subscriptions=[SubscriptionResponse.from_detail(d) for d in page.items],
        )


class NotificationOverviewResponse(BaseModel):
    expiring_days: int
    expiring_subscriptions: SubscriptionPageResponse
    recently_expired: SubscriptionPageResponse
    pending_payments: SubscriptionPageResponse


class NotificationSettingsResponse(BaseModel):
    expiring_subscription_days: int
    enable_email_notifications: bool
    enable_sms_notifications: bool
    email_templates: dict[str, dict[str, str]]
    sms_templates: dict[str, str]

    @classmethod
    def from_domain(cls, settings: NotificationSettings) -> "NotificationSettingsResponse":
        return cls(**settings.to_dict())


class UpdateNotificationSettingsRequest(BaseModel):
    """
    Only the fields sent are changed. Templates are merged by name, so
    sending one template leaves the others as they are.
    """
    expiring_subscription_days: Optional[int] = Field(None, ge=1)
    enable_email_notifications: Optional[bool] = None
    enable_sms_notifications: Optional[bool] = None
    email_templates: Optional[dict[str, dict[str, Any]]] = None
    sms_templates: Optional[dict[str, Any]] = None


class MessageSummary(BaseModel):
    channel: str
    to: str
    subject: str

    @classmethod
    def from_domain(cls, message: NotificationMessage) -> "MessageSummary":
        return cls(channel=message.channel, to=message.to, subject=message.subject)


class DispatchResponse(BaseModel):
    message: str
    subscription_id: int
    coach_name: str
    coach_email: str
    messages: list[MessageSummary]

    @classmethod
    def from_domain(cls, message: str, result: DispatchResult) -> "DispatchResponse":
        return cls(
            message=message,
            subscription_id=result.subscription_id,
            coach_name=result.coach_name,
            coach_email=result.coach_email,
            messages=[MessageSummary.from_domain(m) for m in result.messages],
        )


class BulkExpiringRequest(BaseModel):
    days: int = Field(7, ge=0, description="Notify subscriptions ending within this many days")


class SentNotification(BaseModel):
    subscription_id: int
    coach_name: str
    coach_email: str


class FailedNotification(BaseModel):
    subscription_id: int
    coach_email: str
    error: str


class BulkDispatchResponse(BaseModel):
    message: str
    sent: list[SentNotification]
    failed: list[FailedNotification]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=NotificationOverviewResponse,
    summary="Notification candidates",
    description=(
        "Subscriptions expiring within the configured window, those that ended "
        "in the last 7 days, and those with a pending payment. page/limit apply "
        "to each list."
    ),
    dependencies=[Depends(require_permission("notifications.read"))],
)
def notification_overview(center: NotificationCenterDep, page: PageDep) -> NotificationOverviewResponse:
    overview = center.overview(page)
    return NotificationOverviewResponse(
        expiring_days=overview.expiring_days,
        expiring_subscriptions=SubscriptionPageResponse.from_page(overview.expiring),
        recently_expired=SubscriptionPageResponse.from_page(overview.recently_expired),
        pending_payments=SubscriptionPageResponse.from_page(overview.pending_payments),
    )


@router.get(
    "/settings",
    response_model=NotificationSettingsResponse,
    summary="Get notification settings",
    dependencies=[Depends(require_permission("notifications.settings"))],
)
def get_notification_settings(center: NotificationCenterDep) -> NotificationSettingsResponse:
    return NotificationSettingsResponse.from_domain(center.get_settings())


@router.put(
    "/settings",
    response_model=NotificationSettingsResponse,
    summary="Update notification settings",
    dependencies=[Depends(require_permission("notifications.settings"))],
)
def update_notification_settings(
    request: UpdateNotificationSettingsRequest,
    center: NotificationCenterDep,
) -> NotificationSettingsResponse:
    settings = center.update_settings(patch_from(request, NotificationSettingsPatch))
    return NotificationSettingsResponse.from_domain(settings)


@router.post(
    "/expiring/{subscription_id}",
    response_model=DispatchResponse,
    summary="Send an expiring-subscription notice",
    dependencies=[Depends(require_permission("notifications.send"))],
)
def send_expiring_notification(subscription_id: int, center: NotificationCenterDep) -> DispatchResponse:
    result = center.send_expiring(subscription_id)
    return DispatchResponse.from_domain("Notification sent successfully", result)


@router.post(
    "/payment/{subscription_id}",
    response_model=DispatchResponse,
    summary="Send a payment reminder",
    description="Only subscriptions whose payment is pending can be reminded.",
    dependencies=[Depends(require_permission("notifications.send"))],
)
def send_payment_reminder(subscription_id: int, center: NotificationCenterDep) -> DispatchResponse:
    result = center.send_payment_reminder(subscription_id)
    return DispatchResponse.from_domain("Payment reminder sent successfully", result)


@router.post(
    "/bulk/expiring",
    response_model=BulkDispatchResponse,
    summary="Notify all expiring subscriptions",
    description=(
        "Sends the expiring notice to every active subscription ending within "
        "`days` days that hasn't been notified yet. One failed delivery doesn't "
        "stop the rest; failures are listed in the response."
    ),
    dependencies=[Depends(require_permission("notifications.send"))],
)
def send_bulk_expiring(
    center: NotificationCenterDep,
    request: Optional[BulkExpiringRequest] = None,
) -> BulkDispatchResponse:
    days = request.days if request else BulkExpiringRequest().days
    result = center.send_bulk_expiring(days)
    return BulkDispatchResponse(
        message=f"Sent {len(result.sent)} notifications, {len(result.failed)} failed",
        sent=[
            SentNotification(
                subscription_id=s.subscription_id,
                coach_name=s.coach_name,
                coach_email=s.coach_email,
            )
            for s in result.sent
        ],
        failed=[
            FailedNotification(
                subscription_id=f.subscription_id,
                coach_email=f.coach_email,
                error=f.error,
            )
            for f in result.failed
        ],
    )
