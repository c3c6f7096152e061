"""
Partial-update structures.

Each patch field defaults to UNSET, which is distinct from None, 0,
False and "". An update applies exactly the fields the caller provided,
so an explicit `price=0` or `is_active=False` is never mistaken for
"not provided".
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union


class _Unset:
    """Sentinel type for 'field not provided'."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


def provided(patch: Any) -> dict[str, Any]:
    """The fields of a patch dataclass that were actually provided."""
    return {
        f.name: getattr(patch, f.name)
        for f in fields(patch)
        if is_set(getattr(patch, f.name))
    }


@dataclass
class AdminPatch:
    name: Union[str, _Unset] = UNSET
    email: Union[str, _Unset] = UNSET
    role: Union[str, _Unset] = UNSET
    password: Union[str, _Unset] = UNSET


@dataclass
class CoachPatch:
    name: Union[str, _Unset] = UNSET
    email: Union[str, _Unset] = UNSET
    password: Union[str, _Unset] = UNSET
    phone: Union[Optional[str], _Unset] = UNSET
    profile_photo_url: Union[Optional[str], _Unset] = UNSET
    bio: Union[Optional[str], _Unset] = UNSET
    specialization: Union[Optional[str], _Unset] = UNSET
    status: Union[str, _Unset] = UNSET


@dataclass
class PlanPatch:
    name: Union[str, _Unset] = UNSET
    price: Union[Decimal, _Unset] = UNSET
    duration_days: Union[int, _Unset] = UNSET
    features: Union[dict, _Unset] = UNSET
    is_active: Union[bool, _Unset] = UNSET
    description: Union[Optional[str], _Unset] = UNSET


@dataclass
class SubscriptionPatch:
    coach_id: Union[int, _Unset] = UNSET
    plan_id: Union[int, _Unset] = UNSET
    start_date: Union[date, _Unset] = UNSET
    end_date: Union[date, _Unset] = UNSET
    status: Union[str, _Unset] = UNSET
    payment_status: Union[str, _Unset] = UNSET


@dataclass
class PaymentPatch:
    payment_status: Union[str, _Unset] = UNSET
    payment_method: Union[str, _Unset] = UNSET
    payment_reference: Union[str, _Unset] = UNSET
    payment_notes: Union[str, _Unset] = UNSET


@dataclass
class NotificationSettingsPatch:
    expiring_subscription_days: Union[int, _Unset] = UNSET
    enable_email_notifications: Union[bool, _Unset] = UNSET
    enable_sms_notifications: Union[bool, _Unset] = UNSET
    email_templates: Union[dict, _Unset] = UNSET
    sms_templates: Union[dict, _Unset] = UNSET
