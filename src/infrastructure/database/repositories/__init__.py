"""
Repository implementations for SQLAlchemy.

Repositories translate between domain models and database rows.
"""

from .directory import AdminRepository, CoachRepository, PlanRepository
from .settings import SettingsRepository
from .subscriptions import SubscriptionRepository

__all__ = [
    "AdminRepository",
    "CoachRepository",
    "PlanRepository",
    "SettingsRepository",
    "SubscriptionRepository",
]
