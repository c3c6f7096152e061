"""
Persistence interfaces for the billing core.

Using Protocols here means the services never import SQLAlchemy. They
ask a unit of work for repositories, read and write plain dataclasses,
and decide when to commit. The concrete implementations live in
src/infrastructure/database.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Any, Iterable, Iterator, Optional, Protocol

from .models import (
    Admin,
    Coach,
    CoachStatus,
    DateRange,
    Page,
    PageRequest,
    PaymentFilter,
    Plan,
    Subscription,
    SubscriptionDetail,
    SubscriptionFilter,
    SubscriptionStatus,
)


class AdminRepository(Protocol):
    def get(self, admin_id: int) -> Optional[Admin]: ...
    def get_by_email(self, email: str) -> Optional[Admin]: ...
    def list_all(self) -> list[Admin]: ...
    def add(self, admin: Admin) -> Admin: ...
    def save(self, admin: Admin) -> Admin: ...
    def delete(self, admin_id: int) -> None: ...


class CoachRepository(Protocol):
    def get(self, coach_id: int) -> Optional[Coach]: ...
    def get_by_email(self, email: str) -> Optional[Coach]: ...
    def list(
        self,
        page: PageRequest,
        status: Optional[CoachStatus] = None,
        search: Optional[str] = None,
    ) -> Page[Coach]: ...
    def list_all(self) -> list[Coach]: ...
    def add(self, coach: Coach) -> Coach: ...
    def save(self, coach: Coach) -> Coach: ...
    def delete(self, coach_id: int) -> None:
        """Remove the coach and any subscription history still pointing at it."""
        ...


class PlanRepository(Protocol):
    def get(self, plan_id: int) -> Optional[Plan]: ...
    def list(
        self,
        page: PageRequest,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Page[Plan]: ...
    def list_all(self) -> list[Plan]: ...
    def add(self, plan: Plan) -> Plan: ...
    def save(self, plan: Plan) -> Plan: ...
    def delete(self, plan_id: int) -> None:
        """Remove the plan and any subscription history still pointing at it."""
        ...


class SubscriptionRepository(Protocol):
    def get(self, subscription_id: int) -> Optional[Subscription]: ...
    def get_detail(self, subscription_id: int) -> Optional[SubscriptionDetail]: ...
    def add(self, subscription: Subscription) -> Subscription: ...
    def save(self, subscription: Subscription) -> Subscription: ...
    def delete(self, subscription_id: int) -> None: ...

    def find_overlapping(
        self,
        coach_id: int,
        period: DateRange,
        exclude_id: Optional[int] = None,
    ) -> list[Subscription]:
        """Subscriptions of the coach, in any status, sharing at least one day with period."""
        ...

    def count_active(
        self,
        coach_id: Optional[int] = None,
        plan_id: Optional[int] = None,
    ) -> int: ...

    def list(self, filters: SubscriptionFilter, page: PageRequest) -> Page[SubscriptionDetail]: ...
    def list_for_coach(self, coach_id: int) -> list[SubscriptionDetail]: ...
    def list_all(self) -> list[SubscriptionDetail]: ...

    def find_ending_between(
        self,
        start: date,
        end: date,
        statuses: Iterable[SubscriptionStatus],
        notification_sent: Optional[bool] = None,
        descending: bool = False,
        page: Optional[PageRequest] = None,
    ) -> Page[SubscriptionDetail]: ...

    def find_pending_payments(self, page: Optional[PageRequest] = None) -> Page[SubscriptionDetail]: ...

    def list_payments(self, filters: PaymentFilter, page: PageRequest) -> Page[SubscriptionDetail]: ...
    def recent_payments(self, limit: int) -> list[SubscriptionDetail]: ...


class SettingsRepository(Protocol):
    """Key/value store for small JSON documents."""

    def get(self, key: str) -> Optional[dict[str, Any]]: ...
    def put(self, key: str, value: dict[str, Any]) -> None: ...


class UnitOfWork(Protocol):
    """
    One request-scoped transaction.

    lock_coach() must hold its lock until commit() or rollback(), so the
    overlap check and the write that follows it can't interleave with
    another transaction touching the same coach.
    """
    admins: AdminRepository
    coaches: CoachRepository
    plans: PlanRepository
    subscriptions: SubscriptionRepository
    settings: SettingsRepository

    def lock_coach(self, coach_id: int) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...
    def verify(self, password: str, password_hash: str) -> bool: ...


@contextmanager
def atomic(uow: UnitOfWork) -> Iterator[UnitOfWork]:
    """
    Commit the unit of work if the block succeeds, roll it back if not.

    Services wrap every mutation in this so a failed overlap check never
    leaves a half-applied change (or a held coach lock) behind.
    """
    try:
        yield uow
        uow.commit()
    except Exception:
        uow.rollback()
        raise
