"""
Directory services: admins, coaches and plans.

Mostly attribute pass-through. The rules that matter are email uniqueness
(on create and on email change) and the guard that refuses to delete a
coach or plan while an active subscription still points at it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Optional

from .errors import (
    AuthenticationError,
    DeletionBlockedError,
    DuplicateEmailError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .lifecycle import Clock, utc_now
from .models import (
    Admin,
    AdminRole,
    Coach,
    CoachStatus,
    Page,
    PageRequest,
    Plan,
    SubscriptionDetail,
    parse_enum,
)
from .patches import AdminPatch, CoachPatch, PlanPatch, provided
from .repositories import PasswordHasher, UnitOfWork, atomic


logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------

class AdminDirectory:
    """Back-office accounts and their credentials."""

    def __init__(self, uow: UnitOfWork, hasher: PasswordHasher, clock: Clock = utc_now) -> None:
        self._uow = uow
        self._hasher = hasher
        self._clock = clock

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
    ) -> Admin:
        name = _require_text(name, "name")
        email = normalize_email(_require_text(email, "email"))
        password = _require_text(password, "password")
        role_value = parse_enum(AdminRole, role or AdminRole.ADMIN, "role")

        with atomic(self._uow):
            if self._uow.admins.get_by_email(email) is not None:
                raise DuplicateEmailError("Admin already exists")
            admin = self._uow.admins.add(Admin(
                name=name,
                email=email,
                password_hash=self._hasher.hash(password),
                role=role_value,
            ))

        logger.info("Admin registered", extra={"admin_id": admin.id, "role": admin.role.value})
        return admin

    def authenticate(self, email: str, password: str) -> Admin:
        """
        Check credentials and stamp last_login.

        Unknown email and wrong password produce the same error so the
        response doesn't reveal which accounts exist.
        """
        if not email or not password:
            raise ValidationError("Please provide email and password")

        with atomic(self._uow):
            admin = self._uow.admins.get_by_email(normalize_email(email))
            if admin is None or not self._hasher.verify(password, admin.password_hash):
                logger.warning("Failed admin login", extra={"email": normalize_email(email)})
                raise AuthenticationError("Invalid email or password")
            admin.last_login = self._clock()
            admin = self._uow.admins.save(admin)

        logger.info("Admin logged in", extra={"admin_id": admin.id})
        return admin

    def list(self) -> list[Admin]:
        return self._uow.admins.list_all()

    def get(self, admin_id: int) -> Admin:
        admin = self._uow.admins.get(admin_id)
        if admin is None:
            raise NotFoundError("Admin", admin_id)
        return admin

    def update(self, actor: Admin, admin_id: int, patch: AdminPatch) -> Admin:
        changes = provided(patch)

        with atomic(self._uow):
            admin = self.get(admin_id)

            if "name" in changes:
                admin.name = _require_text(changes["name"], "name")

            if "email" in changes:
                email = normalize_email(_require_text(changes["email"], "email"))
                if email != admin.email:
                    if self._uow.admins.get_by_email(email) is not None:
                        raise DuplicateEmailError("Email already in use")
                    admin.email = email

            if "role" in changes:
                role_value = parse_enum(AdminRole, changes["role"], "role")
                if role_value != admin.role:
                    if actor.id == admin.id:
                        raise PermissionDeniedError("You cannot change your own role")
                    admin.role = role_value

            if "password" in changes:
                admin.password_hash = self._hasher.hash(_require_text(changes["password"], "password"))

            admin = self._uow.admins.save(admin)

        logger.info(
            "Admin updated",
            extra={"admin_id": admin_id, "actor_id": actor.id, "fields": sorted(changes)}
        )
        return admin

    def delete(self, actor: Admin, admin_id: int) -> None:
        with atomic(self._uow):
            admin = self.get(admin_id)
            if admin.id == actor.id:
                raise ValidationError("Cannot delete your own account")
            self._uow.admins.delete(admin_id)

        logger.warning("Admin deleted", extra={"admin_id": admin_id, "actor_id": actor.id})


# ---------------------------------------------------------------------------
# Coaches
# ---------------------------------------------------------------------------

class CoachDirectory:
    """Coach accounts."""

    def __init__(self, uow: UnitOfWork, hasher: PasswordHasher) -> None:
        self._uow = uow
        self._hasher = hasher

    def list(
        self,
        page: PageRequest,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Page[Coach]:
        status_value = parse_enum(CoachStatus, status, "status") if status else None
        return self._uow.coaches.list(page, status=status_value, search=search or None)

    def get(self, coach_id: int) -> Coach:
        coach = self._uow.coaches.get(coach_id)
        if coach is None:
            raise NotFoundError("Coach", coach_id)
        return coach

    def subscriptions(self, coach_id: int) -> list[SubscriptionDetail]:
        self.get(coach_id)
        return self._uow.subscriptions.list_for_coach(coach_id)

    def create(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        profile_photo_url: Optional[str] = None,
        bio: Optional[str] = None,
        specialization: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Coach:
        name = _require_text(name, "name")
        email = normalize_email(_require_text(email, "email"))
        password = _require_text(password, "password")
        status_value = parse_enum(CoachStatus, status or CoachStatus.ACTIVE, "status")

        with atomic(self._uow):
            if self._uow.coaches.get_by_email(email) is not None:
                raise DuplicateEmailError("Coach already exists")
            coach = self._uow.coaches.add(Coach(
                name=name,
                email=email,
                password_hash=self._hasher.hash(password),
                phone=phone,
                profile_photo_url=profile_photo_url,
                bio=bio,
                specialization=specialization,
                status=status_value,
            ))

        logger.info("Coach created", extra={"coach_id": coach.id})
        return coach

    def update(self, coach_id: int, patch: CoachPatch) -> Coach:
        changes = provided(patch)

        with atomic(self._uow):
            coach = self.get(coach_id)

            if "name" in changes:
                coach.name = _require_text(changes["name"], "name")

            if "email" in changes:
                email = normalize_email(_require_text(changes["email"], "email"))
                if email != coach.email:
                    if self._uow.coaches.get_by_email(email) is not None:
                        raise DuplicateEmailError("Email already in use")
                    coach.email = email

            if "status" in changes:
                coach.status = parse_enum(CoachStatus, changes["status"], "status")

            if "password" in changes:
                coach.password_hash = self._hasher.hash(_require_text(changes["password"], "password"))

            for name in ("phone", "profile_photo_url", "bio", "specialization"):
                if name in changes:
                    setattr(coach, name, changes[name])

            coach = self._uow.coaches.save(coach)

        logger.info("Coach updated", extra={"coach_id": coach_id, "fields": sorted(changes)})
        return coach

    def delete(self, coach_id: int) -> None:
        """Refused while the coach has an active subscription."""
        with atomic(self._uow):
            self.get(coach_id)
            # Same lock as subscription writes, so no active subscription can appear mid-check.
            self._uow.lock_coach(coach_id)
            active = self._uow.subscriptions.count_active(coach_id=coach_id)
            if active > 0:
                raise DeletionBlockedError("Cannot delete coach with active subscriptions")
            self._uow.coaches.delete(coach_id)

        logger.warning("Coach deleted", extra={"coach_id": coach_id})


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

class PlanDirectory:
    """Plan catalogue."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def list(
        self,
        page: PageRequest,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Page[Plan]:
        return self._uow.plans.list(page, is_active=is_active, search=search or None)

    def get(self, plan_id: int) -> Plan:
        plan = self._uow.plans.get(plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    def create(
        self,
        name: str,
        price: Decimal,
        duration_days: int,
        features: Optional[dict[str, Any]] = None,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> Plan:
        plan = Plan(
            name=_require_text(name, "name"),
            price=price,
            duration_days=duration_days,
            features=features or {},
            is_active=is_active,
            description=description,
        )

        with atomic(self._uow):
            plan = self._uow.plans.add(plan)

        logger.info("Plan created", extra={"plan_id": plan.id, "price": str(plan.price)})
        return plan

    def update(self, plan_id: int, patch: PlanPatch) -> Plan:
        """Explicit zero and false values are applied like any other value."""
        changes = provided(patch)
        for name in ("name", "price", "duration_days", "is_active"):
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be null")
        if "features" in changes and changes["features"] is None:
            changes["features"] = {}

        with atomic(self._uow):
            current = self.get(plan_id)
            # replace() re-runs Plan validation on the merged values
            plan = self._uow.plans.save(replace(current, **changes))

        logger.info("Plan updated", extra={"plan_id": plan_id, "fields": sorted(changes)})
        return plan

    def delete(self, plan_id: int) -> None:
        """Refused while any active subscription uses the plan."""
        with atomic(self._uow):
            self.get(plan_id)
            if self._uow.subscriptions.count_active(plan_id=plan_id) > 0:
                raise DeletionBlockedError("Cannot delete plan with active subscriptions")
            self._uow.plans.delete(plan_id)

        logger.warning("Plan deleted", extra={"plan_id": plan_id})
