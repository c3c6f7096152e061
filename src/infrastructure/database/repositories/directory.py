"""
SQLAlchemy repositories for admins, coaches and plans.

Each repository works inside the session owned by the unit of work and
flushes after every write, so generated ids are available immediately
and later queries in the same transaction see the change. Committing is
the unit of work's job.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.billing.errors import DeletionBlockedError
from src.core.billing.models import (
    Admin,
    AdminRole,
    Coach,
    CoachStatus,
    Page,
    PageRequest,
    Plan,
    SubscriptionStatus,
)

from ..tables import AdminRow, CoachRow, PlanRow, SubscriptionRow
from .pagination import paginate


logger = logging.getLogger(__name__)


def _delete_referenced(session: Session, statement, blocked_message: str) -> None:
    """Run a parent-row delete; a remaining child row turns into DeletionBlockedError."""
    try:
        session.execute(statement)
        session.flush()
    except IntegrityError as e:
        logger.warning("Delete blocked by remaining subscriptions", extra={"error": str(e.orig)})
        raise DeletionBlockedError(blocked_message)


class AdminRepository:
    """Admin accounts."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, admin_id: int) -> Optional[Admin]:
        row = self._session.get(AdminRow, admin_id)
        return self._build_admin(row) if row else None

    def get_by_email(self, email: str) -> Optional[Admin]:
        row = self._session.scalars(select(AdminRow).where(AdminRow.email == email)).first()
        return self._build_admin(row) if row else None

    def list_all(self) -> list[Admin]:
        rows = self._session.scalars(
            select(AdminRow).order_by(AdminRow.created_at.desc(), AdminRow.id.desc())
        )
        return [self._build_admin(row) for row in rows]

    def add(self, admin: Admin) -> Admin:
        row = AdminRow(
            name=admin.name,
            email=admin.email,
            password_hash=admin.password_hash,
            role=admin.role.value,
        )
        self._session.add(row)
        self._session.flush()
        return self._build_admin(row)

    def save(self, admin: Admin) -> Admin:
        row = self._session.get(AdminRow, admin.id)
        row.name = admin.name
        row.email = admin.email
        row.password_hash = admin.password_hash
        row.role = admin.role.value
        row.last_login = admin.last_login
        self._session.flush()
        return self._build_admin(row)

    def delete(self, admin_id: int) -> None:
        self._session.execute(delete(AdminRow).where(AdminRow.id == admin_id))
        self._session.flush()

    def _build_admin(self, row: AdminRow) -> Admin:
        return Admin(
            id=row.id,
            name=row.name,
            email=row.email,
            password_hash=row.password_hash,
            role=AdminRole(row.role),
            last_login=row.last_login,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class CoachRepository:
    """Coach accounts."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, coach_id: int) -> Optional[Coach]:
        row = self._session.get(CoachRow, coach_id)
        return self._build_coach(row) if row else None

    def get_by_email(self, email: str) -> Optional[Coach]:
        row = self._session.scalars(select(CoachRow).where(CoachRow.email == email)).first()
        return self._build_coach(row) if row else None

    def list(
        self,
        page: PageRequest,
        status: Optional[CoachStatus] = None,
        search: Optional[str] = None,
    ) -> Page[Coach]:
        """Newest first. search matches name or email, case-insensitive."""
        conditions = []
        if status is not None:
            conditions.append(CoachRow.status == status.value)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(CoachRow.name.ilike(pattern), CoachRow.email.ilike(pattern)))

        return paginate(
            self._session,
            select(CoachRow).where(*conditions).order_by(CoachRow.created_at.desc(), CoachRow.id.desc()),
            page,
            self._build_coach,
        )

    def list_all(self) -> list[Coach]:
        rows = self._session.scalars(select(CoachRow).order_by(CoachRow.id))
        return [self._build_coach(row) for row in rows]

    def add(self, coach: Coach) -> Coach:
        row = CoachRow()
        self._copy(coach, row)
        self._session.add(row)
        self._session.flush()
        return self._build_coach(row)

    def save(self, coach: Coach) -> Coach:
        row = self._session.get(CoachRow, coach.id)
        self._copy(coach, row)
        row.last_login = coach.last_login
        self._session.flush()
        return self._build_coach(row)

    def delete(self, coach_id: int) -> None:
        """
        Remove the coach and its inactive subscription history.

        Active subscriptions are never removed here; if one exists the
        foreign key stops the delete and DeletionBlockedError is raised.
        """
        removed = self._session.execute(
            delete(SubscriptionRow).where(
                SubscriptionRow.coach_id == coach_id,
                SubscriptionRow.status != SubscriptionStatus.ACTIVE.value,
            )
        ).rowcount
        _delete_referenced(
            self._session,
            delete(CoachRow).where(CoachRow.id == coach_id),
            "Cannot delete coach with active subscriptions",
        )
        if removed:
            logger.info(
                "Removed subscription history with coach",
                extra={"coach_id": coach_id, "subscriptions": removed}
            )

    def _copy(self, coach: Coach, row: CoachRow) -> None:
        row.name = coach.name
        row.email = coach.email
        row.password_hash = coach.password_hash
        row.phone = coach.phone
        row.profile_photo_url = coach.profile_photo_url
        row.bio = coach.bio
        row.specialization = coach.specialization
        row.status = coach.status.value

    def _build_coach(self, row: CoachRow) -> Coach:
        return Coach(
            id=row.id,
            name=row.name,
            email=row.email,
            password_hash=row.password_hash,
            phone=row.phone,
            profile_photo_url=row.profile_photo_url,
            bio=row.bio,
            specialization=row.specialization,
            status=CoachStatus(row.status),
            last_login=row.last_login,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class PlanRepository:
    """The plan catalogue."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, plan_id: int) -> Optional[Plan]:
        row = self._session.get(PlanRow, plan_id)
        return self._build_plan(row) if row else None

    def list(
        self,
        page: PageRequest,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Page[Plan]:
        conditions = []
        if is_active is not None:
            conditions.append(PlanRow.is_active == is_active)
        if search:
            conditions.append(PlanRow.name.ilike(f"%{search}%"))

        return paginate(
            self._session,
            select(PlanRow).where(*conditions).order_by(PlanRow.created_at.desc(), PlanRow.id.desc()),
            page,
            self._build_plan,
        )

    def list_all(self) -> list[Plan]:
        rows = self._session.scalars(select(PlanRow).order_by(PlanRow.id))
        return [self._build_plan(row) for row in rows]

    def add(self, plan: Plan) -> Plan:
        row = PlanRow()
        self._copy(plan, row)
        self._session.add(row)
        self._session.flush()
        return self._build_plan(row)

    def save(self, plan: Plan) -> Plan:
        row = self._session.get(PlanRow, plan.id)
        self._copy(plan, row)
        self._session.flush()
        return self._build_plan(row)

    def delete(self, plan_id: int) -> None:
        """Remove the plan and its inactive subscription history. See CoachRepository.delete."""
        self._session.execute(
            delete(SubscriptionRow).where(
                SubscriptionRow.plan_id == plan_id,
                SubscriptionRow.status != SubscriptionStatus.ACTIVE.value,
            )
        )
        _delete_referenced(
            self._session,
            delete(PlanRow).where(PlanRow.id == plan_id),
            "Cannot delete plan with active subscriptions",
        )

    def _copy(self, plan: Plan, row: PlanRow) -> None:
        row.name = plan.name
        row.price = plan.price
        row.duration_days = plan.duration_days
        # new dict so the JSON column registers the change
        row.features = dict(plan.features)
        row.is_active = plan.is_active
        row.description = plan.description

    def _build_plan(self, row: PlanRow) -> Plan:
        return Plan(
            id=row.id,
            name=row.name,
            price=row.price,
            duration_days=row.duration_days,
            features=dict(row.features or {}),
            is_active=row.is_active,
            description=row.description,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
