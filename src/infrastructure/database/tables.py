"""
ORM table definitions.

Rows are persistence details only. Repositories translate them to the
dataclasses in src/core/billing/models.py, so nothing outside this
package sees a mapped object.

Enums are stored as their string values to keep the schema portable
between SQLite and PostgreSQL.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    SQLite has no timezone type and hands values back naive; they were
    written as UTC, so UTC is attached on the way out. Aware values are
    converted to UTC on the way in, naive ones are taken as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None or value.tzinfo is not None:
            return value
        return value.replace(tzinfo=timezone.utc)


class AdminRow(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default="admin")  # 'admin', 'finance', 'sales'
    last_login = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now, onupdate=_now)


class CoachRow(Base):
    __tablename__ = "coaches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(64), nullable=True)
    profile_photo_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    specialization = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default="active")  # 'active', 'inactive', 'suspended'
    last_login = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now, onupdate=_now)


class PlanRow(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration_days = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now, onupdate=_now)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coach_id = Column(Integer, ForeignKey("coaches.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(32), nullable=False, default="active")  # 'active', 'expired', 'cancelled'
    payment_status = Column(String(32), nullable=False, default="paid")  # 'paid', 'pending', 'failed'

    # --- PAYMENT ---
    payment_date = Column(UTCDateTime(), nullable=True)
    payment_method = Column(String(64), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    payment_notes = Column(Text, nullable=True)

    # --- CANCELLATION ---
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    # --- NOTIFICATIONS ---
    notification_sent = Column(Boolean, nullable=False, default=False)
    last_notification_date = Column(UTCDateTime(), nullable=True)
    payment_reminder_sent = Column(Boolean, nullable=False, default=False)
    last_payment_reminder_date = Column(UTCDateTime(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=_now)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (
        Index("ix_subscriptions_coach_period", "coach_id", "start_date", "end_date"),
        Index("ix_subscriptions_status_end", "status", "end_date"),
        Index("ix_subscriptions_payment_date", "payment_date"),
    )


class SettingRow(Base):
    """Small JSON documents keyed by name (notification settings live here)."""
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(UTCDateTime(), nullable=False, default=_now, onupdate=_now)
