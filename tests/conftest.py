"""
Shared fixtures.

Unit tests run the billing core against a real SqlAlchemyUnitOfWork on
in-memory SQLite, so every query the services depend on is exercised.
API tests build the app with create_app() around the same database and
pin "now" by overriding the clock dependency.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_clock, get_notification_sender
from src.config.settings import Settings
from src.core.billing.directory import AdminDirectory, CoachDirectory, PlanDirectory
from src.core.billing.lifecycle import SubscriptionLifecycle
from src.core.billing.models import Admin, AdminRole, Coach, NotificationMessage, Plan, Subscription
from src.infrastructure.database.client import Database
from src.infrastructure.database.unit_of_work import CoachLocks, SqlAlchemyUnitOfWork
from src.infrastructure.security import BcryptPasswordHasher, TokenService


# 2025-06-15 is a Sunday; the dates used across tests are relative to it.
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

TEST_JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"


def fixed_clock() -> datetime:
    return NOW


class RecordingSender:
    """NotificationSender that keeps what it was given. fail_for makes delivery raise for those addresses."""

    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.sent: list[NotificationMessage] = []
        self.fail_for = set(fail_for)

    def send(self, message: NotificationMessage) -> None:
        if message.to in self.fail_for:
            raise ConnectionError(f"Mailbox unavailable: {message.to}")
        self.sent.append(message)


# ---------------------------------------------------------------------------
# Database and Unit of Work
# ---------------------------------------------------------------------------

@pytest.fixture
def database() -> Iterator[Database]:
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def uow(database: Database) -> Iterator[SqlAlchemyUnitOfWork]:
    # Private lock stripes so one test can't block another
    unit = SqlAlchemyUnitOfWork.from_database(database, locks=CoachLocks(), lock_timeout=2.0)
    yield unit
    unit.close()


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    # The bcrypt minimum; keeps the suite fast
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def lifecycle(uow) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(uow, clock=fixed_clock)


@pytest.fixture
def admins(uow, hasher) -> AdminDirectory:
    return AdminDirectory(uow, hasher, clock=fixed_clock)


@pytest.fixture
def coaches(uow, hasher) -> CoachDirectory:
    return CoachDirectory(uow, hasher)


@pytest.fixture
def plans(uow) -> PlanDirectory:
    return PlanDirectory(uow)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_coach(coaches) -> Callable[..., Coach]:
    counter = iter(range(1, 10_000))

    def factory(name: str = "", email: str = "", phone: str | None = None, **kwargs) -> Coach:
        n = next(counter)
        return coaches.create(
            name=name or f"Coach {n}",
            email=email or f"coach{n}@example.com",
            password="coachpass",
            phone=phone,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_plan(plans) -> Callable[..., Plan]:
    def factory(name: str = "Monthly", price: str = "29.99", duration_days: int = 30, **kwargs) -> Plan:
        return plans.create(name=name, price=Decimal(price), duration_days=duration_days, **kwargs)

    return factory


@pytest.fixture
def make_subscription(lifecycle, make_coach, make_plan) -> Callable[..., Subscription]:
    """
    Book a subscription. Creates a coach and plan unless given, so a test
    only spells out what it cares about.
    """
    def factory(
        start: date,
        end: date,
        coach: Coach | None = None,
        plan: Plan | None = None,
        **kwargs,
    ) -> Subscription:
        coach = coach or make_coach()
        plan = plan or make_plan()
        return lifecycle.create(coach.id, plan.id, start, end, **kwargs)

    return factory


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="development",
        database_url="sqlite://",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        cors_origins="*",
    )


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def client(settings, database, sender) -> Iterator[TestClient]:
    from src.main import create_app

    app = create_app(settings=settings, database=database)
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_notification_sender] = lambda: sender

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret=TEST_JWT_SECRET)


@pytest.fixture
def make_admin(admins) -> Callable[..., Admin]:
    counter = iter(range(1, 10_000))

    def factory(role: AdminRole = AdminRole.ADMIN, email: str = "", password: str = "adminpass") -> Admin:
        n = next(counter)
        return admins.register(
            name=f"{role.value.title()} {n}",
            email=email or f"{role.value}{n}@example.com",
            password=password,
            role=role.value,
        )

    return factory


@pytest.fixture
def auth_headers(make_admin, tokens) -> Callable[..., dict[str, str]]:
    """Authorization headers for a freshly registered admin of the given role."""
    def factory(role: AdminRole = AdminRole.ADMIN) -> dict[str, str]:
        admin = make_admin(role)
        return {"Authorization": f"Bearer {tokens.create_access_token(admin.id, admin.role.value)}"}

    return factory
