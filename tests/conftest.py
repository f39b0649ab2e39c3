"""Pytest fixtures for overtime engine tests."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from overtime_engine.config import Settings
from overtime_engine.events.emitter import EventEmitter
from overtime_engine.events.types import OvertimeEvent
from overtime_engine.models import (
    Base,
    EligibilityRule,
    Employee,
    RateFormula,
)
from overtime_engine.services.holiday_calendar import StaticHolidayCalendar
from overtime_engine.services.lifecycle_service import (
    Actor,
    OvertimeSubmission,
    RequestLifecycleManager,
)
from overtime_engine.services.resubmission_service import ResubmissionTracker

# In-memory SQLite shared by every session of one test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 2 March 2026 is a Monday
MONDAY = date(2026, 3, 2)
SATURDAY = date(2026, 3, 7)
HOLIDAY = date(2026, 3, 20)

WEEKDAY_FORMULA = "IF(Hours>8, Basic/26/8*Hours*1.5, Basic/26/8*Hours)"


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
    )


@pytest.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def test_staff(session: AsyncSession) -> dict[str, Employee]:
    """A small org chart: one employee reporting to a supervisor, plus HR and BOD."""
    department_id = uuid4()

    supervisor = Employee(
        employee_id=uuid4(),
        employee_no="S-001",
        full_name="Sam Supervisor",
        department_id=department_id,
        role="supervisor",
        employment_type="permanent",
        basic_salary=Decimal("5200.00"),
    )
    hr = Employee(
        employee_id=uuid4(),
        employee_no="H-001",
        full_name="Hana HR",
        role="hr",
        employment_type="permanent",
        basic_salary=Decimal("4800.00"),
    )
    bod = Employee(
        employee_id=uuid4(),
        employee_no="B-001",
        full_name="Bala Director",
        role="bod",
        employment_type="permanent",
        basic_salary=Decimal("20000.00"),
    )
    session.add_all([supervisor, hr, bod])
    await session.flush()

    alice = Employee(
        employee_id=uuid4(),
        employee_no="E-001",
        full_name="Alice Tan",
        department_id=department_id,
        role="employee",
        employment_type="permanent",
        basic_salary=Decimal("2600.00"),
        supervisor_id=supervisor.employee_id,
    )
    bob = Employee(
        employee_id=uuid4(),
        employee_no="E-002",
        full_name="Bob Lim",
        department_id=department_id,
        role="employee",
        employment_type="contract",
        basic_salary=Decimal("3120.00"),
        supervisor_id=supervisor.employee_id,
    )
    session.add_all([alice, bob])
    await session.flush()

    return {"alice": alice, "bob": bob, "supervisor": supervisor, "hr": hr, "bod": bod}


@pytest.fixture
async def test_policies(session: AsyncSession, test_staff) -> dict[str, object]:
    """Catch-all eligibility rule and one formula per day type."""
    rule = EligibilityRule(
        rule_id=uuid4(),
        rule_name="Non-executive staff",
        max_salary=Decimal("6000.00"),
    )
    formulas = {
        "weekday": RateFormula(
            formula_id=uuid4(),
            formula_name="Weekday OT",
            day_type="weekday",
            base_formula=WEEKDAY_FORMULA,
            multiplier=Decimal("1"),
            effective_from=date(2025, 1, 1),
        ),
        "saturday": RateFormula(
            formula_id=uuid4(),
            formula_name="Saturday OT",
            day_type="saturday",
            base_formula="HRP*Hours",
            multiplier=Decimal("1.5"),
            effective_from=date(2025, 1, 1),
        ),
        "public_holiday": RateFormula(
            formula_id=uuid4(),
            formula_name="Public holiday OT",
            day_type="public_holiday",
            base_formula="HRP*Hours*2",
            multiplier=Decimal("1"),
            effective_from=date(2025, 1, 1),
        ),
    }
    session.add(rule)
    session.add_all(formulas.values())
    await session.flush()
    return {"rule": rule, **formulas}


@pytest.fixture
def events() -> list[OvertimeEvent]:
    return []


@pytest.fixture
def emitter(events) -> EventEmitter:
    emitter = EventEmitter()
    emitter.on_all(events.append)
    return emitter


@pytest.fixture
def lifecycle(session, emitter, settings) -> RequestLifecycleManager:
    return RequestLifecycleManager(
        session,
        emitter=emitter,
        holiday_calendar=StaticHolidayCalendar([HOLIDAY]),
        settings=settings,
    )


@pytest.fixture
def tracker(session, lifecycle) -> ResubmissionTracker:
    return ResubmissionTracker(session, lifecycle)


@pytest.fixture
def actors(test_staff) -> dict[str, Actor]:
    return {
        "alice": Actor(test_staff["alice"].employee_id, "employee", "Alice Tan"),
        "bob": Actor(test_staff["bob"].employee_id, "employee", "Bob Lim"),
        "supervisor": Actor(test_staff["supervisor"].employee_id, "supervisor", "Sam Supervisor"),
        "hr": Actor(test_staff["hr"].employee_id, "hr", "Hana HR"),
        "bod": Actor(test_staff["bod"].employee_id, "bod", "Bala Director"),
    }


def make_submission(
    employee: Employee,
    ot_date: date = MONDAY,
    start: time = time(18, 0),
    end: time = time(20, 0),
    reason: str = "Month-end closing",
    **kwargs,
) -> OvertimeSubmission:
    return OvertimeSubmission(
        employee_id=employee.employee_id,
        ot_date=ot_date,
        start_time=start,
        end_time=end,
        reason=reason,
        **kwargs,
    )
