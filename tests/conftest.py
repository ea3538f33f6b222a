"""
Shared fixtures.

Tests run against a file-based SQLite database through aiosqlite. Each test
gets freshly created tables and an HTTP client bound to the app with the
request session pointed at that database.
"""

import os

# before any leadcrm import: settings and the module-level engine read these
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_leadcrm.db"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("EXPOSE_OTP_IN_RESPONSE", "true")

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from leadcrm.db.database import get_async_db
from leadcrm.main import app
from leadcrm.middleware.simple_performance import reset_performance_stats
from leadcrm.models import Base
from leadcrm.models.category import Category
from leadcrm.models.organization import Organization
from leadcrm.models.user import StaffType, User, UserRole

TEST_DATABASE_URL = os.environ["DATABASE_URL"]


@pytest.fixture
async def engine():
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_async_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = override_get_async_db
    reset_performance_stats()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def identity_headers(user: User) -> dict:
    """Gateway identity headers for ``user``."""
    headers = {
        "x-user-id": str(user.id),
        "x-user-role": user.role,
        "x-user-phone": user.phone,
    }
    if user.organization_id is not None:
        headers["x-organization-id"] = str(user.organization_id)
    return headers


async def _add_user(session, organization_id, phone, name, role, staff_type=StaffType.SALES, salary=None):
    user = User(
        organization_id=organization_id,
        phone=phone,
        name=name,
        role=role.value,
        staff_type=staff_type.value,
        monthly_salary=salary,
        is_active=True,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def org(db_session):
    """One organisation with a manager, two sales reps, a support staff member and a category."""
    organization = Organization(name="Pedal Works", contact_number="9876500000")
    db_session.add(organization)
    await db_session.flush()

    manager = await _add_user(
        db_session, organization.id, "9000000001", "Maya Manager", UserRole.MANAGER, StaffType.MANAGER
    )
    rep = await _add_user(
        db_session, organization.id, "9000000002", "Ravi Rep", UserRole.SALES_REP, salary=Decimal("20000")
    )
    rep2 = await _add_user(db_session, organization.id, "9000000003", "Sana Rep", UserRole.SALES_REP)
    support = await _add_user(
        db_session, organization.id, "9000000004", "Tara Support", UserRole.STAFF, StaffType.SUPPORT
    )
    category = Category(organization_id=organization.id, name="Geared")
    db_session.add(category)

    await db_session.commit()

    return {
        "organization": organization,
        "manager": manager,
        "rep": rep,
        "rep2": rep2,
        "support": support,
        "category": category,
    }


@pytest.fixture
async def other_org(db_session):
    organization = Organization(name="Other Cycles")
    db_session.add(organization)
    await db_session.flush()
    manager = await _add_user(
        db_session, organization.id, "9100000001", "Omar Manager", UserRole.MANAGER, StaffType.MANAGER
    )
    await db_session.commit()
    return {"organization": organization, "manager": manager}


@pytest.fixture
async def super_admin(db_session):
    user = await _add_user(
        db_session, None, "9999999999", "Root Admin", UserRole.SUPER_ADMIN, StaffType.MANAGER
    )
    await db_session.commit()
    return user
