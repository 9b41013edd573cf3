"""
Pytest configuration and fixtures for testing
"""
import os

# Settings are read at import time; pin them before any app module loads
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["OPENAI_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from auth_utils import create_jwt, hash_password  # noqa: E402
from crud.package import PackageRepository, UserPackageRepository  # noqa: E402
from crud.user import UserRepository  # noqa: E402
from database import Base, get_db  # noqa: E402
from models.entitlement import UNLIMITED_TRIALS  # noqa: E402
from services.billing_clock import add_months  # noqa: E402


@pytest.fixture
async def test_engine(tmp_path):
    """
    A fresh SQLite file per test.

    A file rather than :memory: so that several sessions (concurrent
    commands) each get their own connection to the same data.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True, connect_args={"timeout": 30}
    )
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """
    Session on an isolated database seeded with the default package catalog.
    """
    async with session_factory() as session:
        await PackageRepository(session).ensure_default_packages()
        await session.commit()
        try:
            yield session
        finally:
            await session.close()


@pytest.fixture
async def user(test_db):
    user = await UserRepository(test_db).create_user("reader@example.com", hash_password("notebook123"))
    await test_db.commit()
    return user


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_jwt(str(user.id))}"}


@pytest.fixture
def grant_package(test_db):
    """
    Factory giving a user a package directly, bypassing payment.

    Builds a catalog entry with the requested shape and an active
    UserPackage bought at purchased_at.
    """
    async def _grant(
        user,
        trial_count: int = 3,
        is_subscription: bool = False,
        cycle_limit=None,
        purchased_at: datetime = None,
        price: int = 0,
    ):
        purchased_at = purchased_at or datetime(2026, 1, 15, 12, 0, 0)
        package = await PackageRepository(test_db).create_package({
            "name": "Test Subscription" if is_subscription else f"Test {trial_count} Trials",
            "price": price,
            "trial_count": UNLIMITED_TRIALS if is_subscription else trial_count,
            "features": [],
            "is_best_value": False,
            "icon": "rocket",
            "is_subscription": is_subscription,
            "cycle_limit": cycle_limit,
        })
        user_package = await UserPackageRepository(test_db).create(
            user_id=user.id,
            package=package,
            purchased_at=purchased_at,
            renewal_date=add_months(purchased_at, 1) if is_subscription else None,
        )
        await test_db.commit()
        return user_package

    return _grant


@pytest.fixture
async def async_client(session_factory):
    """
    HTTP client against the app, with get_db bound to the test database.
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
