"""
Pytest configuration and fixtures for the hospital SaaS core tests
"""

import os

# Settings are read at import time; configure them before importing hms
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["SMTP_HOST"] = ""

from collections.abc import AsyncGenerator  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from hms.auth import create_access_token, hash_password, token_claims  # noqa: E402
from hms.constants.plans import SubscriptionPlan  # noqa: E402
from hms.constants.roles import UserRole  # noqa: E402
from hms.database import Base, get_db  # noqa: E402
from hms.models.tenant import Tenant  # noqa: E402
from hms.models.user import User, UserStatus  # noqa: E402
from hms.permissions_config.permissions import get_default_permissions  # noqa: E402
from hms.services import tenant_service  # noqa: E402
from hms.services.auth_service import AuthService  # noqa: E402
from hms.services.email_service import EmailService, get_email_service  # noqa: E402

DEFAULT_PASSWORD = "Secret123"


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_service():
    """EmailService stand-in that records calls instead of talking to SMTP."""
    service = MagicMock(spec=EmailService)
    service.send_verification_email.return_value = True
    service.send_password_reset_email.return_value = True
    return service


@pytest.fixture
def auth_service(db, email_service) -> AuthService:
    return AuthService(db, email_service)


@pytest.fixture
def make_tenant(db):
    async def _make(
        name: str = "Acme Hospital",
        plan: SubscriptionPlan = SubscriptionPlan.STARTER,
        is_active: bool = True,
    ) -> Tenant:
        tenant = await tenant_service.create_tenant(name, db, plan=plan)
        if not is_active:
            tenant = await tenant_service.deactivate_tenant(tenant.id, db)
        return tenant

    return _make


@pytest.fixture
async def tenant(make_tenant) -> Tenant:
    return await make_tenant()


@pytest.fixture
def make_user(db):
    async def _make(
        tenant: Tenant,
        email: str = "doctor@example.com",
        role: UserRole = UserRole.DOCTOR,
        status: UserStatus = UserStatus.ACTIVE,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        user = User(
            tenant_id=tenant.id,
            email=email,
            hashed_password=hash_password(password),
            first_name="Test",
            last_name=role.value.title(),
            role=role.value,
            permissions=get_default_permissions(role),
            status=status.value,
            is_email_verified=status == UserStatus.ACTIVE,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest.fixture
def headers_for():
    """Build request headers carrying a bearer token for `user`."""

    def _headers(user: User, tenant: Tenant | None = None) -> dict:
        headers = {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}
        if tenant is not None:
            headers["X-Tenant-ID"] = tenant.identifier
        return headers

    return _headers


@pytest.fixture
async def client(session_factory, email_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, with the test database and email stand-in."""
    from main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
