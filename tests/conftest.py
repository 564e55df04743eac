"""Shared test fixtures for campus_market tests."""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campus_market.core.security import create_access_token
from campus_market.database import Base, get_db
from campus_market.domain.booking_state import BookingStatus
from campus_market.main import app
from campus_market.models import Booking, Service, User

BookingFactory = Callable[..., Awaitable[Booking]]


def naive(value: datetime) -> datetime:
    """SQLite hands datetimes back without tzinfo; compare on wall-clock UTC."""
    return value.replace(tzinfo=None)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Session the test uses for setup and assertions."""
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def queued_notifications() -> MagicMock:
    """Replace the Celery task so nothing tries to reach a broker."""
    with patch("campus_market.tasks.send_notification_async") as task:
        yield task.delay


async def _add_user(db: AsyncSession, name: str, role: str = "USER") -> User:
    user = User(
        email=f"{name.lower()}@students.example.ac.ke",
        name=name,
        phone="254700000000",
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def customer(db) -> User:
    return await _add_user(db, "Wanjiru")


@pytest_asyncio.fixture
async def provider(db) -> User:
    return await _add_user(db, "Otieno", role="PROVIDER")


@pytest_asyncio.fixture
async def admin(db) -> User:
    return await _add_user(db, "Admin", role="ADMIN")


@pytest_asyncio.fixture
async def outsider(db) -> User:
    return await _add_user(db, "Kamau")


@pytest_asyncio.fixture
async def service(db, provider) -> Service:
    service = Service(
        provider_id=provider.id,
        title="Calculus Tutoring",
        description="One hour of first-year calculus help",
        price=500,
        location="Library, 2nd floor",
    )
    db.add(service)
    await db.commit()
    return service


@pytest.fixture
def tomorrow() -> date:
    return datetime.now(UTC).date() + timedelta(days=1)


@pytest.fixture
def make_booking(db, customer, provider, service, tomorrow) -> BookingFactory:
    """Create a booking directly in the store, in any status."""

    async def _make(
        status: BookingStatus = BookingStatus.PENDING,
        on_date: date | None = None,
        **fields,
    ) -> Booking:
        stale = datetime.now(UTC) - timedelta(hours=1)
        start = datetime.combine(on_date or tomorrow, datetime.min.time(), tzinfo=UTC) + timedelta(hours=10)
        booking = Booking(
            customer_id=customer.id,
            provider_id=provider.id,
            service_id=service.id,
            date=on_date or tomorrow,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status.value,
            total_amount=service.price,
            created_at=stale,
            updated_at=stale,
            **fields,
        )
        db.add(booking)
        await db.commit()
        return booking

    return _make


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, one fresh session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def random_id() -> uuid.UUID:
    return uuid.uuid4()
