from datetime import datetime, timedelta, timezone
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from telehealth.config import Settings
from telehealth.database import Base, get_db
from telehealth.models import Appointment, AppointmentCategory, Patient, User

NOW = datetime(2026, 3, 2, 15, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        jitsi_server_domain="meet.example.org",
        jitsi_room_prefix="clinic",
        jitsi_enable_jwt=True,
        jitsi_jwt_app_id="telehealth-app",
        jitsi_jwt_app_secret="room-secret",
        jitsi_enable_lobby=True,
        auth_token_exchange_enabled=True,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Provider dr.smith (id 1), patients 5 and 9, appointments around NOW."""
    async with session_factory() as session:
        session.add_all([
            AppointmentCategory(id=3, constant_id="telehealth_new_patient", name="Telehealth New Patient"),
            AppointmentCategory(id=4, constant_id="office_visit", name="Office Visit"),
            User(id=1, username="dr.smith", first_name="Jane", last_name="Smith", email="jane@example.org"),
            User(id=2, username="nameless"),
            Patient(id=5, first_name="Ana", last_name="Gomez", email="ana@example.org"),
            Patient(id=9, first_name="Luis", last_name="Perez", email="luis@example.org"),
        ])
        await session.flush()
        session.add_all([
            Appointment(id="APPT-1", patient_id=5, provider_id=1, category_id=3, starts_at=NOW),
            Appointment(id="APPT-9", patient_id=9, provider_id=1, category_id=3, starts_at=NOW),
            Appointment(id="APPT-OLD", patient_id=5, provider_id=1, category_id=3, starts_at=NOW - timedelta(days=1)),
            Appointment(id="APPT-NOPROV", patient_id=5, provider_id=None, category_id=3, starts_at=NOW),
            Appointment(id="APPT-OFFICE", patient_id=5, provider_id=1, category_id=4, starts_at=NOW, status=">"),
        ])
        await session.commit()


@pytest.fixture
def app(settings, clock, session_factory):
    from telehealth.main import create_app

    app = create_app(settings, clock=clock)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
