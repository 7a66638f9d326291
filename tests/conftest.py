import os

# Module-level engines must not reach for a real Postgres during tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from showbook.api.routes.routes import get_booking_service, get_show_service
from showbook.application.booking_service import BookingService
from showbook.application.expiry_reclaimer import ExpiryReclaimer
from showbook.application.show_service import ShowService
from showbook.infrastructure.db.models import Base
from showbook.infrastructure.db.session import build_engine, build_session_factory
from showbook.main import app


class FakeClock:
    """Wall clock the tests can move forward."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingReclaimer(ExpiryReclaimer):
    """Records schedule requests instead of starting timer threads."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scheduled: list[tuple[str, datetime]] = []

    def schedule(self, booking_id, expires_at):
        self.scheduled.append((booking_id, expires_at))


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'showbook.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reclaimer(session_factory, clock):
    return RecordingReclaimer(session_factory, clock=clock, sweep_interval=0.05)


@pytest.fixture
def booking_service(session_factory, reclaimer, clock):
    return BookingService(session_factory, reclaimer=reclaimer, clock=clock)


@pytest.fixture
def show_service(session_factory, clock):
    return ShowService(session_factory, clock=clock)


@pytest.fixture
def make_show(show_service, clock):
    def _make_show(total_seats=10, price="15.00", starts_in=timedelta(days=1)):
        start = clock() + starts_in
        return show_service.create_show(
            name="Test Show",
            start_time=start,
            end_time=start + timedelta(hours=2),
            total_seats=total_seats,
            price=price,
        )

    return _make_show


@pytest.fixture
def show(make_show):
    return make_show()


@pytest.fixture
def client(booking_service, show_service):
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_show_service] = lambda: show_service
    # Not entered as a context manager: startup hooks (DB wait, sweeper) stay off.
    yield TestClient(app)
    app.dependency_overrides.clear()
