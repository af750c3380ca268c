import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FIREBASE_PROJECT_ID", "test-project")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backoffice.auth import get_current_user  # noqa: E402
from backoffice.database import Base, get_db  # noqa: E402
from backoffice.main import app  # noqa: E402
from backoffice.models import AdminUser, TourPackage  # noqa: E402

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_user(db):
    user = AdminUser(firebase_uid="admin-uid", email="admin@example.com", full_name="Admin User")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def queued_jobs(monkeypatch):
    """Captures jobs instead of talking to Redis"""
    jobs = []

    async def fake_enqueue(function_name, *args, **kwargs):
        jobs.append((function_name, args))
        return f"job-{len(jobs)}"

    monkeypatch.setattr("backoffice.domain.bookings.service.enqueue_job", fake_enqueue)
    return jobs


@pytest.fixture
def client(db, admin_user, queued_jobs):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: admin_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tour(db):
    tour = TourPackage(
        name="Philippines Sunrise",
        slug="philippines-sunrise",
        tour_code="PHS",
        duration="13 Days",
        pricing={"original": 2000, "discounted": None, "deposit": 250, "currency": "GBP"},
        travel_dates=[
            {"startDate": "2030-06-01", "hasCustomDiscounted": True, "customDiscounted": 1800},
            {"startDate": "2030-09-01", "hasCustomDiscounted": False},
        ],
        status="active",
        pricing_history=[],
        current_version=1,
    )
    db.add(tour)
    db.commit()
    db.refresh(tour)
    return tour
