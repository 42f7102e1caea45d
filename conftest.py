"""Pytest configuration and fixtures."""

import os

# Must be set before db.session / core.config are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("API_KEY", "test-api-key")

from datetime import datetime, timezone
from typing import Generator
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401  registers tables
from core.deps import get_current_user
from db.session import get_session
from main import app
from models.site import Site, SiteUser
from models.user import User, UserRole

IST = ZoneInfo("Asia/Kolkata")

# Bangalore office and a second site ~1.1 km north of it
OFFICE = (12.9716, 77.5946)
ANNEX = (12.9816, 77.5946)


def ist(*args) -> datetime:
    """An IST wall-clock time as a UTC instant."""
    return datetime(*args, tzinfo=IST).astimezone(timezone.utc)


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def seeded(session: Session) -> Session:
    """Office worker, WFH worker (legacy 'WHF' spelling), an admin and three sites."""
    session.add_all(
        [
            User(user_id="u-office", name="Asha Rao", employee_code="E001", work_location_type="Office"),
            User(user_id="u-wfh", name="Vikram Shah", employee_code="E002", work_location_type="WHF"),
            User(user_id="u-admin", name="Meera Iyer", role=UserRole.ADMIN),
            Site(site_id="S1", name="HQ Plant Room", site_code="HQ", latitude=OFFICE[0], longitude=OFFICE[1], radius=500),
            Site(site_id="S2", name="Annex Chillers", site_code="AX", latitude=ANNEX[0], longitude=ANNEX[1], radius=None),
            Site(site_id="S3", name="Warehouse", site_code="WH", latitude=None, longitude=None),
        ]
    )
    session.commit()
    session.add_all(
        [
            SiteUser(site_id="S1", user_id="u-office"),
            SiteUser(site_id="S2", user_id="u-office"),
            SiteUser(site_id="S3", user_id="u-office"),
            SiteUser(site_id="S1", user_id="u-wfh"),
        ]
    )
    session.commit()
    return session


@pytest.fixture
def current_user():
    return {"uid": "u-admin", "name": "Meera Iyer", "email": None, "role": UserRole.ADMIN}


@pytest.fixture(scope="function")
def client(db_engine, session: Session, current_user) -> Generator[TestClient, None, None]:
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.state.engine = db_engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
