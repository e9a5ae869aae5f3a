"""
Pytest configuration and shared fixtures.
"""

from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.database import build_engine, create_db_and_tables, get_session
from app.main import app
from app.scripts.seed import seed_directory


# a Monday far enough ahead to always be bookable
FUTURE_DAY = date(2030, 6, 10)


@pytest.fixture
def settings():
    """UTC business day keeps expected timestamps readable."""
    return Settings(secret_key="test-secret", timezone="UTC")


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded(engine):
    """Ids of the demo directory rows."""
    with Session(engine) as session:
        rows = seed_directory(session)
        return SimpleNamespace(
            admin=rows["admin@wellness.test"].id,
            olena=rows["olena@wellness.test"].id,
            taras=rows["taras@wellness.test"].id,
            iryna_user=rows["iryna@wellness.test"].id,
            petro_user=rows["petro@wellness.test"].id,
            iryna=rows["specialist:iryna@wellness.test"].id,
            petro=rows["specialist:petro@wellness.test"].id,
            massage=rows["Classic massage"].id,
            deep_tissue=rows["Deep tissue massage"].id,
            rehab=rows["Rehabilitation session"].id,
            hot_stone=rows["Hot stone therapy"].id,
            aroma=rows["Aroma bath"].id,
        )


@pytest.fixture
def client(engine, settings, seeded):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(settings):
    """Authorization headers for a seeded user, by email."""
    def _auth(email: str) -> dict:
        token = jwt.encode({"sub": email}, settings.secret_key, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}
    return _auth
