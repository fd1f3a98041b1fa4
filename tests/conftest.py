"""
Fixtures partagees : variables d'environnement, base SQLite en memoire,
utilisateur et activites de test.
"""
import os

# Avant tout import de segmentiq (settings lus a l'import)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import segmentiq.domain.entities  # noqa: E402,F401
from segmentiq.domain.entities.activity import Activity  # noqa: E402
from segmentiq.domain.entities.user import User  # noqa: E402


# ============================================================
# Base de donnees
# ============================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(session):
    user = User(email="rider@example.com", full_name="Test Rider", ftp=250.0, max_heartrate=190.0)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def make_activity(session, user):
    """Fabrique d'activites persistees pour l'utilisateur de test."""
    def _make(
        streams,
        distance: float = 3000.0,
        moving_time: int = 900,
        start_date: Optional[datetime] = None,
        owner: Optional[User] = None,
        max_heartrate: Optional[float] = None,
    ) -> Activity:
        activity = Activity(
            user_id=(owner or user).id,
            name="Sortie test",
            start_date=start_date or datetime.utcnow() - timedelta(days=1),
            distance=distance,
            moving_time=moving_time,
            max_heartrate=max_heartrate,
            streams_data=streams,
        )
        session.add(activity)
        session.commit()
        session.refresh(activity)
        return activity

    return _make
