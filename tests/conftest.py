import os

# Must be set before the application modules read their configuration
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_PUBLIC_KEY"] = "pk_test_papasito"
os.environ["BREVO_API_KEY"] = "test-brevo-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from papasito import models  # noqa: E402
from papasito.auth import issue_session_token  # noqa: E402
from papasito.database import Base, get_db  # noqa: E402
from papasito.main import app  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def user(db_session):
    user = models.User(id="user-1", email="lea@example.com", name="Léa", phone="+33600000000")
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers(user_id: str = "user-1", **claims) -> dict:
    token = issue_session_token(user_id, **claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers()


@pytest.fixture
def make_headers():
    return auth_headers
