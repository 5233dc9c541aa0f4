import os
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
sys.path.append(str(Path(__file__).resolve().parents[1]))

from venue.api.deps import get_now  # noqa: E402
from venue.core.rate_limiter import rate_limiter  # noqa: E402
from venue.core.security import hash_password  # noqa: E402
from venue.db.base import Base  # noqa: E402
from venue.db.models import User, UserRole  # noqa: E402
from venue.db.session import get_db  # noqa: E402
from venue.main import app  # noqa: E402

# Wednesday 2024-06-05, 12:00 in America/New_York
FIXED_NOW = datetime(2024, 6, 5, 16, 0, tzinfo=UTC)
PASSWORD = "StrongPass123"

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture()
def db() -> Session:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now() -> datetime:
    return FIXED_NOW


def make_user(
    db: Session,
    email: str,
    phone: str | None = "+15551230000",
    role: UserRole = UserRole.MEMBER,
    password: str | None = None,
) -> User:
    user = User(
        email=email,
        hashed_password=hash_password(password) if password else "x",
        name=email.split("@")[0],
        phone=phone,
        role=role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login_headers(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, str]:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def member_headers(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/auth/register",
        json={"email": "member@example.com", "password": PASSWORD, "name": "Member", "phone": "+15550001111"},
    )
    assert response.status_code == 201, response.text
    return login_headers(client, "member@example.com")


@pytest.fixture()
def admin_headers(client: TestClient) -> dict[str, str]:
    session = TestingSessionLocal()
    try:
        make_user(session, "admin@example.com", role=UserRole.ADMIN, password=PASSWORD)
    finally:
        session.close()
    return login_headers(client, "admin@example.com")


@pytest.fixture()
def user_factory(db: Session):
    def factory(email: str, **kwargs) -> User:
        return make_user(db, email, **kwargs)

    return factory


@pytest.fixture()
def login(client: TestClient):
    def do_login(email: str, password: str = PASSWORD) -> dict[str, str]:
        return login_headers(client, email, password)

    return do_login
