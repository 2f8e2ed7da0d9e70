"""Pytest configuration and fixtures."""

import os
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cubord.api.dependencies import get_upc_api_service
from cubord.config import Settings
from cubord.database import Base, get_db
from cubord.main import app
from cubord.models import Household, HouseholdMember, User
from cubord.models.enums import HouseholdRole, UserRole
from cubord.services.auth import create_access_token
from cubord.services.upc_api import UpcApiService


class AuthHeaders(dict):
    """Dict subclass that also stores user_id."""

    def __init__(self, *args, user_id=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").rsplit("/", 1)[0] + "/cubord_test"
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NUTELLA_UPC = "3017620422003"
NUTELLA = {
    "product_name": "Nutella",
    "brands": "Ferrero, Nutella",
    "categories": "Spreads, Sweet spreads, Hazelnut spreads",
    "generic_name": "Hazelnut cocoa spread",
}


class FakeOpenFoodFacts:
    """In-memory stand-in for the Open Food Facts product endpoint."""

    def __init__(self):
        self.products: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.status_code: int | None = None
        self.body: str | None = None
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.status_code is not None:
            return httpx.Response(self.status_code, text=self.body or "")
        if self.body is not None:
            return httpx.Response(200, text=self.body)

        # Decode from the raw path so an encoded "/" stays inside the barcode
        upc = unquote(request.url.raw_path.decode("ascii").split("?", 1)[0].rsplit("/", 1)[-1])
        if upc in self.products:
            return httpx.Response(200, json={"code": upc, "status": 1, "product": self.products[upc]})
        return httpx.Response(404, json={"code": upc, "status": 0, "status_verbose": "product not found"})


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    """Settings pointing at the production Open Food Facts host."""
    return Settings(openfoodfacts_use_staging=False, product_max_retry_attempts=3)


@pytest.fixture
def off():
    """Fake Open Food Facts that knows Nutella and nothing else."""
    fake = FakeOpenFoodFacts()
    fake.products[NUTELLA_UPC] = dict(NUTELLA)
    return fake


@pytest.fixture
def upc_api(settings, off):
    """UPC lookup service wired to the fake Open Food Facts."""
    client = httpx.Client(transport=httpx.MockTransport(off.handler))
    yield UpcApiService(settings, client=client)
    client.close()


@pytest.fixture(scope="function")
def client(db, upc_api):
    """Create a test client with database and lookup overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_upc_api_service] = lambda: upc_api
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(db, name: str, role: UserRole = UserRole.USER) -> User:
    """Insert a user the way the identity resolver would have created it."""
    user = User(
        subject=f"auth0|{name}",
        username=name,
        email=f"{name}@example.com",
        display_name=name.capitalize(),
        role=role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user: User) -> AuthHeaders:
    token = create_access_token(user.subject, email=user.email, name=user.display_name)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=str(user.id))


@pytest.fixture
def user(db):
    return create_user(db, "alice")


@pytest.fixture
def other_user(db):
    return create_user(db, "bob")


@pytest.fixture
def admin(db):
    return create_user(db, "root", role=UserRole.ADMIN)


@pytest.fixture
def household(db, user):
    """A household owned by the default user."""
    home = Household(name="Home")
    db.add(home)
    db.flush()
    db.add(HouseholdMember(household_id=home.id, user_id=user.id, role=HouseholdRole.OWNER.value))
    db.commit()
    db.refresh(home)
    return home


@pytest.fixture
def auth_headers(user):
    return headers_for(user)


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def other_headers(other_user):
    return headers_for(other_user)


@pytest.fixture
def third_user(db):
    return create_user(db, "carol")
