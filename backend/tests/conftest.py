"""Shared test fixtures.

Sets environment variables BEFORE any switchboard imports so that
``switchboard.config.settings`` and the Fernet key in
``switchboard.services.source_registry`` resolve without a real .env file,
PostgreSQL, or identity service.
"""

import os

from cryptography.fernet import Fernet

# --- Environment setup (must happen before switchboard imports) -----------
_test_key = Fernet.generate_key().decode()

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENCRYPTION_KEY", _test_key)
os.environ.setdefault("AUTH_URL", "http://auth.test")

# --- Now it's safe to import switchboard modules --------------------------
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from switchboard.api.auth import get_identity_resolver
from switchboard.database import Base, get_db
from switchboard.main import app
from switchboard.models.kv_entry import KVEntry  # noqa: F401  (registers the table)
from switchboard.services.auth_gate import Identity, Unauthorized
from switchboard.services.kv_store import KVStore
from switchboard.services.message_log import MessageLog
from switchboard.services.source_registry import SourceRegistry

ALICE = Identity(user_id="user-alice", display_name="Alice", avatar="https://cdn.test/alice.png")
BOB = Identity(user_id="user-bob", display_name="Bob", avatar="")

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"


# In-memory SQLite engine shared across the test session
_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


class TokenTableResolver:
    """Resolves a fixed set of tokens; everything else is unauthorized."""

    def __init__(self, identities: dict[str, Identity]) -> None:
        self.identities = identities

    def resolve(self, token: str) -> Identity:
        identity = self.identities.get(token)
        if identity is None:
            raise Unauthorized("Unauthorized")
        return identity


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    """Create all tables once, drop them when the session ends."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db_session():
    """Yield a transactional DB session that rolls back after each test."""
    connection = _engine.connect()
    transaction = connection.begin()
    session = _TestingSession(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture()
def kv(db_session):
    return KVStore(db_session)


@pytest.fixture()
def registry(kv):
    return SourceRegistry(kv)


@pytest.fixture()
def message_log(kv, registry):
    return MessageLog(kv, registry)


@pytest.fixture()
def resolver():
    return TokenTableResolver({ALICE_TOKEN: ALICE, BOB_TOKEN: BOB})


@pytest.fixture()
def client(db_session, resolver):
    """FastAPI TestClient with the DB and identity resolver overridden."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_identity_resolver] = lambda: resolver
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
