"""Shared test fixtures for authentication tests."""

from datetime import timedelta

import pyotp
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from supply_auth.config import Settings
from supply_auth.database import Base, get_db
from supply_auth.dependencies.services import get_clock, get_dispatcher, get_identity_provider
from supply_auth.main import app
from supply_auth.rate_limiter import limiter
from supply_auth.services.auth import (
    ApiKeyManager,
    MultiFactorVerifier,
    SessionIssuer,
    TokenCodec,
    build_provider_configs,
)
from supply_auth.services.auth.identity_provider import FederatedIdentity, OAuthProvider
from tests.fakes import (
    FakeClock,
    InMemoryAccountStore,
    ListQueue,
    RecordingDispatcher,
    StubIdentityProvider,
)

ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "Str0ng!Pw"


def totp_now(secret: str, clock: FakeClock) -> str:
    """Current TOTP code for ``secret`` at the fake clock's time."""
    return pyotp.TOTP(secret).at(clock.now)


def wrong_totp(secret: str, clock: FakeClock) -> str:
    """A six-digit code that is not valid for any accepted step."""
    totp = pyotp.TOTP(secret)
    valid = {totp.at(clock.now + timedelta(seconds=30 * step)) for step in (-1, 0, 1)}
    return next(code for code in ("000000", "111111", "222222", "333333") if code not in valid)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret_key="test-jwt-secret",
        api_key_pepper="test-pepper",
        mfa_encryption_key="",
        sendgrid_api_key="",
        google_client_id="google-client",
        google_client_secret="google-secret",
        microsoft_client_id="microsoft-client",
        microsoft_client_secret="microsoft-secret",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def queue():
    return ListQueue()


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings.jwt_secret_key, settings.jwt_algorithm, clock=clock)


@pytest.fixture
def idp(settings):
    return StubIdentityProvider(
        build_provider_configs(settings),
        identities={
            "google-code-1": FederatedIdentity(
                provider=OAuthProvider.GOOGLE,
                provider_id="g-123",
                email="bob@example.com",
                name="Bob",
                email_verified=True,
            ),
        },
    )


@pytest.fixture
def verifier(store, dispatcher, settings, clock, queue):
    return MultiFactorVerifier(store, dispatcher, settings, clock=clock, notifications=queue)


@pytest.fixture
def issuer(store, codec, verifier, idp, queue, settings, clock):
    return SessionIssuer(store, codec, verifier, idp, queue, settings, clock=clock)


@pytest.fixture
def api_key_manager(store, settings, clock):
    return ApiKeyManager(store, settings, clock=clock)


@pytest.fixture
def alice(issuer):
    """Registered password account without a second factor."""
    return issuer.register(ALICE_EMAIL, ALICE_PASSWORD, "Alice").account


@pytest.fixture
def alice_with_totp(alice, verifier, clock):
    """Alice with TOTP enabled. Yields (account, secret, backup_codes)."""
    enrollment = verifier.setup(alice.id, ALICE_PASSWORD)
    codes = verifier.verify_and_enable(alice.id, enrollment.secret, totp_now(enrollment.secret, clock))
    return alice, enrollment.secret, codes


@pytest.fixture
def db_session_maker():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def auth_client(db_session_maker, clock, dispatcher, idp):
    """Create test client with in-memory database for router tests.

    Yields a tuple of (TestClient, SessionMaker).
    """
    limiter.reset()

    def override_get_db():
        db = db_session_maker()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_identity_provider] = lambda: idp

    with TestClient(app) as test_client:
        yield test_client, db_session_maker

    app.dependency_overrides.clear()


def register_and_login(test_client: TestClient, email: str = ALICE_EMAIL, password: str = ALICE_PASSWORD) -> dict:
    """Register through the API and return the session tokens."""
    response = test_client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": "Alice"},
    )
    assert response.status_code == 201, response.text
    return response.json()["tokens"]


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}
