import uuid

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from definvoice_auth.config import Settings
from definvoice_auth.db.base import Base
from definvoice_auth.db.engine import make_session_factory
from definvoice_auth.db.orm import User
from definvoice_auth.main import create_app
from definvoice_auth.services.challenge import MemoryChallengeStore
from definvoice_auth.webauthn import WebAuthnService

from tests.soft_authenticator import SoftAuthenticator

SECRET = "test-secret"
RP_ID = "localhost"
ORIGIN = "http://localhost:5173"
OTHER_ORIGIN = "http://localhost:5174"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key=SECRET,
        db_url="sqlite://",
        webauthn_rp_id=RP_ID,
        webauthn_origins=f"{ORIGIN},{OTHER_ORIGIN}",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def challenge_store() -> MemoryChallengeStore:
    return MemoryChallengeStore()


@pytest.fixture
def webauthn_service() -> WebAuthnService:
    return WebAuthnService(rp_id=RP_ID, origins=[ORIGIN, OTHER_ORIGIN])


@pytest.fixture
def app(settings, session_factory, challenge_store):
    return create_app(settings, session_factory, challenge_store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def authenticator() -> SoftAuthenticator:
    return SoftAuthenticator(origin=ORIGIN)


@pytest.fixture
def make_user(session_factory):
    def _make_user(email="a@x.com", display_name=None, is_active=True) -> User:
        with session_factory() as session:
            user = User(
                firebase_uid=f"fb-{uuid.uuid4().hex[:12]}",
                email=email,
                display_name=display_name,
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            return user
    return _make_user


def token_for(user: User, secret: str = SECRET, **claims) -> str:
    payload = {"sub": user.firebase_uid, "email": user.email, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user: User, **claims) -> dict:
    return {"Authorization": f"Bearer {token_for(user, **claims)}"}


def register_passkey(client, authenticator, user, name=None) -> dict:
    headers = auth_headers(user)
    options = client.post("/api/passkeys/register-options", headers=headers).json()["data"]
    body = {"response": authenticator.create(options)}
    if name is not None:
        body["name"] = name
    resp = client.post("/api/passkeys/register", json=body, headers=headers)
    assert resp.status_code == 200, resp.json()
    return resp.json()["data"]
