from types import SimpleNamespace
from unittest import mock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import ValidationError

from definvoice_auth.config import Algs, ChallengeBackend, Settings
from definvoice_auth.main import build_challenge_store
from definvoice_auth.services.challenge import DatabaseChallengeStore, MemoryChallengeStore
from definvoice_auth.utils import decode_token


def test_origins_are_split_and_trimmed():
    settings = Settings(
        secret_key="s",
        webauthn_origins=" https://app.example.com, https://admin.example.com ,",
    )
    assert settings.allowed_origins == [
        "https://app.example.com",
        "https://admin.example.com",
    ]
    assert settings.allowed_cors_origins == settings.allowed_origins


def test_cors_origins_override():
    settings = Settings(secret_key="s", cors_origins="https://other.example.com")
    assert settings.allowed_cors_origins == ["https://other.example.com"]


def test_token_source_is_required():
    with pytest.raises(ValidationError):
        Settings(secret_key=None, token_jwks_url=None)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DEFINVOICE_SECRET_KEY", "from-env")
    monkeypatch.setenv("DEFINVOICE_WEBAUTHN_RP_ID", "definvoice.example")
    monkeypatch.setenv("DEFINVOICE_CHALLENGE_BACKEND", "database")

    settings = Settings()

    assert settings.secret_key == "from-env"
    assert settings.webauthn_rp_id == "definvoice.example"
    assert settings.challenge_backend == ChallengeBackend.DATABASE
    assert settings.challenge_ttl_seconds == 300


def test_build_challenge_store(session_factory):
    memory = build_challenge_store(Settings(secret_key="s"), session_factory)
    database = build_challenge_store(
        Settings(secret_key="s", challenge_backend="database", challenge_ttl_seconds=60),
        session_factory,
    )

    assert isinstance(memory, MemoryChallengeStore)
    assert isinstance(database, DatabaseChallengeStore)
    assert database.ttl_seconds == 60


class TestDecodeToken:

    def test_audience_and_issuer(self):
        settings = Settings(
            secret_key="s",
            token_audience="definvoice",
            token_issuer="https://securetoken.google.com/definvoice",
        )
        good = jwt.encode(
            {"sub": "u1", "aud": "definvoice", "iss": "https://securetoken.google.com/definvoice"},
            "s",
        )
        wrong_aud = jwt.encode(
            {"sub": "u1", "aud": "other", "iss": "https://securetoken.google.com/definvoice"},
            "s",
        )

        assert decode_token(good, settings)["sub"] == "u1"
        with pytest.raises(jwt.InvalidAudienceError):
            decode_token(wrong_aud, settings)

    def test_audience_not_checked_when_unset(self):
        settings = Settings(secret_key="s")
        token = jwt.encode({"sub": "u1", "aud": "anything"}, "s")

        assert decode_token(token, settings)["sub"] == "u1"

    def test_jwks_signing_key(self):
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        settings = Settings(
            token_jwks_url="https://idp.example/jwks.json",
            token_algorithm=Algs.RS256,
        )
        token = jwt.encode({"sub": "u1"}, private_key, algorithm="RS256", headers={"kid": "k1"})
        client = mock.Mock()
        client.get_signing_key_from_jwt.return_value = SimpleNamespace(key=private_key.public_key())

        with mock.patch("definvoice_auth.utils._jwks_client", return_value=client) as factory:
            assert decode_token(token, settings)["sub"] == "u1"

        factory.assert_called_once_with("https://idp.example/jwks.json")
