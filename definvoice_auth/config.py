import logging

from functools import lru_cache
from enum import Enum

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Algs(str, Enum):
    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"
    ES256 = "ES256"
    ES384 = "ES384"
    ES512 = "ES512"


class ChallengeBackend(str, Enum):
    MEMORY = "memory"
    DATABASE = "database"


class Settings(BaseSettings):
    db_url: str = "sqlite:///./definvoice.db"

    # Identity provider tokens
    secret_key: str | None = None
    token_algorithm: Algs = Algs.HS256
    token_jwks_url: str | None = Field(
        default=None, description="JWKS endpoint of the identity provider"
    )
    token_audience: str | None = None
    token_issuer: str | None = None
    cookie_name: str = "access_token"

    # WebAuthn/Passkey settings
    webauthn_rp_id: str = Field(default="localhost", description="Relying Party ID (domain)")
    webauthn_rp_name: str = Field(default="DefInvoice", description="Relying Party display name")
    webauthn_origins: str = Field(
        default="http://localhost:5173,http://localhost:5174",
        description="Comma separated origins accepted during verification",
    )
    webauthn_timeout: int = Field(default=60000, description="WebAuthn timeout in ms")

    challenge_backend: ChallengeBackend = ChallengeBackend.MEMORY
    challenge_ttl_seconds: int = Field(gt=0, default=300)

    cors_origins: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix='definvoice_')

    @model_validator(mode="after")
    def check_token_source(self):
        if not self.secret_key and not self.token_jwks_url:
            raise ValueError("either secret_key or token_jwks_url must be set")
        return self

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.webauthn_origins.split(",") if o.strip()]

    @property
    def allowed_cors_origins(self) -> list[str]:
        if self.cors_origins is None:
            return self.allowed_origins
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings():
    return Settings()
