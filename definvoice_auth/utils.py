# (c) Copyright Datacraft, 2026
import logging
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Request, Depends
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session
import jwt

from .config import Settings
from .db.engine import get_db
from .db.orm import User
from .errors import AccountDisabled, Unauthenticated, UserNotFound
from .services.credentials import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    """Identity asserted by the identity provider's token."""
    uid: str
    email: str | None = None


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def from_header(request: Request) -> str | None:
    authorization = request.headers.get("Authorization")
    scheme, token = get_authorization_scheme_param(authorization)

    if not authorization or scheme.lower() != "bearer":
        return None

    return token


def from_cookie(request: Request, cookie_name: str) -> str | None:
    return request.cookies.get(cookie_name, None)


def get_token(request: Request, settings: Settings) -> str | None:
    return from_cookie(request, settings.cookie_name) or from_header(request)


@lru_cache()
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def decode_token(token: str, settings: Settings) -> dict:
    """Verify an identity provider token and return its claims.

    With `token_jwks_url` configured the signing key is fetched from the
    provider (e.g. Firebase's securetoken JWKS); otherwise `secret_key` is
    used with `token_algorithm`.
    """
    if settings.token_jwks_url:
        key = _jwks_client(settings.token_jwks_url).get_signing_key_from_jwt(token).key
    else:
        key = settings.secret_key

    options = {"verify_aud": settings.token_audience is not None}
    return jwt.decode(
        token,
        key,
        algorithms=[settings.token_algorithm.value],
        audience=settings.token_audience,
        issuer=settings.token_issuer,
        options=options,
    )


def get_current_principal(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Principal:
    """Extract the identity provider principal from the session token."""
    token = get_token(request, settings)

    if not token:
        raise Unauthenticated("No authorization token provided")

    try:
        payload = decode_token(token, settings)
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid token")

    uid = payload.get("sub")
    if not uid:
        raise Unauthenticated("Invalid token payload")

    return Principal(uid=uid, email=payload.get("email"))


def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> User:
    """Load the local user linked to the authenticated principal."""
    user = CredentialStore(db).find_user_by_firebase_uid(principal.uid)
    if user is None:
        raise UserNotFound()
    if not user.is_active:
        raise AccountDisabled()
    if principal.email and principal.email.lower() != user.email.lower():
        logger.warning(
            f"Token email for {principal.uid} does not match user {user.id}, "
            "keeping the stored email"
        )
    return user
