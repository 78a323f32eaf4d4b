# (c) Copyright Datacraft, 2026
"""Application factory for the DefInvoice passkey service."""
import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from .config import ChallengeBackend, Settings, get_settings
from .db.base import Base
from .db.engine import get_engine, make_session_factory
from .errors import register_error_handlers
from .routers import passkey_router
from .schema import HealthResponse
from .services.challenge import (
	ChallengeStore,
	DatabaseChallengeStore,
	MemoryChallengeStore,
)
from .webauthn import WebAuthnService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
	logging.basicConfig(
		level=level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)


def build_challenge_store(settings: Settings, session_factory: sessionmaker) -> ChallengeStore:
	if settings.challenge_backend == ChallengeBackend.DATABASE:
		return DatabaseChallengeStore(session_factory, ttl_seconds=settings.challenge_ttl_seconds)
	return MemoryChallengeStore(ttl_seconds=settings.challenge_ttl_seconds)


def create_app(
	settings: Settings | None = None,
	session_factory: sessionmaker | None = None,
	challenge_store: ChallengeStore | None = None,
) -> FastAPI:
	settings = settings or get_settings()
	configure_logging(settings.log_level)

	if session_factory is None:
		engine = get_engine()
		Base.metadata.create_all(engine)
		session_factory = make_session_factory(engine)

	app = FastAPI(title="DefInvoice passkeys")
	app.state.settings = settings
	app.state.session_factory = session_factory
	app.state.webauthn = WebAuthnService(
		rp_id=settings.webauthn_rp_id,
		rp_name=settings.webauthn_rp_name,
		origins=settings.allowed_origins,
		timeout=settings.webauthn_timeout,
	)
	app.state.challenge_store = challenge_store or build_challenge_store(settings, session_factory)

	app.add_middleware(
		CORSMiddleware,
		allow_origins=settings.allowed_cors_origins,
		allow_credentials=True,
		allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
		allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
	)
	register_error_handlers(app)

	@app.get("/health", response_model=HealthResponse)
	def health():
		return HealthResponse(
			message="Server is running",
			timestamp=datetime.now(timezone.utc),
		)

	app.include_router(passkey_router, prefix="/api")
	app.include_router(passkey_router, include_in_schema=False)

	logger.info(
		f"Passkey service ready (rp_id={settings.webauthn_rp_id}, "
		f"challenges={settings.challenge_backend.value})"
	)
	return app
