# (c) Copyright Datacraft, 2026
"""WebAuthn/Passkey API endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from definvoice_auth import schema
from definvoice_auth.db.engine import get_db
from definvoice_auth.db.orm import User
from definvoice_auth.services.passkey import PasskeyService
from definvoice_auth.utils import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter(
	prefix="/passkeys",
	tags=["Passkeys"],
	responses={
		400: {"model": schema.ErrorResponse},
		401: {"model": schema.ErrorResponse},
		404: {"model": schema.ErrorResponse},
		500: {"model": schema.ErrorResponse},
	},
)


def get_passkey_service(request: Request, db: Session = Depends(get_db)) -> PasskeyService:
	"""Get PasskeyService wired to the application's WebAuthn config and challenge store."""
	return PasskeyService(
		db=db,
		webauthn=request.app.state.webauthn,
		challenges=request.app.state.challenge_store,
	)


@router.post("/register-options", response_model=schema.DataResponse[dict[str, Any]])
def registration_options(
	service: PasskeyService = Depends(get_passkey_service),
	user: User = Depends(get_current_user),
):
	"""Start passkey registration."""
	return schema.DataResponse(data=service.registration_options(user))


@router.post("/register", response_model=schema.DataResponse[schema.RegisteredPasskey])
def register(
	request: schema.PasskeyRegisterRequest,
	service: PasskeyService = Depends(get_passkey_service),
	user: User = Depends(get_current_user),
):
	"""Verify and save a new passkey."""
	credential = service.register(user, request.response, request.name)
	return schema.DataResponse(data=schema.RegisteredPasskey.model_validate(credential))


@router.post("/auth-options", response_model=schema.DataResponse[dict[str, Any]])
def authentication_options(
	request: schema.PasskeyAuthOptionsRequest | None = None,
	service: PasskeyService = Depends(get_passkey_service),
):
	"""Start passkey authentication (no auth required)."""
	email = request.email if request else None
	return schema.DataResponse(data=service.authentication_options(email))


@router.post("/auth", response_model=schema.DataResponse[schema.PasskeyAuthResult])
def authenticate(
	request: schema.PasskeyAuthRequest,
	service: PasskeyService = Depends(get_passkey_service),
):
	"""Complete passkey authentication (no auth required)."""
	user = service.authenticate(request.response, request.email)
	return schema.DataResponse(
		data=schema.PasskeyAuthResult(
			user=schema.AuthenticatedUser.model_validate(user),
		)
	)


@router.get("/", response_model=schema.DataResponse[list[schema.PasskeySummary]])
def list_passkeys(
	service: PasskeyService = Depends(get_passkey_service),
	user: User = Depends(get_current_user),
):
	"""List the user's registered passkeys."""
	credentials = service.list_credentials(user)
	return schema.DataResponse(
		data=[schema.PasskeySummary.model_validate(cred) for cred in credentials]
	)


@router.patch("/{passkey_id}", response_model=schema.DataResponse[schema.RegisteredPasskey])
def rename_passkey(
	passkey_id: str,
	request: schema.PasskeyRenameRequest,
	service: PasskeyService = Depends(get_passkey_service),
	user: User = Depends(get_current_user),
):
	"""Rename a passkey."""
	credential = service.rename_credential(user, passkey_id, request.name)
	return schema.DataResponse(data=schema.RegisteredPasskey.model_validate(credential))


@router.delete("/{passkey_id}", response_model=schema.MessageResponse)
def delete_passkey(
	passkey_id: str,
	service: PasskeyService = Depends(get_passkey_service),
	user: User = Depends(get_current_user),
):
	"""Remove a passkey."""
	service.delete_credential(user, passkey_id)
	return schema.MessageResponse(message="Passkey removed")
