# (c) Copyright Datacraft, 2026
"""Passkey error taxonomy and the handlers that render it."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PasskeyError(Exception):
	"""Base error. `message` is safe to show to clients."""

	status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
	message: str = "Internal server error"

	def __init__(self, message: str | None = None):
		if message is not None:
			self.message = message
		super().__init__(self.message)


class Unauthenticated(PasskeyError):
	status_code = status.HTTP_401_UNAUTHORIZED
	message = "Unauthorized"


class AccountDisabled(PasskeyError):
	status_code = status.HTTP_403_FORBIDDEN
	message = "User account is deactivated"


class UserNotFound(PasskeyError):
	status_code = status.HTTP_404_NOT_FOUND
	message = "User not found"


class CredentialNotFound(PasskeyError):
	status_code = status.HTTP_404_NOT_FOUND
	message = "Passkey not found"


class ChallengeMissing(PasskeyError):
	status_code = status.HTTP_400_BAD_REQUEST
	message = "Challenge not found or expired. Please try again."


class VerificationFailed(PasskeyError):
	"""Cryptographic or protocol check failed.

	`reason` is for the server log only; clients get the generic message.
	"""

	status_code = status.HTTP_400_BAD_REQUEST
	message = "Verification failed"

	def __init__(self, reason: str | None = None):
		super().__init__()
		self.reason = reason


class StorageFailure(PasskeyError):
	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	message = "Storage error"


def error_body(message: str) -> dict:
	return {"success": False, "message": message}


def register_error_handlers(app: FastAPI) -> None:
	"""Render every failure as ``{"success": false, "message": ...}``."""

	@app.exception_handler(PasskeyError)
	async def passkey_error_handler(request: Request, exc: PasskeyError) -> JSONResponse:
		if isinstance(exc, VerificationFailed):
			logger.warning(
				"Verification failed: %s | path=%s", exc.reason, request.url.path
			)
		elif exc.status_code >= 500:
			logger.error("%s | path=%s", exc, request.url.path, exc_info=exc.__cause__)
		else:
			logger.info("%s: %s | path=%s", type(exc).__name__, exc.message, request.url.path)
		return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

	@app.exception_handler(StarletteHTTPException)
	async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		message = exc.detail if exc.status_code < 500 else "Internal server error"
		return JSONResponse(
			status_code=exc.status_code,
			content=error_body(str(message)),
			headers=getattr(exc, "headers", None),
		)

	@app.exception_handler(RequestValidationError)
	async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
		problems = []
		for err in exc.errors():
			loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
			problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
		return JSONResponse(
			status_code=status.HTTP_400_BAD_REQUEST,
			content=error_body("; ".join(problems) or "Invalid request"),
		)

	@app.exception_handler(Exception)
	async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
		logger.exception(
			"Unhandled exception | path=%s | type=%s",
			request.url.path,
			type(exc).__name__,
		)
		return JSONResponse(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			content=error_body("Internal server error"),
		)
