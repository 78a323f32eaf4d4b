# (c) Copyright Datacraft, 2026
"""Passkey registration and authentication ceremonies."""
import logging
from typing import Any

from sqlalchemy.orm import Session

from definvoice_auth.db.orm import PasskeyCredential, User
from definvoice_auth.errors import (
	AccountDisabled,
	ChallengeMissing,
	CredentialNotFound,
	UserNotFound,
)
from definvoice_auth.webauthn.service import (
	CredentialDescriptor,
	WebAuthnService,
	challenge_from_response,
	normalize_credential_id,
)
from .challenge import (
	ChallengeStore,
	authentication_key,
	registration_key,
	usernameless_key,
)
from .credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_PASSKEY_NAME = "Passkey"
NO_PASSKEYS_MESSAGE = "No passkeys found for this user"


def _descriptors(credentials: list[PasskeyCredential]) -> list[CredentialDescriptor]:
	return [
		CredentialDescriptor(credential_id=c.credential_id, transports=list(c.transports or []))
		for c in credentials
	]


def _raw_id(credential_response: dict[str, Any]) -> str | None:
	raw_id = credential_response.get("rawId") or credential_response.get("id")
	if not isinstance(raw_id, str) or not raw_id:
		return None
	try:
		return normalize_credential_id(raw_id)
	except ValueError:
		return None


class PasskeyService:
	"""Drives both two-step ceremonies.

	Every Complete call consumes the pending challenge before anything else
	happens, so a failed attempt cannot be retried with the same challenge.
	"""

	def __init__(
		self,
		db: Session,
		webauthn: WebAuthnService,
		challenges: ChallengeStore,
	):
		self.store = CredentialStore(db)
		self.webauthn = webauthn
		self.challenges = challenges

	def registration_options(self, user: User) -> dict[str, Any]:
		"""Creation options for a signed-in user; supersedes any pending ceremony."""
		existing = self.store.list_for_user(user.id)
		options, challenge = self.webauthn.registration_options(
			user_handle=str(user.id).encode(),
			user_name=user.email,
			user_display_name=user.display_name or user.email,
			existing_credentials=_descriptors(existing),
		)
		self.challenges.put(registration_key(user.id), challenge)
		return options

	def register(
		self,
		user: User,
		credential_response: dict[str, Any],
		name: str | None = None,
	) -> PasskeyCredential:
		expected = self.challenges.take(registration_key(user.id))
		if expected is None:
			raise ChallengeMissing()

		info = self.webauthn.verify_registration(credential_response, expected)
		credential = self.store.append(user.id, info, name or DEFAULT_PASSKEY_NAME)

		logger.info(f"Passkey {credential.id} registered for user {user.id}")
		return credential

	def authentication_options(self, email: str | None = None) -> dict[str, Any]:
		"""Request options for signing in.

		Without an email the options target discoverable credentials and the
		challenge is keyed by its own value.
		"""
		if not email:
			options, challenge = self.webauthn.authentication_options()
			self.challenges.put(usernameless_key(challenge), challenge)
			return options

		user = self.store.find_user_by_email(email)
		credentials = self.store.list_for_user(user.id) if user and user.is_active else []
		# unknown user and user without passkeys look the same to the caller
		if not credentials:
			raise UserNotFound(NO_PASSKEYS_MESSAGE)

		options, challenge = self.webauthn.authentication_options(_descriptors(credentials))
		self.challenges.put(authentication_key(email), challenge)
		return options

	def authenticate(
		self,
		credential_response: dict[str, Any],
		email: str | None = None,
	) -> User:
		"""Verify an assertion and return the user it proves."""
		if email:
			expected, credential = self._resolve_for_email(credential_response, email)
		else:
			expected, credential = self._resolve_usernameless(credential_response)

		user = credential.user
		if not user.is_active:
			raise AccountDisabled()

		info = self.webauthn.verify_authentication(
			credential_response,
			expected,
			public_key=credential.public_key,
			sign_count=credential.sign_count,
		)
		self.store.record_use(credential, info.new_sign_count)

		logger.info(f"Passkey authentication successful for user {user.id}")
		return user

	def list_credentials(self, user: User) -> list[PasskeyCredential]:
		return self.store.list_for_user(user.id)

	def rename_credential(self, user: User, passkey_id: str, name: str) -> PasskeyCredential:
		credential = self.store.rename(user.id, passkey_id, name)
		logger.info(f"Passkey {passkey_id} renamed for user {user.id}")
		return credential

	def delete_credential(self, user: User, passkey_id: str) -> None:
		self.store.remove(user.id, passkey_id)
		logger.info(f"Passkey {passkey_id} removed for user {user.id}")

	def _resolve_for_email(
		self,
		credential_response: dict[str, Any],
		email: str,
	) -> tuple[str, PasskeyCredential]:
		expected = self.challenges.take(authentication_key(email))
		if expected is None:
			raise ChallengeMissing()

		user = self.store.find_user_by_email(email)
		if user is None:
			raise UserNotFound(NO_PASSKEYS_MESSAGE)

		raw_id = _raw_id(credential_response)
		for credential in self.store.list_for_user(user.id):
			if raw_id is not None and credential.credential_id == raw_id:
				return expected, credential
		raise CredentialNotFound()

	def _resolve_usernameless(
		self,
		credential_response: dict[str, Any],
	) -> tuple[str, PasskeyCredential]:
		challenge = challenge_from_response(credential_response)
		expected = self.challenges.take(usernameless_key(challenge)) if challenge else None
		if expected is None:
			raise ChallengeMissing()

		raw_id = _raw_id(credential_response)
		credential = self.store.find_by_credential_id(raw_id) if raw_id else None
		if credential is None:
			raise CredentialNotFound()
		return expected, credential
