# (c) Copyright Datacraft, 2026
"""WebAuthn ceremony options and verification, backed by py-webauthn."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from webauthn import (
	generate_authentication_options,
	generate_registration_options,
	options_to_json,
	verify_authentication_response,
	verify_registration_response,
)
from webauthn.helpers import (
	base64url_to_bytes,
	bytes_to_base64url,
)
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
	AttestationConveyancePreference,
	AuthenticatorAttachment,
	AuthenticatorSelectionCriteria,
	AuthenticatorTransport,
	COSEAlgorithmIdentifier,
	CredentialDeviceType,
	PublicKeyCredentialDescriptor,
	ResidentKeyRequirement,
	UserVerificationRequirement,
)

from definvoice_auth.errors import VerificationFailed

logger = logging.getLogger(__name__)

SINGLE_DEVICE = "single-device"
MULTI_DEVICE = "multi-device"

# Malformed client payloads surface from the library as these
_BAD_RESPONSE_ERRORS = (WebAuthnException, ValueError, KeyError, TypeError)


@dataclass
class CredentialDescriptor:
	"""Stored credential reference used in exclude/allow lists."""
	credential_id: str  # Base64URL encoded
	transports: list[str] = field(default_factory=list)


@dataclass
class RegistrationInfo:
	"""What a verified registration tells us about the new credential."""
	credential_id: str
	public_key: str
	sign_count: int
	device_type: str
	backed_up: bool
	transports: list[str]
	aaguid: str | None = None


@dataclass
class AuthenticationInfo:
	"""Outcome of a verified assertion."""
	credential_id: str
	new_sign_count: int
	device_type: str
	backed_up: bool


def parse_transports(values: Iterable[str] | None) -> list[AuthenticatorTransport]:
	"""Keep the transport hints the library knows, drop the rest."""
	transports = []
	for value in values or []:
		try:
			transports.append(AuthenticatorTransport(value))
		except ValueError:
			logger.debug(f"Ignoring unknown transport hint {value!r}")
	return transports


def normalize_credential_id(value: str) -> str:
	"""Re-encode a base64url id so padding/alphabet differences compare equal."""
	return bytes_to_base64url(base64url_to_bytes(value))


def _device_type(value: CredentialDeviceType | str | None) -> str:
	if value == CredentialDeviceType.MULTI_DEVICE:
		return MULTI_DEVICE
	return SINGLE_DEVICE


def _descriptors(credentials: Iterable[CredentialDescriptor]) -> list[PublicKeyCredentialDescriptor]:
	return [
		PublicKeyCredentialDescriptor(
			id=base64url_to_bytes(cred.credential_id),
			transports=parse_transports(cred.transports) or None,
		)
		for cred in credentials
	]


class WebAuthnService:
	"""Relying-party side of the WebAuthn ceremonies.

	Options are returned as the JSON dictionaries browsers expect
	(`PublicKeyCredentialCreationOptionsJSON` and friends). Every failed
	check raises `VerificationFailed` with the library's reason attached.
	"""

	def __init__(
		self,
		rp_id: str = "localhost",
		rp_name: str = "DefInvoice",
		origins: list[str] | str = "http://localhost:5173",
		timeout: int = 60000,
	):
		self.rp_id = rp_id
		self.rp_name = rp_name
		self.origins = [origins] if isinstance(origins, str) else list(origins)
		self.timeout = timeout

	def registration_options(
		self,
		user_handle: bytes,
		user_name: str,
		user_display_name: str,
		existing_credentials: Iterable[CredentialDescriptor] = (),
	) -> tuple[dict[str, Any], str]:
		"""Generate options for passkey registration.

		Args:
			user_handle: Opaque WebAuthn user id
			user_name: Username (email)
			user_display_name: Display name
			existing_credentials: Already registered passkeys to exclude

		Returns:
			Tuple of (options JSON, challenge)
		"""
		existing_credentials = list(existing_credentials)
		options = generate_registration_options(
			rp_id=self.rp_id,
			rp_name=self.rp_name,
			user_id=user_handle,
			user_name=user_name,
			user_display_name=user_display_name,
			timeout=self.timeout,
			attestation=AttestationConveyancePreference.NONE,
			authenticator_selection=AuthenticatorSelectionCriteria(
				authenticator_attachment=AuthenticatorAttachment.PLATFORM,
				resident_key=ResidentKeyRequirement.PREFERRED,
				user_verification=UserVerificationRequirement.PREFERRED,
			),
			supported_pub_key_algs=[
				COSEAlgorithmIdentifier.ECDSA_SHA_256,
				COSEAlgorithmIdentifier.EDDSA,
				COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_256,
			],
			exclude_credentials=_descriptors(existing_credentials),
		)

		options_json = json.loads(options_to_json(options))
		options_json.setdefault("excludeCredentials", [])
		return options_json, bytes_to_base64url(options.challenge)

	def verify_registration(
		self,
		credential_response: dict[str, Any],
		expected_challenge: str,
	) -> RegistrationInfo:
		"""Verify a response from navigator.credentials.create()."""
		try:
			verification = verify_registration_response(
				credential=credential_response,
				expected_challenge=base64url_to_bytes(expected_challenge),
				expected_rp_id=self.rp_id,
				expected_origin=self.origins,
				require_user_verification=False,
			)
		except _BAD_RESPONSE_ERRORS as e:
			raise VerificationFailed(f"registration: {e}") from e

		# transports are reported by the client, outside the signed data
		reported = (credential_response.get("response") or {}).get("transports")
		transports = [t.value for t in parse_transports(reported)]

		return RegistrationInfo(
			credential_id=bytes_to_base64url(verification.credential_id),
			public_key=bytes_to_base64url(verification.credential_public_key),
			sign_count=verification.sign_count,
			device_type=_device_type(verification.credential_device_type),
			backed_up=bool(verification.credential_backed_up),
			transports=transports,
			aaguid=verification.aaguid or None,
		)

	def authentication_options(
		self,
		credentials: Iterable[CredentialDescriptor] = (),
	) -> tuple[dict[str, Any], str]:
		"""Generate options for passkey authentication.

		An empty credential list produces options for discoverable
		credentials: the authenticator offers whatever it holds for the RP.
		"""
		options = generate_authentication_options(
			rp_id=self.rp_id,
			timeout=self.timeout,
			allow_credentials=_descriptors(credentials),
			user_verification=UserVerificationRequirement.PREFERRED,
		)

		options_json = json.loads(options_to_json(options))
		options_json.setdefault("allowCredentials", [])
		return options_json, bytes_to_base64url(options.challenge)

	def verify_authentication(
		self,
		credential_response: dict[str, Any],
		expected_challenge: str,
		public_key: str,
		sign_count: int,
	) -> AuthenticationInfo:
		"""Verify a response from navigator.credentials.get().

		The library refuses a counter that does not grow past `sign_count`
		unless both values are zero (authenticators without counters).
		"""
		try:
			verification = verify_authentication_response(
				credential=credential_response,
				expected_challenge=base64url_to_bytes(expected_challenge),
				expected_rp_id=self.rp_id,
				expected_origin=self.origins,
				credential_public_key=base64url_to_bytes(public_key),
				credential_current_sign_count=sign_count,
				require_user_verification=False,
			)
		except _BAD_RESPONSE_ERRORS as e:
			raise VerificationFailed(f"authentication: {e}") from e

		return AuthenticationInfo(
			credential_id=bytes_to_base64url(verification.credential_id),
			new_sign_count=verification.new_sign_count,
			device_type=_device_type(verification.credential_device_type),
			backed_up=bool(verification.credential_backed_up),
		)


def challenge_from_response(credential_response: dict[str, Any]) -> str | None:
	"""Read the challenge echoed in a response's clientDataJSON."""
	try:
		client_data = base64url_to_bytes(credential_response["response"]["clientDataJSON"])
		return json.loads(client_data)["challenge"]
	except (KeyError, TypeError, ValueError):
		return None
