# (c) Copyright Datacraft, 2026
"""Client side of the passkey ceremonies.

`PasskeyClient` asks the API for options, hands them to an `Authenticator`
(the platform's WebAuthn implementation, e.g. a browser bridge or a
security-key driver) and posts the authenticator's answer back.
"""
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class CeremonyCancelled(Exception):
	"""The user dismissed or timed out the authenticator prompt."""


class PasskeyClientError(Exception):
	"""The API refused a request."""

	def __init__(self, message: str, status_code: int | None = None):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


class Authenticator(Protocol):
	def create(self, options: dict[str, Any]) -> dict[str, Any]:
		"""navigator.credentials.create(); returns RegistrationResponseJSON."""
		...

	def get(self, options: dict[str, Any]) -> dict[str, Any]:
		"""navigator.credentials.get(); returns AuthenticationResponseJSON."""
		...


class PasskeyClient:
	"""Runs registration and sign-in against `/api/passkeys`."""

	def __init__(
		self,
		http: httpx.Client,
		authenticator: Authenticator,
		token: str | None = None,
		prefix: str = "/api/passkeys",
	):
		self.http = http
		self.authenticator = authenticator
		self.token = token
		self.prefix = prefix.rstrip("/")

	def register(self, name: str | None = None) -> dict[str, Any]:
		"""Register a new passkey for the signed-in user.

		Returns the `{id, name}` of the stored passkey.
		"""
		if not name:
			name = f"Passkey {len(self.list_passkeys()) + 1}"

		options = self._call("POST", "/register-options", auth=True)
		try:
			response = self.authenticator.create(options)
		except CeremonyCancelled:
			logger.info("Passkey registration was cancelled")
			raise
		result = self._call(
			"POST", "/register", auth=True, json={"response": response, "name": name}
		)
		logger.info(f"Registered passkey {result['id']}")
		return result

	def login(self, email: str | None = None) -> dict[str, Any]:
		"""Sign in with a passkey; no email means any discoverable passkey.

		Returns the user descriptor to exchange for a session token.
		"""
		body = {"email": email} if email else {}
		options = self._call("POST", "/auth-options", json=body)
		try:
			response = self.authenticator.get(options)
		except CeremonyCancelled:
			logger.info("Passkey sign-in was cancelled")
			raise
		body["response"] = response
		return self._call("POST", "/auth", json=body)["user"]

	def list_passkeys(self) -> list[dict[str, Any]]:
		return self._call("GET", "/", auth=True)

	def rename(self, passkey_id: str, name: str) -> dict[str, Any]:
		return self._call("PATCH", f"/{passkey_id}", auth=True, json={"name": name})

	def delete(self, passkey_id: str) -> None:
		self._call("DELETE", f"/{passkey_id}", auth=True)

	def _call(self, method: str, path: str, auth: bool = False, json: dict | None = None) -> Any:
		headers = {}
		if auth:
			if not self.token:
				raise PasskeyClientError("Not signed in", 401)
			headers["Authorization"] = f"Bearer {self.token}"

		try:
			resp = self.http.request(method, f"{self.prefix}{path}", json=json, headers=headers)
		except httpx.HTTPError as e:
			raise PasskeyClientError(f"Request failed: {e}") from e

		try:
			payload = resp.json()
		except ValueError:
			payload = {}

		if resp.is_error or not payload.get("success"):
			message = payload.get("message") or f"HTTP {resp.status_code}"
			raise PasskeyClientError(message, resp.status_code)

		return payload.get("data")
