# (c) Copyright Datacraft, 2026
"""Pending ceremony challenges, one per principal key."""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from definvoice_auth.db.orm import WebAuthnChallenge
from definvoice_auth.errors import StorageFailure

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300

# dialects with INSERT .. ON CONFLICT DO UPDATE
_INSERTS = {
	"postgresql": postgresql.insert,
	"sqlite": sqlite.insert,
}


def registration_key(user_id) -> str:
	return str(user_id)


def authentication_key(email: str) -> str:
	return f"auth:{email.strip().lower()}"


def usernameless_key(challenge: str) -> str:
	return f"auth:usernameless:{challenge}"


class ChallengeStore(ABC):
	"""Holds at most one outstanding challenge per key.

	`put` overwrites whatever was pending for the key. `take` returns the
	value and removes it in one step, so a challenge is handed out once.
	"""

	def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
		self.ttl_seconds = ttl_seconds

	@abstractmethod
	def put(self, key: str, challenge: str) -> None:
		...

	@abstractmethod
	def take(self, key: str) -> str | None:
		...


class MemoryChallengeStore(ChallengeStore):
	"""Process-local store. Lost on restart, not shared between instances."""

	def __init__(
		self,
		ttl_seconds: int = DEFAULT_TTL_SECONDS,
		clock: Callable[[], float] = time.monotonic,
	):
		super().__init__(ttl_seconds)
		self._clock = clock
		self._lock = threading.Lock()
		self._entries: dict[str, tuple[str, float]] = {}

	def put(self, key: str, challenge: str) -> None:
		now = self._clock()
		with self._lock:
			self._purge(now)
			self._entries[key] = (challenge, now + self.ttl_seconds)

	def take(self, key: str) -> str | None:
		with self._lock:
			entry = self._entries.pop(key, None)
		if entry is None:
			return None
		challenge, expires_at = entry
		if expires_at <= self._clock():
			logger.debug(f"Challenge for {key} expired")
			return None
		return challenge

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)

	def _purge(self, now: float) -> None:
		expired = [k for k, (_, exp) in self._entries.items() if exp <= now]
		for k in expired:
			del self._entries[k]


class DatabaseChallengeStore(ChallengeStore):
	"""Challenges kept in the `webauthn_challenges` table.

	Lets Begin and Complete land on different API instances as long as they
	share a database.
	"""

	def __init__(
		self,
		session_factory: sessionmaker,
		ttl_seconds: int = DEFAULT_TTL_SECONDS,
		clock: Callable[[], float] = time.time,
	):
		bind = session_factory.kw.get("bind")
		if bind is not None and bind.dialect.name not in _INSERTS:
			raise ValueError(f"Unsupported database for challenges: {bind.dialect.name}")
		super().__init__(ttl_seconds)
		self._session_factory = session_factory
		self._clock = clock

	def put(self, key: str, challenge: str) -> None:
		now = self._clock()
		try:
			with self._session_factory.begin() as db:
				db.execute(
					delete(WebAuthnChallenge).where(WebAuthnChallenge.expires_at <= now)
				)
				insert = _INSERTS[db.get_bind().dialect.name]
				stmt = insert(WebAuthnChallenge).values(
					key=key,
					challenge=challenge,
					expires_at=now + self.ttl_seconds,
				)
				# last write wins, also against a concurrent put for the same key
				db.execute(stmt.on_conflict_do_update(
					index_elements=[WebAuthnChallenge.key],
					set_={
						"challenge": stmt.excluded.challenge,
						"expires_at": stmt.excluded.expires_at,
					},
				))
		except SQLAlchemyError as e:
			raise StorageFailure() from e

	def take(self, key: str) -> str | None:
		try:
			with self._session_factory.begin() as db:
				row = db.execute(
					select(WebAuthnChallenge.challenge, WebAuthnChallenge.expires_at)
					.where(WebAuthnChallenge.key == key)
				).first()
				if row is None:
					return None
				# compare-and-delete: a concurrent taker sees rowcount 0
				result = db.execute(
					delete(WebAuthnChallenge).where(
						WebAuthnChallenge.key == key,
						WebAuthnChallenge.challenge == row.challenge,
					)
				)
				if result.rowcount != 1:
					return None
		except SQLAlchemyError as e:
			raise StorageFailure() from e

		if row.expires_at <= self._clock():
			logger.debug(f"Challenge for {key} expired")
			return None
		return row.challenge
