# (c) Copyright Datacraft, 2026
"""Passkey credential persistence."""
import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from definvoice_auth.db.orm import PasskeyCredential, User
from definvoice_auth.errors import CredentialNotFound, StorageFailure, VerificationFailed
from definvoice_auth.webauthn.service import RegistrationInfo

logger = logging.getLogger(__name__)


def _parse_id(value: str | UUID) -> UUID | None:
	if isinstance(value, UUID):
		return value
	try:
		return UUID(value)
	except (TypeError, ValueError):
		return None


class CredentialStore:
	"""Row-level operations on a user's passkeys.

	Each mutation is a single statement against one credential row so that
	two ceremonies finishing at once for the same user cannot overwrite each
	other.
	"""

	def __init__(self, db: Session):
		self.db = db

	def get_user(self, user_id: UUID) -> User | None:
		return self._run(lambda: self.db.get(User, user_id))

	def find_user_by_email(self, email: str) -> User | None:
		email = email.strip().lower()
		return self._run(lambda: self.db.scalar(select(User).where(User.email == email)))

	def find_user_by_firebase_uid(self, firebase_uid: str) -> User | None:
		return self._run(
			lambda: self.db.scalar(select(User).where(User.firebase_uid == firebase_uid))
		)

	def list_for_user(self, user_id: UUID) -> list[PasskeyCredential]:
		stmt = (
			select(PasskeyCredential)
			.where(PasskeyCredential.user_id == user_id)
			.order_by(PasskeyCredential.created_at)
		)
		return self._run(lambda: list(self.db.scalars(stmt)))

	def find_by_credential_id(self, credential_id: str) -> PasskeyCredential | None:
		"""Look a credential up by its authenticator id, across all users."""
		stmt = select(PasskeyCredential).where(
			PasskeyCredential.credential_id == credential_id
		)
		return self._run(lambda: self.db.scalar(stmt))

	def append(self, user_id: UUID, info: RegistrationInfo, name: str) -> PasskeyCredential:
		credential = PasskeyCredential(
			user_id=user_id,
			credential_id=info.credential_id,
			public_key=info.public_key,
			sign_count=info.sign_count,
			device_type=info.device_type,
			backed_up=info.backed_up,
			transports=list(info.transports),
			name=name,
			created_at=datetime.now(timezone.utc),
		)
		try:
			self.db.add(credential)
			self.db.commit()
		except IntegrityError as e:
			self.db.rollback()
			raise VerificationFailed(f"credential {info.credential_id} is already registered") from e
		except SQLAlchemyError as e:
			self.db.rollback()
			raise StorageFailure() from e
		return credential

	def record_use(self, credential: PasskeyCredential, new_sign_count: int) -> None:
		"""Store the new counter, guarded by the counter we verified against."""
		now = datetime.now(timezone.utc)
		try:
			result = self.db.execute(
				update(PasskeyCredential)
				.where(
					PasskeyCredential.id == credential.id,
					PasskeyCredential.sign_count == credential.sign_count,
				)
				.values(sign_count=new_sign_count, last_used_at=now)
				.execution_options(synchronize_session=False)
			)
			self.db.commit()
		except SQLAlchemyError as e:
			self.db.rollback()
			raise StorageFailure() from e

		if result.rowcount != 1:
			raise VerificationFailed(
				f"sign count for credential {credential.id} changed concurrently"
			)
		set_committed_value(credential, "sign_count", new_sign_count)
		set_committed_value(credential, "last_used_at", now)

	def rename(self, user_id: UUID, passkey_id: str | UUID, name: str) -> PasskeyCredential:
		pk = _parse_id(passkey_id)
		credential = self._run(lambda: self.db.get(PasskeyCredential, pk)) if pk else None
		if credential is None or credential.user_id != user_id:
			raise CredentialNotFound()
		try:
			credential.name = name
			self.db.commit()
		except SQLAlchemyError as e:
			self.db.rollback()
			raise StorageFailure() from e
		return credential

	def remove(self, user_id: UUID, passkey_id: str | UUID) -> None:
		pk = _parse_id(passkey_id)
		if pk is None:
			raise CredentialNotFound()
		try:
			result = self.db.execute(
				delete(PasskeyCredential)
				.where(PasskeyCredential.id == pk, PasskeyCredential.user_id == user_id)
				.execution_options(synchronize_session=False)
			)
			self.db.commit()
		except SQLAlchemyError as e:
			self.db.rollback()
			raise StorageFailure() from e
		if result.rowcount == 0:
			raise CredentialNotFound()

	def _run(self, query):
		try:
			return query()
		except SQLAlchemyError as e:
			self.db.rollback()
			raise StorageFailure() from e
