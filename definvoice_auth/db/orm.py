# (c) Copyright Datacraft, 2026
"""User, passkey credential and pending challenge tables."""
import uuid
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from sqlalchemy import (
	String, ForeignKey, Index, UniqueConstraint, Boolean, Integer, Float, JSON,
	DateTime, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


class User(Base):
	"""Local account linked to an identity provider uid."""

	__tablename__ = "users"

	id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
	firebase_uid: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
	email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
	display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
	is_active: Mapped[bool] = mapped_column(Boolean, default=True)
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

	passkeys: Mapped[List["PasskeyCredential"]] = relationship(
		"PasskeyCredential",
		back_populates="user",
		cascade="all, delete-orphan",
		order_by="PasskeyCredential.created_at",
	)

	def __repr__(self):
		return f"User({self.email})"


class PasskeyCredential(Base):
	"""One registered authenticator.

	`credential_id` and `public_key` are base64url text; neither leaves the
	server except `credential_id` inside exclude/allow lists.
	"""

	__tablename__ = "passkey_credentials"

	id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
	user_id: Mapped[UUID] = mapped_column(
		ForeignKey("users.id", ondelete="CASCADE"),
		nullable=False,
	)
	credential_id: Mapped[str] = mapped_column(String(1024), nullable=False)
	public_key: Mapped[str] = mapped_column(String(2048), nullable=False)
	sign_count: Mapped[int] = mapped_column(Integer, default=0)
	device_type: Mapped[str] = mapped_column(String(20), default="single-device")
	backed_up: Mapped[bool] = mapped_column(Boolean, default=False)
	transports: Mapped[list[str]] = mapped_column(JSON, default=list)
	name: Mapped[str] = mapped_column(String(100), default="Passkey")
	created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
	last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

	user: Mapped["User"] = relationship("User", back_populates="passkeys")

	__table_args__ = (
		# an authenticator credential belongs to exactly one user
		UniqueConstraint("credential_id", name="uq_passkey_credential_id"),
		Index("idx_passkey_user", "user_id"),
	)


class WebAuthnChallenge(Base):
	"""Pending ceremony challenge, one per principal key."""

	__tablename__ = "webauthn_challenges"

	key: Mapped[str] = mapped_column(String(400), primary_key=True)
	challenge: Mapped[str] = mapped_column(String(200), nullable=False)
	# epoch seconds
	expires_at: Mapped[float] = mapped_column(Float, nullable=False)
