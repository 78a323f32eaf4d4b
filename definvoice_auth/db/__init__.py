# (c) Copyright Datacraft, 2026
"""Database module for the passkey service."""
from .orm import User, PasskeyCredential, WebAuthnChallenge
from .base import Base

__all__ = [
	'Base',
	'User',
	'PasskeyCredential',
	'WebAuthnChallenge',
]
