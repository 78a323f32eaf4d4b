# (c) Copyright Datacraft, 2026
"""WebAuthn/FIDO2 ceremony verification."""

from .service import (
	WebAuthnService,
	CredentialDescriptor,
	RegistrationInfo,
	AuthenticationInfo,
)

__all__ = [
	"WebAuthnService",
	"CredentialDescriptor",
	"RegistrationInfo",
	"AuthenticationInfo",
]
