# (c) Copyright Datacraft, 2026
"""Passkey services."""
from .challenge import ChallengeStore, MemoryChallengeStore, DatabaseChallengeStore
from .credentials import CredentialStore
from .passkey import PasskeyService

__all__ = [
	"ChallengeStore",
	"MemoryChallengeStore",
	"DatabaseChallengeStore",
	"CredentialStore",
	"PasskeyService",
]
