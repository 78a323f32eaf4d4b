from datetime import datetime
from typing import Annotated, Any, Generic, TypeVar
from uuid import UUID

from pydantic import (
    AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, field_validator,
)
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(BaseModel, Generic[T]):
    """Successful response carrying a payload."""
    success: bool = True
    data: T


class MessageResponse(BaseModel):
    """Successful response carrying only a message."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


def _clean_name(value: str) -> str | None:
    value = value.strip()
    return value or None


def _clean_email(value: str) -> str:
    value = value.strip().lower()
    if not value:
        raise ValueError("email must not be empty")
    return value


PasskeyName = Annotated[str, StringConstraints(max_length=100), AfterValidator(_clean_name)]
Email = Annotated[str, StringConstraints(max_length=320), AfterValidator(_clean_email)]


# Passkey requests

class PasskeyRegisterRequest(BaseModel):
    """Request to complete passkey registration."""
    response: dict[str, Any]
    name: PasskeyName | None = None


class PasskeyAuthOptionsRequest(BaseModel):
    """Request for authentication options; no email means discoverable."""
    email: Email | None = None


class PasskeyAuthRequest(BaseModel):
    """Request to complete passkey authentication."""
    response: dict[str, Any]
    email: Email | None = None


class PasskeyRenameRequest(BaseModel):
    """Request to rename a passkey."""
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value


# Passkey responses

class RegisteredPasskey(CamelModel):
    """Newly registered passkey."""
    id: UUID
    name: str


class PasskeySummary(CamelModel):
    """Listed passkey. Never carries key material or the credential id."""
    id: UUID
    name: str
    created_at: datetime
    last_used_at: datetime | None = None
    device_type: str
    backed_up: bool


class AuthenticatedUser(CamelModel):
    """Principal proven by a passkey, to be exchanged for a session."""
    id: UUID
    email: str
    display_name: str | None = None
    firebase_uid: str


class PasskeyAuthResult(CamelModel):
    user: AuthenticatedUser


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime
