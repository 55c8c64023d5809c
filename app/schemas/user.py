import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from ..models import UserRole

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Zero-width, bidi-control and invisible formatting characters.
INVISIBLE_UNICODE = re.compile("[\u200B-\u200F\u202A-\u202F\u2060-\u206F]")


def normalize_email(value) -> str:
    if not isinstance(value, str) or not EMAIL_REGEX.match(value.strip()):
        raise PydanticCustomError("email_pattern", "Valid email is required.")
    return value.strip().lower()


class UserCreate(BaseModel):
    """Registration payload.

    Names are trimmed; names carrying invisible Unicode or consisting only of
    whitespace are rejected rather than silently cleaned.
    """
    email: str
    password: str = Field(min_length=6)
    name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value) -> str:
        return normalize_email(value)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if INVISIBLE_UNICODE.search(value):
            raise PydanticCustomError(
                "name_invisible_unicode",
                "Name contains invisible or special Unicode characters.",
            )
        if value and not value.strip():
            raise PydanticCustomError("name_whitespace", "Name cannot be empty/whitespace.")
        return value.strip()


class UserLogin(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value) -> str:
        return normalize_email(value)


class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: UserRole

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: User
    token: str


class UserEnvelope(BaseModel):
    user: User
