"""Credential exchange for staff and guardian accounts."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.app.models.enums import AppRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        # Accounts are stored with lower-case addresses
        if isinstance(value, str):
            return value.strip().lower()
        return value


class TokenResponse(BaseModel):
    """Bearer token plus the identity the token resolves to."""

    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: AppRole
    school_id: Optional[str] = None
    guardian_id: Optional[str] = None
