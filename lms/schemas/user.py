"""User and authentication schemas."""

from __future__ import annotations  # Enable forward references

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lms.core.security import Role


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class LoginRequest(CamelModel):
    """Login request schema."""

    email: str
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    password: str


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class MediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    public_id: Optional[str] = None
    secure_url: Optional[str] = None


class UserResponse(CamelModel):
    """User response schema. The password hash is never part of it."""

    id: str
    full_name: str
    email: str
    role: Role
    avatar: MediaResponse
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserEnvelope(MessageResponse):
    user: UserResponse


UserEnvelope.model_rebuild()
