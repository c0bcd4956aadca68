"""User document model."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from lms.core.security import Role


class MediaRef(BaseModel):
    """Reference to a file held by the media storage provider."""

    public_id: Optional[str] = None
    secure_url: Optional[str] = None


class User(BaseModel):
    """A user as stored in the ``users`` collection.

    ``password`` holds the bcrypt hash and is only populated when the
    document was read with the password projection.
    """

    id: str
    full_name: str
    email: str
    role: Role = Role.USER
    avatar: MediaRef = Field(default_factory=MediaRef)
    password: Optional[str] = None
    forgot_password_token: Optional[str] = None
    forgot_password_expiry: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "User":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
