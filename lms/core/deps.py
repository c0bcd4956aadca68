"""Dependency functions for FastAPI routes."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lms.config import Settings
from lms.core.errors import ForbiddenError, UnauthenticatedError
from lms.core.security import PasswordHasher, Role, TokenClaims, TokenIssuer, is_role_allowed
from lms.db.mongo import MongoDatabase
from lms.services.course_service import CourseService
from lms.services.email_service import EmailSender
from lms.services.password_reset_service import PasswordResetService
from lms.services.upload_service import UploadService
from lms.services.user_service import UserService

# Bearer header is accepted as a fallback to the session cookie
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> MongoDatabase:
    return request.app.state.database


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def get_user_service(
    database: MongoDatabase = Depends(get_database),
    hasher: PasswordHasher = Depends(get_password_hasher),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(database, hasher, settings)


def get_course_service(
    database: MongoDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> CourseService:
    return CourseService(database, settings)


def get_password_reset_service(
    users: UserService = Depends(get_user_service),
    mailer: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> PasswordResetService:
    return PasswordResetService(users, mailer, settings)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    """Claims of the session token carried by the cookie (or Bearer header)."""
    token = request.cookies.get(settings.COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise UnauthenticatedError()
    return issuer.verify(token)


def require_roles(*allowed_roles: Role):
    """Dependency to check the authenticated user's role."""

    async def role_checker(current_user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
        if not is_role_allowed(current_user.role, allowed_roles):
            raise ForbiddenError()
        return current_user

    return role_checker
