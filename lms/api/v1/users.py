"""User registration, session and password endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from lms.config import Settings
from lms.core.deps import (
    get_current_user,
    get_password_reset_service,
    get_settings,
    get_token_issuer,
    get_upload_service,
    get_user_service,
)
from lms.core.errors import AppError, ValidationError
from lms.core.security import TokenClaims, TokenIssuer
from lms.models.user import User
from lms.schemas.user import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    UserEnvelope,
    UserResponse,
)
from lms.services.password_reset_service import PasswordResetService
from lms.services.upload_service import UploadService
from lms.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter()

LOGIN_FAILED = "Email or password do not match or user does not exist"


def _set_session_cookie(response: Response, user: User, issuer: TokenIssuer, settings: Settings) -> None:
    token = issuer.issue(TokenClaims(id=user.id, role=user.role, email=user.email))
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=settings.COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.COOKIE_SECURE,
    )


@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_200_OK)
async def register(
    response: Response,
    full_name: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    users: UserService = Depends(get_user_service),
    uploads: UploadService = Depends(get_upload_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    """Register a new user, optionally with an avatar image."""
    if not full_name or not email or not password:
        raise ValidationError("All fields are required")

    if await users.get_by_email(email) is not None:
        raise ValidationError("Email already exists")

    avatar_ref = await uploads.upload_optional(avatar, subfolder="avatars")
    try:
        user = await users.create(full_name, email, password, avatar=avatar_ref)
    except AppError:
        await uploads.discard(avatar_ref)
        raise

    _set_session_cookie(response, user, issuer, settings)
    return UserEnvelope(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def login(
    request: LoginRequest,
    response: Response,
    users: UserService = Depends(get_user_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
):
    """Login with email and password."""
    user = await users.authenticate(request.email, request.password)
    if user is None:
        logger.info("login_failed")
        raise ValidationError(LOGIN_FAILED)

    _set_session_cookie(response, user, issuer, settings)
    logger.info("login_succeeded", user_id=user.id)
    return UserEnvelope(
        message="User logged in Successfully!",
        user=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Overwrite the session cookie with an immediately expiring empty value."""
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        secure=settings.COOKIE_SECURE,
    )
    return MessageResponse(message="User logged out successfully")


@router.get("/me", response_model=UserEnvelope)
async def get_profile(
    current_user: TokenClaims = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """Get current user information."""
    user = await users.get_required(current_user.id)
    return UserEnvelope(message="User details", user=UserResponse.model_validate(user))


@router.post("/reset", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    resets: PasswordResetService = Depends(get_password_reset_service),
):
    """Email a password reset link."""
    email = await resets.request_reset(request.email)
    return MessageResponse(message=f"Reset password token has been sent to {email} successfully!")


@router.post("/reset/{reset_token}", response_model=MessageResponse)
async def reset_password(
    reset_token: str,
    request: ResetPasswordRequest,
    resets: PasswordResetService = Depends(get_password_reset_service),
):
    await resets.reset_password(reset_token, request.password)
    return MessageResponse(message="Password changed successfully")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: TokenClaims = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    await users.change_password(current_user.id, request.old_password, request.new_password)
    return MessageResponse(message="Password changed successfully!")


@router.put("/update", response_model=UserEnvelope)
async def update_user(
    full_name: Optional[str] = Form(None, alias="fullName"),
    avatar: Optional[UploadFile] = File(None),
    current_user: TokenClaims = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
    uploads: UploadService = Depends(get_upload_service),
):
    """Update the name and/or avatar of the logged in user."""
    user = await users.get_required(current_user.id)

    new_avatar = await uploads.upload_optional(avatar, subfolder="avatars")
    try:
        updated = await users.update_profile(user.id, full_name=full_name, avatar=new_avatar)
    except AppError:
        await uploads.discard(new_avatar)
        raise

    # The placeholder avatar uses the email as its id and has no stored file
    old_id = user.avatar.public_id
    if new_avatar is not None and old_id and old_id != user.email:
        await uploads.storage.delete_quietly(old_id)

    return UserEnvelope(
        message="User details updated successfully!",
        user=UserResponse.model_validate(updated),
    )
