"""Password reset token lifecycle."""

from datetime import datetime, timedelta

import structlog

from lms.config import Settings
from lms.core.errors import AppError, NotFoundError, UpstreamError, ValidationError
from lms.core.security import generate_reset_token, hash_reset_token
from lms.services.email_service import EmailSender
from lms.services.user_service import UserService
from lms.utils.validators import normalize_email

logger = structlog.get_logger(__name__)

RESET_EMAIL_SUBJECT = "Reset Password"
INVALID_TOKEN_MESSAGE = "Token is invalid or expired, please try again"


def build_reset_email(reset_url: str) -> str:
    return (
        f'You can reset your password by clicking <a href="{reset_url}" target="_blank">'
        f"Reset your password</a>\n"
        f"If the above link does not work for some reason then copy paste this link "
        f"in new tab {reset_url}.\n"
        f"If you have not requested this, kindly ignore."
    )


class PasswordResetService:
    """
    Issues and redeems single-use password reset tokens.

    Only the sha256 hash of a token is stored, together with an expiry
    ``RESET_TOKEN_EXPIRE_MINUTES`` after issuance. The plaintext goes out by
    email and is never persisted.
    """

    def __init__(self, users: UserService, mailer: EmailSender, settings: Settings):
        self.users = users
        self.mailer = mailer
        self.settings = settings

    async def request_reset(self, email: str) -> str:
        """
        Issue a reset token for ``email`` and mail the reset link.

        Returns the address the link was sent to. If the email cannot be
        delivered the stored token is cleared again before the error is raised.
        """
        if not normalize_email(email):
            raise ValidationError("Email is required")
        email = self.users.check_email(email)

        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("Email is not registered")

        token = generate_reset_token()
        expiry = datetime.utcnow() + timedelta(minutes=self.settings.RESET_TOKEN_EXPIRE_MINUTES)
        await self.users.set_reset_token(user.id, hash_reset_token(token), expiry)

        reset_url = f"{self.settings.reset_url_base}/{token}"
        try:
            await self.mailer.send(user.email, RESET_EMAIL_SUBJECT, build_reset_email(reset_url))
        except Exception as e:
            await self._rollback(user.id, e)
            if isinstance(e, AppError):
                raise
            raise UpstreamError(f"Failed to send email: {e}") from e

        logger.info("reset_token_issued", user_id=user.id, expires_at=expiry.isoformat())
        return user.email

    async def _rollback(self, user_id: str, error: Exception) -> None:
        """Clear the token of a failed send; a failing clear is logged, not raised."""
        try:
            await self.users.clear_reset_token(user_id)
        except Exception as e:
            logger.error("reset_token_rollback_failed", user_id=user_id, error=str(e), cause=str(error))
            return
        logger.warning("reset_token_rolled_back", user_id=user_id, error=str(error))

    async def reset_password(self, token: str, new_password: str) -> None:
        """Redeem ``token``; wrong and expired tokens fail identically."""
        if not token:
            raise ValidationError(INVALID_TOKEN_MESSAGE)
        self.users.validate_password(new_password)

        user = await self.users.redeem_reset_token(hash_reset_token(token), new_password)
        if user is None:
            raise ValidationError(INVALID_TOKEN_MESSAGE)
        logger.info("password_reset", user_id=user.id)
