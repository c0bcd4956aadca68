"""Credential store: user documents in MongoDB."""

from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from fastapi.concurrency import run_in_threadpool
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from lms.config import Settings
from lms.core.errors import NotFoundError, UpstreamError, ValidationError
from lms.core.security import PasswordHasher, Role
from lms.db.mongo import MongoDatabase
from lms.models.user import MediaRef, User
from lms.utils.validators import normalize_email, validate_email, validate_full_name

logger = structlog.get_logger(__name__)

# The password hash is excluded from every read unless explicitly requested
WITHOUT_PASSWORD = {"password": 0}


def _object_id(user_id: str) -> Optional[ObjectId]:
    return ObjectId(user_id) if ObjectId.is_valid(user_id) else None


class UserService:
    """
    Reads and writes user records.

    This is the only writer of the ``password`` field and it always stores a
    hash produced by ``PasswordHasher``, never the plaintext.
    """

    def __init__(self, database: MongoDatabase, hasher: PasswordHasher, settings: Settings):
        self.collection = database.users
        self.hasher = hasher
        self.settings = settings

    def validate_password(self, password: Optional[str]) -> None:
        if not password or len(password) < self.settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {self.settings.PASSWORD_MIN_LENGTH} characters"
            )

    @staticmethod
    def check_email(email: Optional[str]) -> str:
        """Normalized ``email``; registration, login and reset all go through here."""
        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError("Please fill in a valid email address")
        return email

    # bcrypt is CPU bound, keep it off the event loop
    async def _hash(self, password: str) -> str:
        return await run_in_threadpool(self.hasher.hash, password)

    async def _verify(self, password: str, password_hash: Optional[str]) -> bool:
        return await run_in_threadpool(self.hasher.verify, password, password_hash)

    async def get_by_email(self, email: str, with_password: bool = False) -> Optional[User]:
        projection = None if with_password else WITHOUT_PASSWORD
        try:
            doc = await self.collection.find_one({"email": normalize_email(email)}, projection)
        except PyMongoError as e:
            logger.error("user_lookup_failed", error=str(e))
            raise UpstreamError("Database error, please try again")
        return User.from_document(doc) if doc else None

    async def get_by_id(self, user_id: str, with_password: bool = False) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        projection = None if with_password else WITHOUT_PASSWORD
        try:
            doc = await self.collection.find_one({"_id": oid}, projection)
        except PyMongoError as e:
            logger.error("user_lookup_failed", user_id=user_id, error=str(e))
            raise UpstreamError("Database error, please try again")
        return User.from_document(doc) if doc else None

    async def get_required(self, user_id: str) -> User:
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    async def create(
        self,
        full_name: str,
        email: str,
        password: str,
        avatar: Optional[MediaRef] = None,
        role: Role = Role.USER,
    ) -> User:
        """Validate and insert a new user; the password is hashed here."""
        email = self.check_email(email)
        full_name = (full_name or "").strip().lower()
        if not validate_full_name(full_name):
            raise ValidationError("Name must be between 5 and 50 characters")
        self.validate_password(password)

        if await self.get_by_email(email) is not None:
            raise ValidationError("Email already exists")

        if avatar is None:
            avatar = MediaRef(public_id=email, secure_url=self.settings.DEFAULT_AVATAR_URL)

        now = datetime.utcnow()
        doc: Dict[str, Any] = {
            "full_name": full_name,
            "email": email,
            "password": await self._hash(password),
            "role": role.value,
            "avatar": avatar.model_dump(),
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise ValidationError("Email already exists")
        except PyMongoError as e:
            logger.error("user_create_failed", email=email, error=str(e))
            raise UpstreamError("User registration failed, please try again")

        logger.info("user_registered", user_id=str(result.inserted_id), email=email)
        return await self.get_required(str(result.inserted_id))

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, otherwise None."""
        email = self.check_email(email)
        user = await self.get_by_email(email, with_password=True)
        if user is None or not await self._verify(password, user.password):
            return None
        return user.model_copy(update={"password": None})

    async def set_password(self, user_id: str, new_password: str) -> None:
        self.validate_password(new_password)
        await self._update(
            user_id,
            {"$set": {"password": await self._hash(new_password), "updated_at": datetime.utcnow()}},
        )

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        if not old_password or not new_password:
            raise ValidationError("All fields are mandatory")
        user = await self.get_by_id(user_id, with_password=True)
        if user is None:
            raise NotFoundError("User does not exist")
        if not await self._verify(old_password, user.password):
            raise ValidationError("Invalid old password")
        await self.set_password(user_id, new_password)
        logger.info("password_changed", user_id=user_id)

    async def update_profile(
        self,
        user_id: str,
        full_name: Optional[str] = None,
        avatar: Optional[MediaRef] = None,
    ) -> User:
        fields: Dict[str, Any] = {"updated_at": datetime.utcnow()}
        if full_name:
            full_name = full_name.strip().lower()
            if not validate_full_name(full_name):
                raise ValidationError("Name must be between 5 and 50 characters")
            fields["full_name"] = full_name
        if avatar is not None:
            fields["avatar"] = avatar.model_dump()
        await self._update(user_id, {"$set": fields})
        return await self.get_required(user_id)

    async def set_reset_token(self, user_id: str, token_hash: str, expiry: datetime) -> None:
        await self._update(
            user_id,
            {"$set": {"forgot_password_token": token_hash, "forgot_password_expiry": expiry}},
        )

    async def clear_reset_token(self, user_id: str) -> None:
        await self._update(
            user_id,
            {"$unset": {"forgot_password_token": "", "forgot_password_expiry": ""}},
        )

    async def redeem_reset_token(self, token_hash: str, new_password: str) -> Optional[User]:
        """
        Atomically swap a live reset token for a new password.

        Matches only when the stored hash equals ``token_hash`` and the expiry
        is still in the future; both reset fields are cleared in the same
        write, so a token can be redeemed once.
        """
        self.validate_password(new_password)
        password_hash = await self._hash(new_password)
        now = datetime.utcnow()
        try:
            doc = await self.collection.find_one_and_update(
                {"forgot_password_token": token_hash, "forgot_password_expiry": {"$gt": now}},
                {
                    "$set": {"password": password_hash, "updated_at": now},
                    "$unset": {"forgot_password_token": "", "forgot_password_expiry": ""},
                },
                projection=WITHOUT_PASSWORD,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("password_reset_failed", error=str(e))
            raise UpstreamError("Database error, please try again")
        return User.from_document(doc) if doc else None

    async def _update(self, user_id: str, update: Dict[str, Any]) -> None:
        oid = _object_id(user_id)
        if oid is None:
            raise NotFoundError("User does not exist")
        try:
            result = await self.collection.update_one({"_id": oid}, update)
        except PyMongoError as e:
            logger.error("user_update_failed", user_id=user_id, error=str(e))
            raise UpstreamError("Database error, please try again")
        if result.matched_count == 0:
            raise NotFoundError("User does not exist")
