"""Validators."""

import os
import re
from typing import Iterable, Optional

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

FULL_NAME_MIN_LENGTH = 5
FULL_NAME_MAX_LENGTH = 50


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email address."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Validate email format."""
    return bool(EMAIL_PATTERN.match(email or ""))


def validate_full_name(full_name: str) -> bool:
    return FULL_NAME_MIN_LENGTH <= len(full_name or "") <= FULL_NAME_MAX_LENGTH


def file_extension(filename: Optional[str]) -> str:
    """Lower-cased extension without the dot, or an empty string."""
    if not filename:
        return ""
    return os.path.splitext(filename)[1].lower().lstrip(".")


def validate_file_extension(filename: str, allowed_extensions: Iterable[str]) -> bool:
    """Validate file extension."""
    extension = file_extension(filename)
    if not extension:
        return False
    return extension in [ext.lower().lstrip(".") for ext in allowed_extensions]
