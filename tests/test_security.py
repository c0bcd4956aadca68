from datetime import timedelta

import pytest
from jose import jwt

from lms.config import Settings
from lms.core.errors import UnauthenticatedError
from lms.core.security import (
    PasswordHasher,
    Role,
    TokenClaims,
    TokenIssuer,
    generate_reset_token,
    hash_reset_token,
    is_role_allowed,
)


@pytest.fixture
def hasher(settings):
    return PasswordHasher(settings)


@pytest.fixture
def issuer(settings):
    return TokenIssuer(settings)


@pytest.fixture
def claims():
    return TokenClaims(id="64b7f0c2a1b2c3d4e5f60718", role=Role.USER, email="a@x.com")


def test_hash_is_salted_and_verifies(hasher):
    first = hasher.hash("password1")
    second = hasher.hash("password1")

    assert first != "password1"
    assert first != second
    assert hasher.verify("password1", first)
    assert hasher.verify("password1", second)
    assert not hasher.verify("password2", first)


@pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
def test_verify_rejects_missing_or_corrupt_hash(hasher, stored):
    assert hasher.verify("password1", stored) is False


def test_token_round_trip(issuer, claims):
    token = issuer.issue(claims)

    assert issuer.verify(token) == claims


def test_token_carries_subject_and_type(issuer, settings, claims):
    payload = jwt.decode(issuer.issue(claims), settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

    assert payload["sub"] == claims.id
    assert payload["role"] == "USER"
    assert payload["email"] == "a@x.com"
    assert payload["type"] == "access"


def test_expired_token_is_rejected(issuer, claims):
    token = issuer.issue(claims, expires_delta=timedelta(seconds=-5))

    with pytest.raises(UnauthenticatedError):
        issuer.verify(token)


def test_token_signed_with_other_secret_is_rejected(settings, claims):
    other = TokenIssuer(settings.model_copy(update={"SECRET_KEY": "rotated-secret"}))
    token = other.issue(claims)

    with pytest.raises(UnauthenticatedError):
        TokenIssuer(settings).verify(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token_is_rejected(issuer, token):
    with pytest.raises(UnauthenticatedError) as exc_info:
        issuer.verify(token)
    assert exc_info.value.status_code == 401


def test_all_token_failures_share_one_message(issuer, claims, settings):
    expired = issuer.issue(claims, expires_delta=timedelta(seconds=-5))
    foreign = TokenIssuer(settings.model_copy(update={"SECRET_KEY": "x"})).issue(claims)

    messages = set()
    for token in (expired, foreign, "garbage"):
        with pytest.raises(UnauthenticatedError) as exc_info:
            issuer.verify(token)
        messages.add(exc_info.value.message)

    assert messages == {"Unauthenticated, please login"}


def test_token_without_role_is_rejected(issuer, settings):
    token = jwt.encode(
        {"sub": "abc", "email": "a@x.com", "type": "access"},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )

    with pytest.raises(UnauthenticatedError):
        issuer.verify(token)


@pytest.mark.parametrize(
    "role, allowed, expected",
    [
        ("ADMIN", [Role.ADMIN], True),
        (Role.ADMIN, ["ADMIN", "USER"], True),
        ("USER", [Role.ADMIN], False),
        (None, [Role.ADMIN], False),
        ("ADMIN", [], False),
    ],
)
def test_is_role_allowed(role, allowed, expected):
    assert is_role_allowed(role, allowed) is expected


def test_reset_token_hash_is_stable_and_one_way():
    token = generate_reset_token()

    assert len(token) == 40
    assert generate_reset_token() != token
    assert hash_reset_token(token) == hash_reset_token(token)
    assert hash_reset_token(token) != token


def test_settings_parse_extension_list():
    settings = Settings(_env_file=None, ALLOWED_UPLOAD_EXTENSIONS=".JPG, png,mp4")

    assert settings.ALLOWED_UPLOAD_EXTENSIONS == ["jpg", "png", "mp4"]
