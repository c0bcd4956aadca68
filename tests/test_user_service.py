import threading

import pytest

from lms.core.errors import NotFoundError, ValidationError
from lms.core.security import PasswordHasher, Role
from lms.models.user import MediaRef
from lms.services.user_service import UserService

pytestmark = pytest.mark.anyio


@pytest.fixture
async def users(database, settings):
    await database.connect()
    return UserService(database, PasswordHasher(settings), settings)


async def test_create_stores_hash_and_normalizes_identity(users, database, settings):
    user = await users.create("  Alice Example ", " A@X.COM ", "password1")

    doc = await database.users.find_one({"email": "a@x.com"})
    assert doc["password"] != "password1"
    assert doc["password"].startswith("$2")
    assert user.full_name == "alice example"
    assert user.role == Role.USER
    assert user.password is None
    assert user.avatar == MediaRef(public_id="a@x.com", secure_url=settings.DEFAULT_AVATAR_URL)


async def test_default_reads_leave_out_the_password(users):
    user = await users.create("Alice Example", "a@x.com", "password1")

    assert (await users.get_by_id(user.id)).password is None
    assert (await users.get_by_email("a@x.com")).password is None
    assert (await users.get_by_email("a@x.com", with_password=True)).password.startswith("$2")


async def test_duplicate_email_is_rejected(users):
    await users.create("Alice Example", "a@x.com", "password1")

    with pytest.raises(ValidationError, match="Email already exists"):
        await users.create("Alice Again", "A@x.com", "password2")


@pytest.mark.parametrize(
    "full_name, email, password",
    [
        ("Al", "a@x.com", "password1"),
        ("Alice Example", "not-an-email", "password1"),
        ("Alice Example", "a@x.com", "short"),
    ],
)
async def test_create_validates_input(users, full_name, email, password):
    with pytest.raises(ValidationError):
        await users.create(full_name, email, password)


async def test_authenticate(users):
    await users.create("Alice Example", "a@x.com", "password1")

    assert (await users.authenticate("a@x.com", "password1")).email == "a@x.com"
    assert await users.authenticate("a@x.com", "wrong") is None
    assert await users.authenticate("b@x.com", "password1") is None


async def test_change_password(users):
    user = await users.create("Alice Example", "a@x.com", "password1")

    with pytest.raises(ValidationError, match="Invalid old password"):
        await users.change_password(user.id, "wrong-password", "password2")

    await users.change_password(user.id, "password1", "password2")

    assert await users.authenticate("a@x.com", "password2") is not None
    assert await users.authenticate("a@x.com", "password1") is None


async def test_update_profile(users):
    user = await users.create("Alice Example", "a@x.com", "password1")
    avatar = MediaRef(public_id="lms/avatars/1.png", secure_url="http://media/1.png")

    updated = await users.update_profile(user.id, full_name="Alice Updated", avatar=avatar)

    assert updated.full_name == "alice updated"
    assert updated.avatar == avatar


async def test_unknown_user_is_not_found(users):
    with pytest.raises(NotFoundError):
        await users.get_required("64b7f0c2a1b2c3d4e5f60718")
    with pytest.raises(NotFoundError):
        await users.get_required("not-an-object-id")


async def test_password_hashing_runs_off_the_event_loop(users, monkeypatch):
    loop_thread = threading.current_thread()
    seen = []
    hash_password, verify_password = users.hasher.hash, users.hasher.verify

    def recording_hash(password):
        seen.append(threading.current_thread())
        return hash_password(password)

    def recording_verify(password, password_hash):
        seen.append(threading.current_thread())
        return verify_password(password, password_hash)

    monkeypatch.setattr(users.hasher, "hash", recording_hash)
    monkeypatch.setattr(users.hasher, "verify", recording_verify)

    await users.create("Alice Example", "a@x.com", "password1")
    assert await users.authenticate("a@x.com", "password1") is not None

    assert len(seen) == 2
    assert all(thread is not loop_thread for thread in seen)
