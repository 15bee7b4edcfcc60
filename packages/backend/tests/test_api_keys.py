"""API key lifecycle + credential tests (service level).

Learn: Tests cover:
1. Token generation (256-bit hex, never repeats)
2. Issue → validate round trip, one live key per user
3. Rotation invalidates the previous key
4. Revocation is idempotent
5. Rotation is all-or-nothing when the insert fails
6. Password verification
"""

import re

import pytest
from sqlalchemy import func, select

from msgqueue.auth import api_keys as api_keys_module
from msgqueue.auth.api_keys import APIKeyManager
from msgqueue.auth.credentials import CredentialStore
from msgqueue.auth.hashing import digest, generate_token
from msgqueue.auth.roles import Role
from msgqueue.db.models import ApiKey
from msgqueue.errors import AuthError, StorageError


async def _key_count(db_session, user_id: int) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(ApiKey).where(ApiKey.user_id == user_id)
    )
    return result.scalar_one()


# ═══════════════════════════════════════════════════════════
# Token generation
# ═══════════════════════════════════════════════════════════


def test_generate_token_is_256_bit_hex():
    token = generate_token()
    assert re.fullmatch(r"[0-9a-f]{64}", token)


def test_generate_token_is_unique():
    assert len({generate_token() for _ in range(100)}) == 100


def test_digest_is_hex_sha256():
    assert digest("abc") == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


# ═══════════════════════════════════════════════════════════
# Issue / validate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_issue_and_validate(db_session, make_user):
    user_id = await make_user("alice")
    keys = APIKeyManager(db_session)

    token = await keys.issue_key(user_id, Role.USER)

    assert await keys.validate_token(token) is Role.USER
    assert await _key_count(db_session, user_id) == 1


@pytest.mark.asyncio
async def test_raw_token_is_not_stored(db_session, make_user):
    user_id = await make_user("alice")
    token = await APIKeyManager(db_session).issue_key(user_id, Role.USER)

    result = await db_session.execute(select(ApiKey.key_hash))
    stored = result.scalars().all()
    assert stored == [digest(token)]
    assert token not in stored


@pytest.mark.asyncio
async def test_admin_role_round_trips(db_session, make_user):
    user_id = await make_user("root")
    keys = APIKeyManager(db_session)
    token = await keys.issue_key(user_id, Role.ADMIN)
    assert await keys.validate_token(token) is Role.ADMIN


@pytest.mark.asyncio
async def test_reissue_invalidates_previous_key(db_session, make_user):
    """After a second issuance only the newest key works."""
    user_id = await make_user("alice")
    keys = APIKeyManager(db_session)

    t1 = await keys.issue_key(user_id, Role.USER)
    t2 = await keys.issue_key(user_id, Role.USER)

    assert t1 != t2
    with pytest.raises(AuthError):
        await keys.validate_token(t1)
    assert await keys.validate_token(t2) is Role.USER
    assert await _key_count(db_session, user_id) == 1


@pytest.mark.asyncio
async def test_keys_are_per_user(db_session, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    keys = APIKeyManager(db_session)

    ta = await keys.issue_key(alice, Role.USER)
    tb = await keys.issue_key(bob, Role.USER)
    await keys.issue_key(alice, Role.USER)  # rotate alice only

    with pytest.raises(AuthError):
        await keys.validate_token(ta)
    assert await keys.validate_token(tb) is Role.USER


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "not-a-key", "0" * 64, "Bearer abc"])
async def test_validate_unknown_token(db_session, token):
    with pytest.raises(AuthError):
        await APIKeyManager(db_session).validate_token(token)


@pytest.mark.asyncio
async def test_validate_rejects_unknown_stored_role(db_session, make_user):
    """A role outside the enum never grants access."""
    user_id = await make_user("mallory")
    db_session.add(ApiKey(key_hash=digest("raw"), user_id=user_id, role="superuser"))
    await db_session.commit()

    with pytest.raises(AuthError):
        await APIKeyManager(db_session).validate_token("raw")


# ═══════════════════════════════════════════════════════════
# Revoke
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revoke(db_session, make_user):
    user_id = await make_user("alice")
    keys = APIKeyManager(db_session)
    token = await keys.issue_key(user_id, Role.USER)

    await keys.revoke_token(token)

    with pytest.raises(AuthError):
        await keys.validate_token(token)
    assert await _key_count(db_session, user_id) == 0


@pytest.mark.asyncio
async def test_revoke_is_idempotent(db_session, make_user):
    user_id = await make_user("alice")
    keys = APIKeyManager(db_session)
    token = await keys.issue_key(user_id, Role.USER)

    await keys.revoke_token(token)
    await keys.revoke_token(token)
    await keys.revoke_token("never-issued")


# ═══════════════════════════════════════════════════════════
# Atomic rotation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_failed_issue_keeps_old_key(db_session, make_user, monkeypatch):
    """If the insert fails, the delete of the old key is rolled back too.

    Learn: We force a unique-violation on key_hash by making the generator
    hand alice bob's token. The delete+insert pair must vanish as a unit.
    """
    alice = await make_user("alice")
    bob = await make_user("bob")
    keys = APIKeyManager(db_session)
    alice_token = await keys.issue_key(alice, Role.USER)
    bob_token = await keys.issue_key(bob, Role.USER)

    monkeypatch.setattr(api_keys_module, "generate_token", lambda: bob_token)

    with pytest.raises(StorageError):
        await keys.issue_key(alice, Role.USER)

    assert await keys.validate_token(alice_token) is Role.USER
    assert await keys.validate_token(bob_token) is Role.USER
    assert await _key_count(db_session, alice) == 1


@pytest.mark.asyncio
async def test_issue_for_unknown_user_is_storage_error(db_session):
    with pytest.raises(StorageError):
        await APIKeyManager(db_session).issue_key(9999, Role.USER)


# ═══════════════════════════════════════════════════════════
# Credentials
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_authenticate_success(db_session, make_user):
    user_id = await make_user("alice", "pw1")
    assert await CredentialStore(db_session).authenticate("alice", "pw1") == user_id


@pytest.mark.asyncio
async def test_authenticate_wrong_password(db_session, make_user):
    await make_user("alice", "pw1")
    with pytest.raises(AuthError):
        await CredentialStore(db_session).authenticate("alice", "pw2")


@pytest.mark.asyncio
async def test_authenticate_unknown_user(db_session):
    with pytest.raises(AuthError):
        await CredentialStore(db_session).authenticate("nobody", "pw1")


@pytest.mark.asyncio
async def test_authenticate_has_no_side_effects(db_session, make_user):
    user_id = await make_user("alice", "pw1")
    await CredentialStore(db_session).authenticate("alice", "pw1")
    assert await _key_count(db_session, user_id) == 0
