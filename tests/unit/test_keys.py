"""Unit tests for cosign/auth/keys.py - KeyService against the in-memory store.

Verifies:
  - issue → verify round trip; token shape {16 hex}.{64 hex}
  - any single-character mutation of an issued token fails verification
  - tokens with zero or more than one separator fail verification
  - revoke makes a previously valid token fail
  - bootstrap inserts into an empty store only, and validates the token shape
  - concurrent bootstraps: the accepted race yields one duplicate-id error or
    one redundant key
  - plaintext secrets are never stored
  - last_used_at is updated on successful verification only
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone

import pytest

from cosign.auth.keys import KeyService, parse_token
from cosign.errors import InvalidTokenFormatError, KeyNotFoundError, StorageError
from cosign.storage.memory import MemoryKeyStore

pytestmark = pytest.mark.asyncio

TOKEN_PATTERN = re.compile(r"^[0-9a-f]{16}\.[0-9a-f]{64}$")

BOOTSTRAP = "default.0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def store() -> MemoryKeyStore:
    return MemoryKeyStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store: MemoryKeyStore, clock: FakeClock) -> KeyService:
    return KeyService(store, clock=clock)


# ─── parse_token ──────────────────────────────────────────────────────────────


class TestParseToken:
    def test_splits_id_and_secret(self) -> None:
        assert parse_token("abc.def") == ("abc", "def")

    @pytest.mark.parametrize(
        "token",
        ["", "nodot", "a.b.c", ".secret", "id.", ".", "a..b"],
    )
    def test_rejects_malformed(self, token: str) -> None:
        assert parse_token(token) is None


# ─── issue / verify ───────────────────────────────────────────────────────────


class TestIssueAndVerify:
    async def test_issued_token_verifies(self, service: KeyService) -> None:
        token = await service.issue_key()
        assert await service.verify(token) is True

    async def test_token_format(self, service: KeyService) -> None:
        token = await service.issue_key()
        assert TOKEN_PATTERN.match(token), token

    async def test_tokens_are_unique(self, service: KeyService) -> None:
        tokens = {await service.issue_key() for _ in range(20)}
        assert len(tokens) == 20

    async def test_secret_never_stored(self, service: KeyService, store: MemoryKeyStore) -> None:
        token = await service.issue_key()
        key_id, secret = token.split(".")
        record = await store.fetch(key_id)
        assert record is not None
        assert secret.encode() not in record.hash
        assert secret not in repr(record)
        assert len(record.salt) == 16
        assert len(record.hash) == 32

    async def test_single_character_mutation_fails(self, service: KeyService) -> None:
        token = await service.issue_key()
        for index, char in enumerate(token):
            if char == ".":
                continue
            replacement = "0" if char != "0" else "1"
            mutated = token[:index] + replacement + token[index + 1 :]
            assert await service.verify(mutated) is False, f"mutation at {index} accepted"

    async def test_truncated_secret_fails(self, service: KeyService) -> None:
        token = await service.issue_key()
        assert await service.verify(token[:-1]) is False

    async def test_extra_separator_fails(self, service: KeyService) -> None:
        token = await service.issue_key()
        assert await service.verify(token + ".extra") is False

    async def test_no_separator_fails(self, service: KeyService) -> None:
        token = await service.issue_key()
        assert await service.verify(token.replace(".", "")) is False

    @pytest.mark.parametrize("token", ["", "garbage", "unknown.secret", "\x00.\x00"])
    async def test_garbage_is_false_not_error(self, service: KeyService, token: str) -> None:
        assert await service.verify(token) is False

    async def test_unicode_secret_does_not_raise(self, service: KeyService) -> None:
        token = await service.issue_key()
        key_id = token.split(".")[0]
        assert await service.verify(f"{key_id}.ééé") is False


# ─── last_used_at ─────────────────────────────────────────────────────────────


class TestLastUsed:
    async def test_verify_records_last_used(
        self, service: KeyService, clock: FakeClock
    ) -> None:
        token = await service.issue_key()
        clock.advance(60)
        await service.verify(token)

        [info] = await service.list()
        assert info.last_used_at == clock.now

    async def test_failed_verify_does_not_touch(self, service: KeyService) -> None:
        token = await service.issue_key()
        await service.verify(token[:-1] + ("0" if token[-1] != "0" else "1"))

        [info] = await service.list()
        assert info.last_used_at is None


# ─── revoke / list ────────────────────────────────────────────────────────────


class TestRevoke:
    async def test_revoked_token_fails(self, service: KeyService) -> None:
        token = await service.issue_key()
        await service.revoke(token.split(".")[0])
        assert await service.verify(token) is False

    async def test_revoke_unknown_raises(self, service: KeyService) -> None:
        with pytest.raises(KeyNotFoundError):
            await service.revoke("doesnotexist")

    async def test_revoke_leaves_other_keys(self, service: KeyService) -> None:
        first = await service.issue_key()
        second = await service.issue_key()
        await service.revoke(first.split(".")[0])
        assert await service.verify(second) is True


class TestList:
    async def test_newest_first_without_secrets(
        self, service: KeyService, clock: FakeClock
    ) -> None:
        older = await service.issue_key()
        clock.advance(1)
        newer = await service.issue_key()

        infos = await service.list()
        assert [i.id for i in infos] == [newer.split(".")[0], older.split(".")[0]]
        assert set(infos[0].to_dict()) == {"id", "created_at", "last_used_at"}

    async def test_empty(self, service: KeyService) -> None:
        assert await service.list() == []


# ─── bootstrap ────────────────────────────────────────────────────────────────


class TestBootstrap:
    async def test_inserts_into_empty_store(self, service: KeyService) -> None:
        assert await service.bootstrap(BOOTSTRAP) is True
        assert await service.verify(BOOTSTRAP) is True

    async def test_second_call_is_noop(
        self, service: KeyService, store: MemoryKeyStore
    ) -> None:
        assert await service.bootstrap(BOOTSTRAP) is True
        assert await service.bootstrap("other.token") is False
        assert await store.count() == 1
        assert await service.verify("other.token") is False

    async def test_skipped_when_keys_exist(self, service: KeyService) -> None:
        await service.issue_key()
        assert await service.bootstrap(BOOTSTRAP) is False
        assert await service.verify(BOOTSTRAP) is False

    @pytest.mark.parametrize("token", ["nodot", "a.b.c", ".secret", "id."])
    async def test_malformed_token_rejected(self, service: KeyService, token: str) -> None:
        with pytest.raises(InvalidTokenFormatError):
            await service.bootstrap(token)

    async def test_malformed_token_ignored_when_not_empty(self, service: KeyService) -> None:
        await service.issue_key()
        assert await service.bootstrap("nodot") is False


class SlowCountStore(MemoryKeyStore):
    """Reads the count, then yields before returning it (a stale read)."""

    async def count(self) -> int:
        n = len(self._records)
        await asyncio.sleep(0)
        return n


class TestBootstrapRace:
    """Concurrent cold starts racing bootstrap.

    The check-then-insert is not transactional and the race is accepted: both
    callers may see an empty store. The same token then collides on its id
    (StorageError); different tokens leave at most one redundant key.
    """

    async def test_same_token_duplicate_id_surfaces_as_storage_error(self) -> None:
        store = SlowCountStore()
        service = KeyService(store)

        results = await asyncio.gather(
            service.bootstrap(BOOTSTRAP),
            service.bootstrap(BOOTSTRAP),
            return_exceptions=True,
        )

        assert results.count(True) == 1
        assert sum(isinstance(r, StorageError) for r in results) == 1
        assert await store.count() == 1
        assert await service.verify(BOOTSTRAP) is True

    async def test_different_tokens_leave_one_redundant_key(self) -> None:
        store = SlowCountStore()
        service = KeyService(store)
        other = "replica." + "f" * 64

        results = await asyncio.gather(service.bootstrap(BOOTSTRAP), service.bootstrap(other))

        assert results == [True, True]
        assert await store.count() == 2
        assert await service.verify(BOOTSTRAP) is True
        assert await service.verify(other) is True


# ─── storage failures ─────────────────────────────────────────────────────────


class BrokenStore(MemoryKeyStore):
    async def fetch(self, key_id: str):
        raise StorageError("disk on fire")


async def test_verify_propagates_storage_error() -> None:
    service = KeyService(BrokenStore())
    with pytest.raises(StorageError):
        await service.verify("abc.def")


async def test_verify_malformed_does_not_touch_store() -> None:
    service = KeyService(BrokenStore())
    assert await service.verify("malformed") is False
