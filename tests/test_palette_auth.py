#!/usr/bin/env python3
"""Unit tests for the Palette auth service and session tokens."""

import asyncio
import json
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from palette.auth import AuthService
from palette.auth import tokens
from palette.config import USERS_KEY, PaletteConfig
from palette.errors import (
    AuthError,
    InvalidCredentials,
    UsernameGenerationExhausted,
    UsernameTaken,
)
from palette.latency import AUTH_DELAY, no_delay
from palette.models import User
from palette.storage import MemoryStore

SECRET = "test-secret-with-enough-length-for-hs256"


class RecordingDelay:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FixedRandom:
    """Random source whose randint always returns the same value."""

    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        return self.value


def make_auth(store=None, **kwargs):
    kwargs.setdefault("delay", no_delay)
    kwargs.setdefault("bcrypt_rounds", 4)
    kwargs.setdefault("jwt_secret", SECRET)
    return AuthService(store if store is not None else MemoryStore(), **kwargs)


def stored_users(store):
    return json.loads(store.get(USERS_KEY))


class TestLoginSignup:
    @pytest.mark.asyncio
    async def test_signup_then_login(self):
        auth = make_auth()
        assert await auth.signup("alice", "pw1") == User("alice")
        assert await auth.login("alice", "pw1") == User("alice")

    @pytest.mark.asyncio
    async def test_wrong_password(self):
        auth = make_auth()
        await auth.signup("alice", "pw1")
        with pytest.raises(InvalidCredentials, match="Invalid username or password."):
            await auth.login("alice", "wrong")

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        auth = make_auth()
        with pytest.raises(InvalidCredentials):
            await auth.login("nobody", "pw")

    @pytest.mark.asyncio
    async def test_duplicate_signup_keeps_first_password(self):
        auth = make_auth()
        await auth.signup("alice", "pw1")
        with pytest.raises(UsernameTaken, match="Username already exists."):
            await auth.signup("alice", "pw2")

        assert await auth.login("alice", "pw1") == User("alice")
        with pytest.raises(InvalidCredentials):
            await auth.login("alice", "pw2")

    @pytest.mark.asyncio
    async def test_passwords_are_hashed_by_default(self):
        store = MemoryStore()
        auth = make_auth(store)
        await auth.signup("alice", "pw1")
        stored = stored_users(store)["alice"]
        assert stored != "pw1"
        assert stored.startswith("$2")

    @pytest.mark.asyncio
    async def test_plaintext_mode_matches_legacy_blob(self):
        store = MemoryStore()
        auth = make_auth(store, hash_passwords=False)
        await auth.signup("alice", "pw1")
        assert stored_users(store) == {"alice": "pw1"}
        assert await auth.login("alice", "pw1") == User("alice")

    @pytest.mark.asyncio
    async def test_plaintext_blob_rejected_in_hash_mode(self):
        store = MemoryStore({USERS_KEY: json.dumps({"alice": "pw1"})})
        auth = make_auth(store)
        with pytest.raises(InvalidCredentials):
            await auth.login("alice", "pw1")

    @pytest.mark.asyncio
    async def test_long_password_truncated_consistently(self):
        auth = make_auth()
        password = "x" * 100
        await auth.signup("alice", password)
        assert await auth.login("alice", password) == User("alice")

    @pytest.mark.asyncio
    async def test_signup_preserves_other_users(self):
        store = MemoryStore()
        auth = make_auth(store, hash_passwords=False)
        await auth.signup("alice", "pw1")
        await auth.signup("bob", "pw2")
        assert stored_users(store) == {"alice": "pw1", "bob": "pw2"}

    @pytest.mark.asyncio
    async def test_non_string_entries_stay_registered(self):
        store = MemoryStore({USERS_KEY: json.dumps({"alice": 12345, "carol": 7, "erin": None})})
        auth = make_auth(store, hash_passwords=False)

        with pytest.raises(UsernameTaken):
            await auth.signup("alice", "hijack")
        with pytest.raises(UsernameTaken):
            await auth.signup("erin", "hijack")
        with pytest.raises(InvalidCredentials):
            await auth.login("alice", "12345")

        await auth.signup("dave", "pw")
        assert stored_users(store) == {"alice": 12345, "carol": 7, "erin": None, "dave": "pw"}

    @pytest.mark.asyncio
    async def test_concurrent_signups_register_once(self):
        store = MemoryStore()
        auth = make_auth(store)
        results = await asyncio.gather(
            auth.signup("alice", "pw1"),
            auth.signup("alice", "pw2"),
            auth.signup("bob", "pw3"),
            return_exceptions=True,
        )
        assert results[0] == User("alice")
        assert isinstance(results[1], UsernameTaken)
        assert results[2] == User("bob")
        assert sorted(stored_users(store)) == ["alice", "bob"]
        assert await auth.login("alice", "pw1") == User("alice")

    @pytest.mark.asyncio
    async def test_google_signup_keeps_non_string_entries(self):
        store = MemoryStore({USERS_KEY: json.dumps({"carol": 7})})
        auth = make_auth(store, hash_passwords=False, rng=FixedRandom(2468))
        await auth.google_signup()
        assert stored_users(store)["carol"] == 7

    @pytest.mark.asyncio
    async def test_corrupt_blob_reads_as_empty(self):
        store = MemoryStore({USERS_KEY: "{oops"})
        auth = make_auth(store)
        with pytest.raises(InvalidCredentials):
            await auth.login("alice", "pw1")
        await auth.signup("alice", "pw1")
        assert await auth.login("alice", "pw1") == User("alice")

    @pytest.mark.asyncio
    async def test_delay_awaited_for_each_operation(self):
        delay = RecordingDelay()
        auth = make_auth(delay=delay, rng=FixedRandom(1234))
        await auth.signup("alice", "pw1")
        await auth.login("alice", "pw1")
        await auth.google_signup()
        assert delay.calls == [AUTH_DELAY] * 3


class TestGoogleSignup:
    @pytest.mark.asyncio
    async def test_generates_synthetic_username(self):
        store = MemoryStore()
        auth = make_auth(store, hash_passwords=False, rng=FixedRandom(4321), clock=lambda: 1700000000000)
        user = await auth.google_signup()
        assert user == User("google_user_4321")
        assert stored_users(store)["google_user_4321"] == "simulated_google_password_1700000000000"

    @pytest.mark.asyncio
    async def test_username_in_range(self):
        auth = make_auth(rng=random.Random(7))
        user = await auth.google_signup()
        suffix = user.username.removeprefix("google_user_")
        assert len(suffix) == 4
        assert 1000 <= int(suffix) <= 9999

    @pytest.mark.asyncio
    async def test_retries_on_collision(self):
        class Sequence:
            def __init__(self, values):
                self.values = list(values)

            def randint(self, a, b):
                return self.values.pop(0)

        auth = make_auth(rng=Sequence([1111, 1111, 2222]))
        first = await auth.google_signup()
        second = await auth.google_signup()
        assert first.username == "google_user_1111"
        assert second.username == "google_user_2222"

    @pytest.mark.asyncio
    async def test_exhausted_after_ten_collisions(self):
        rng = FixedRandom(5555)
        store = MemoryStore({USERS_KEY: json.dumps({"google_user_5555": "x"})})
        auth = make_auth(store, rng=rng)
        with pytest.raises(UsernameGenerationExhausted, match="unique Google username") as exc_info:
            await auth.google_signup()
        assert exc_info.value.attempts == 10
        assert stored_users(store) == {"google_user_5555": "x"}


class TestManagementHelpers:
    @pytest.mark.asyncio
    async def test_list_and_remove(self):
        auth = make_auth()
        await auth.signup("bob", "pw")
        await auth.signup("alice", "pw")
        assert auth.list_usernames() == ["alice", "bob"]

        assert auth.remove_user("bob") is True
        assert auth.remove_user("bob") is False
        assert auth.list_usernames() == ["alice"]

    def test_remove_keeps_non_string_entries(self):
        store = MemoryStore({USERS_KEY: json.dumps({"alice": "pw", "carol": 7, "erin": None})})
        auth = make_auth(store, hash_passwords=False)
        assert auth.list_usernames() == ["alice"]

        assert auth.remove_user("erin") is True
        assert auth.remove_user("alice") is True
        assert stored_users(store) == {"carol": 7}


class TestTokens:
    def test_create_and_verify(self):
        token = tokens.create_token("alice", SECRET)
        assert tokens.verify_token(token, SECRET) == "alice"

    def test_wrong_secret(self):
        token = tokens.create_token("alice", SECRET)
        assert tokens.verify_token(token, "another-secret-of-sufficient-length") is None

    def test_expired(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"username": "alice", "iat": past, "exp": past + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        assert tokens.verify_token(token, SECRET) is None

    def test_malformed(self):
        assert tokens.verify_token("not-a-token", SECRET) is None

    def test_missing_username_claim(self):
        token = jwt.encode({"sub": "alice"}, SECRET, algorithm="HS256")
        assert tokens.verify_token(token, SECRET) is None

    def test_service_round_trip(self):
        auth = make_auth()
        token = auth.create_token(User("alice"))
        assert auth.verify_token(token) == User("alice")
        assert auth.verify_token(token + "x") is None

    def test_service_without_secret(self):
        auth = make_auth(jwt_secret="")
        with pytest.raises(AuthError, match="jwt_secret"):
            auth.create_token(User("alice"))
        assert auth.verify_token("anything") is None


class TestFromConfig:
    @pytest.mark.asyncio
    async def test_uses_config_values(self):
        store = MemoryStore()
        config = PaletteConfig(
            users_key="custom-users",
            simulate_latency=False,
            hash_passwords=False,
            bcrypt_rounds=4,
        )
        auth = AuthService.from_config(config, store)
        await auth.signup("alice", "pw1")
        assert json.loads(store.get("custom-users")) == {"alice": "pw1"}
        assert store.get(USERS_KEY) is None
