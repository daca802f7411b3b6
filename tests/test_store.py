"""
Tests for the storage helpers (users, sessions, password resets).
"""

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from unittest.mock import patch

from auth.errors import Conflict, Internal, NotFound
from database import helpers
from database.models import User


def _now():
    return datetime.now(timezone.utc)


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


class TestTranslateDbError:
    def test_postgres_unique_violation_is_conflict(self):
        exc = IntegrityError("INSERT …", {}, _PgError("23505"))
        err = helpers.translate_db_error(exc, "failed", "email already exists")
        assert isinstance(err, Conflict)
        assert err.message == "email already exists"

    def test_postgres_fk_violation_is_internal(self):
        exc = IntegrityError("INSERT …", {}, _PgError("23503"))
        err = helpers.translate_db_error(exc, "failed to create session")
        assert isinstance(err, Internal)
        assert err.message == "failed to create session"
        assert "23503" in err.detail

    def test_sqlite_unique_violation_is_conflict(self):
        orig = sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
        assert isinstance(helpers.translate_db_error(IntegrityError("x", {}, orig), "failed"), Conflict)

    def test_operational_error_is_internal(self):
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))
        assert isinstance(helpers.translate_db_error(exc, "failed"), Internal)


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "hash")
        assert user.id is not None
        fetched = await helpers.get_user_by_email(db, "a@b.com")
        assert fetched.id == user.id
        assert (await helpers.get_user_by_id(db, user.id)).email == "a@b.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_is_conflict(self, db):
        await helpers.create_user(db, "a@b.com", "Al", "hash")
        with pytest.raises(Conflict, match="email already exists"):
            await helpers.create_user(db, "a@b.com", "Other", "hash2")

    @pytest.mark.asyncio
    async def test_unknown_user(self, db):
        with pytest.raises(NotFound):
            await helpers.get_user_by_email(db, "nobody@b.com")
        with pytest.raises(NotFound):
            await helpers.get_user_by_id(db, 999)

    @pytest.mark.asyncio
    async def test_update_only_given_fields(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "hash")
        updated = await helpers.update_user(db, user.id, name="Alice")
        assert updated.name == "Alice"
        assert updated.email == "a@b.com"

    @pytest.mark.asyncio
    async def test_update_to_taken_email_is_conflict(self, db):
        await helpers.create_user(db, "a@b.com", "Al", "hash")
        other = await helpers.create_user(db, "c@d.com", "Cy", "hash")
        with pytest.raises(Conflict):
            await helpers.update_user(db, other.id, email="a@b.com")

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, db):
        with pytest.raises(NotFound):
            await helpers.update_user(db, 12345, name="Ghost")


class TestSessions:
    @pytest.mark.asyncio
    async def test_token_resolves_to_owner(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "hash")
        row = await helpers.create_session(db, user.id, _now() + timedelta(hours=1))
        assert len(row.token) == 64
        resolved = await helpers.get_user_by_session_token(db, row.token)
        assert resolved.id == user.id

    @pytest.mark.asyncio
    async def test_expired_and_unknown_tokens_fail_identically(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "hash")
        expired = await helpers.create_session(db, user.id, _now() - timedelta(seconds=1))

        with pytest.raises(NotFound) as expired_err:
            await helpers.get_user_by_session_token(db, expired.token)
        with pytest.raises(NotFound) as unknown_err:
            await helpers.get_user_by_session_token(db, "0" * 64)
        assert expired_err.value.message == unknown_err.value.message

    @pytest.mark.asyncio
    async def test_each_session_gets_a_fresh_token(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "hash")
        expires = _now() + timedelta(hours=1)
        a = await helpers.create_session(db, user.id, expires)
        b = await helpers.create_session(db, user.id, expires)
        assert a.token != b.token


class TestPasswordResets:
    @pytest.mark.asyncio
    async def test_consume_updates_hash_once(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "old-hash")
        user_id = user.id
        reset = await helpers.create_password_reset(db, user_id, _now() + timedelta(minutes=30))
        token = reset.token

        updated = await helpers.consume_password_reset(db, token, "new-hash")
        assert updated.id == user_id
        assert updated.password_hash == "new-hash"

        with pytest.raises(NotFound):
            await helpers.consume_password_reset(db, token, "newer-hash")
        assert (await helpers.get_user_by_id(db, user_id)).password_hash == "new-hash"

    @pytest.mark.asyncio
    async def test_expired_token_not_consumed(self, db):
        user = await helpers.create_user(db, "a@b.com", "Al", "old-hash")
        user_id = user.id
        reset = await helpers.create_password_reset(db, user_id, _now() - timedelta(seconds=1))
        token = reset.token
        with pytest.raises(NotFound):
            await helpers.consume_password_reset(db, token, "new-hash")
        assert (await helpers.get_user_by_id(db, user_id)).password_hash == "old-hash"

    @pytest.mark.asyncio
    async def test_failure_rolls_back_password_and_token(self, db, session_factory):
        user = await helpers.create_user(db, "a@b.com", "Al", "old-hash")
        user_id = user.id
        reset = await helpers.create_password_reset(db, user_id, _now() + timedelta(minutes=30))
        token = reset.token

        def _broken_delete(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        with patch("database.helpers.delete", _broken_delete):
            with pytest.raises(Internal, match="failed to reset password"):
                await helpers.consume_password_reset(db, token, "new-hash")

        # A fresh session sees the committed state only.
        async with session_factory() as fresh:
            assert (await helpers.get_user_by_id(fresh, user_id)).password_hash == "old-hash"
            restored = await helpers.consume_password_reset(fresh, token, "new-hash")
            assert restored.password_hash == "new-hash"

    @pytest.mark.asyncio
    async def test_concurrent_consumers_only_one_wins(self, db, session_factory):
        user = await helpers.create_user(db, "a@b.com", "Al", "old-hash")
        user_id = user.id
        reset = await helpers.create_password_reset(db, user_id, _now() + timedelta(minutes=30))
        token = reset.token

        async def consume(new_hash):
            async with session_factory() as session:
                return await helpers.consume_password_reset(session, token, new_hash)

        results = await asyncio.gather(
            consume("hash-a"), consume("hash-b"), return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, User)]
        losers = [r for r in results if isinstance(r, NotFound)]
        assert len(winners) == 1, results
        assert len(losers) == 1, results

        async with session_factory() as fresh:
            stored = await helpers.get_user_by_id(fresh, user_id)
            assert stored.password_hash == winners[0].password_hash
            with pytest.raises(NotFound):
                await helpers.consume_password_reset(fresh, token, "hash-c")
