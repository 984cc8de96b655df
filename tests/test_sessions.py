from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.models import Company, User, UserSession
from app.roles import Role
from app.services.sessions import DatabaseSessionStore, InMemorySessionStore, SessionManager


class _Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class InMemorySessionManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
        self.store = InMemorySessionStore()
        self.sessions = SessionManager(self.store, ttl=timedelta(days=7), clock=self.clock)

    def test_token_is_64_hex_chars_and_unique(self) -> None:
        first = self.sessions.create_session(1)
        second = self.sessions.create_session(1)
        self.assertEqual(len(first), 64)
        int(first, 16)
        self.assertNotEqual(first, second)

    def test_resolves_until_expiry(self) -> None:
        token = self.sessions.create_session(42)
        self.clock.advance(timedelta(days=6, hours=23))
        self.assertEqual(self.sessions.resolve_session(token), 42)

    def test_expiry_boundary_is_exclusive(self) -> None:
        token = self.sessions.create_session(42)
        self.clock.advance(timedelta(days=7))
        self.assertIsNone(self.sessions.resolve_session(token))

    def test_expired_session_is_purged_and_stays_gone(self) -> None:
        token = self.sessions.create_session(42)
        self.clock.advance(timedelta(days=8))
        self.assertIsNone(self.sessions.resolve_session(token))
        self.assertIsNone(self.store.get(token))
        self.assertIsNone(self.sessions.resolve_session(token))

    def test_resolving_does_not_slide_expiry(self) -> None:
        token = self.sessions.create_session(42)
        self.clock.advance(timedelta(days=6))
        self.assertEqual(self.sessions.resolve_session(token), 42)
        self.clock.advance(timedelta(days=1, seconds=1))
        self.assertIsNone(self.sessions.resolve_session(token))

    def test_destroy_is_idempotent(self) -> None:
        token = self.sessions.create_session(42)
        self.sessions.destroy_session(token)
        self.sessions.destroy_session(token)
        self.sessions.destroy_session("never-issued")
        self.assertIsNone(self.sessions.resolve_session(token))

    def test_unknown_token_resolves_to_none(self) -> None:
        self.assertIsNone(self.sessions.resolve_session("f" * 64))

    def test_destroy_user_sessions_only_touches_that_user(self) -> None:
        mine = [self.sessions.create_session(1), self.sessions.create_session(1)]
        other = self.sessions.create_session(2)
        self.assertEqual(self.sessions.destroy_user_sessions(1), 2)
        for token in mine:
            self.assertIsNone(self.sessions.resolve_session(token))
        self.assertEqual(self.sessions.resolve_session(other), 2)

    def test_purge_expired_counts_removed_sessions(self) -> None:
        old = self.sessions.create_session(1)
        self.clock.advance(timedelta(days=5))
        fresh = self.sessions.create_session(2)
        self.clock.advance(timedelta(days=3))
        self.assertEqual(self.sessions.purge_expired(), 1)
        self.assertIsNone(self.store.get(old))
        self.assertIsNotNone(self.store.get(fresh))


class DatabaseSessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=self.engine)
        self.db = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)()
        company = Company(name="Acme", code="ACME")
        self.db.add(company)
        self.db.flush()
        user = User(email="sam@acme.com", company_id=company.id, password_hash="x", name="Sam", role=Role.STAFF)
        self.db.add(user)
        self.db.commit()
        self.user_id = user.id

        self.clock = _Clock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
        self.sessions = SessionManager(DatabaseSessionStore(self.db), ttl=timedelta(days=7), clock=self.clock)

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def test_round_trip_and_expiry(self) -> None:
        token = self.sessions.create_session(self.user_id)
        self.assertEqual(self.sessions.resolve_session(token), self.user_id)

        self.clock.advance(timedelta(days=7, seconds=1))
        self.assertIsNone(self.sessions.resolve_session(token))
        self.assertIsNone(self.db.scalar(select(UserSession).where(UserSession.token == token)))

    def test_logout_removes_row(self) -> None:
        token = self.sessions.create_session(self.user_id)
        self.sessions.destroy_session(token)
        self.sessions.destroy_session(token)
        self.assertIsNone(self.sessions.resolve_session(token))

    def test_purge_expired(self) -> None:
        self.sessions.create_session(self.user_id)
        self.clock.advance(timedelta(days=4))
        keep = self.sessions.create_session(self.user_id)
        self.clock.advance(timedelta(days=4))
        self.assertEqual(self.sessions.purge_expired(), 1)
        self.assertEqual(self.sessions.resolve_session(keep), self.user_id)


if __name__ == "__main__":
    unittest.main()
