"""Opaque bearer-token sessions.

A session is a random token mapped to a user id and an absolute expiry. Tokens
never slide: the only read path is :meth:`SessionManager.resolve_session`,
which treats a token as valid iff it exists and ``expires_at > now`` and
purges it otherwise.

Two stores are provided. :class:`DatabaseSessionStore` keeps sessions in the
``sessions`` table and is the default. :class:`InMemorySessionStore` keeps them
in process memory; sessions are lost on restart and are not shared between
worker processes, so it is only suitable for tests and single-process
deployments.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import UserSession
from app.settings import get_settings, uses_memory_sessions

logger = logging.getLogger("app.sessions")

SESSION_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class SessionRecord:
    token: str
    user_id: int
    expires_at: datetime


class SessionStore(Protocol):
    def save(self, record: SessionRecord) -> None: ...

    def get(self, token: str) -> SessionRecord | None: ...

    def delete(self, token: str) -> None: ...

    def delete_for_user(self, user_id: int) -> int: ...

    def purge_expired(self, now: datetime) -> int: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, SessionRecord] = {}

    def save(self, record: SessionRecord) -> None:
        with self._lock:
            self._records[record.token] = record

    def get(self, token: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(token)

    def delete(self, token: str) -> None:
        with self._lock:
            self._records.pop(token, None)

    def delete_for_user(self, user_id: int) -> int:
        with self._lock:
            tokens = [token for token, record in self._records.items() if record.user_id == user_id]
            for token in tokens:
                del self._records[token]
        return len(tokens)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [token for token, record in self._records.items() if record.expires_at <= now]
            for token in expired:
                del self._records[token]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class DatabaseSessionStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def save(self, record: SessionRecord) -> None:
        self._db.add(
            UserSession(
                token=record.token,
                user_id=record.user_id,
                expires_at=record.expires_at,
            )
        )
        self._db.commit()

    def get(self, token: str) -> SessionRecord | None:
        row = self._db.scalar(select(UserSession).where(UserSession.token == token))
        if row is None:
            return None
        return SessionRecord(token=row.token, user_id=row.user_id, expires_at=_to_utc(row.expires_at))

    def delete(self, token: str) -> None:
        self._db.execute(delete(UserSession).where(UserSession.token == token))
        self._db.commit()

    def delete_for_user(self, user_id: int) -> int:
        result = self._db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        self._db.commit()
        return int(result.rowcount or 0)

    def purge_expired(self, now: datetime) -> int:
        result = self._db.execute(delete(UserSession).where(UserSession.expires_at <= now))
        self._db.commit()
        return int(result.rowcount or 0)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        *,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = ttl if ttl is not None else timedelta(days=get_settings().session_ttl_days)
        self._clock = clock

    def create_session(self, user_id: int) -> str:
        token = secrets.token_hex(SESSION_TOKEN_BYTES)
        expires_at = self._clock() + self._ttl
        self._store.save(SessionRecord(token=token, user_id=user_id, expires_at=expires_at))
        logger.info("session_created", extra={"user_id": user_id, "expires_at": expires_at.isoformat()})
        return token

    def resolve_session(self, token: str) -> int | None:
        record = self._store.get(token)
        if record is None:
            return None
        if _to_utc(record.expires_at) <= self._clock():
            self._store.delete(token)
            logger.info("session_expired", extra={"user_id": record.user_id})
            return None
        return record.user_id

    def destroy_session(self, token: str) -> None:
        self._store.delete(token)

    def destroy_user_sessions(self, user_id: int) -> int:
        return self._store.delete_for_user(user_id)

    def purge_expired(self) -> int:
        return self._store.purge_expired(self._clock())


_memory_store = InMemorySessionStore()


def get_memory_session_store() -> InMemorySessionStore:
    return _memory_store


def sweep_expired_sessions(now: datetime | None = None) -> int:
    """Delete expired sessions from the configured store; used by the sweep worker."""
    current = now or _utcnow()
    if uses_memory_sessions():
        return _memory_store.purge_expired(current)
    with SessionLocal() as db:
        return DatabaseSessionStore(db).purge_expired(current)
