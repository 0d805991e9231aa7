"""
Admin identity and session authentication.

There is a single admin identity, created once by ``ensure_admin``. Logging in
creates a server-side session in the injected ``SessionStore``; the opaque
token travels back to the client in an HTTP-only cookie.
"""

from __future__ import annotations

import logging
import secrets
import time
from functools import lru_cache
from typing import Callable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from blog_backend import errors
from blog_backend.db import DbClient, UserRecord
from blog_backend.sessions import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Checked against when the username is unknown so both failure paths cost the same.
    return generate_password_hash(secrets.token_hex(16))


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def ensure_admin(db: DbClient, username: str, password: str) -> bool:
    """Create the admin identity if it does not exist yet. Returns True if created."""
    if db.get_user(username):
        return False
    db.insert_user(UserRecord(username=username, password_hash=hash_password(password)))
    logger.info("Created admin user %s", username)
    return True


def reset_admin_password(db: DbClient, username: str, password: str) -> None:
    if not db.set_password_hash(username, hash_password(password)):
        raise errors.NotFound("Admin user not found")
    logger.info("Reset password for %s", username)


class AuthGuard:
    """Verifies credentials and manages session lifetimes."""

    def __init__(
        self,
        db: DbClient,
        sessions: SessionStore,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.sessions = sessions
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def authenticate(self, username: str, password: str) -> tuple[str, SessionRecord]:
        user = self.db.get_user(username)
        if user is None:
            check_password_hash(_dummy_hash(), password)
            logger.info("Login failed for %r", username)
            raise errors.InvalidCredentials()
        if not check_password_hash(user.password_hash, password):
            logger.info("Login failed for %r", username)
            raise errors.InvalidCredentials()

        now = self.clock()
        record = SessionRecord(
            user_id=user.id,
            username=user.username,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self.sessions.save(token, record, self.ttl_seconds)
        logger.info("Login succeeded for %s", user.username)
        return token, record

    def resolve(self, token: Optional[str]) -> Optional[SessionRecord]:
        if not token:
            return None
        return self.sessions.get(token)

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        self.sessions.delete(token)
