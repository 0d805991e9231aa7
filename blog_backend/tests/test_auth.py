import unittest
from unittest.mock import MagicMock, patch

from blog_backend import errors
from blog_backend.auth import AuthGuard, ensure_admin, reset_admin_password
from blog_backend.db import InMemoryDbClient
from blog_backend.sessions import InMemorySessionStore, RedisSessionStore, SessionRecord


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class AuthGuardTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.clock = FakeClock()
        self.sessions = InMemorySessionStore(clock=self.clock)
        self.guard = AuthGuard(
            self.db, self.sessions, ttl_seconds=24 * 60 * 60, clock=self.clock
        )
        ensure_admin(self.db, "admin", "correct horse")

    def test_ensure_admin_is_idempotent(self):
        original_hash = self.db.get_user("admin").password_hash
        self.assertFalse(ensure_admin(self.db, "admin", "other"))
        self.assertEqual(self.db.get_user("admin").password_hash, original_hash)
        self.assertEqual(len(self.db.users), 1)

    def test_password_is_stored_hashed(self):
        stored = self.db.get_user("admin").password_hash
        self.assertNotEqual(stored, "correct horse")
        self.assertNotIn("correct horse", stored)

    def test_authenticate_creates_session(self):
        token, record = self.guard.authenticate("admin", "correct horse")
        self.assertEqual(record.username, "admin")
        self.assertEqual(self.guard.resolve(token), record)

    def test_failures_are_indistinguishable(self):
        with self.assertRaises(errors.InvalidCredentials) as wrong_password:
            self.guard.authenticate("admin", "wrong")
        with self.assertRaises(errors.InvalidCredentials) as unknown_user:
            self.guard.authenticate("nobody", "wrong")
        self.assertEqual(wrong_password.exception.message, unknown_user.exception.message)
        self.assertEqual(
            wrong_password.exception.status_code, unknown_user.exception.status_code
        )
        self.assertEqual(self.sessions.sessions, {})

    def test_session_expires_after_fixed_ttl(self):
        token, _ = self.guard.authenticate("admin", "correct horse")
        self.clock.now += 24 * 60 * 60 - 1
        self.assertIsNotNone(self.guard.resolve(token))
        self.clock.now += 1
        self.assertIsNone(self.guard.resolve(token))
        self.assertNotIn(token, self.sessions.sessions)

    def test_logout_is_idempotent(self):
        token, _ = self.guard.authenticate("admin", "correct horse")
        self.guard.logout(token)
        self.guard.logout(token)
        self.guard.logout(None)
        self.assertIsNone(self.guard.resolve(token))
        self.assertIsNone(self.guard.resolve(None))

    def test_reset_admin_password(self):
        reset_admin_password(self.db, "admin", "new password")
        with self.assertRaises(errors.InvalidCredentials):
            self.guard.authenticate("admin", "correct horse")
        self.guard.authenticate("admin", "new password")

        with self.assertRaises(errors.NotFound):
            reset_admin_password(self.db, "ghost", "x")


class RedisSessionStoreTests(unittest.TestCase):
    @patch("blog_backend.sessions.redis.Redis.from_url")
    def test_save_uses_setex_with_ttl(self, from_url):
        client = MagicMock()
        from_url.return_value = client
        store = RedisSessionStore(url="redis://localhost:6379/0", key_prefix="t:")
        record = SessionRecord(user_id="u1", username="admin", created_at=1.0, expires_at=9e12)

        store.save("tok", record, 86400)
        key, ttl, payload = client.setex.call_args.args
        self.assertEqual((key, ttl), ("t:tok", 86400))

        client.get.return_value = payload.encode("utf-8")
        self.assertEqual(store.get("tok"), record)

        client.get.return_value = None
        self.assertIsNone(store.get("missing"))

        store.delete("tok")
        client.delete.assert_called_once_with("t:tok")


if __name__ == "__main__":
    unittest.main()
