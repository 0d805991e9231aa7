import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from blog_backend.db import InMemoryDbClient

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "scripts"))
import manage  # noqa: E402


class ManageCommandTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        patcher = patch.object(manage, "get_db_client", return_value=self.db)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_init_admin_then_reset(self):
        self.assertEqual(manage.main(["init-admin", "--password", "first"]), 0)
        first_hash = self.db.get_user("admin").password_hash
        self.assertEqual(manage.main(["init-admin", "--password", "second"]), 0)
        self.assertEqual(self.db.get_user("admin").password_hash, first_hash)

        self.assertEqual(manage.main(["reset-admin-password", "--password", "third"]), 0)
        self.assertNotEqual(self.db.get_user("admin").password_hash, first_hash)

    def test_reset_without_admin_fails(self):
        self.assertEqual(manage.main(["reset-admin-password", "--password", "x"]), 1)

    def test_seed(self):
        self.assertEqual(manage.main(["seed"]), 0)
        self.assertEqual(len(self.db.list_categories()), 3)


if __name__ == "__main__":
    unittest.main()
