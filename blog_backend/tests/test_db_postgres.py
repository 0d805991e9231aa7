import unittest

from blog_backend import errors
from blog_backend.content import CategoryCatalog, PostRepository
from blog_backend.db import (
    CategoryRecord,
    ContactRecord,
    PostgresDbClient,
    PostRecord,
    UserRecord,
)
from blog_backend.schemas import CategoryCreate, PostCreate, PostUpdate
from blog_backend.storage import InMemoryAssetStore


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def tearDown(self):
        self.db.engine.dispose()

    def test_user_roundtrip_and_password_reset(self):
        self.db.insert_user(UserRecord(username="admin", password_hash="h1"))
        self.assertEqual(self.db.get_user("admin").password_hash, "h1")
        self.assertIsNone(self.db.get_user("ADMIN"))

        self.assertTrue(self.db.set_password_hash("admin", "h2"))
        self.assertEqual(self.db.get_user("admin").password_hash, "h2")
        self.assertFalse(self.db.set_password_hash("ghost", "h3"))

        with self.assertRaises(errors.Conflict):
            self.db.insert_user(UserRecord(username="admin", password_hash="x"))

    def test_category_uniqueness_and_ordering(self):
        self.db.insert_category(CategoryRecord(name="Prayer", slug="prayer"))
        self.db.insert_category(CategoryRecord(name="Faith", slug="faith"))
        with self.assertRaises(errors.Conflict):
            self.db.insert_category(CategoryRecord(name="Other", slug="faith"))
        self.assertEqual([c.name for c in self.db.list_categories()], ["Faith", "Prayer"])

    def test_update_and_delete_category(self):
        category = self.db.insert_category(CategoryRecord(name="Faith", slug="faith"))
        updated = self.db.update_category(category.id, {"description": "about faith"})
        self.assertEqual(updated.description, "about faith")
        self.assertIsNone(self.db.update_category("missing", {"description": "x"}))

        self.assertTrue(self.db.delete_category(category.id))
        self.assertFalse(self.db.delete_category(category.id))
        self.assertIsNone(self.db.get_category_by_slug("faith"))

    def test_post_filters_count_and_pagination(self):
        for i in range(5):
            self.db.insert_post(
                PostRecord(
                    title=f"P{i}",
                    slug=f"p{i}",
                    content="c",
                    category_id="cat" if i < 3 else None,
                    published=i != 0,
                    created_at=1000.0 + i,
                    updated_at=1000.0 + i,
                )
            )
        self.assertEqual(self.db.count_posts(), 5)
        self.assertEqual(self.db.count_posts(published_only=True), 4)
        self.assertEqual(self.db.count_posts(published_only=True, category_id="cat"), 2)

        newest = self.db.list_posts(published_only=True, limit=2)
        self.assertEqual([p.slug for p in newest], ["p4", "p3"])
        rest = self.db.list_posts(published_only=True, limit=2, offset=2)
        self.assertEqual([p.slug for p in rest], ["p2", "p1"])

    def test_post_slug_conflict_and_partial_update(self):
        post = self.db.insert_post(PostRecord(title="A", slug="a", content="c", excerpt="e"))
        with self.assertRaises(errors.Conflict):
            self.db.insert_post(PostRecord(title="A", slug="a", content="other"))

        updated = self.db.update_post(post.id, {"title": "B", "published": False})
        self.assertEqual(updated.title, "B")
        self.assertEqual(updated.slug, "a")
        self.assertEqual(updated.excerpt, "e")
        self.assertFalse(updated.published)
        self.assertGreaterEqual(updated.updated_at, post.updated_at)
        self.assertIsNone(self.db.update_post("missing", {"title": "x"}))

        self.assertTrue(self.db.delete_post(post.id))
        self.assertIsNone(self.db.get_post(post.id))

    def test_contacts_newest_first(self):
        self.db.insert_contact(
            ContactRecord(name="A", email="a", message="old", created_at=1.0)
        )
        self.db.insert_contact(
            ContactRecord(name="B", email="b", message="new", created_at=2.0)
        )
        self.assertEqual([c.message for c in self.db.list_contacts()], ["new", "old"])

    def test_services_run_against_sql_backend(self):
        catalog = CategoryCatalog(self.db)
        posts = PostRepository(self.db, InMemoryAssetStore(), asset_folder="blog")
        category = catalog.create(CategoryCreate(name="Soul Winning"))
        view = posts.create(
            PostCreate(title="Go Out", content="text", category=category.id)
        )
        self.assertEqual(view.category.slug, "soul-winning")

        with self.assertRaises(errors.Conflict):
            posts.create(PostCreate(title="go out", content="again"))

        posts.update(view.post.id, PostUpdate(excerpt=""))
        catalog.delete(category.id)
        fetched = posts.get_published_by_slug("go-out")
        self.assertIsNone(fetched.category)
        self.assertIsNone(fetched.post.excerpt)


if __name__ == "__main__":
    unittest.main()
