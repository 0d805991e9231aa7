"""
Content services: categories, posts, contact messages and the public read
surface built on top of them.

These hold the lifecycle rules (slug derivation, category orphaning, image
ownership) and are independent of the HTTP layer; routes only translate
requests into calls here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from blog_backend import errors
from blog_backend.db import (
    DEFAULT_AUTHOR,
    CategoryRecord,
    ContactRecord,
    DbClient,
    PostRecord,
)
from blog_backend.schemas import (
    CategoryCreate,
    CategoryUpdate,
    ContactCreate,
    PostCreate,
    PostUpdate,
)
from blog_backend.slugs import slugify
from blog_backend.storage import AssetStore, ImageUpload, asset_id_from_url, prepare_image

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

DEFAULT_CATEGORIES = (
    ("Faith", "Articles about faith and belief"),
    ("Prayer", "Insights on prayer and communion with God"),
    ("Soul Winning", "Evangelism and reaching the lost"),
)


def _derive_slug(text: str, what: str) -> str:
    slug = slugify(text)
    if not slug:
        raise errors.ValidationError(f"{what} must contain letters or digits")
    return slug


def _require_text(value: Optional[str], what: str) -> str:
    if value is None or not value.strip():
        raise errors.ValidationError(f"{what} is required")
    return value


@dataclass
class PostWithCategory:
    post: PostRecord
    category: Optional[CategoryRecord]


@dataclass
class PostPage:
    posts: list[PostWithCategory]
    total_pages: int
    current_page: int


class CategoryCatalog:
    def __init__(self, db: DbClient):
        self.db = db

    def list(self) -> list[CategoryRecord]:
        return self.db.list_categories()

    def get_by_slug(self, slug: str) -> CategoryRecord:
        category = self.db.get_category_by_slug(slug)
        if category is None:
            raise errors.NotFound("Category not found")
        return category

    def create(self, payload: CategoryCreate) -> CategoryRecord:
        name = _require_text(payload.name, "Name")
        category = CategoryRecord(
            name=name,
            slug=_derive_slug(name, "Name"),
            description=payload.description,
        )
        self.db.insert_category(category)
        logger.info("Created category %s (%s)", category.slug, category.id)
        return category

    def update(self, category_id: str, patch: CategoryUpdate) -> CategoryRecord:
        fields = patch.changes()
        if "name" in fields:
            name = _require_text(fields["name"], "Name")
            fields["slug"] = _derive_slug(name, "Name")
        updated = self.db.update_category(category_id, fields)
        if updated is None:
            raise errors.NotFound("Category not found")
        logger.info("Updated category %s", category_id)
        return updated

    def delete(self, category_id: str) -> None:
        # Posts keep their category_id; it simply stops resolving.
        if self.db.delete_category(category_id):
            logger.info("Deleted category %s", category_id)

    def seed(self) -> int:
        """Create the default categories that are missing. Returns how many were added."""
        created = 0
        for name, description in DEFAULT_CATEGORIES:
            if self.db.get_category_by_slug(slugify(name)):
                continue
            self.create(CategoryCreate(name=name, description=description))
            created += 1
        return created


class PostRepository:
    def __init__(
        self,
        db: DbClient,
        assets: AssetStore,
        *,
        asset_folder: str,
        image_max_width: int = 1200,
        image_max_height: int = 800,
    ):
        self.db = db
        self.assets = assets
        self.asset_folder = asset_folder
        self.image_max_width = image_max_width
        self.image_max_height = image_max_height

    def _resolve(self, post: PostRecord) -> PostWithCategory:
        category = self.db.get_category(post.category_id) if post.category_id else None
        return PostWithCategory(post=post, category=category)

    def _upload(self, image: ImageUpload) -> str:
        data, content_type = prepare_image(
            image, self.image_max_width, self.image_max_height
        )
        return self.assets.upload(data, self.asset_folder, content_type)

    def _discard_asset(self, url: str) -> None:
        asset_id = asset_id_from_url(url, self.asset_folder)
        try:
            self.assets.delete(asset_id)
        except Exception:
            logger.exception("Failed to delete asset %s", asset_id)

    def list_published(
        self,
        category_slug: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> PostPage:
        category_id = None
        if category_slug:
            category = self.db.get_category_by_slug(category_slug)
            # An unknown slug falls back to the unfiltered listing.
            if category is not None:
                category_id = category.id

        total = self.db.count_posts(published_only=True, category_id=category_id)
        posts = self.db.list_posts(
            published_only=True,
            category_id=category_id,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        return PostPage(
            posts=[self._resolve(p) for p in posts],
            total_pages=math.ceil(total / page_size),
            current_page=page,
        )

    def get_published_by_slug(self, slug: str) -> PostWithCategory:
        # Matches drafts as well; the published flag only gates listings.
        post = self.db.get_post_by_slug(slug)
        if post is None:
            raise errors.NotFound("Post not found")
        return self._resolve(post)

    def list_all(self) -> list[PostWithCategory]:
        return [self._resolve(p) for p in self.db.list_posts()]

    def get_by_id(self, post_id: str) -> PostWithCategory:
        post = self.db.get_post(post_id)
        if post is None:
            raise errors.NotFound("Post not found")
        return self._resolve(post)

    def create(
        self, payload: PostCreate, image: Optional[ImageUpload] = None
    ) -> PostWithCategory:
        title = _require_text(payload.title, "Title")
        content = _require_text(payload.content, "Content")
        slug = _derive_slug(title, "Title")

        featured_image = self._upload(image) if image else None
        post = PostRecord(
            title=title,
            slug=slug,
            content=content,
            excerpt=payload.excerpt,
            category_id=payload.category_id,
            featured_image=featured_image,
            author=payload.author or DEFAULT_AUTHOR,
        )
        try:
            self.db.insert_post(post)
        except Exception:
            if featured_image:
                self._discard_asset(featured_image)
            raise
        logger.info("Created post %s (%s)", post.slug, post.id)
        return self._resolve(post)

    def update(
        self, post_id: str, patch: PostUpdate, image: Optional[ImageUpload] = None
    ) -> PostWithCategory:
        if self.db.get_post(post_id) is None:
            raise errors.NotFound("Post not found")

        fields = patch.changes()
        for name, label in (("title", "Title"), ("content", "Content")):
            if name in fields:
                _require_text(fields[name], label)
        if "published" in fields and fields["published"] is None:
            raise errors.ValidationError("Published must be true or false")
        if "author" in fields and fields["author"] is None:
            fields["author"] = DEFAULT_AUTHOR
        # The slug stays as created even when the title changes.

        if image:
            fields["featured_image"] = self._upload(image)

        updated = self.db.update_post(post_id, fields)
        if updated is None:
            raise errors.NotFound("Post not found")
        logger.info("Updated post %s", post_id)
        return self._resolve(updated)

    def delete(self, post_id: str) -> None:
        post = self.db.get_post(post_id)
        if post is None:
            return
        if post.featured_image:
            self._discard_asset(post.featured_image)
        self.db.delete_post(post_id)
        logger.info("Deleted post %s", post_id)


class ContactInbox:
    def __init__(self, db: DbClient):
        self.db = db

    def submit(self, payload: ContactCreate) -> ContactRecord:
        record = ContactRecord(
            name=_require_text(payload.name, "Name"),
            email=_require_text(payload.email, "Email"),
            subject=payload.subject,
            message=_require_text(payload.message, "Message"),
        )
        self.db.insert_contact(record)
        logger.info("Received contact message %s", record.id)
        return record

    def list(self) -> list[ContactRecord]:
        return self.db.list_contacts()


class PublicQuery:
    """Read-only view for anonymous visitors: published listings, resolved categories."""

    def __init__(self, catalog: CategoryCatalog, posts: PostRepository):
        self.catalog = catalog
        self.posts_repo = posts

    def categories(self) -> list[CategoryRecord]:
        return self.catalog.list()

    def category(self, slug: str) -> CategoryRecord:
        return self.catalog.get_by_slug(slug)

    def posts(
        self,
        category_slug: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> PostPage:
        return self.posts_repo.list_published(category_slug, page, page_size)

    def post(self, slug: str) -> PostWithCategory:
        return self.posts_repo.get_published_by_slug(slug)
