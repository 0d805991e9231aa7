"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import itertools
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from blog_backend import errors

DEFAULT_AUTHOR = "Admin"

POST_UPDATABLE_FIELDS = (
    "title",
    "content",
    "excerpt",
    "category_id",
    "author",
    "published",
    "featured_image",
)
CATEGORY_UPDATABLE_FIELDS = ("name", "slug", "description")


def _new_id() -> str:
    return uuid.uuid4().hex


class DbClient(Protocol):
    """Interface for database access."""

    def get_user(self, username: str) -> Optional["UserRecord"]:
        ...

    def insert_user(self, user: "UserRecord") -> "UserRecord":
        ...

    def set_password_hash(self, username: str, password_hash: str) -> bool:
        ...

    def list_categories(self) -> list["CategoryRecord"]:
        ...

    def get_category(self, category_id: str) -> Optional["CategoryRecord"]:
        ...

    def get_category_by_slug(self, slug: str) -> Optional["CategoryRecord"]:
        ...

    def insert_category(self, category: "CategoryRecord") -> "CategoryRecord":
        ...

    def update_category(
        self, category_id: str, fields: dict
    ) -> Optional["CategoryRecord"]:
        ...

    def delete_category(self, category_id: str) -> bool:
        ...

    def get_post(self, post_id: str) -> Optional["PostRecord"]:
        ...

    def get_post_by_slug(self, slug: str) -> Optional["PostRecord"]:
        ...

    def list_posts(
        self,
        *,
        published_only: bool = False,
        category_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list["PostRecord"]:
        ...

    def count_posts(
        self, *, published_only: bool = False, category_id: Optional[str] = None
    ) -> int:
        ...

    def insert_post(self, post: "PostRecord") -> "PostRecord":
        ...

    def update_post(self, post_id: str, fields: dict) -> Optional["PostRecord"]:
        ...

    def delete_post(self, post_id: str) -> bool:
        ...

    def insert_contact(self, contact: "ContactRecord") -> "ContactRecord":
        ...

    def list_contacts(self) -> list["ContactRecord"]:
        ...


@dataclass
class UserRecord:
    username: str
    password_hash: str
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class CategoryRecord:
    name: str
    slug: str
    description: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class PostRecord:
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    category_id: Optional[str] = None
    featured_image: Optional[str] = None
    author: str = DEFAULT_AUTHOR
    published: bool = True
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class ContactRecord:
    name: str
    email: str
    message: str
    subject: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=lambda: time.time())


def _check_fields(fields: dict, allowed: tuple[str, ...]) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unsupported fields: {', '.join(sorted(unknown))}")


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.categories: Dict[str, CategoryRecord] = {}
        self.posts: Dict[str, PostRecord] = {}
        self.contacts: Dict[str, ContactRecord] = {}
        # Insertion order breaks created_at ties so "newest first" is stable.
        self._seq = itertools.count()
        self._order: Dict[str, int] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.categories.clear()
        self.posts.clear()
        self.contacts.clear()
        self._order.clear()

    def _newest_first(self, records):
        return sorted(
            records,
            key=lambda r: (r.created_at, self._order.get(r.id, 0)),
            reverse=True,
        )

    def _remember(self, record_id: str) -> None:
        self._order[record_id] = next(self._seq)

    # Identity

    def get_user(self, username: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.username == username:
                return replace(user)
        return None

    def insert_user(self, user: UserRecord) -> UserRecord:
        if self.get_user(user.username):
            raise errors.Conflict(f"User {user.username!r} already exists")
        self.users[user.id] = replace(user)
        return user

    def set_password_hash(self, username: str, password_hash: str) -> bool:
        for user in self.users.values():
            if user.username == username:
                user.password_hash = password_hash
                return True
        return False

    # Categories

    def list_categories(self) -> list[CategoryRecord]:
        return [
            replace(c) for c in sorted(self.categories.values(), key=lambda c: c.name)
        ]

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        category = self.categories.get(category_id)
        return replace(category) if category else None

    def get_category_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        for category in self.categories.values():
            if category.slug == slug:
                return replace(category)
        return None

    def _check_category_unique(self, candidate: CategoryRecord) -> None:
        for other in self.categories.values():
            if other.id == candidate.id:
                continue
            if other.name == candidate.name or other.slug == candidate.slug:
                raise errors.Conflict("A category with this name or slug already exists")

    def insert_category(self, category: CategoryRecord) -> CategoryRecord:
        self._check_category_unique(category)
        self.categories[category.id] = replace(category)
        return category

    def update_category(
        self, category_id: str, fields: dict
    ) -> Optional[CategoryRecord]:
        _check_fields(fields, CATEGORY_UPDATABLE_FIELDS)
        category = self.categories.get(category_id)
        if not category:
            return None
        updated = replace(category, **fields)
        self._check_category_unique(updated)
        self.categories[category_id] = updated
        return replace(updated)

    def delete_category(self, category_id: str) -> bool:
        return self.categories.pop(category_id, None) is not None

    # Posts

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return replace(post) if post else None

    def get_post_by_slug(self, slug: str) -> Optional[PostRecord]:
        for post in self.posts.values():
            if post.slug == slug:
                return replace(post)
        return None

    def _filter_posts(self, published_only: bool, category_id: Optional[str]):
        for post in self.posts.values():
            if published_only and not post.published:
                continue
            if category_id is not None and post.category_id != category_id:
                continue
            yield post

    def list_posts(
        self,
        *,
        published_only: bool = False,
        category_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[PostRecord]:
        items = self._newest_first(self._filter_posts(published_only, category_id))
        end = None if limit is None else offset + limit
        return [replace(p) for p in items[offset:end]]

    def count_posts(
        self, *, published_only: bool = False, category_id: Optional[str] = None
    ) -> int:
        return sum(1 for _ in self._filter_posts(published_only, category_id))

    def insert_post(self, post: PostRecord) -> PostRecord:
        if self.get_post_by_slug(post.slug):
            raise errors.Conflict(f"A post with slug {post.slug!r} already exists")
        self.posts[post.id] = replace(post)
        self._remember(post.id)
        return post

    def update_post(self, post_id: str, fields: dict) -> Optional[PostRecord]:
        _check_fields(fields, POST_UPDATABLE_FIELDS)
        post = self.posts.get(post_id)
        if not post:
            return None
        updated = replace(post, **fields, updated_at=time.time())
        self.posts[post_id] = updated
        return replace(updated)

    def delete_post(self, post_id: str) -> bool:
        self._order.pop(post_id, None)
        return self.posts.pop(post_id, None) is not None

    # Contact messages

    def insert_contact(self, contact: ContactRecord) -> ContactRecord:
        self.contacts[contact.id] = replace(contact)
        self._remember(contact.id)
        return contact

    def list_contacts(self) -> list[ContactRecord]:
        return [replace(c) for c in self._newest_first(self.contacts.values())]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _commit(self, session: Session, conflict_message: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise errors.Conflict(conflict_message) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise errors.InternalError(str(exc)) from exc

    @staticmethod
    def _to_user(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            password_hash=row.password_hash,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_category(row: "CategoryRow") -> CategoryRecord:
        return CategoryRecord(
            id=row.id,
            name=row.name,
            slug=row.slug,
            description=row.description,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_post(row: "PostRow") -> PostRecord:
        return PostRecord(
            id=row.id,
            title=row.title,
            slug=row.slug,
            content=row.content,
            excerpt=row.excerpt,
            category_id=row.category_id,
            featured_image=row.featured_image,
            author=row.author,
            published=row.published,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_contact(row: "ContactRow") -> ContactRecord:
        return ContactRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            subject=row.subject,
            message=row.message,
            created_at=row.created_at,
        )

    # Identity

    def get_user(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.username == username)
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def insert_user(self, user: UserRecord) -> UserRecord:
        with self.Session() as session:
            session.add(
                UserRow(
                    id=user.id,
                    username=user.username,
                    password_hash=user.password_hash,
                    created_at=user.created_at,
                )
            )
            self._commit(session, f"User {user.username!r} already exists")
        return user

    def set_password_hash(self, username: str, password_hash: str) -> bool:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.username == username)
            ).scalar_one_or_none()
            if not row:
                return False
            row.password_hash = password_hash
            session.commit()
            return True

    # Categories

    def list_categories(self) -> list[CategoryRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(CategoryRow).order_by(CategoryRow.name.asc())
            ).scalars()
            return [self._to_category(row) for row in rows]

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            return self._to_category(row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        with self.Session() as session:
            row = session.execute(
                select(CategoryRow).where(CategoryRow.slug == slug)
            ).scalar_one_or_none()
            return self._to_category(row) if row else None

    def insert_category(self, category: CategoryRecord) -> CategoryRecord:
        with self.Session() as session:
            session.add(
                CategoryRow(
                    id=category.id,
                    name=category.name,
                    slug=category.slug,
                    description=category.description,
                    created_at=category.created_at,
                )
            )
            self._commit(session, "A category with this name or slug already exists")
        return category

    def update_category(
        self, category_id: str, fields: dict
    ) -> Optional[CategoryRecord]:
        _check_fields(fields, CATEGORY_UPDATABLE_FIELDS)
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            self._commit(session, "A category with this name or slug already exists")
            return self._to_category(row)

    def delete_category(self, category_id: str) -> bool:
        with self.Session() as session:
            row = session.get(CategoryRow, category_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # Posts

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            return self._to_post(row) if row else None

    def get_post_by_slug(self, slug: str) -> Optional[PostRecord]:
        with self.Session() as session:
            row = session.execute(
                select(PostRow).where(PostRow.slug == slug)
            ).scalar_one_or_none()
            return self._to_post(row) if row else None

    @staticmethod
    def _post_filters(published_only: bool, category_id: Optional[str]) -> list:
        clauses = []
        if published_only:
            clauses.append(PostRow.published.is_(True))
        if category_id is not None:
            clauses.append(PostRow.category_id == category_id)
        return clauses

    def list_posts(
        self,
        *,
        published_only: bool = False,
        category_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[PostRecord]:
        stmt = (
            select(PostRow)
            .where(*self._post_filters(published_only, category_id))
            .order_by(PostRow.created_at.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.Session() as session:
            return [self._to_post(row) for row in session.execute(stmt).scalars()]

    def count_posts(
        self, *, published_only: bool = False, category_id: Optional[str] = None
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(PostRow)
            .where(*self._post_filters(published_only, category_id))
        )
        with self.Session() as session:
            return session.execute(stmt).scalar_one()

    def insert_post(self, post: PostRecord) -> PostRecord:
        with self.Session() as session:
            session.add(
                PostRow(
                    id=post.id,
                    title=post.title,
                    slug=post.slug,
                    content=post.content,
                    excerpt=post.excerpt,
                    category_id=post.category_id,
                    featured_image=post.featured_image,
                    author=post.author,
                    published=post.published,
                    created_at=post.created_at,
                    updated_at=post.updated_at,
                )
            )
            self._commit(session, f"A post with slug {post.slug!r} already exists")
        return post

    def update_post(self, post_id: str, fields: dict) -> Optional[PostRecord]:
        _check_fields(fields, POST_UPDATABLE_FIELDS)
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = time.time()
            self._commit(session, "Post update violates a uniqueness constraint")
            return self._to_post(row)

    def delete_post(self, post_id: str) -> bool:
        with self.Session() as session:
            row = session.get(PostRow, post_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    # Contact messages

    def insert_contact(self, contact: ContactRecord) -> ContactRecord:
        with self.Session() as session:
            session.add(
                ContactRow(
                    id=contact.id,
                    name=contact.name,
                    email=contact.email,
                    subject=contact.subject,
                    message=contact.message,
                    created_at=contact.created_at,
                )
            )
            self._commit(session, "Duplicate contact message id")
        return contact

    def list_contacts(self) -> list[ContactRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(ContactRow).order_by(ContactRow.created_at.desc())
            ).scalars()
            return [self._to_contact(row) for row in rows]


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    # Weak reference: categories can be deleted without touching posts.
    category_id = Column(String, nullable=True, index=True)
    featured_image = Column(String, nullable=True)
    author = Column(String, nullable=False, default=DEFAULT_AUTHOR)
    published = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)


class ContactRow(Base):
    __tablename__ = "contact_messages"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False, index=True)
