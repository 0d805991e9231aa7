"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from blog_backend import errors
from blog_backend.auth import AuthGuard
from blog_backend.config import get_settings
from blog_backend.content import CategoryCatalog, ContactInbox, PostRepository, PublicQuery
from blog_backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from blog_backend.sessions import InMemorySessionStore, RedisSessionStore, SessionRecord, SessionStore
from blog_backend.storage import AssetStore, InMemoryAssetStore, S3AssetStore

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_session_store: SessionStore | None = None
_asset_store: AssetStore | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so content persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    logger.info("Database client: %s", _db_client.__class__.__name__)
    return _db_client


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store:
        return _session_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _session_store = InMemorySessionStore()
    else:
        _session_store = RedisSessionStore(
            url=settings.redis_url, key_prefix=settings.session_key_prefix
        )
    logger.info("Session store: %s", _session_store.__class__.__name__)
    return _session_store


def get_asset_store() -> AssetStore:
    global _asset_store
    if _asset_store:
        return _asset_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.asset_bucket:
        _asset_store = InMemoryAssetStore()
    else:
        _asset_store = S3AssetStore(
            bucket=settings.asset_bucket,
            public_base_url=settings.asset_public_base_url
            or f"https://{settings.asset_bucket}.s3.amazonaws.com",
            region=settings.asset_region or "",
            endpoint=settings.asset_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    logger.info("Asset store: %s", _asset_store.__class__.__name__)
    return _asset_store


def get_auth_guard(
    db: DbClient = Depends(get_db_client),
    sessions: SessionStore = Depends(get_session_store),
) -> AuthGuard:
    return AuthGuard(db, sessions, get_settings().session_ttl_seconds)


def get_category_catalog(db: DbClient = Depends(get_db_client)) -> CategoryCatalog:
    return CategoryCatalog(db)


def get_post_repository(
    db: DbClient = Depends(get_db_client),
    assets: AssetStore = Depends(get_asset_store),
) -> PostRepository:
    settings = get_settings()
    return PostRepository(
        db,
        assets,
        asset_folder=settings.asset_folder,
        image_max_width=settings.image_max_width,
        image_max_height=settings.image_max_height,
    )


def get_contact_inbox(db: DbClient = Depends(get_db_client)) -> ContactInbox:
    return ContactInbox(db)


def get_public_query(
    catalog: CategoryCatalog = Depends(get_category_catalog),
    posts: PostRepository = Depends(get_post_repository),
) -> PublicQuery:
    return PublicQuery(catalog, posts)


def session_token(request: Request) -> str | None:
    return request.cookies.get(get_settings().session_cookie_name)


def require_session(
    request: Request, guard: AuthGuard = Depends(get_auth_guard)
) -> SessionRecord:
    """
    Gate for admin routes. API requests without a live session get a 401;
    page requests are sent to the login page instead.
    """
    record = guard.resolve(session_token(request))
    if record is not None:
        return record
    if request.url.path.startswith(get_settings().api_prefix + "/"):
        raise errors.Unauthorized()
    raise errors.LoginRequired()
