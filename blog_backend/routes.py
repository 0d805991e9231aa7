"""
HTTP routes for the blog backend.

``router`` carries the JSON API and is mounted under the API prefix;
``pages_router`` serves the two HTML entry pages that take part in the
login flow.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from blog_backend import errors
from blog_backend.auth import AuthGuard, ensure_admin
from blog_backend.config import get_settings
from blog_backend.content import (
    DEFAULT_PAGE_SIZE,
    CategoryCatalog,
    ContactInbox,
    PostRepository,
    PublicQuery,
)
from blog_backend.db import DbClient
from blog_backend.dependencies import (
    get_auth_guard,
    get_category_catalog,
    get_contact_inbox,
    get_db_client,
    get_post_repository,
    get_public_query,
    require_session,
    session_token,
)
from blog_backend.schemas import (
    AuthStatusResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ContactCreate,
    ContactResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PostCreate,
    PostPageResponse,
    PostResponse,
    PostUpdate,
    PublicPostResponse,
    SeedResponse,
)
from blog_backend.sessions import SessionRecord
from blog_backend.storage import ImageUpload

logger = logging.getLogger(__name__)

router = APIRouter()
pages_router = APIRouter()

IMAGE_FIELD = "featuredImage"
POST_FORM_FIELDS = ("title", "content", "excerpt", "category", "author", "published")
# Keeps (page - 1) * limit inside a signed 64-bit OFFSET.
MAX_PAGE = 10_000_000


async def _read_image(value) -> Optional[ImageUpload]:
    if not isinstance(value, StarletteUploadFile) or not value.filename:
        return None
    data = await value.read()
    if not data:
        return None
    return ImageUpload(data=data, filename=value.filename, content_type=value.content_type)


# Auth


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    guard: AuthGuard = Depends(get_auth_guard),
):
    token, record = guard.authenticate(payload.username, payload.password)
    guard.logout(session_token(request))
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return LoginResponse(message="Login successful", username=record.username)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    guard: AuthGuard = Depends(get_auth_guard),
):
    guard.logout(session_token(request))
    response.delete_cookie(get_settings().session_cookie_name)
    return MessageResponse(message="Logout successful")


@router.get(
    "/check-auth", response_model=AuthStatusResponse, response_model_exclude_none=True
)
def check_auth(request: Request, guard: AuthGuard = Depends(get_auth_guard)):
    record = guard.resolve(session_token(request))
    if record is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(authenticated=True, username=record.username)


@router.post("/init-admin", response_model=MessageResponse)
def init_admin(db: DbClient = Depends(get_db_client)):
    settings = get_settings()
    if not ensure_admin(db, settings.admin_username, settings.admin_password):
        raise errors.Conflict("Admin already exists")
    return MessageResponse(message="Admin user created successfully")


@router.post("/seed", response_model=SeedResponse)
def seed(
    _: SessionRecord = Depends(require_session),
    catalog: CategoryCatalog = Depends(get_category_catalog),
):
    created = catalog.seed()
    return SeedResponse(message="Database seeded successfully", created=created)


# Categories


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(public: PublicQuery = Depends(get_public_query)):
    return [CategoryResponse.from_record(c) for c in public.categories()]


@router.get("/categories/{slug}", response_model=CategoryResponse)
def get_category(slug: str, public: PublicQuery = Depends(get_public_query)):
    return CategoryResponse.from_record(public.category(slug))


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    payload: CategoryCreate,
    _: SessionRecord = Depends(require_session),
    catalog: CategoryCatalog = Depends(get_category_catalog),
):
    return CategoryResponse.from_record(catalog.create(payload))


@router.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    _: SessionRecord = Depends(require_session),
    catalog: CategoryCatalog = Depends(get_category_catalog),
):
    return CategoryResponse.from_record(catalog.update(category_id, payload))


@router.delete("/categories/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: str,
    _: SessionRecord = Depends(require_session),
    catalog: CategoryCatalog = Depends(get_category_catalog),
):
    catalog.delete(category_id)
    return MessageResponse(message="Category deleted")


# Posts


@router.get("/posts", response_model=PostPageResponse)
def list_posts(
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    public: PublicQuery = Depends(get_public_query),
):
    result = public.posts(category, page, limit)
    return PostPageResponse(
        posts=[PublicPostResponse.from_view(v) for v in result.posts],
        total_pages=result.total_pages,
        current_page=result.current_page,
    )


@router.get("/posts/slug/{slug}", response_model=PublicPostResponse)
def get_post_by_slug(slug: str, public: PublicQuery = Depends(get_public_query)):
    return PublicPostResponse.from_view(public.post(slug))


@router.get("/admin/posts", response_model=list[PostResponse])
def admin_list_posts(
    _: SessionRecord = Depends(require_session),
    posts: PostRepository = Depends(get_post_repository),
):
    return [PostResponse.from_view(v) for v in posts.list_all()]


@router.get("/admin/posts/{post_id}", response_model=PostResponse)
def admin_get_post(
    post_id: str,
    _: SessionRecord = Depends(require_session),
    posts: PostRepository = Depends(get_post_repository),
):
    return PostResponse.from_view(posts.get_by_id(post_id))


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    title: str = Form(...),
    content: str = Form(...),
    excerpt: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    featured_image: Optional[UploadFile] = File(None, alias=IMAGE_FIELD),
    _: SessionRecord = Depends(require_session),
    posts: PostRepository = Depends(get_post_repository),
):
    payload = PostCreate(
        title=title,
        content=content,
        excerpt=excerpt,
        category=category,
        author=author,
    )
    image = await _read_image(featured_image)
    return PostResponse.from_view(posts.create(payload, image))


@router.put("/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    request: Request,
    _: SessionRecord = Depends(require_session),
    posts: PostRepository = Depends(get_post_repository),
):
    # Read the raw form so an omitted field and an empty one stay distinguishable.
    async with request.form() as form:
        data = {key: form[key] for key in POST_FORM_FIELDS if key in form}
        try:
            patch = PostUpdate.model_validate(data)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise errors.ValidationError(f"{field}: {first['msg']}") from exc
        image = await _read_image(form.get(IMAGE_FIELD))
    return PostResponse.from_view(posts.update(post_id, patch, image))


@router.delete("/posts/{post_id}", response_model=MessageResponse)
def delete_post(
    post_id: str,
    _: SessionRecord = Depends(require_session),
    posts: PostRepository = Depends(get_post_repository),
):
    posts.delete(post_id)
    return MessageResponse(message="Post deleted")


# Contact


@router.post("/contact", response_model=MessageResponse, status_code=201)
def submit_contact(
    payload: ContactCreate, inbox: ContactInbox = Depends(get_contact_inbox)
):
    inbox.submit(payload)
    return MessageResponse(message="Message sent successfully")


@router.get("/contact", response_model=list[ContactResponse])
def list_contacts(
    _: SessionRecord = Depends(require_session),
    inbox: ContactInbox = Depends(get_contact_inbox),
):
    return [ContactResponse.from_record(c) for c in inbox.list()]


# Pages


def _page(name: str) -> FileResponse:
    path = Path(get_settings().public_dir) / name
    if not path.is_file():
        raise errors.NotFound("Page not found")
    return FileResponse(path)


@pages_router.get("/login", include_in_schema=False)
def login_page():
    return _page("login.html")


@pages_router.get("/admin", include_in_schema=False)
def admin_page(_: SessionRecord = Depends(require_session)):
    return _page("admin.html")
