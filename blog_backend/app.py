"""
FastAPI application entry point for the blog backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from blog_backend import errors
from blog_backend.auth import ensure_admin
from blog_backend.config import get_settings
from blog_backend.dependencies import get_db_client
from blog_backend.routes import pages_router, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.bootstrap_admin:
        ensure_admin(get_db_client(), settings.admin_username, settings.admin_password)
    yield


async def _login_required(request: Request, exc: errors.LoginRequired):
    return RedirectResponse(get_settings().login_path, status_code=302)


async def _cms_error(request: Request, exc: errors.CmsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def _unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": str(exc) or "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Blog CMS Backend", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(errors.LoginRequired, _login_required)
    app.add_exception_handler(errors.CmsError, _cms_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(pages_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
