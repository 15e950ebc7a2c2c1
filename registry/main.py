"""Component Changelog: versioning and review API for design-system components."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from changelog.errors import ChangelogError, InvalidTransition, SessionBusy, VersionNotFound
from registry.config import settings
from registry.database import close_db, init_db
from registry.routes import library, projects, versions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title="Component Changelog",
    description="Semantic versioning, review and library releases for design-system components",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.allowed_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChangelogError)
async def changelog_error_handler(request: Request, exc: ChangelogError):
    if isinstance(exc, VersionNotFound):
        status_code = 404
    elif isinstance(exc, (InvalidTransition, SessionBusy)):
        status_code = 409
    else:
        status_code = 422
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(projects.router, prefix=settings.api_prefix)
app.include_router(versions.router, prefix=settings.api_prefix)
app.include_router(library.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "component-changelog", "version": settings.api_version}
