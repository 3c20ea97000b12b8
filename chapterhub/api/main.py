"""
chapterhub.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn chapterhub.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from chapterhub.api.auth import router as auth_router  # noqa: E402
from chapterhub.api.deps import get_engine  # noqa: E402
from chapterhub.api.routes.activities import router as activities_router  # noqa: E402
from chapterhub.api.routes.admin import router as admin_router  # noqa: E402
from chapterhub.api.routes.complaints import router as complaints_router  # noqa: E402
from chapterhub.api.routes.members import router as members_router  # noqa: E402
from chapterhub.api.routes.objectives import router as objectives_router  # noqa: E402
from chapterhub.api.routes.points import router as points_router  # noqa: E402
from chapterhub.database.engine import init_db  # noqa: E402
from chapterhub.errors import ChapterHubError  # noqa: E402
from chapterhub.services.log_buffer import install_handler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: attach the log buffer and verify the schema."""
    # Uvicorn reconfigures logging when it starts, so attach after startup.
    install_handler()

    engine = get_engine()
    init_db(engine)
    logger.info("ChapterHub API started, engine ready (%s)", engine.url.database)
    yield
    logger.info("ChapterHub API shutting down")


app = FastAPI(
    title="ChapterHub API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChapterHubError)
async def chapterhub_error_handler(request: Request, exc: ChapterHubError) -> JSONResponse:
    logger.warning(
        "%s %s rejected (%s): %s",
        request.method, request.url.path, type(exc).__name__, exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(points_router, prefix="/api")
app.include_router(objectives_router, prefix="/api")
app.include_router(activities_router, prefix="/api")
app.include_router(complaints_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
