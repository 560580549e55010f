"""
FastAPI application entry point.

create_app builds the application for one Settings instance: it creates
the bucket clients and loads the credential store once, registers the
file route, and maps filesystem errors onto HTTP statuses.

For local development:
    uvicorn s3proxy.main:app --reload

For production, use the listener manager, which binds every configured
address:
    python -m s3proxy --config s3proxy.yaml
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.dependencies import build_credential_store, build_filesystem
from .api.routes import files
from .config.settings import Settings, get_settings
from .core.filesystem.errors import (
    InvalidArgumentError,
    NotFoundError,
    RenderError,
    TransportError,
)
from .core.filesystem.vfs import VirtualFilesystem
from .infrastructure.auth.htpasswd import CredentialStore

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging once for the process.

    Diagnostics go to stderr, or are appended to ``log_file``.
    """
    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and shutdown of each application instance."""
    settings: Settings = app.state.settings

    logger.info(
        "s3proxy starting",
        extra={
            "mounts": sorted(app.state.filesystem.mounts),
            "auth": settings.web.enable_auth,
            "mock_mode": settings.storage_mock_mode,
        },
    )

    yield

    logger.info("s3proxy shutting down")


def _error_response(request: Request, status_code: int, detail: str, exc: Exception) -> JSONResponse:
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
            "error": str(exc),
        },
    )
    return JSONResponse(status_code=status_code, content={"detail": detail})


def create_app(
    settings: Optional[Settings] = None,
    filesystem: Optional[VirtualFilesystem] = None,
    credentials: Optional[CredentialStore] = None,
) -> FastAPI:
    """
    Application factory.

    ``filesystem`` and ``credentials`` default to what ``settings``
    describes; tests pass in-memory ones instead. Loading the credential
    store may raise CredentialStoreError, which the caller treats as a
    fatal startup error.
    """
    settings = settings or get_settings()
    if filesystem is None:
        filesystem = build_filesystem(settings)
    if credentials is None:
        credentials = build_credential_store(settings)

    app = FastAPI(
        title="s3proxy",
        description="Read-only HTTP access to S3 buckets.",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.filesystem = filesystem
    app.state.credentials = credentials

    # Every path belongs to some mount, so the file route takes them all
    app.include_router(files.router, tags=["Files"])

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(request, 404, "Not found", exc)

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
        return _error_response(request, 400, "Bad request", exc)

    @app.exception_handler(TransportError)
    @app.exception_handler(RenderError)
    async def internal_error_handler(request: Request, exc: Exception):
        return _error_response(request, 500, "Internal server error", exc)

    logger.info(
        "FastAPI application created",
        extra={"mounts": len(filesystem.mounts), "auth": credentials is not None},
    )

    return app


def __getattr__(name: str):
    # ``uvicorn s3proxy.main:app`` builds the app from the environment on first access
    if name == "app":
        settings = get_settings()
        configure_logging(settings.log_level, settings.log_file)
        globals()["app"] = create_app(settings)
        return globals()["app"]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
