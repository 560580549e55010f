"""
FastAPI dependency injection.

The filesystem and the credential store are built once, when the
application is created, and kept on ``app.state``. Dependencies here
hand them to route handlers so routes never construct their own
clients and tests can swap in in-memory buckets.
"""

import logging
from functools import partial
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..config.settings import Settings, get_settings
from ..core.filesystem.vfs import VirtualFilesystem
from ..infrastructure.auth.htpasswd import CredentialStore
from ..infrastructure.storage.client import create_bucket_client

logger = logging.getLogger(__name__)

AUTH_REALM = "s3proxy"

basic_auth = HTTPBasic(realm=AUTH_REALM, auto_error=False)


# ---------------------------------------------------------------------------
# Startup Construction
# ---------------------------------------------------------------------------

def build_filesystem(settings: Settings) -> VirtualFilesystem:
    """
    Create the filesystem and one bucket client per distinct bucket.

    Mounts whose client can't be created are logged and left without a
    client; they answer 404 rather than failing startup.
    """
    return VirtualFilesystem(
        settings.mount_configs(),
        client_factory=partial(create_bucket_client, mock_mode=settings.storage_mock_mode),
        chunk_size=settings.chunk_size,
        max_keys=settings.listing_max_keys,
    )


def build_credential_store(settings: Settings) -> Optional[CredentialStore]:
    """Load the htpasswd file if auth is enabled, otherwise return None."""
    if not settings.web.enable_auth:
        return None
    return CredentialStore.from_file(settings.web.htpasswd_file)


# ---------------------------------------------------------------------------
# Request Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, falling back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_filesystem(request: Request) -> VirtualFilesystem:
    return request.app.state.filesystem


def get_credential_store(request: Request) -> Optional[CredentialStore]:
    return getattr(request.app.state, "credentials", None)


def verify_credentials(
    store: Annotated[Optional[CredentialStore], Depends(get_credential_store)],
    credentials: Annotated[Optional[HTTPBasicCredentials], Depends(basic_auth)],
) -> Optional[str]:
    """
    Check HTTP Basic credentials against the htpasswd store.

    With auth disabled this always passes and returns None. Otherwise
    it returns the username, or raises 401 with a Basic challenge.

    Checking a bcrypt hash takes tens to hundreds of milliseconds.
    FastAPI runs sync dependencies in its threadpool, so the event loop
    shared by every listener keeps serving other requests meanwhile.
    """
    if store is None:
        return None

    if credentials is None:
        logger.debug("Request missing credentials")
        raise _unauthorized()

    if not store.verify(credentials.username, credentials.password):
        logger.warning(
            "Invalid credentials",
            extra={"username": credentials.username},
        )
        raise _unauthorized()

    return credentials.username


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": f'Basic realm="{AUTH_REALM}"'},
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[Optional[str], Depends(verify_credentials)]
FilesystemDep = Annotated[VirtualFilesystem, Depends(get_filesystem)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
