"""
Credential store backed by an Apache htpasswd file.

passlib does the parsing and hash verification, so every scheme the
htpasswd tool can produce (bcrypt, apr1 MD5, SHA1, ...) is accepted
wherever passlib has a handler for it. bcrypt entries, which
``htpasswd -B`` writes, are checked with the bcrypt package, since
the crypt module passlib would otherwise fall back to is gone from
recent Pythons.
"""

import logging
import os

from passlib.apache import HtpasswdFile
from passlib.exc import MissingBackendError

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Raised when the htpasswd file can't be loaded."""
    pass


class CredentialStore:
    """
    Users and password hashes preloaded at startup.

    The file is read once; edits made while the server runs are not
    picked up.
    """

    def __init__(self, htpasswd: HtpasswdFile) -> None:
        self._htpasswd = htpasswd

    @classmethod
    def from_file(cls, path: str) -> "CredentialStore":
        if not path or not os.path.isfile(path):
            raise CredentialStoreError(f"htpasswd file not found: {path!r}")
        try:
            htpasswd = HtpasswdFile(path)
        except (OSError, ValueError) as e:
            raise CredentialStoreError(f"Cannot load htpasswd file {path!r}: {e}") from e

        store = cls(htpasswd)
        logger.info(
            "Loaded authentication data",
            extra={"path": path, "users": len(store.users)},
        )
        return store

    @property
    def users(self) -> list[str]:
        return self._htpasswd.users()

    def verify(self, username: str, password: str) -> bool:
        """Return True if ``username`` exists and ``password`` matches."""
        try:
            return bool(self._htpasswd.check_password(username, password))
        except MissingBackendError as e:
            # the scheme is known but nothing installed can compute it
            logger.error(
                "No backend for password hash",
                extra={"username": username, "error": str(e)},
            )
            return False
        except ValueError as e:
            # unknown or unsupported hash scheme for this user
            logger.warning(
                "Cannot verify password hash",
                extra={"username": username, "error": str(e)},
            )
            return False
