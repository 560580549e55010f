"""
HTTP Basic auth credentials loaded from an htpasswd file.
"""

from .htpasswd import CredentialStore, CredentialStoreError

__all__ = ["CredentialStore", "CredentialStoreError"]
