"""
Application configuration using Pydantic settings.

Configuration comes from a YAML file and environment variables with
sensible defaults. Supports mock storage for local development.
"""

from .settings import (
    BindAddress,
    BucketOptions,
    ConfigurationError,
    HttpsOptions,
    Settings,
    WebOptions,
    get_settings,
)

__all__ = [
    "BindAddress",
    "BucketOptions",
    "ConfigurationError",
    "HttpsOptions",
    "Settings",
    "WebOptions",
    "get_settings",
]
