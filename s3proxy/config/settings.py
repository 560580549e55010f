"""
Application configuration using Pydantic settings.

Configuration is read from a YAML file (JSON works too, it's valid YAML),
from environment variables prefixed with S3PROXY_, and from a .env file.
Values in the YAML file win over the environment.

The YAML keys may be written either in snake_case or in the
CamelCase form of older configuration files:

    Web:
      BindAddresses:
        - Host: localhost
          Port: 7649
          IsHttps: false
      EnableAuth: true
      HtpasswdFile: /etc/s3proxy/htpasswd
    Buckets:
      photos:
        Region: eu-west-1
        Key: AKIA...
        Secret: ...
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal, to_snake
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.filesystem.listing import DEFAULT_MAX_KEYS
from ..core.filesystem.models import MountConfig
from ..core.filesystem.reader import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 7649


class ConfigurationError(Exception):
    """Raised when the configuration file can't be read or is malformed."""
    pass


class _Options(BaseModel):
    """Accepts both ``bind_addresses`` and ``BindAddresses`` style keys."""
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class BindAddress(_Options):
    host: str = Field(
        default=DEFAULT_HOST,
        description="Host name or IP address (IPv4 or IPv6)",
    )
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    is_https: bool = False

    @property
    def protocol(self) -> str:
        return "https" if self.is_https else "http"

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.protocol}://{host}:{self.port}"


class HttpsOptions(_Options):
    cert: str = Field(default="", description="Certificate file (mandatory for HTTPS)")
    key: str = Field(default="", description="Key file (mandatory for HTTPS)")


class WebOptions(_Options):
    bind_addresses: list[BindAddress] = Field(
        default_factory=lambda: [BindAddress()],
        description="Addresses the server listens on, one listener each",
    )
    https: HttpsOptions = Field(default_factory=HttpsOptions)
    enable_auth: bool = Field(default=False, description="Require HTTP Basic auth")
    htpasswd_file: str = Field(default="", description="Path to the htpasswd file")


class BucketOptions(_Options):
    bucket: str = Field(default="", description="Bucket name; the mount name if empty")
    region: str = Field(default="", description="Region; us-west-1 if empty")
    key: str = Field(default="", description="Access key id")
    secret: str = Field(default="", repr=False, description="Secret access key")
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for S3-compatible stores. AWS if not set.",
    )


class Settings(BaseSettings):
    """
    Application settings.

    Nested values can be set from the environment with a double
    underscore, e.g. S3PROXY_WEB__ENABLE_AUTH=true.
    """

    web: WebOptions = Field(default_factory=WebOptions)
    buckets: dict[str, BucketOptions] = Field(
        default_factory=dict,
        description="Mount name -> bucket configuration",
    )

    # Object reader
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        gt=0,
        description="Bytes requested per ranged GET. Fewer round-trips for larger per-request buffering.",
    )
    listing_max_keys: int = Field(
        default=DEFAULT_MAX_KEYS,
        gt=0,
        description="Most objects shown in a bucket listing. The rest of the bucket is not enumerated.",
    )
    stream_block_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Bytes per read when streaming a response body",
    )

    storage_mock_mode: bool = Field(
        default=False,
        description="Use empty in-memory buckets instead of S3. Enables local dev without credentials.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Append diagnostics to this file instead of stderr",
    )

    model_config = SettingsConfigDict(
        env_prefix="S3PROXY_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides: Any) -> "Settings":
        """
        Load settings from a YAML (or JSON) file.

        Raises ConfigurationError if the file can't be read or parsed.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Unable to read the configuration file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Malformed config {path}: expected a mapping at top level")

        values = {to_snake(str(k)): v for k, v in data.items()}
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(f"Malformed config {path}: {e}") from e

    def mount_configs(self) -> list[MountConfig]:
        """Resolve every bucket entry, applying bucket and region defaults."""
        return [
            MountConfig.resolve(
                name=name,
                bucket=options.bucket,
                region=options.region,
                access_key=options.key,
                secret_key=options.secret,
                endpoint_url=options.endpoint_url,
            )
            for name, options in self.buckets.items()
        ]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Only used when no Settings were handed to create_app, e.g. for
    ``uvicorn s3proxy.main:app``. Apps built by the server carry their
    settings on app.state.settings instead. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
