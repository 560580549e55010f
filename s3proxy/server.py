"""
Listener manager and command line entry point.

One uvicorn server is started per configured bind address. All of them
run on the same event loop and share a single application, so every
listener sees the same filesystem and mount table. A listener that
can't bind takes the whole process down; there is no restart policy.

Usage:
    s3proxy --config s3proxy.yaml --log-level debug
    python -m s3proxy --config s3proxy.yaml
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from .config.settings import BindAddress, ConfigurationError, Settings
from .infrastructure.auth.htpasswd import CredentialStoreError
from .main import configure_logging, create_app

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """The server can't start: bad TLS files, credentials or config."""
    pass


def check_startup(settings: Settings) -> None:
    """
    Validate what every listener needs before anything binds.

    Raises StartupError if an HTTPS listener is configured without
    readable certificate and key files.
    """
    if any(address.is_https for address in settings.web.bind_addresses):
        https = settings.web.https
        for label, path in (("certificate", https.cert), ("key", https.key)):
            if not path or not os.path.isfile(path):
                raise StartupError(f"HTTPS enabled but the {label} file is missing: {path!r}")


def build_server(app: FastAPI, address: BindAddress, settings: Settings) -> uvicorn.Server:
    https = settings.web.https
    config = uvicorn.Config(
        app,
        host=address.host,
        port=address.port,
        ssl_certfile=https.cert if address.is_https else None,
        ssl_keyfile=https.key if address.is_https else None,
        log_config=None,
        log_level=settings.log_level.lower(),
        # the app is shared, so only one listener runs its lifespan
        lifespan="off",
    )
    return uvicorn.Server(config)


async def serve(app: FastAPI, settings: Settings) -> None:
    """Run one listener per bind address until all of them stop."""
    servers = []
    for address in settings.web.bind_addresses:
        logger.info("Listening on %s", address.url)
        servers.append(build_server(app, address, settings))

    async with app.router.lifespan_context(app):
        await asyncio.gather(*(server.serve() for server in servers))


def run(settings: Settings) -> None:
    """
    Start every listener and block until they exit.

    Raises StartupError for missing TLS files or an unreadable
    htpasswd file.
    """
    check_startup(settings)
    try:
        app = create_app(settings)
    except CredentialStoreError as e:
        raise StartupError(
            f"Authentication enabled but cannot open htpasswd file "
            f"{settings.web.htpasswd_file!r}: {e}"
        ) from e

    asyncio.run(serve(app, settings))


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="s3proxy",
        description="Serve S3 buckets over HTTP as browsable, seekable file trees.",
    )
    parser.add_argument("--config", default="", help="a YAML or JSON configuration file")
    parser.add_argument("--log-file", default=None, help="output file for diagnostics")
    parser.add_argument("--log-level", default=None, help="verbosity of the diagnostic information")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {"log_level": args.log_level, "log_file": args.log_file}
    if args.config:
        return Settings.from_yaml(args.config, **overrides)
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args)
    except (ConfigurationError, ValueError) as e:
        configure_logging("INFO", args.log_file)
        logger.critical("Failed to read configuration: %s", e)
        return 1

    configure_logging(settings.log_level, settings.log_file)
    logger.info("Starting s3proxy...")

    try:
        run(settings)
    except StartupError as e:
        logger.critical("%s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
