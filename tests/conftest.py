"""
Shared fixtures.

Everything runs against in-memory buckets: no network, no credentials.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from s3proxy.config.settings import Settings
from s3proxy.core.filesystem.models import MountConfig
from s3proxy.core.filesystem.vfs import VirtualFilesystem
from s3proxy.infrastructure.storage.client import MockBucketClient
from s3proxy.main import create_app

MODIFIED_AT = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)

HELLO = b"hello, bucket world\n"
BIG = bytes(range(256)) * 40  # 10240 bytes


@pytest.fixture
def bucket() -> MockBucketClient:
    client = MockBucketClient("media")
    client.put_object("hello.txt", HELLO, MODIFIED_AT)
    client.put_object("data/big.bin", BIG, MODIFIED_AT)
    client.put_object("empty.bin", b"", MODIFIED_AT)
    return client


@pytest.fixture
def filesystem(bucket) -> VirtualFilesystem:
    return VirtualFilesystem(
        [MountConfig.resolve("media")],
        client_factory=lambda mount: bucket,
        chunk_size=1024,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(stream_block_size=300)


@pytest.fixture
def client(settings, filesystem) -> TestClient:
    app = create_app(settings, filesystem=filesystem)
    return TestClient(app)
