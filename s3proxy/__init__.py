"""
s3proxy - S3 buckets served over HTTP as browsable, seekable file trees.

This package contains the complete application:
- core: Framework-agnostic filesystem logic (reader, listing, mounts)
- infrastructure: External service integrations (boto3, htpasswd)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
