"""
Core filesystem logic for the proxy.

This package is framework-agnostic: it doesn't import FastAPI or boto3.
Bucket access goes through the BucketClient protocol, so everything here
can be tested against an in-memory client.
"""
