"""
bucketsets - list and prune objects across many S3-compatible buckets.

This package contains the complete application:
- core: Framework-agnostic discovery, listing and pruning logic
- infrastructure: boto3 and in-memory storage clients
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
