"""
Object storage integration for storage sets.

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    StorageError,
    create_storage_client,
)
from .registry import BackendRegistry

__all__ = [
    "BackendRegistry",
    "MockStorageClient",
    "S3StorageClient",
    "StorageConfig",
    "StorageError",
    "create_storage_client",
]
