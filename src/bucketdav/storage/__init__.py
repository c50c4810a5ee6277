"""Object store backends for BucketDAV."""

from typing import TYPE_CHECKING

from bucketdav.storage.backend import (
    Entry,
    ListingPage,
    Metadata,
    ObjectBody,
    ObjectStore,
)

if TYPE_CHECKING:
    from bucketdav.config import StorageConfig

__all__ = [
    "create_object_store",
    "Entry",
    "ListingPage",
    "Metadata",
    "ObjectBody",
    "ObjectStore",
]


def create_object_store(config: "StorageConfig") -> ObjectStore:
    """Create an object store instance based on configuration.

    Args:
        config: The storage configuration.

    Returns:
        An object store implementing the ObjectStore protocol.

    Raises:
        ValueError: If the backend is unknown or required config is missing.
        ImportError: If the s3 backend is selected without aiobotocore.
    """
    backend = config.backend

    if backend == "memory":
        from bucketdav.storage.memory import MemoryObjectStore

        return MemoryObjectStore(page_size=config.list_page_size)

    elif backend == "sqlite":
        from bucketdav.storage.sqlite import SQLiteObjectStore

        return SQLiteObjectStore(config.sqlite_path, page_size=config.list_page_size)

    elif backend == "s3":
        if not config.s3_bucket:
            raise ValueError("storage.s3.bucket is required when backend is 's3'")
        try:
            from bucketdav.storage.s3 import S3ObjectStore
        except ImportError as exc:
            raise ImportError(
                "aiobotocore is required for the S3 backend. "
                "Install with: pip install bucketdav[s3]"
            ) from exc
        return S3ObjectStore(
            bucket_name=config.s3_bucket,
            region=config.s3_region,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            use_path_style=config.s3_use_path_style,
            access_key_id=config.s3_access_key_id,
            secret_access_key=config.s3_secret_access_key,
            page_size=config.list_page_size,
        )

    else:
        raise ValueError(f"Unknown storage backend: {backend}")
