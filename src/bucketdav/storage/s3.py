"""S3-compatible object store for BucketDAV.

Proxies every operation to an upstream bucket via aiobotocore. All resources
live under a single upstream bucket with an optional key prefix.

Metadata mapping:
    HTTP metadata   -> the matching S3 system headers (ContentType, ...)
    is_collection   -> user metadata ``resourcetype=collection``
    dead properties -> user metadata ``properties`` as base64url JSON, since
                       S3 lowercases metadata keys and only takes ASCII

S3 listings carry no metadata, so each listed key is head-requested
concurrently to build full entries.

Credentials are resolved via the standard AWS credential chain
(env vars, ~/.aws/credentials, IAM role, etc.) unless given explicitly.
"""

import asyncio
import base64
import hashlib
import json
import logging
from datetime import datetime, timezone

from aiobotocore.session import AioSession
from botocore.exceptions import ClientError

from bucketdav.storage.backend import (
    Entry,
    ListingPage,
    Metadata,
    ObjectBody,
    check_conditions,
)
from bucketdav.values import ByteRange, Conditions, format_range_header

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 1000

# delete_objects accepts at most 1000 keys per request
_DELETE_BATCH = 1000

_COLLECTION_KEY = "resourcetype"
_COLLECTION_VALUE = "collection"
_PROPERTIES_KEY = "properties"

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")
_PRECONDITION_CODES = ("412", "PreconditionFailed", "304", "NotModified")


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


def _user_metadata(metadata: Metadata) -> dict[str, str]:
    """Encode collection flag and custom properties as S3 user metadata."""
    user: dict[str, str] = {}
    if metadata.is_collection:
        user[_COLLECTION_KEY] = _COLLECTION_VALUE
    if metadata.custom_metadata:
        encoded = json.dumps(metadata.custom_metadata, ensure_ascii=False).encode()
        user[_PROPERTIES_KEY] = base64.urlsafe_b64encode(encoded).decode("ascii")
    return user


def _decode_properties(value: str | None) -> dict[str, str]:
    if not value:
        return {}
    return json.loads(base64.urlsafe_b64decode(value.encode("ascii")))


def _etag_list(etags: list[str]) -> str:
    return ", ".join(t if t == "*" else f'"{t}"' for t in etags)


def _full_size(resp: dict) -> int:
    """Total object size, taken from Content-Range on partial responses."""
    content_range = resp.get("ContentRange")
    if content_range and "/" in content_range:
        total = content_range.rsplit("/", 1)[1]
        if total.isdigit():
            return int(total)
    return int(resp.get("ContentLength", 0))


def _entry_from_response(key: str, resp: dict) -> Entry:
    """Build an Entry from a head_object or get_object response."""
    user = resp.get("Metadata", {}) or {}
    custom = _decode_properties(user.get(_PROPERTIES_KEY))
    expires = resp.get("Expires")
    return Entry(
        key=key,
        size=_full_size(resp),
        etag=resp.get("ETag", "").strip('"'),
        uploaded_at=resp.get("LastModified") or datetime.now(timezone.utc),
        content_type=resp.get("ContentType"),
        content_disposition=resp.get("ContentDisposition"),
        content_language=resp.get("ContentLanguage"),
        content_encoding=resp.get("ContentEncoding"),
        cache_control=resp.get("CacheControl"),
        cache_expiry=expires if isinstance(expires, datetime) else None,
        is_collection=user.get(_COLLECTION_KEY) == _COLLECTION_VALUE,
        custom_metadata=custom,
    )


class S3ObjectStore:
    """Object store backed by an S3-compatible bucket.

    Attributes:
        bucket_name: The upstream S3 bucket name.
        region: The AWS region for the bucket.
        prefix: Key prefix for all objects in the upstream bucket.
        page_size: Maximum number of keys requested per listing page.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        prefix: str = "",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
        page_size: int = _DEFAULT_PAGE_SIZE,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.prefix = prefix
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.page_size = page_size
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    def _s3_key(self, key: str) -> str:
        """Map a resource key to an upstream S3 key."""
        return f"{self.prefix}{key}"

    def _resource_key(self, s3_key: str) -> str:
        """Map an upstream S3 key back to a resource key."""
        return s3_key[len(self.prefix) :]

    async def init(self) -> None:
        """Create the aiobotocore S3 client and verify the upstream bucket exists.

        Raises:
            ValueError: If the upstream bucket does not exist or is inaccessible.
        """
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.use_path_style:
            from botocore.config import Config as BotoConfig

            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        try:
            await self._client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None
            raise ValueError(
                f"Cannot access upstream S3 bucket '{self.bucket_name}': {_error_code(e)}"
            ) from e

        logger.info(
            "S3 object store initialized: bucket=%s region=%s prefix='%s'",
            self.bucket_name,
            self.region,
            self.prefix,
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def head(self, key: str) -> Entry | None:
        try:
            resp = await self._client.head_object(
                Bucket=self.bucket_name, Key=self._s3_key(key)
            )
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise
        return _entry_from_response(key, resp)

    async def get(
        self,
        key: str,
        conditions: Conditions | None = None,
        byte_range: ByteRange | None = None,
    ) -> ObjectBody | Entry | None:
        """Fetch an object, forwarding conditions and range upstream.

        A failed precondition is answered with the entry from a follow-up
        head request. An unsatisfiable range yields an empty body so the
        caller can report it against the entry's size.
        """
        kwargs: dict = {"Bucket": self.bucket_name, "Key": self._s3_key(key)}
        if byte_range is not None:
            kwargs["Range"] = format_range_header(byte_range)
        if conditions is not None:
            if conditions.if_match is not None:
                kwargs["IfMatch"] = _etag_list(conditions.if_match)
            if conditions.if_none_match is not None:
                kwargs["IfNoneMatch"] = _etag_list(conditions.if_none_match)
            if conditions.if_modified_since is not None:
                kwargs["IfModifiedSince"] = conditions.if_modified_since
            if conditions.if_unmodified_since is not None:
                kwargs["IfUnmodifiedSince"] = conditions.if_unmodified_since

        try:
            resp = await self._client.get_object(**kwargs)
        except ClientError as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                return None
            if code in _PRECONDITION_CODES:
                return await self.head(key)
            if code == "InvalidRange":
                entry = await self.head(key)
                if entry is None:
                    return None
                return ObjectBody(**vars(entry), body=b"", range=byte_range)
            raise

        async with resp["Body"] as stream:
            data = await stream.read()

        entry = _entry_from_response(key, resp)
        applied = byte_range if resp.get("ContentRange") else None
        return ObjectBody(**vars(entry), body=data, range=applied)

    async def put(
        self,
        key: str,
        body: bytes,
        metadata: Metadata,
        conditions: Conditions | None = None,
    ) -> Entry | None:
        """Upload an object with its metadata.

        Conditions are checked against a head of the current object first.
        Computes MD5 locally for a consistent ETag.
        """
        if conditions is not None:
            current = await self.head(key)
            if not check_conditions(current, conditions):
                return None

        kwargs: dict = {
            "Bucket": self.bucket_name,
            "Key": self._s3_key(key),
            "Body": body,
            "Metadata": _user_metadata(metadata),
        }
        if metadata.content_type:
            kwargs["ContentType"] = metadata.content_type
        if metadata.content_disposition:
            kwargs["ContentDisposition"] = metadata.content_disposition
        if metadata.content_language:
            kwargs["ContentLanguage"] = metadata.content_language
        if metadata.content_encoding:
            kwargs["ContentEncoding"] = metadata.content_encoding
        if metadata.cache_control:
            kwargs["CacheControl"] = metadata.cache_control
        if metadata.cache_expiry is not None:
            kwargs["Expires"] = metadata.cache_expiry

        resp = await self._client.put_object(**kwargs)
        etag = (resp.get("ETag") or "").strip('"') or hashlib.md5(body).hexdigest()
        return Entry.from_metadata(
            key=key,
            size=len(body),
            etag=etag,
            uploaded_at=datetime.now(timezone.utc),
            metadata=metadata,
        )

    async def delete(self, keys: str | list[str]) -> None:
        """Delete one key or a batch of keys.

        Idempotent: S3 does not error on missing keys.
        """
        if isinstance(keys, str):
            await self._client.delete_object(
                Bucket=self.bucket_name, Key=self._s3_key(keys)
            )
            return

        for i in range(0, len(keys), _DELETE_BATCH):
            batch = keys[i : i + _DELETE_BATCH]
            await self._client.delete_objects(
                Bucket=self.bucket_name,
                Delete={
                    "Objects": [{"Key": self._s3_key(k)} for k in batch],
                    "Quiet": True,
                },
            )

    async def list(
        self,
        prefix: str,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListingPage:
        """List one page via list_objects_v2.

        The cursor is the upstream continuation token. Keys that vanish
        between the listing and their head request are left out.
        """
        kwargs: dict = {
            "Bucket": self.bucket_name,
            "Prefix": self._s3_key(prefix),
            "MaxKeys": limit or self.page_size,
        }
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if cursor:
            kwargs["ContinuationToken"] = cursor

        resp = await self._client.list_objects_v2(**kwargs)
        keys = [self._resource_key(obj["Key"]) for obj in resp.get("Contents", [])]
        heads = await asyncio.gather(*(self.head(k) for k in keys))

        truncated = bool(resp.get("IsTruncated"))
        return ListingPage(
            entries=[e for e in heads if e is not None],
            truncated=truncated,
            cursor=resp.get("NextContinuationToken") if truncated else None,
        )
