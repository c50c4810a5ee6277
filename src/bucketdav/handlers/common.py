"""Shared pieces of the WebDAV method handlers."""

from fastapi import FastAPI, Request

from bucketdav import paths
from bucketdav.errors import ConflictError
from bucketdav.storage.backend import Metadata, ObjectStore
from bucketdav.values import parse_http_date

DAV_CLASS = "1"

SUPPORTED_METHODS = (
    "OPTIONS",
    "PROPFIND",
    "PROPPATCH",
    "MKCOL",
    "GET",
    "HEAD",
    "PUT",
    "DELETE",
    "COPY",
    "MOVE",
)

ALLOW = ", ".join(SUPPORTED_METHODS)


def metadata_from_headers(request: Request, is_collection: bool = False) -> Metadata:
    """Collect the writable HTTP metadata carried by a PUT or MKCOL request."""
    headers = request.headers
    return Metadata(
        content_type=headers.get("content-type"),
        content_disposition=headers.get("content-disposition"),
        content_language=headers.get("content-language"),
        content_encoding=headers.get("content-encoding"),
        cache_control=headers.get("cache-control"),
        cache_expiry=parse_http_date(headers.get("expires")),
        is_collection=is_collection,
    )


class DavHandler:
    """Base class for handlers bound to the application.

    The store is looked up on ``app.state`` for every call, so swapping the
    store (as tests do) takes effect immediately.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    @property
    def store(self) -> ObjectStore:
        return self.app.state.store

    async def _ensure_parent_collection(self, path: str) -> None:
        """Raise ConflictError unless ``path``'s parent is the root or a collection."""
        parent = paths.parent(path)
        if parent == paths.ROOT:
            return
        entry = await self.store.head(parent)
        if entry is None or not entry.is_collection:
            raise ConflictError()
