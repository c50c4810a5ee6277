"""Read-side WebDAV handlers: OPTIONS, GET and HEAD.

GET on a collection (trailing slash, or a key whose entry turns out to be a
collection) renders a minimal HTML index of the direct children. GET on a
member streams the stored body back with its HTTP metadata, honouring
conditional headers and a single byte range.
"""

import html

from fastapi import Request, Response
from fastapi.responses import HTMLResponse

from bucketdav import paths
from bucketdav.errors import (
    NotFoundError,
    PreconditionFailedError,
    RangeNotSatisfiableError,
)
from bucketdav.handlers.common import ALLOW, DAV_CLASS, DavHandler
from bucketdav.listing import ListingIterator, ListingMode
from bucketdav.storage.backend import Entry, ObjectBody
from bucketdav.values import Conditions, http_date, parse_range_header, resolve_span


def _object_headers(entry: Entry) -> dict[str, str]:
    """Build the response headers forwarded from an entry's metadata."""
    headers = {
        "ETag": entry.http_etag,
        "Last-Modified": http_date(entry.uploaded_at),
        "Accept-Ranges": "bytes",
    }
    if entry.content_disposition:
        headers["Content-Disposition"] = entry.content_disposition
    if entry.content_encoding:
        headers["Content-Encoding"] = entry.content_encoding
    if entry.content_language:
        headers["Content-Language"] = entry.content_language
    if entry.cache_control:
        headers["Cache-Control"] = entry.cache_control
    if entry.cache_expiry is not None:
        headers["Expires"] = http_date(entry.cache_expiry)
    return headers


class ReadHandler(DavHandler):
    """Handles OPTIONS, GET and HEAD."""

    async def options(self, request: Request, raw_path: str) -> Response:
        """Advertise the DAV compliance class and the supported methods."""
        return Response(status_code=204, headers={"DAV": DAV_CLASS, "Allow": ALLOW})

    async def get(self, request: Request, raw_path: str) -> Response:
        """Return a member's body, or an HTML index for a collection.

        Raises:
            NotFoundError: The resource does not exist.
            PreconditionFailedError: A conditional header did not hold.
            RangeNotSatisfiableError: The range starts beyond the body.
        """
        path = paths.normalize(raw_path)
        if path == paths.ROOT or paths.is_collection_request(raw_path):
            return await self._collection_index(path)

        conditions = Conditions.from_headers(request.headers)
        byte_range = parse_range_header(request.headers.get("range"))
        obj = await self.store.get(path, conditions, byte_range)
        if obj is None:
            raise NotFoundError()
        if not isinstance(obj, ObjectBody):
            raise PreconditionFailedError()
        if obj.is_collection:
            return await self._collection_index(path, obj)

        headers = _object_headers(obj)
        # set directly so Starlette does not append a charset to text/* types
        headers["Content-Type"] = obj.content_type or "application/octet-stream"

        if obj.range is None:
            return Response(content=obj.body, status_code=200, headers=headers)

        span = resolve_span(obj.range, obj.size)
        if span is None:
            raise RangeNotSatisfiableError(obj.size)
        start, end = span
        headers["Content-Range"] = f"bytes {start}-{end}/{obj.size}"
        partial = (start, end) != (0, obj.size - 1)
        return Response(
            content=obj.body,
            status_code=206 if partial else 200,
            headers=headers,
        )

    async def head(self, request: Request, raw_path: str) -> Response:
        """GET without the body: status and headers are kept."""
        response = await self.get(request, raw_path)
        return Response(status_code=response.status_code, headers=dict(response.headers))

    async def _collection_index(self, path: str, entry: Entry | None = None) -> Response:
        """Render an HTML page linking to each direct child of a collection."""
        if path != paths.ROOT:
            if entry is None:
                entry = await self.store.head(path)
            if entry is None or not entry.is_collection:
                raise NotFoundError()

        title = html.escape(paths.href(path, is_collection=True))
        links = []
        if path != paths.ROOT:
            links.append('<a href="../">../</a><br>')

        iterator = ListingIterator(self.store, paths.child_prefix(path), ListingMode.SHALLOW)
        async for child in iterator:
            href = paths.href(child.key, child.is_collection)
            text = child.content_disposition or child.key
            links.append(f'<a href="{html.escape(href)}">{html.escape(text)}</a><br>')

        page = (
            "<!DOCTYPE html>\n"
            f"<html><head><meta charset=\"utf-8\"><title>Index of {title}</title></head>\n"
            f"<body><h1>Index of {title}</h1>\n"
            + "\n".join(links)
            + "\n</body></html>\n"
        )
        return HTMLResponse(content=page)
