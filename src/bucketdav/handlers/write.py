"""Write-side WebDAV handlers: PUT, MKCOL and PROPPATCH."""

import logging

from fastapi import Request, Response

from bucketdav import paths
from bucketdav.errors import (
    ForbiddenError,
    MethodConflictError,
    NotFoundError,
    PreconditionFailedError,
)
from bucketdav.handlers.common import DavHandler, metadata_from_headers
from bucketdav.multistatus import multistatus_response, render_proppatch_response
from bucketdav.proppatch import parse_propertyupdate
from bucketdav.storage.backend import ObjectBody
from bucketdav.values import Conditions

logger = logging.getLogger(__name__)


class WriteHandler(DavHandler):
    """Handles PUT, MKCOL and PROPPATCH."""

    async def put(self, request: Request, raw_path: str) -> Response:
        """Create or overwrite a member resource.

        Creation and overwrite both answer 201.

        Raises:
            MethodConflictError: The path names a collection (trailing slash,
                the root, or an existing collection entry).
            ConflictError: The parent collection does not exist.
            PreconditionFailedError: The store rejected the conditional headers.
        """
        path = paths.normalize(raw_path)
        if path == paths.ROOT or paths.is_collection_request(raw_path):
            raise MethodConflictError("Cannot PUT to a collection")

        await self._ensure_parent_collection(path)

        existing = await self.store.head(path)
        if existing is not None and existing.is_collection:
            raise MethodConflictError("Cannot PUT to a collection")

        body = await request.body()
        entry = await self.store.put(
            path,
            body,
            metadata_from_headers(request),
            Conditions.from_headers(request.headers),
        )
        if entry is None:
            raise PreconditionFailedError()
        return Response(status_code=201, headers={"ETag": entry.http_etag})

    async def mkcol(self, request: Request, raw_path: str) -> Response:
        """Create a collection marker. The request body is ignored.

        Raises:
            MethodConflictError: Something already exists at the path.
            ConflictError: The parent collection does not exist.
        """
        path = paths.normalize(raw_path)
        if path == paths.ROOT or await self.store.head(path) is not None:
            raise MethodConflictError()

        await self._ensure_parent_collection(path)

        await self.store.put(path, b"", metadata_from_headers(request, is_collection=True))
        return Response(status_code=201)

    async def proppatch(self, request: Request, raw_path: str) -> Response:
        """Set or remove dead properties stored in the entry's custom metadata.

        The entry is rewritten with its body unchanged. Every touched
        property is reported with ``200 OK``.

        Raises:
            ForbiddenError: The target is the root, which has no entry.
            NotFoundError: The target does not exist.
            ClientInputError: The body is not a well-formed propertyupdate.
        """
        path = paths.normalize(raw_path)
        if path == paths.ROOT:
            raise ForbiddenError("The root collection has no properties to patch")

        obj = await self.store.get(path)
        if not isinstance(obj, ObjectBody):
            raise NotFoundError()

        updates = parse_propertyupdate(await request.body())

        metadata = obj.metadata()
        for update in updates:
            if update.action == "set":
                metadata.custom_metadata[update.name] = update.value or ""
            else:
                metadata.custom_metadata.pop(update.name, None)

        await self.store.put(path, obj.body, metadata)
        logger.debug("Patched %d properties on %s", len(updates), path)

        body = render_proppatch_response(
            paths.href(path, obj.is_collection),
            [(u.namespace, u.name) for u in updates],
        )
        return multistatus_response(body)
