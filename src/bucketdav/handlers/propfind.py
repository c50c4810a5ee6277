"""PROPFIND handler.

The request body is not parsed: every request is answered as ``allprop``
with the eight live properties each entry has.
"""

from fastapi import Request, Response

from bucketdav import paths
from bucketdav.errors import ForbiddenDepthError, NotFoundError
from bucketdav.handlers.common import DavHandler
from bucketdav.listing import ListingIterator, ListingMode
from bucketdav.multistatus import (
    DavProperties,
    multistatus_response,
    properties_for,
    render_multistatus,
    root_properties,
)
from bucketdav.values import Depth


class PropfindHandler(DavHandler):
    """Handles PROPFIND."""

    async def propfind(self, request: Request, raw_path: str) -> Response:
        """List properties of the target and, for collections, its descendants.

        Depth ``0`` reports the target only, ``1`` adds direct children and
        ``infinity`` (the default) adds the whole subtree.

        Raises:
            ForbiddenDepthError: Depth is not 0, 1 or infinity.
            NotFoundError: The target does not exist.
        """
        depth_header = request.headers.get("depth")
        depth = Depth.parse(depth_header)
        if depth is None:
            raise ForbiddenDepthError(depth_header or "")

        path = paths.normalize(raw_path)
        responses: list[tuple[str, DavProperties]] = []

        if path == paths.ROOT:
            responses.append((paths.href(path, True), root_properties()))
            is_collection = True
        else:
            entry = await self.store.head(path)
            if entry is None:
                raise NotFoundError()
            responses.append((paths.href(path, entry.is_collection), properties_for(entry)))
            is_collection = entry.is_collection

        if is_collection and depth is not Depth.ZERO:
            mode = ListingMode.SHALLOW if depth is Depth.ONE else ListingMode.RECURSIVE
            iterator = ListingIterator(self.store, paths.child_prefix(path), mode)
            async for child in iterator:
                responses.append(
                    (paths.href(child.key, child.is_collection), properties_for(child))
                )

        return multistatus_response(render_multistatus(responses))
