"""COPY and MOVE handlers.

Both resolve the Destination header, refuse to operate on the root or
into the source's own subtree, clear an existing destination when
Overwrite allows it, then hand the work to the tree operator. MOVE is
COPY followed by deletion of the source keys; it is not atomic.
"""

from fastapi import Request, Response

from bucketdav import paths
from bucketdav.errors import (
    ClientInputError,
    NotFoundError,
    PreconditionFailedError,
)
from bucketdav.handlers.common import DavHandler
from bucketdav.tree import remove_resource, transfer_resource
from bucketdav.values import Depth, parse_overwrite


class TransferHandler(DavHandler):
    """Handles COPY and MOVE."""

    async def copy(self, request: Request, raw_path: str) -> Response:
        return await self._transfer(request, raw_path, move=False)

    async def move(self, request: Request, raw_path: str) -> Response:
        return await self._transfer(request, raw_path, move=True)

    async def _transfer(self, request: Request, raw_path: str, move: bool) -> Response:
        """Copy or move the resource at ``raw_path`` to the Destination.

        Returns 201 when the destination was created and 204 when an
        existing destination was replaced.

        Raises:
            ClientInputError: Bad Destination, Overwrite or Depth header, the
                root as source or destination, or source and destination
                nested in one another.
            NotFoundError: The source does not exist.
            ConflictError: The destination's parent collection does not exist.
            PreconditionFailedError: The destination exists and Overwrite is F.
        """
        source = paths.normalize(raw_path)
        destination = paths.parse_destination(request.headers.get("destination"))
        if destination is None:
            raise ClientInputError("Missing or invalid Destination header")
        if source == paths.ROOT or destination == paths.ROOT:
            raise ClientInputError("The root collection cannot be copied or moved")
        if paths.is_within(destination, source):
            raise ClientInputError("Destination lies inside the source")
        if paths.is_within(source, destination):
            raise ClientInputError("Destination is an ancestor of the source")

        overwrite = parse_overwrite(request.headers.get("overwrite"))
        if overwrite is None:
            raise ClientInputError("Invalid Overwrite header")

        entry = await self.store.head(source)
        if entry is None:
            raise NotFoundError()

        depth = Depth.INFINITY
        if entry.is_collection:
            depth = Depth.parse(request.headers.get("depth"))
            if depth not in (Depth.ZERO, Depth.INFINITY):
                raise ClientInputError("Depth must be 0 or infinity")

        await self._ensure_parent_collection(destination)

        existed = await self.store.head(destination) is not None
        if existed:
            if not overwrite:
                raise PreconditionFailedError("Destination exists and Overwrite is F")
            await remove_resource(self.store, destination)

        await transfer_resource(self.store, entry, destination, move=move, depth=depth)
        return Response(status_code=204 if existed else 201)
