"""DELETE handler.

Deleting a collection always removes its whole subtree; there is no Depth
negotiation. Deleting the root clears the store but keeps the root itself.
"""

from fastapi import Request, Response

from bucketdav import paths
from bucketdav.errors import NotFoundError
from bucketdav.handlers.common import DavHandler
from bucketdav.tree import remove_resource


class DeleteHandler(DavHandler):
    """Handles DELETE."""

    async def delete(self, request: Request, raw_path: str) -> Response:
        path = paths.normalize(raw_path)
        if not await remove_resource(self.store, path):
            raise NotFoundError()
        return Response(status_code=204)
