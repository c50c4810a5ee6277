"""Method dispatch for WebDAV requests.

Every request method maps onto exactly one :class:`DavMethod` variant
(unknown methods become ``UNSUPPORTED``), and every variant maps onto
exactly one handler method through :data:`HANDLERS`. The dispatcher is the
boundary where :class:`~bucketdav.errors.DavError` turns into a response.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from bucketdav import metrics
from bucketdav.errors import DavError, MethodConflictError
from bucketdav.handlers.common import ALLOW, DAV_CLASS, DavHandler
from bucketdav.handlers.delete import DeleteHandler
from bucketdav.handlers.propfind import PropfindHandler
from bucketdav.handlers.read import ReadHandler
from bucketdav.handlers.transfer import TransferHandler
from bucketdav.handlers.write import WriteHandler

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[Request, str], Awaitable[Response]]


class DavMethod(Enum):
    OPTIONS = "OPTIONS"
    GET = "GET"
    HEAD = "HEAD"
    PUT = "PUT"
    DELETE = "DELETE"
    MKCOL = "MKCOL"
    PROPFIND = "PROPFIND"
    PROPPATCH = "PROPPATCH"
    COPY = "COPY"
    MOVE = "MOVE"
    UNSUPPORTED = "UNSUPPORTED"


def method_from_string(method: str) -> DavMethod:
    """Map an HTTP method name onto a DavMethod; never fails."""
    try:
        return DavMethod(method.upper())
    except ValueError:
        return DavMethod.UNSUPPORTED


class UnsupportedMethodHandler(DavHandler):
    """Answers every method outside the supported set."""

    async def unsupported(self, request: Request, raw_path: str) -> Response:
        raise MethodConflictError(headers={"DAV": DAV_CLASS, "Allow": ALLOW})


HANDLERS: dict[DavMethod, tuple[type[DavHandler], str]] = {
    DavMethod.OPTIONS: (ReadHandler, "options"),
    DavMethod.GET: (ReadHandler, "get"),
    DavMethod.HEAD: (ReadHandler, "head"),
    DavMethod.PUT: (WriteHandler, "put"),
    DavMethod.DELETE: (DeleteHandler, "delete"),
    DavMethod.MKCOL: (WriteHandler, "mkcol"),
    DavMethod.PROPFIND: (PropfindHandler, "propfind"),
    DavMethod.PROPPATCH: (WriteHandler, "proppatch"),
    DavMethod.COPY: (TransferHandler, "copy"),
    DavMethod.MOVE: (TransferHandler, "move"),
    DavMethod.UNSUPPORTED: (UnsupportedMethodHandler, "unsupported"),
}


def error_response(exc: DavError, method: str) -> Response:
    """Render a DavError as a short text/plain response (no body on HEAD)."""
    if method == "HEAD":
        return Response(status_code=exc.http_status, headers=exc.headers)
    return PlainTextResponse(exc.message, status_code=exc.http_status, headers=exc.headers)


class Dispatcher:
    """Routes a request to its handler and renders protocol errors.

    Handler classes are instantiated once per application.
    """

    def __init__(self, app: FastAPI) -> None:
        instances: dict[type[DavHandler], DavHandler] = {}
        self._routes: dict[DavMethod, HandlerFunc] = {}
        for method, (handler_cls, attr) in HANDLERS.items():
            if handler_cls not in instances:
                instances[handler_cls] = handler_cls(app)
            self._routes[method] = getattr(instances[handler_cls], attr)

    async def dispatch(self, request: Request, raw_path: str) -> Response:
        """Run the handler for ``request.method`` against ``raw_path``."""
        method = method_from_string(request.method)
        try:
            response = await self._routes[method](request, raw_path)
        except DavError as exc:
            logger.debug("%s %s -> %d %s", request.method, raw_path, exc.http_status, exc.message)
            response = error_response(exc, request.method)
        metrics.record_operation(method.value, response.status_code)
        return response
