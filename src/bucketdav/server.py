"""FastAPI application factory and route setup for BucketDAV."""

import email.utils
import json
import logging
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send

from bucketdav.auth import BasicAuthenticator
from bucketdav.config import BucketDavConfig
from bucketdav.dispatcher import Dispatcher, error_response
from bucketdav.errors import AuthenticationError
from bucketdav.handlers.common import ALLOW
from bucketdav.logging_config import request_id_var
from bucketdav.storage import create_object_store

logger = logging.getLogger(__name__)

# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus gauge in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/metrics"],
        )
    return _instrumentator


CORS_ALLOW_HEADERS = ", ".join(
    ["authorization", "content-type", "depth", "overwrite", "destination", "range"]
)
CORS_EXPOSE_HEADERS = ", ".join(
    [
        "content-type",
        "content-length",
        "dav",
        "etag",
        "last-modified",
        "location",
        "date",
        "content-range",
    ]
)

# Paths that skip auth
AUTH_SKIP_PATHS = {"/health", "/healthz", "/readyz", "/metrics"}

# Paths to suppress from per-request logging
_QUIET_PATHS = {"/metrics", "/health", "/healthz", "/readyz"}


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: BucketDavConfig) -> FastAPI:
    """Create and configure the BucketDAV FastAPI application.

    The lifespan context manager opens the object store on startup and
    closes it on shutdown. Every WebDAV request goes through one catch-all
    route into the :class:`~bucketdav.dispatcher.Dispatcher`; the health and
    metrics routes are registered first so the catch-all cannot shadow them.

    Args:
        config: The loaded BucketDAV configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = create_object_store(config.storage)
        await store.init()
        app.state.store = store
        logger.info("Object store initialized: %s", config.storage.backend)

        yield

        await store.close()
        logger.info("Object store closed")

    app = FastAPI(
        title="BucketDAV",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config
    app.state.dispatcher = Dispatcher(app)
    app.state.authenticator = (
        BasicAuthenticator(config.auth.username, config.auth.password, config.auth.realm)
        if config.auth.enabled
        else None
    )

    _register_exception_handlers(app)
    _register_middleware(app, config)

    if config.observability.metrics:
        import bucketdav.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="bucketdav").expose(
            app, endpoint="/metrics"
        )

    _setup_routes(app, config)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    """Register the catch-all handler for unexpected (store) failures."""

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Log the failure with its traceback and answer 500."""
        logger.exception("Unhandled exception in request handler")
        if request.method == "HEAD":
            return Response(status_code=500)
        return PlainTextResponse("Internal Server Error", status_code=500)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _apply_cors(request: Request, response: Response, config: BucketDavConfig) -> None:
    """Decorate a response with the CORS headers browsers need for WebDAV."""
    origin = config.cors.allow_origin or request.headers.get("origin") or "*"
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = ALLOW
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    response.headers["Access-Control-Expose-Headers"] = CORS_EXPOSE_HEADERS
    response.headers["Access-Control-Allow-Credentials"] = "false"
    response.headers["Access-Control-Max-Age"] = str(config.cors.max_age)


def _content_length(headers) -> int:
    value = headers.get("content-length")
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def _register_middleware(app: FastAPI, config: BucketDavConfig) -> None:
    """Register middleware on the FastAPI app.

    Middleware registered later runs first. auth is registered first and
    common_headers second, so the execution order is:
    common_headers -> auth -> handler, and 401 responses get the common and
    CORS headers and an access log line like every other response.
    """
    metrics_enabled = config.observability.metrics

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next) -> Response:
        """HTTP Basic authentication.

        Skips the health and metrics endpoints, and everything when auth is
        disabled. FastAPI exception handlers do not see exceptions raised in
        middleware, so a failure is rendered here directly.
        """
        authenticator: BasicAuthenticator | None = app.state.authenticator
        if authenticator is None or request.url.path in AUTH_SKIP_PATHS:
            return await call_next(request)

        try:
            authenticator.verify_request(request)
        except AuthenticationError as exc:
            return error_response(exc, request.method)

        return await call_next(request)

    @app.middleware("http")
    async def common_headers_middleware(request: Request, call_next) -> Response:
        """Add common and CORS headers, count bytes and log the request."""
        request_id = secrets.token_hex(8)
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.monotonic()

        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response.headers["X-Request-Id"] = request_id
        response.headers["Date"] = email.utils.formatdate(usegmt=True)
        response.headers["Server"] = "BucketDAV"
        if config.cors.enabled:
            _apply_cors(request, response, config)

        if metrics_enabled:
            import bucketdav.metrics as _m

            received = _content_length(request.headers)
            if received > 0 and _m.bytes_received_total is not None:
                _m.bytes_received_total.inc(received)
            sent = _content_length(response.headers)
            if sent > 0 and _m.bytes_sent_total is not None:
                _m.bytes_sent_total.inc(sent)

        # Per-request structured log (skip noisy endpoints)
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "request_id": request_id,
                },
            )

        return response


# ---------------------------------------------------------------------------
# Health check helpers
# ---------------------------------------------------------------------------


async def _check_store(app: FastAPI) -> dict:
    """Probe the object store with a one-entry listing.

    Returns a dict with ``status`` and ``latency_ms`` keys.
    """
    store = getattr(app.state, "store", None)
    if store is None:
        return {"status": "error", "error": "object store not initialized", "latency_ms": 0}
    try:
        start = time.monotonic()
        await store.list("", limit=1)
        latency = round((time.monotonic() - start) * 1000, 1)
        return {"status": "ok", "latency_ms": latency}
    except Exception as exc:
        return {"status": "error", "error": str(exc), "latency_ms": 0}


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: BucketDavConfig) -> None:
    """Register the health routes and the WebDAV catch-all.

    Args:
        app: The FastAPI application to attach routes to.
        config: The BucketDAV configuration.
    """
    health_check_enabled = config.observability.health_check

    @app.get("/health")
    async def health_check(request: Request) -> Response:
        """Return health status.

        When health_check is enabled, probe the object store and report
        its latency. When disabled, return a static ``{"status": "ok"}``.
        """
        if not health_check_enabled:
            return Response(content='{"status":"ok"}', media_type="application/json")

        store_check = await _check_store(app)
        ok = store_check["status"] == "ok"
        body = json.dumps(
            {
                "status": "ok" if ok else "degraded",
                "checks": {"store": store_check},
            }
        )
        return Response(
            content=body,
            status_code=200 if ok else 503,
            media_type="application/json",
        )

    if health_check_enabled:

        @app.get("/healthz")
        async def healthz() -> Response:
            """Liveness probe. Returns 200 with empty body."""
            return Response(status_code=200)

        @app.get("/readyz")
        async def readyz() -> Response:
            """Readiness probe: 200 if the store answers, 503 otherwise."""
            store_check = await _check_store(app)
            return Response(status_code=200 if store_check["status"] == "ok" else 503)

    # Starlette only restricts methods for function endpoints, so an ASGI
    # endpoint receives PROPFIND, MKCOL, COPY and unknown verbs alike.
    app.add_route("/{path:path}", DavEndpoint(app), include_in_schema=False)


class DavEndpoint:
    """ASGI endpoint handing every request, whatever its method, to the dispatcher."""

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        raw_path = "/" + request.path_params.get("path", "")
        response = await self.app.state.dispatcher.dispatch(request, raw_path)
        await response(scope, receive, send)
