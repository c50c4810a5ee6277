"""WebDAV error definitions for BucketDAV.

Handlers raise these after their explicit existence probes; the dispatcher
turns them into short plain-text responses. Failures coming from the object
store are never wrapped in a ``DavError`` and surface as a 500.
"""


class DavError(Exception):
    """A protocol-level failure with an HTTP status and a short message.

    Attributes:
        http_status: The HTTP status code to return.
        message: Human-readable error description, used as the response body.
        headers: Extra response headers to attach.
    """

    http_status = 500
    default_message = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Error description. Defaults to the class reason phrase.
            headers: Optional extra response headers.
        """
        self.message = message or self.default_message
        super().__init__(self.message)
        self.headers = headers or {}


class AuthenticationError(DavError):
    """Missing or wrong credentials."""

    http_status = 401
    default_message = "Unauthorized"

    def __init__(self, realm: str = "webdav") -> None:
        super().__init__(headers={"WWW-Authenticate": f'Basic realm="{realm}"'})


class ClientInputError(DavError):
    """Malformed or missing request input (Destination, Depth, XML body)."""

    http_status = 400
    default_message = "Bad Request"


class ForbiddenError(DavError):
    """The request is understood but will not be carried out."""

    http_status = 403
    default_message = "Forbidden"


class ForbiddenDepthError(ForbiddenError):
    """PROPFIND with a Depth value outside 0, 1 and infinity."""

    def __init__(self, depth: str = "") -> None:
        message = f"Unsupported Depth: {depth}" if depth else None
        super().__init__(message)


class NotFoundError(DavError):
    """The target or source resource does not exist."""

    http_status = 404
    default_message = "Not Found"


class MethodConflictError(DavError):
    """Method not allowed against the resource in its current state."""

    http_status = 405
    default_message = "Method Not Allowed"


class ConflictError(DavError):
    """The parent collection of the target does not exist."""

    http_status = 409
    default_message = "Conflict"


class PreconditionFailedError(DavError):
    """A conditional header did not hold, or an overwrite was refused."""

    http_status = 412
    default_message = "Precondition Failed"


class RangeNotSatisfiableError(DavError):
    """The requested byte range lies outside the resource."""

    http_status = 416
    default_message = "Range Not Satisfiable"

    def __init__(self, size: int) -> None:
        super().__init__(headers={"Content-Range": f"bytes */{size}"})
