"""HTTP Basic authentication for BucketDAV.

A single configured username/password pair guards the server. The whole
``Authorization`` header is compared against the expected value in constant
time, so neither the username nor the password leaks through timing.
"""

import base64
import hmac
import logging

from fastapi import Request

from bucketdav.errors import AuthenticationError

logger = logging.getLogger(__name__)


class BasicAuthenticator:
    """Verifies the ``Authorization: Basic ...`` header of a request.

    Attributes:
        realm: Realm advertised in the ``WWW-Authenticate`` challenge.
    """

    def __init__(self, username: str, password: str, realm: str = "webdav") -> None:
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        self._expected = f"Basic {token}".encode()
        self.realm = realm

    def verify_request(self, request: Request) -> None:
        """Check the request's credentials.

        Raises:
            AuthenticationError: The header is missing or does not match.
        """
        header = request.headers.get("authorization", "")
        if not hmac.compare_digest(header.encode(), self._expected):
            logger.debug("Rejected credentials for %s %s", request.method, request.url.path)
            raise AuthenticationError(self.realm)
