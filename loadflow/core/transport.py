"""Blocking HTTP call primitive.

The execution client and the auth orchestrator only depend on the
``HttpCall`` signature. RequestsTransport is the default implementation,
one instance (and one connection pool) per virtual user.
"""

from typing import Callable, Optional

import requests

from loadflow.core.data_structures import HttpResponse
from loadflow.exceptions import TransportException

# http_call(method, url, body, headers) -> HttpResponse
HttpCall = Callable[[str, str, Optional[str], dict[str, str]], HttpResponse]

DEFAULT_TIMEOUT = 30.0


class RequestsTransport:
    """HTTP call primitive backed by a requests.Session.

    Example:
        >>> transport = RequestsTransport(timeout=10)
        >>> response = transport("GET", "https://api.example.com/health", None, {})
        >>> response.status
        200
    """

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None
    ) -> None:
        """Initialize transport.

        Args:
            timeout: Per-request timeout in seconds
            session: Session to reuse (a new one is created by default)
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(
        self, method: str, url: str, body: Optional[str], headers: dict[str, str]
    ) -> HttpResponse:
        """Execute one request.

        Raises:
            TransportException: No response was received (connection error,
                timeout, invalid URL)
        """
        try:
            response = self.session.request(
                method,
                url,
                data=body.encode("utf-8") if body is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportException(method, url, str(e)) from e

        return HttpResponse.from_raw(response.status_code, response.text, dict(response.headers))

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()
