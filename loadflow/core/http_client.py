"""Request execution client.

RequestClient turns an EndpointDescriptor into one HTTP call: it resolves
every dynamic part against the per-iteration context, injects the auth
artifacts carried by the token, records a metric sample and extracts
response values into the context for the next call.
"""

import json
import logging
import re
import time
from typing import Any, Optional
from urllib.parse import quote

from loadflow.core.auth import auth_headers, auth_query_params
from loadflow.core.data_structures import (
    BODY_METHODS,
    EndpointDescriptor,
    HttpResponse,
    RequestMetric,
)
from loadflow.core.dynamic_value import Context, resolve
from loadflow.core.metrics import MetricsCollector
from loadflow.core.path_extractor import extract_mapping
from loadflow.core.transport import HttpCall
from loadflow.exceptions import UnsupportedMethodException

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json"}

# Characters left unescaped in query keys and values
QUERY_SAFE = "-_.!~*'()"

ABSOLUTE_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def stringify(value: Any) -> str:
    """Render a resolved value for use in a URL.

    Booleans render lowercase and None renders empty.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(params: dict[str, Any]) -> str:
    """Percent-encode params as ``key=value`` pairs joined by ``&``."""
    return "&".join(
        f"{quote(stringify(key), safe=QUERY_SAFE)}={quote(stringify(value), safe=QUERY_SAFE)}"
        for key, value in params.items()
    )


def append_query(url: str, query: str) -> str:
    """Append an encoded query string, choosing ``?`` or ``&``."""
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


class RequestClient:
    """Execute endpoint descriptors for one virtual user.

    The client owns a per-iteration Context. It is never reset implicitly:
    call ``reset_context`` at the start of each logical iteration.

    Example:
        >>> client = RequestClient("https://api.example.com", metrics, transport)
        >>> client.set_token(auth_result.token)
        >>> client.execute(create_task)
        >>> client.context.get("taskId")
        42
    """

    def __init__(
        self,
        base_url: str,
        metrics: MetricsCollector,
        http_call: HttpCall,
        token: Optional[str] = None,
        default_headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Prefix for relative endpoint URLs
            metrics: Shared metrics collector
            http_call: Blocking HTTP call primitive
            token: Tagged auth token from the setup phase
            default_headers: Headers for every call (default: JSON content type)
        """
        self.base_url = base_url
        self.metrics = metrics
        self.http_call = http_call
        self.token = token
        self.default_headers = (
            dict(default_headers) if default_headers is not None else dict(DEFAULT_HEADERS)
        )
        self._context = Context()
        self._dispatch = {
            "GET": self._get,
            "POST": self._post,
            "PUT": self._put,
            "PATCH": self._patch,
            "DELETE": self._delete,
        }

    @property
    def context(self) -> Context:
        """Context accumulated since the last reset."""
        return self._context

    def set_token(self, token: Optional[str]) -> None:
        """Set the tagged auth token used for subsequent calls."""
        self.token = token

    def reset_context(self, initial: Optional[dict[str, Any]] = None) -> None:
        """Start a fresh per-iteration context."""
        self._context = Context(initial)

    def build_url(self, endpoint: EndpointDescriptor) -> str:
        """Compose the full request URL for an endpoint.

        Resolves the URL, substitutes ``{key}`` path placeholders, appends
        query parameters and, for query API keys, the key itself.
        """
        url = stringify(resolve(endpoint.url, self._context))

        for key, raw in endpoint.path_params.items():
            value = resolve(raw, self._context)
            if value is None:
                # Unresolved values leave the placeholder literal
                continue
            url = url.replace(f"{{{key}}}", stringify(value))

        query = {key: resolve(raw, self._context) for key, raw in endpoint.query_params.items()}
        url = append_query(url, encode_query(query))

        if self.token:
            url = append_query(url, encode_query(auth_query_params(self.token)))

        if ABSOLUTE_URL_PATTERN.match(url):
            return url
        return f"{self.base_url}{url}"

    def build_headers(self, endpoint: EndpointDescriptor) -> dict[str, str]:
        """Merge default, auth-derived and per-call headers (later wins)."""
        headers = dict(self.default_headers)
        if self.token:
            headers.update(auth_headers(self.token))
        headers.update(endpoint.headers)
        return headers

    def build_body(self, endpoint: EndpointDescriptor) -> Optional[str]:
        """Resolve and serialize the body for methods that carry one."""
        if endpoint.method not in BODY_METHODS or endpoint.body is None:
            return None
        body = resolve(endpoint.body, self._context)
        if body is None:
            return None
        if isinstance(body, str):
            return body
        return json.dumps(body)

    def execute(self, endpoint: EndpointDescriptor) -> HttpResponse:
        """Execute one endpoint descriptor.

        Args:
            endpoint: Endpoint to call

        Returns:
            The HTTP response, whatever its status

        Raises:
            UnsupportedMethodException: Method is not one of GET, POST,
                PUT, PATCH, DELETE (raised before any network activity)
            TransportException: No response was received; no metric is
                recorded for the call
        """
        call = self._dispatch.get(endpoint.method)
        if call is None:
            raise UnsupportedMethodException(endpoint.method)

        url = self.build_url(endpoint)
        headers = self.build_headers(endpoint)
        response = call(endpoint, url, headers)

        if endpoint.extract and response.structured:
            found = extract_mapping(response.body, endpoint.extract, endpoint.name)
            self._context = self._context.merge(found)

        return response

    def _get(self, endpoint: EndpointDescriptor, url: str, headers: dict[str, str]) -> HttpResponse:
        return self._timed(endpoint, "GET", url, None, headers)

    def _post(self, endpoint: EndpointDescriptor, url: str, headers: dict[str, str]) -> HttpResponse:
        return self._timed(endpoint, "POST", url, self.build_body(endpoint), headers)

    def _put(self, endpoint: EndpointDescriptor, url: str, headers: dict[str, str]) -> HttpResponse:
        return self._timed(endpoint, "PUT", url, self.build_body(endpoint), headers)

    def _patch(self, endpoint: EndpointDescriptor, url: str, headers: dict[str, str]) -> HttpResponse:
        return self._timed(endpoint, "PATCH", url, self.build_body(endpoint), headers)

    def _delete(self, endpoint: EndpointDescriptor, url: str, headers: dict[str, str]) -> HttpResponse:
        return self._timed(endpoint, "DELETE", url, None, headers)

    def _timed(
        self,
        endpoint: EndpointDescriptor,
        method: str,
        url: str,
        body: Optional[str],
        headers: dict[str, str],
    ) -> HttpResponse:
        """Dispatch the call and record its metric sample."""
        timestamp = time.time() * 1000
        started = time.perf_counter()
        response = self.http_call(method, url, body, headers)
        duration = (time.perf_counter() - started) * 1000

        self.metrics.record(
            RequestMetric(
                endpoint=endpoint.name,
                method=method,
                status=response.status,
                duration=duration,
                timestamp=timestamp,
                success=200 <= response.status < 400,
            )
        )
        logger.debug("%s %s -> %s (%.1f ms)", method, url, response.status, duration)
        return response
