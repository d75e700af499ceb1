"""Authentication orchestration and auth token codec.

Every auth strategy produces a single opaque token string that the
execution client later turns into headers or query parameters:

    basic:<base64 username:password>
    apiKey:<header|query>:<key>:<value>
    <bare bearer token>

Authentication runs once per load test, before any virtual user starts.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from loadflow.core.data_structures import (
    ApiKeyAuth,
    AuthConfig,
    AuthResult,
    BasicAuth,
    HttpResponse,
    JwtAuth,
    MultiStepJwtAuth,
    NoneAuth,
)
from loadflow.core.dynamic_value import Context, dynamic, resolve
from loadflow.core.path_extractor import extract, extract_mapping
from loadflow.core.transport import HttpCall
from loadflow.exceptions import MalformedTokenException, TransportException

logger = logging.getLogger(__name__)

BASIC_PREFIX = "basic:"
API_KEY_PREFIX = "apiKey:"
API_KEY_LOCATIONS = ("header", "query")

JSON_HEADERS = {"Content-Type": "application/json"}


# Token codec


@dataclass(frozen=True)
class BasicToken:
    """Parsed ``basic:`` token."""

    credentials: str


@dataclass(frozen=True)
class ApiKeyToken:
    """Parsed ``apiKey:`` token."""

    location: str
    key: str
    value: str


@dataclass(frozen=True)
class BearerToken:
    """Untagged token sent as a bearer credential."""

    token: str


ParsedToken = Union[BasicToken, ApiKeyToken, BearerToken]


def encode_basic_token(username: str, password: str) -> str:
    """Encode credentials as a ``basic:`` token."""
    credentials = f"{username}:{password}".encode("utf-8")
    return BASIC_PREFIX + base64.b64encode(credentials).decode("ascii")


def encode_api_key_token(location: str, key: str, value: str) -> str:
    """Encode an API key as an ``apiKey:`` token.

    Raises:
        MalformedTokenException: Location is not header or query, or the key
            contains ':' (the value may)
    """
    if location not in API_KEY_LOCATIONS:
        raise MalformedTokenException(
            f"Invalid API key location '{location}': expected header or query"
        )
    if ":" in key:
        raise MalformedTokenException(f"Invalid API key name '{key}': must not contain ':'")
    return f"{API_KEY_PREFIX}{location}:{key}:{value}"


def parse_token(token: str) -> ParsedToken:
    """Parse a tagged token string.

    Raises:
        MalformedTokenException: apiKey token is missing parts or names an
            unknown location
    """
    if token.startswith(BASIC_PREFIX):
        return BasicToken(credentials=token[len(BASIC_PREFIX):])

    if token.startswith(API_KEY_PREFIX):
        parts = token.split(":")
        if len(parts) < 4:
            raise MalformedTokenException(
                "Malformed apiKey token: expected 'apiKey:<location>:<key>:<value>'"
            )
        _, location, key, *value_parts = parts
        if location not in API_KEY_LOCATIONS:
            raise MalformedTokenException(
                f"Malformed apiKey token: unknown location '{location}'"
            )
        # Values may contain ':'
        return ApiKeyToken(location=location, key=key, value=":".join(value_parts))

    return BearerToken(token=token)


def parse_api_key_token(token: str) -> ApiKeyAuth:
    """Parse an ``apiKey:`` token back into its configuration.

    Raises:
        MalformedTokenException: Token is not a well-formed apiKey token
    """
    parsed = parse_token(token)
    if not isinstance(parsed, ApiKeyToken):
        raise MalformedTokenException("Not an apiKey token")
    return ApiKeyAuth(key=parsed.key, value=parsed.value, location=parsed.location)


def decode_basic_token(token: str) -> BasicAuth:
    """Decode a ``basic:`` token back into its credentials.

    Raises:
        MalformedTokenException: Token is not a well-formed basic token
    """
    parsed = parse_token(token)
    if not isinstance(parsed, BasicToken):
        raise MalformedTokenException("Not a basic token")
    try:
        decoded = base64.b64decode(parsed.credentials, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedTokenException(f"Malformed basic token: {e}") from e
    username, sep, password = decoded.partition(":")
    if not sep:
        raise MalformedTokenException("Malformed basic token: missing ':' separator")
    return BasicAuth(username=username, password=password)


def auth_headers(token: str) -> dict[str, str]:
    """Headers derived from a token.

    Basic -> Authorization: Basic, header API key -> <key>: <value>,
    bare token -> Authorization: Bearer. Query API keys add no header.
    """
    parsed = parse_token(token)
    if isinstance(parsed, BasicToken):
        return {"Authorization": f"Basic {parsed.credentials}"}
    if isinstance(parsed, ApiKeyToken):
        if parsed.location == "header":
            return {parsed.key: parsed.value}
        return {}
    return {"Authorization": f"Bearer {parsed.token}"}


def auth_query_params(token: str) -> dict[str, str]:
    """Query parameters derived from a token (query API keys only)."""
    parsed = parse_token(token)
    if isinstance(parsed, ApiKeyToken) and parsed.location == "query":
        return {parsed.key: parsed.value}
    return {}


# Orchestration


def _post_json(
    http_call: HttpCall, base_url: str, path: str, payload: Any
) -> HttpResponse:
    return http_call("POST", f"{base_url}{path}", json.dumps(payload), dict(JSON_HEADERS))


def _authenticate_none(config: NoneAuth, base_url: str, http_call: HttpCall) -> AuthResult:
    return AuthResult(success=True)


def _authenticate_basic(config: BasicAuth, base_url: str, http_call: HttpCall) -> AuthResult:
    logger.info("Basic authentication for user: %s", config.username)
    return AuthResult(success=True, token=encode_basic_token(config.username, config.password))


def _authenticate_api_key(
    config: ApiKeyAuth, base_url: str, http_call: HttpCall
) -> AuthResult:
    logger.info("API key authentication: %s in %s", config.key, config.location)
    try:
        token = encode_api_key_token(config.location, config.key, config.value)
    except MalformedTokenException as e:
        return AuthResult(success=False, error=str(e))
    return AuthResult(success=True, token=token)


def _authenticate_jwt(config: JwtAuth, base_url: str, http_call: HttpCall) -> AuthResult:
    try:
        response = _post_json(http_call, base_url, config.login_path, config.payload)
    except TransportException as e:
        return AuthResult(success=False, error=f"Login request failed: {e.reason}")

    if response.status != 200:
        return AuthResult(
            success=False,
            error=f"Login failed with status {response.status}: {response.raw_body}",
        )
    if not response.structured:
        return AuthResult(success=False, error="Failed to parse login response as JSON")

    token = extract(response.body, config.token_path)
    if not isinstance(token, str) or not token:
        return AuthResult(success=False, error=f"Token not found at path: {config.token_path}")

    return AuthResult(success=True, token=token)


def _authenticate_multi_step(
    config: MultiStepJwtAuth, base_url: str, http_call: HttpCall
) -> AuthResult:
    context = Context()
    last_response: Optional[HttpResponse] = None

    for index, step in enumerate(config.steps, start=1):
        label = f"Step {index} '{step.name}'"
        payload = resolve(dynamic(step.payload), context)
        logger.info("Auth %s: POST %s", label, step.endpoint)

        try:
            response = _post_json(http_call, base_url, step.endpoint, payload)
        except TransportException as e:
            return AuthResult(
                success=False,
                error=f"{label} failed: no response ({e.reason})",
                context=context,
                step_name=step.name,
                step_index=index,
            )

        if not response.ok:
            return AuthResult(
                success=False,
                error=f"{label} failed with status {response.status}: {response.raw_body}",
                context=context,
                step_name=step.name,
                step_index=index,
            )
        if not response.structured:
            return AuthResult(
                success=False,
                error=f"{label} failed: response is not valid JSON",
                context=context,
                step_name=step.name,
                step_index=index,
            )

        if step.extract:
            context = context.merge(
                extract_mapping(response.body, step.extract, f"Auth {label}")
            )
        last_response = response

    if last_response is None:
        return AuthResult(success=False, error="Multi-step auth has no steps", context=context)

    token = extract(last_response.body, config.token_path)
    if not isinstance(token, str) or not token:
        return AuthResult(
            success=False,
            error=f"Token not found at path: {config.token_path}",
            context=context,
        )

    return AuthResult(success=True, token=token, context=context)


_AUTHENTICATORS: dict[type, Callable[[Any, str, HttpCall], AuthResult]] = {
    NoneAuth: _authenticate_none,
    BasicAuth: _authenticate_basic,
    ApiKeyAuth: _authenticate_api_key,
    JwtAuth: _authenticate_jwt,
    MultiStepJwtAuth: _authenticate_multi_step,
}


def authenticate(config: AuthConfig, base_url: str, http_call: HttpCall) -> AuthResult:
    """Run the authentication strategy described by ``config``.

    Args:
        config: One of the AuthConfig variants
        base_url: Prefix for login endpoint paths
        http_call: Blocking HTTP call primitive

    Returns:
        AuthResult; failures are reported through ``success``/``error``,
        never raised.
    """
    authenticator = _AUTHENTICATORS.get(type(config))
    if authenticator is None:
        return AuthResult(success=False, error=f"Unsupported auth config: {type(config).__name__}")
    return authenticator(config, base_url, http_call)


def describe_auth(config: AuthConfig) -> str:
    """Short human-readable label for an auth config."""
    if isinstance(config, BasicAuth):
        return f"basic ({config.username})"
    if isinstance(config, ApiKeyAuth):
        return f"api key ({config.key} in {config.location})"
    if isinstance(config, JwtAuth):
        return f"jwt ({config.login_path})"
    if isinstance(config, MultiStepJwtAuth):
        return f"jwt, {len(config.steps)} steps"
    return "none"
