"""Custom exceptions for loadflow.

This module defines the exception hierarchy for loadflow.
All custom exceptions inherit from LoadFlowException base class.
"""

from typing import Optional


class LoadFlowException(Exception):
    """Base exception for all loadflow errors.

    All custom exceptions in loadflow inherit from this base class
    to allow catching all tool-specific errors.
    """

    pass


# Configuration Exceptions


class ConfigurationException(LoadFlowException):
    """Base exception for fatal configuration errors.

    Configuration errors abort the current call or run immediately
    and are never retried.
    """

    pass


class UnsupportedMethodException(ConfigurationException):
    """Raised when an endpoint declares an HTTP method that is not supported.

    This exception is raised before any network activity happens.
    """

    def __init__(self, method: str) -> None:
        """Initialize with the offending method.

        Args:
            method: The HTTP method that was requested
        """
        self.method = method
        super().__init__(f"Unsupported HTTP method: {method}")


class MalformedTokenException(ConfigurationException):
    """Raised when a tagged auth token cannot be parsed.

    This exception is raised when:
    - An apiKey token has fewer than four colon-separated parts
    - An apiKey token names a location other than header or query
    - A basic token does not carry valid base64 credentials
    """

    pass


class ProjectConfigParseException(ConfigurationException):
    """Raised when a project YAML file cannot be parsed.

    This exception is raised when:
    - YAML syntax is invalid
    - Required fields are missing
    """

    pass


class ProjectConfigValidationException(ConfigurationException):
    """Raised when project configuration values are invalid.

    This exception is raised when:
    - Auth type is unknown
    - Load profile is malformed
    - Endpoint definition is malformed
    """

    pass


# Runtime Exceptions


class AuthenticationException(LoadFlowException):
    """Raised when the authentication phase of a run fails.

    Authentication failures are fatal to the whole run: setup aborts
    before any virtual user starts iterating.

    Attributes:
        step_name: Name of the failing auth step (multi-step flows only)
        step_index: 1-based index of the failing auth step
    """

    def __init__(
        self,
        message: str,
        step_name: Optional[str] = None,
        step_index: Optional[int] = None,
    ) -> None:
        self.step_name = step_name
        self.step_index = step_index
        super().__init__(message)


class TransportException(LoadFlowException):
    """Raised when an HTTP call produced no response at all.

    This is distinct from a non-2xx response, which is an ordinary
    (failed) result and is recorded as a metric sample.

    Attributes:
        method: HTTP method of the call
        url: Fully composed request URL
        reason: Underlying transport error description
    """

    def __init__(self, method: str, url: str, reason: str) -> None:
        self.method = method
        self.url = url
        self.reason = reason
        super().__init__(f"{method} {url} failed without response: {reason}")
