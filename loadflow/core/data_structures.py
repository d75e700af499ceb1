"""Data structures for load test execution.

This module defines dataclasses used for endpoint descriptors, auth
configuration, HTTP responses, metric samples and report summaries.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from loadflow.core.dynamic_value import Context, DynamicValue, dynamic

# Methods accepted by the execution client
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Methods whose request carries a serialized body
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True)
class EndpointDescriptor:
    """Declarative description of one HTTP call.

    Plain values and callables passed for ``url``, ``path_params``,
    ``query_params`` and ``body`` are normalized to DynamicValue, so a
    descriptor can be written with literals and lambdas alike:

        >>> EndpointDescriptor(
        ...     name="Get Task",
        ...     method="GET",
        ...     url="/api/tasks/{taskId}",
        ...     path_params={"taskId": lambda ctx: ctx.get("taskId")},
        ... )

    Attributes:
        name: Diagnostic label, also the metric grouping key
        method: HTTP method in uppercase
        url: Path relative to the base URL (or absolute URL)
        path_params: Values substituted into ``{key}`` placeholders
        query_params: Values appended to the query string
        body: Request body, serialized as JSON for POST/PUT/PATCH
        headers: Static per-call headers
        extract: Context key -> response path captured after the call
    """

    name: str
    method: str
    url: DynamicValue
    path_params: dict[str, DynamicValue] = field(default_factory=dict)
    query_params: dict[str, DynamicValue] = field(default_factory=dict)
    body: Optional[DynamicValue] = None
    headers: dict[str, str] = field(default_factory=dict)
    extract: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize dynamic fields after initialization."""
        object.__setattr__(self, "method", str(self.method).upper())
        object.__setattr__(self, "url", dynamic(self.url))
        object.__setattr__(
            self, "path_params", {k: dynamic(v) for k, v in self.path_params.items()}
        )
        object.__setattr__(
            self, "query_params", {k: dynamic(v) for k, v in self.query_params.items()}
        )
        if self.body is not None:
            object.__setattr__(self, "body", dynamic(self.body))


# Auth configuration (closed union)


@dataclass(frozen=True)
class NoneAuth:
    """No authentication."""


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic authentication credentials."""

    username: str
    password: str


@dataclass(frozen=True)
class ApiKeyAuth:
    """API key sent either as a header or as a query parameter.

    Attributes:
        key: Header or query parameter name
        value: Key value, sent verbatim
        location: "header" or "query"
    """

    key: str
    value: str
    location: str = "header"


@dataclass(frozen=True)
class JwtAuth:
    """Single-step JWT login.

    Attributes:
        login_path: Login endpoint path relative to the base URL
        payload: JSON payload posted to the login endpoint
        token_path: Path of the token in the login response
    """

    login_path: str
    payload: dict[str, Any]
    token_path: str


@dataclass(frozen=True)
class AuthStep:
    """One request of a multi-step login flow.

    Attributes:
        name: Step name used in diagnostics
        endpoint: Endpoint path relative to the base URL
        payload: Literal payload or function of the running context
        extract: Context key -> response path merged after the step
    """

    name: str
    endpoint: str
    payload: Union[Any, Callable[[Context], Any]] = None
    extract: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MultiStepJwtAuth:
    """Multi-step (2FA/OTP-style) JWT login.

    Attributes:
        steps: Ordered login steps
        token_path: Path of the token in the final step's response
    """

    steps: tuple[AuthStep, ...]
    token_path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))


AuthConfig = Union[NoneAuth, BasicAuth, ApiKeyAuth, JwtAuth, MultiStepJwtAuth]


@dataclass
class AuthResult:
    """Outcome of an authentication attempt.

    Attributes:
        success: True if authentication completed
        token: Opaque tagged token string (absent for no-auth and failures)
        error: Failure description
        context: Context accumulated by a multi-step flow
        step_name: Name of the failing multi-step auth step
        step_index: 1-based index of the failing multi-step auth step
    """

    success: bool
    token: Optional[str] = None
    error: Optional[str] = None
    context: Optional[Context] = None
    step_name: Optional[str] = None
    step_index: Optional[int] = None


# HTTP and metrics


@dataclass
class HttpResponse:
    """Response returned by the HTTP call primitive.

    Attributes:
        status: HTTP status code
        raw_body: Undecoded response text
        headers: Response headers
        body: Parsed JSON body, or None when not structured
        structured: True if raw_body parsed as JSON
    """

    status: int
    raw_body: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    structured: bool = False

    @classmethod
    def from_raw(
        cls, status: int, raw_body: str, headers: Optional[dict[str, str]] = None
    ) -> "HttpResponse":
        """Build a response, parsing the body as JSON when possible."""
        try:
            body = json.loads(raw_body) if raw_body else None
            structured = bool(raw_body)
        except ValueError:
            body = None
            structured = False
        return cls(
            status=status,
            raw_body=raw_body,
            headers=dict(headers or {}),
            body=body,
            structured=structured,
        )

    @property
    def ok(self) -> bool:
        """Check for a 2xx status."""
        return 200 <= self.status < 300


@dataclass(frozen=True)
class RequestMetric:
    """One completed request sample.

    Attributes:
        endpoint: Endpoint descriptor name
        method: HTTP method
        status: HTTP status code
        duration: Wall-clock duration in milliseconds
        timestamp: Start time in epoch milliseconds
        success: True if 200 <= status < 400
    """

    endpoint: str
    method: str
    status: int
    duration: float
    timestamp: float
    success: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "status": self.status,
            "duration": self.duration,
            "timestamp": self.timestamp,
            "success": self.success,
        }


@dataclass(frozen=True)
class SummaryMetrics:
    """Aggregate statistics over all recorded samples."""

    requests: int = 0
    rps: float = 0.0
    error_rate: float = 0.0
    avg_latency: int = 0
    p95_latency: float = 0
    p99_latency: float = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "requests": self.requests,
            "rps": self.rps,
            "errorRate": self.error_rate,
            "avgLatency": self.avg_latency,
            "p95Latency": self.p95_latency,
            "p99Latency": self.p99_latency,
        }


@dataclass(frozen=True)
class EndpointMetrics:
    """Per-endpoint breakdown handed to report renderers."""

    name: str
    method: str
    requests: int
    error_rate: float
    avg_latency: int
    p95_latency: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "method": self.method,
            "requests": self.requests,
            "errorRate": self.error_rate,
            "avgLatency": self.avg_latency,
            "p95Latency": self.p95_latency,
        }


# Project configuration


@dataclass
class LoadProfile:
    """Virtual user count and run duration.

    Attributes:
        vus: Number of concurrent virtual users
        duration: Duration string, e.g. "30s" or "1m30s"
    """

    vus: int = 1
    duration: str = "30s"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"vus": self.vus, "duration": self.duration}


@dataclass
class ReportOutput:
    """One report destination.

    Attributes:
        type: "console", "json" or "html"
        path: Output directory for file reports
    """

    type: str
    path: Optional[str] = None


@dataclass
class FlowStepOptions:
    """Per-endpoint options used by the flow scenario.

    Attributes:
        continue_if: Response path that must resolve to a truthy value
        think_time: Pause after this step, overriding the project default
    """

    continue_if: Optional[str] = None
    think_time: Optional[float] = None


@dataclass
class ProjectConfig:
    """A complete load test project.

    Attributes:
        name: Project name used in reports
        base_url: Prefix for every relative endpoint URL
        load: Virtual users and duration
        auth: Authentication strategy
        endpoints: Endpoints executed each iteration, in order
        report_outputs: Report destinations
        scenario: "simple" or "flow"
        think_time: Seconds to pause after each request
        default_headers: Headers sent with every request
        flow_options: Endpoint name -> flow step options
    """

    name: str
    base_url: str
    load: LoadProfile = field(default_factory=LoadProfile)
    auth: AuthConfig = field(default_factory=NoneAuth)
    endpoints: list[EndpointDescriptor] = field(default_factory=list)
    report_outputs: list[ReportOutput] = field(default_factory=list)
    scenario: str = "simple"
    think_time: float = 1.0
    default_headers: Optional[dict[str, str]] = None
    flow_options: dict[str, FlowStepOptions] = field(default_factory=dict)


@dataclass
class ReportData:
    """Everything a report renderer needs.

    Attributes:
        project: Project name
        scenario: Scenario name
        timestamp: ISO 8601 time the report was built
        load: Load profile of the run
        summary: Aggregate statistics
        endpoints: Per-endpoint breakdown
    """

    project: str
    scenario: str
    timestamp: str
    load: LoadProfile
    summary: SummaryMetrics
    endpoints: list[EndpointMetrics] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "project": self.project,
            "scenario": self.scenario,
            "timestamp": self.timestamp,
            "load": self.load.to_dict(),
            "summary": {
                "requests": self.summary.requests,
                "rps": self.summary.rps,
                "errorRate": self.summary.error_rate,
            },
            "latency": {
                "avg": self.summary.avg_latency,
                "p95": self.summary.p95_latency,
                "p99": self.summary.p99_latency,
            },
            "endpoints": [e.to_dict() for e in self.endpoints],
        }
