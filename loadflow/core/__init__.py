"""Core modules for loadflow."""

from loadflow.core.auth import (
    auth_headers,
    auth_query_params,
    authenticate,
    decode_basic_token,
    encode_api_key_token,
    encode_basic_token,
    parse_api_key_token,
    parse_token,
)
from loadflow.core.data_structures import (
    ApiKeyAuth,
    AuthResult,
    AuthStep,
    BasicAuth,
    EndpointDescriptor,
    EndpointMetrics,
    HttpResponse,
    JwtAuth,
    LoadProfile,
    MultiStepJwtAuth,
    NoneAuth,
    ProjectConfig,
    ReportData,
    RequestMetric,
    SummaryMetrics,
)
from loadflow.core.dynamic_value import Context, Derived, Literal, dynamic, resolve
from loadflow.core.http_client import RequestClient
from loadflow.core.metrics import MetricsCollector
from loadflow.core.path_extractor import MISSING, extract, is_missing
from loadflow.core.project_parser import ProjectConfigParser
from loadflow.core.runner import LoadTestRunner, RunResult
from loadflow.core.scenarios import (
    FlowScenarioConfig,
    FlowStep,
    SimpleScenarioConfig,
    create_crud_flow,
    create_login_flow,
    run_flow_scenario,
    run_simple_scenario,
    run_single_endpoint,
)
from loadflow.core.transport import RequestsTransport

__all__ = [
    # Resolution and extraction
    "Context",
    "Literal",
    "Derived",
    "dynamic",
    "resolve",
    "MISSING",
    "extract",
    "is_missing",
    # Auth
    "authenticate",
    "auth_headers",
    "auth_query_params",
    "encode_basic_token",
    "encode_api_key_token",
    "decode_basic_token",
    "parse_api_key_token",
    "parse_token",
    # Execution
    "RequestClient",
    "RequestsTransport",
    "MetricsCollector",
    "LoadTestRunner",
    "RunResult",
    "ProjectConfigParser",
    # Scenarios
    "SimpleScenarioConfig",
    "FlowScenarioConfig",
    "FlowStep",
    "run_simple_scenario",
    "run_single_endpoint",
    "run_flow_scenario",
    "create_login_flow",
    "create_crud_flow",
    # Data structures
    "EndpointDescriptor",
    "NoneAuth",
    "BasicAuth",
    "ApiKeyAuth",
    "JwtAuth",
    "AuthStep",
    "MultiStepJwtAuth",
    "AuthResult",
    "HttpResponse",
    "RequestMetric",
    "SummaryMetrics",
    "EndpointMetrics",
    "LoadProfile",
    "ProjectConfig",
    "ReportData",
]
