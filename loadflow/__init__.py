"""loadflow - Load test HTTP APIs from declarative endpoint descriptions."""

__version__ = "1.0.0"

from loadflow.core.http_client import RequestClient
from loadflow.core.metrics import MetricsCollector
from loadflow.core.project_parser import ProjectConfigParser
from loadflow.core.runner import LoadTestRunner

__all__ = [
    "ProjectConfigParser",
    "LoadTestRunner",
    "RequestClient",
    "MetricsCollector",
]
