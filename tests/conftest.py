"""Shared pytest fixtures for all tests."""

import json
from pathlib import Path
from typing import Any, Optional

import pytest

from loadflow.core.data_structures import HttpResponse
from loadflow.core.metrics import MetricsCollector


def json_response(status: int, body: Any) -> HttpResponse:
    """Build a structured response from a Python value."""
    return HttpResponse.from_raw(status, json.dumps(body))


class FakeTransport:
    """Recording HTTP call primitive.

    Responses are served in order from a queue; once the queue is empty
    every call gets ``default``. Queued exceptions are raised instead of
    returned.
    """

    def __init__(self, responses: Optional[list] = None, default: Optional[HttpResponse] = None):
        self.responses = list(responses or [])
        self.default = default or HttpResponse.from_raw(200, "{}")
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def __call__(self, method, url, body, headers):
        self.calls.append({"method": method, "url": url, "body": body, "headers": headers})
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport() -> FakeTransport:
    """Create a transport answering 200 with an empty JSON object."""
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fixed clock."""
    return FakeClock()


@pytest.fixture
def metrics(clock: FakeClock) -> MetricsCollector:
    """Create a metrics collector driven by the fixed clock."""
    return MetricsCollector(clock=clock)


@pytest.fixture
def sleeps() -> list[float]:
    """Collect think-time pauses instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    """Sleep primitive that records the requested pause."""
    return sleeps.append


@pytest.fixture
def simple_project_file(tmp_path: Path) -> Path:
    """Create a minimal simple-scenario project file.

    Returns:
        Path to the YAML file
    """
    content = """name: products
base_url: https://api.example.com/
load:
  vus: 2
  duration: 10s
think_time: 0
endpoints:
  - name: List Products
    method: GET
    url: /products
    query_params:
      page: 1
  - name: Get Product
    method: get
    url: /products/{id}
    path_params:
      id: 42
"""
    path = tmp_path / "products.yaml"
    path.write_text(content)
    return path


@pytest.fixture
def flow_project_file(tmp_path: Path) -> Path:
    """Create a CRUD flow project file with multi-step JWT auth.

    Returns:
        Path to the YAML file
    """
    content = """name: crud-flow
base_url: https://api.example.com
scenario: flow
think_time: 0.5
load:
  vus: 1
  duration: 1m30s
headers:
  Content-Type: application/json
  X-Client: loadflow
auth:
  type: jwt
  token_path: data.token
  steps:
    - name: Request OTP
      endpoint: /auth/otp
      payload:
        phone: "+15550100"
      extract:
        otpRef: data.ref
    - name: Verify OTP
      endpoint: /auth/verify
      payload:
        ref: ${otpRef}
        code: "000000"
report:
  output:
    - type: console
    - type: json
      path: reports
endpoints:
  - name: Create Task
    method: POST
    url: /tasks
    body:
      title: Load test task
    extract:
      taskId: data.id
    continue_if: data.id
  - name: Get Task
    method: GET
    url: /tasks/{taskId}
    path_params:
      taskId: ${taskId}
    think_time: 0
  - name: Delete Task
    method: DELETE
    url: /tasks/${taskId}
"""
    path = tmp_path / "crud-flow.yaml"
    path.write_text(content)
    return path
