"""Load test runner.

Drives a complete run of a project: authenticate once, start one thread
per virtual user, repeat the configured scenario until the duration runs
out (or a fixed number of iterations), then summarize the shared metrics.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loadflow.core.auth import authenticate
from loadflow.core.data_structures import (
    AuthResult,
    EndpointMetrics,
    LoadProfile,
    ProjectConfig,
    ReportData,
    SummaryMetrics,
)
from loadflow.core.http_client import RequestClient
from loadflow.core.metrics import MetricsCollector
from loadflow.core.path_extractor import extract
from loadflow.core.project_parser import parse_duration
from loadflow.core.reporters import build_report_data
from loadflow.core.scenarios import (
    FlowScenarioConfig,
    FlowStep,
    SimpleScenarioConfig,
    run_flow_scenario,
    run_simple_scenario,
)
from loadflow.core.transport import HttpCall, RequestsTransport
from loadflow.exceptions import AuthenticationException, TransportException

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of a load test run.

    Attributes:
        summary: Aggregate statistics
        endpoints: Per-endpoint breakdown
        iterations: Completed scenario iterations across all virtual users
        transport_errors: Calls that produced no response
        elapsed: Wall-clock run time in seconds
        report: Report data for the renderers
        errors: Transport failure messages
    """

    summary: SummaryMetrics
    endpoints: list[EndpointMetrics]
    iterations: int
    transport_errors: int
    elapsed: float
    report: ReportData
    errors: list[str] = field(default_factory=list)


def _path_condition(path: str) -> Callable[[Any], bool]:
    """Condition that holds when ``path`` resolves to a truthy value."""
    return lambda body: bool(extract(body, path))


def _close(transport: HttpCall) -> None:
    close = getattr(transport, "close", None)
    if close is not None:
        close()


def build_flow_config(project: ProjectConfig) -> FlowScenarioConfig:
    """Turn project endpoints and their flow options into flow steps."""
    steps = []
    for endpoint in project.endpoints:
        options = project.flow_options.get(endpoint.name)
        steps.append(
            FlowStep(
                endpoint=endpoint,
                think_time=options.think_time if options else None,
                condition=(
                    _path_condition(options.continue_if)
                    if options and options.continue_if
                    else None
                ),
            )
        )
    return FlowScenarioConfig(steps=steps, default_think_time=project.think_time)


class LoadTestRunner:
    """Run a project with many concurrent virtual users.

    Lifecycle: ``setup`` authenticates once and fails the run on error;
    ``run`` resets the shared metrics, runs every virtual user to
    completion and returns a RunResult.

    Example:
        >>> project = ProjectConfigParser().parse("products.yaml")
        >>> runner = LoadTestRunner(project)
        >>> result = runner.run()
        >>> print(result.summary.p95_latency)
    """

    def __init__(
        self,
        project: ProjectConfig,
        metrics: Optional[MetricsCollector] = None,
        transport_factory: Callable[[], HttpCall] = RequestsTransport,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize runner.

        Args:
            project: Parsed project configuration
            metrics: Shared collector (a new one is created by default)
            transport_factory: Creates one HTTP call primitive per virtual user
            sleep: Think-time primitive
            clock: Monotonic clock used for the run deadline
        """
        self.project = project
        self.metrics = metrics if metrics is not None else MetricsCollector()
        self.transport_factory = transport_factory
        self.sleep = sleep
        self.clock = clock
        self.token: Optional[str] = None
        self.auth_result: Optional[AuthResult] = None
        self._lock = threading.Lock()
        self._iterations = 0
        self._transport_errors = 0
        self._errors: list[str] = []
        self._stop = threading.Event()

    def setup(self) -> Optional[str]:
        """Authenticate once for the whole run.

        Returns:
            Tagged token shared read-only by all virtual users

        Raises:
            AuthenticationException: Authentication failed
        """
        transport = self.transport_factory()
        try:
            result = authenticate(self.project.auth, self.project.base_url, transport)
        finally:
            _close(transport)
        self.auth_result = result

        if not result.success:
            raise AuthenticationException(
                f"Authentication failed: {result.error}",
                step_name=result.step_name,
                step_index=result.step_index,
            )

        self.token = result.token
        return self.token

    def run(
        self,
        iterations: Optional[int] = None,
        vus: Optional[int] = None,
        duration: Optional[str] = None,
    ) -> RunResult:
        """Execute the load test.

        Args:
            iterations: Fixed iteration count per virtual user; when None
                virtual users iterate until the duration elapses
            vus: Override the project's virtual user count
            duration: Override the project's duration

        Returns:
            RunResult with summary and per-endpoint metrics

        Raises:
            AuthenticationException: Authentication failed; no virtual user
                was started
            LoadFlowException: A virtual user hit a configuration error; the
                other virtual users stop after their current iteration
        """
        if self.auth_result is None or not self.auth_result.success:
            self.setup()

        vus = vus or self.project.load.vus
        duration = duration or self.project.load.duration
        seconds = parse_duration(duration)

        self.metrics.reset()
        self._iterations = 0
        self._transport_errors = 0
        self._errors = []
        self._stop.clear()

        logger.info(
            "Starting load test for %s: %d VUs, %s", self.project.name, vus, duration
        )
        started = self.clock()
        deadline = started + seconds

        with ThreadPoolExecutor(max_workers=vus, thread_name_prefix="vu") as executor:
            futures = [
                executor.submit(self._virtual_user, vu_id, deadline, iterations)
                for vu_id in range(1, vus + 1)
            ]
            for future in futures:
                future.result()

        elapsed = self.clock() - started
        summary = self.metrics.summary()
        endpoints = self.metrics.endpoint_metrics()

        return RunResult(
            summary=summary,
            endpoints=endpoints,
            iterations=self._iterations,
            transport_errors=self._transport_errors,
            elapsed=elapsed,
            report=build_report_data(
                self.project.name,
                self.project.scenario,
                LoadProfile(vus=vus, duration=duration),
                summary,
                endpoints,
            ),
            errors=list(self._errors),
        )

    def _virtual_user(self, vu_id: int, deadline: float, iterations: Optional[int]) -> None:
        """Iterate the scenario for one virtual user."""
        transport = self.transport_factory()
        client = RequestClient(
            self.project.base_url,
            self.metrics,
            transport,
            token=self.token,
            default_headers=self.project.default_headers,
        )
        completed = 0

        try:
            while True:
                if iterations is not None and completed >= iterations:
                    break
                if iterations is None and self.clock() >= deadline:
                    break
                if self._stop.is_set():
                    break

                client.reset_context()
                try:
                    self._run_iteration(client)
                except TransportException as e:
                    logger.warning("VU %d: %s", vu_id, e)
                    with self._lock:
                        self._transport_errors += 1
                        self._errors.append(str(e))
                except Exception:
                    # Any other error is fatal to the whole run
                    logger.error("VU %d aborted the run", vu_id, exc_info=True)
                    self._stop.set()
                    raise

                completed += 1
                with self._lock:
                    self._iterations += 1
        finally:
            _close(transport)

        logger.debug("VU %d finished after %d iterations", vu_id, completed)

    def _run_iteration(self, client: RequestClient) -> None:
        """Run one scenario iteration."""
        if self.project.scenario == "flow":
            run_flow_scenario(client, build_flow_config(self.project), sleep=self.sleep)
        else:
            run_simple_scenario(
                client,
                SimpleScenarioConfig(
                    endpoints=self.project.endpoints, think_time=self.project.think_time
                ),
                sleep=self.sleep,
            )
