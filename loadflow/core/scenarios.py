"""Scenario runners.

A scenario is one iteration of a virtual user: a sequence of endpoint
calls separated by think time. The simple scenario runs every endpoint in
order; the flow scenario adds per-step think time and continuation
conditions, stopping the journey when a condition fails.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loadflow.core.data_structures import EndpointDescriptor, HttpResponse
from loadflow.core.http_client import RequestClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]


@dataclass
class SimpleScenarioConfig:
    """Configuration for the simple scenario.

    Attributes:
        endpoints: Endpoints executed in order
        think_time: Seconds to pause after each request
    """

    endpoints: list[EndpointDescriptor]
    think_time: float = 1.0


@dataclass
class FlowStep:
    """A single step of a user journey.

    Attributes:
        endpoint: Endpoint to execute
        think_time: Pause after the step (default: scenario default)
        condition: Predicate on the response body; False stops the flow
    """

    endpoint: EndpointDescriptor
    think_time: Optional[float] = None
    condition: Optional[Callable[[Any], bool]] = None


@dataclass
class FlowScenarioConfig:
    """Configuration for the flow scenario.

    Attributes:
        steps: Journey steps in order
        default_think_time: Pause used by steps without their own think time
    """

    steps: list[FlowStep] = field(default_factory=list)
    default_think_time: float = 1.0


def _pause(seconds: float, sleep: Sleep) -> None:
    if seconds > 0:
        sleep(seconds)


def run_simple_scenario(
    client: RequestClient, config: SimpleScenarioConfig, sleep: Sleep = time.sleep
) -> None:
    """Execute each endpoint sequentially with a fixed think time."""
    for endpoint in config.endpoints:
        client.execute(endpoint)
        _pause(config.think_time, sleep)


def run_single_endpoint(
    client: RequestClient,
    endpoint: EndpointDescriptor,
    think_time: float = 1.0,
    sleep: Sleep = time.sleep,
) -> HttpResponse:
    """Execute one endpoint followed by its think time."""
    response = client.execute(endpoint)
    _pause(think_time, sleep)
    return response


def _condition_input(response: HttpResponse) -> Any:
    return response.body if response.structured else response.raw_body


def run_flow_scenario(
    client: RequestClient, config: FlowScenarioConfig, sleep: Sleep = time.sleep
) -> bool:
    """Execute a user journey.

    Args:
        client: Execution client of the virtual user
        config: Journey steps
        sleep: Think-time primitive

    Returns:
        True if every step ran, False if a condition stopped the flow
    """
    for step in config.steps:
        response = client.execute(step.endpoint)

        if step.condition is not None and not step.condition(_condition_input(response)):
            logger.info("Flow stopped: condition failed at %s", step.endpoint.name)
            return False

        think_time = step.think_time if step.think_time is not None else config.default_think_time
        _pause(think_time, sleep)

    return True


def create_login_flow(
    login_endpoint: EndpointDescriptor,
    protected_endpoints: list[EndpointDescriptor],
    token_extractor: Callable[[Any], Optional[str]],
) -> FlowScenarioConfig:
    """Build a login -> protected resources journey.

    The flow stops when ``token_extractor`` finds no token in the login
    response.
    """
    return FlowScenarioConfig(
        steps=[
            FlowStep(
                endpoint=login_endpoint,
                think_time=0.5,
                condition=lambda body: token_extractor(body) is not None,
            ),
            *(FlowStep(endpoint=endpoint, think_time=1) for endpoint in protected_endpoints),
        ],
        default_think_time=1,
    )


def create_crud_flow(
    create_endpoint: EndpointDescriptor,
    read_endpoint: EndpointDescriptor,
    update_endpoint: EndpointDescriptor,
    delete_endpoint: EndpointDescriptor,
) -> FlowScenarioConfig:
    """Build a create -> read -> update -> delete journey."""
    return FlowScenarioConfig(
        steps=[
            FlowStep(endpoint=endpoint, think_time=0.5)
            for endpoint in (create_endpoint, read_endpoint, update_endpoint, delete_endpoint)
        ],
        default_think_time=0.5,
    )
