"""Request metric collection and summary statistics.

A single MetricsCollector is created at run start and handed to every
virtual user's client. Appends are serialized with a lock; summaries are
recomputed on demand from the full sample sequence.
"""

import math
import threading
import time
from typing import Callable, Optional

from loadflow.core.data_structures import EndpointMetrics, RequestMetric, SummaryMetrics


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half up, e.g. 2.5 -> 3 where round() gives 2."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def percentile(values: list[float], p: float) -> float:
    """Nearest-rank percentile.

    Args:
        values: Samples in any order
        p: Percentile in the range 0-100

    Returns:
        The sample at index ceil(p/100 * n) - 1 of the sorted sequence,
        or 0 for an empty sequence.
    """
    if not values:
        return 0
    ordered = sorted(values)
    index = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, index)]


def _error_rate(samples: list[RequestMetric]) -> float:
    if not samples:
        return 0
    errors = sum(1 for m in samples if not m.success)
    return round_half_up(errors / len(samples) * 100, 2)


def _avg_latency(durations: list[float]) -> int:
    if not durations:
        return 0
    return int(round_half_up(sum(durations) / len(durations)))


class MetricsCollector:
    """Thread-safe, append-only store of request samples.

    Example:
        >>> collector = MetricsCollector()
        >>> collector.record(metric)
        >>> summary = collector.summary()
        >>> print(summary.p95_latency)
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        """Initialize collector.

        Args:
            clock: Wall-clock source in seconds (default: time.time)
        """
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._metrics: list[RequestMetric] = []
        self._start_time = self._clock()

    @property
    def start_time(self) -> float:
        """Collector start timestamp in seconds."""
        return self._start_time

    def record(self, metric: RequestMetric) -> None:
        """Append one sample."""
        with self._lock:
            self._metrics.append(metric)

    def reset(self) -> None:
        """Drop all samples and restart the elapsed-time clock."""
        with self._lock:
            self._metrics = []
            self._start_time = self._clock()

    def metrics(self) -> list[RequestMetric]:
        """Return a copy of all recorded samples."""
        with self._lock:
            return list(self._metrics)

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def summary(self) -> SummaryMetrics:
        """Compute aggregate statistics over all samples."""
        samples = self.metrics()
        durations = [m.duration for m in samples]
        elapsed = max(1.0, self._clock() - self._start_time)

        return SummaryMetrics(
            requests=len(samples),
            rps=round_half_up(len(samples) / elapsed, 2),
            error_rate=_error_rate(samples),
            avg_latency=_avg_latency(durations),
            p95_latency=percentile(durations, 95),
            p99_latency=percentile(durations, 99),
        )

    def group_by_endpoint(self) -> dict[tuple[str, str], list[RequestMetric]]:
        """Partition samples by (method, endpoint name), keeping insertion order."""
        grouped: dict[tuple[str, str], list[RequestMetric]] = {}
        for metric in self.metrics():
            grouped.setdefault((metric.method, metric.endpoint), []).append(metric)
        return grouped

    def endpoint_metrics(self) -> list[EndpointMetrics]:
        """Per-endpoint breakdown for report renderers."""
        breakdown = []
        for (method, name), samples in self.group_by_endpoint().items():
            durations = [m.duration for m in samples]
            breakdown.append(
                EndpointMetrics(
                    name=name,
                    method=method,
                    requests=len(samples),
                    error_rate=_error_rate(samples),
                    avg_latency=_avg_latency(durations),
                    p95_latency=percentile(durations, 95),
                )
            )
        return breakdown
