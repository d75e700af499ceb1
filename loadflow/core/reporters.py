"""Report renderers.

Formats an already-computed ReportData as console output, a JSON
document or a standalone HTML page.
"""

import html
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from loadflow.core.data_structures import (
    EndpointMetrics,
    LoadProfile,
    ReportData,
    ReportOutput,
    SummaryMetrics,
)

# Error rate thresholds (percent)
FAILED_ERROR_RATE = 5
WARNING_ERROR_RATE = 1


def build_report_data(
    project: str,
    scenario: str,
    load: LoadProfile,
    summary: SummaryMetrics,
    endpoints: Optional[list[EndpointMetrics]] = None,
) -> ReportData:
    """Bundle run results for the renderers, stamped with the current time."""
    return ReportData(
        project=project,
        scenario=scenario,
        timestamp=datetime.now().isoformat(),
        load=load,
        summary=summary,
        endpoints=list(endpoints or []),
    )


def report_status(summary: SummaryMetrics) -> str:
    """Classify a run as PASSED, WARNING or FAILED by its error rate."""
    if summary.error_rate > FAILED_ERROR_RATE:
        return "FAILED"
    if summary.error_rate > WARNING_ERROR_RATE:
        return "WARNING"
    return "PASSED"


_STATUS_STYLES = {"PASSED": "green", "WARNING": "yellow", "FAILED": "red"}

_STATUS_LABELS = {
    "PASSED": "PASSED",
    "WARNING": "WARNING - Error rate above 1%",
    "FAILED": "FAILED - High error rate (>5%)",
}


def render_console(report: ReportData, console: Optional[Console] = None) -> None:
    """Print the report to the console."""
    console = console or Console()
    summary = report.summary
    status = report_status(summary)
    style = _STATUS_STYLES[status]

    console.print(
        Panel(
            f"[bold]Project:[/bold]   {report.project}\n"
            f"[bold]Scenario:[/bold]  {report.scenario}\n"
            f"[bold]VUs:[/bold]       {report.load.vus}\n"
            f"[bold]Duration:[/bold]  {report.load.duration}\n"
            f"[bold]Time:[/bold]      {report.timestamp}",
            title="Load Test Report",
            border_style="blue",
        )
    )

    table = Table(title="Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total Requests", f"{summary.requests:,}")
    table.add_row("RPS", str(summary.rps))
    table.add_row("Error Rate", f"{summary.error_rate}%")
    table.add_row("Avg Latency", f"{summary.avg_latency}ms")
    table.add_row("P95 Latency", f"{summary.p95_latency:.0f}ms")
    table.add_row("P99 Latency", f"{summary.p99_latency:.0f}ms")
    console.print(table)

    if report.endpoints:
        breakdown = Table(title="Endpoints", show_header=True, header_style="bold cyan")
        breakdown.add_column("Endpoint")
        breakdown.add_column("Requests", justify="right")
        breakdown.add_column("Errors", justify="right")
        breakdown.add_column("Avg", justify="right")
        breakdown.add_column("P95", justify="right")
        for endpoint in report.endpoints:
            breakdown.add_row(
                f"{endpoint.method} {endpoint.name}",
                f"{endpoint.requests:,}",
                f"{endpoint.error_rate}%",
                f"{endpoint.avg_latency}ms",
                f"{endpoint.p95_latency:.0f}ms",
            )
        console.print(breakdown)

    console.print(f"\n[bold]Status:[/bold] [{style}]{_STATUS_LABELS[status]}[/{style}]\n")


def render_json(report: ReportData) -> str:
    """Render the report as an indented JSON document."""
    return json.dumps(report.to_dict(), indent=2)


def render_html(report: ReportData) -> str:
    """Render the report as a standalone HTML page."""
    summary = report.summary
    status = report_status(summary)
    esc = html.escape

    rows = "\n".join(
        f"        <tr><td>{esc(e.method)} {esc(e.name)}</td><td>{e.requests}</td>"
        f"<td>{e.error_rate}%</td><td>{e.avg_latency}ms</td><td>{e.p95_latency:.0f}ms</td></tr>"
        for e in report.endpoints
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{esc(report.project)} - Load Test Report</title>
  <style>
    body {{ font-family: sans-serif; margin: 2rem; }}
    table {{ border-collapse: collapse; margin-bottom: 1.5rem; }}
    td, th {{ border: 1px solid #ccc; padding: 0.3rem 0.8rem; text-align: right; }}
    td:first-child, th:first-child {{ text-align: left; }}
    .PASSED {{ color: #2e7d32; }}
    .WARNING {{ color: #f9a825; }}
    .FAILED {{ color: #c62828; }}
  </style>
</head>
<body>
  <h1>Load Test Report: {esc(report.project)}</h1>
  <p>Scenario: {esc(report.scenario)} | VUs: {report.load.vus} |
     Duration: {esc(report.load.duration)} | Time: {esc(report.timestamp)}</p>
  <h2>Summary</h2>
  <table>
    <tr><th>Total Requests</th><td>{summary.requests}</td></tr>
    <tr><th>RPS</th><td>{summary.rps}</td></tr>
    <tr><th>Error Rate</th><td>{summary.error_rate}%</td></tr>
    <tr><th>Avg Latency</th><td>{summary.avg_latency}ms</td></tr>
    <tr><th>P95 Latency</th><td>{summary.p95_latency:.0f}ms</td></tr>
    <tr><th>P99 Latency</th><td>{summary.p99_latency:.0f}ms</td></tr>
  </table>
  <h2>Endpoints</h2>
  <table>
    <tr><th>Endpoint</th><th>Requests</th><th>Error Rate</th><th>Avg</th><th>P95</th></tr>
{rows}
  </table>
  <h2 class="{status}">Status: {_STATUS_LABELS[status]}</h2>
</body>
</html>
"""


def write_reports(
    report: ReportData, outputs: list[ReportOutput], console: Optional[Console] = None
) -> list[Path]:
    """Emit the report to every configured destination.

    Console outputs print immediately; json and html outputs are written
    to ``<path>/<project>-report.<ext>``. With no outputs configured the
    report is printed to the console.

    Returns:
        Paths of the files written
    """
    written: list[Path] = []
    if not outputs:
        render_console(report, console)
        return written

    for output in outputs:
        if output.type == "console":
            render_console(report, console)
            continue

        renderer = render_json if output.type == "json" else render_html
        directory = Path(output.path or ".")
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / f"{report.project}-report.{output.type}"
        target.write_text(renderer(report), encoding="utf-8")
        written.append(target)

    return written
