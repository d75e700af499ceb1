"""Command-line interface for loadflow.

This module provides a Click-based CLI for running load tests described
by project YAML files.
"""

import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from loadflow import __version__
from loadflow.core.auth import authenticate, describe_auth
from loadflow.core.project_parser import SCENARIOS, ProjectConfigParser
from loadflow.core.reporters import write_reports
from loadflow.core.runner import LoadTestRunner
from loadflow.core.transport import RequestsTransport
from loadflow.exceptions import AuthenticationException, LoadFlowException

console = Console()


def _configure_logging(verbose: bool) -> None:
    """Route loadflow logs through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # Keep urllib3 pool logs at WARNING
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="loadflow")
def cli():
    """loadflow - Load test HTTP APIs from declarative project files.

    Describe endpoints, authentication and load in a YAML project file,
    then run it with many concurrent virtual users.
    """
    pass


@cli.command()
@click.argument("project_path", type=click.Path(exists=True))
@click.option("--vus", type=click.IntRange(min=1), help="Override number of virtual users")
@click.option("--duration", help="Override run duration (e.g. 30s, 1m30s)")
@click.option(
    "--iterations",
    type=click.IntRange(min=1),
    help="Run a fixed number of iterations per virtual user instead of a duration",
)
@click.option(
    "--scenario",
    type=click.Choice(SCENARIOS),
    help="Override scenario type",
)
@click.option(
    "--think-time",
    type=click.FloatRange(min=0),
    help="Override think time between requests (seconds)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every request")
def run(
    project_path: str,
    vus: Optional[int],
    duration: Optional[str],
    iterations: Optional[int],
    scenario: Optional[str],
    think_time: Optional[float],
    verbose: bool,
):
    """Run a load test.

    Authenticates once, runs the project's endpoints with the configured
    number of virtual users, then writes the configured reports.

    Example:
        loadflow run projects/crud-flow.yaml
        loadflow run projects/products.yaml --vus 20 --duration 1m
        loadflow run projects/otp.yaml --iterations 1 --think-time 0
    """
    _configure_logging(verbose)

    try:
        project = ProjectConfigParser().parse(project_path)
        if scenario:
            project.scenario = scenario
        if think_time is not None:
            project.think_time = think_time

        if iterations:
            run_length = f"{iterations} iterations"
        else:
            run_length = duration or project.load.duration
        console.print(
            f"\n[bold]Starting load test for:[/bold] {project.name}\n"
            f"  VUs: {vus or project.load.vus} | Duration: {run_length}\n"
        )

        runner = LoadTestRunner(project)
        console.print(f"[bold]Authenticating:[/bold] {describe_auth(project.auth)}")
        runner.setup()
        console.print("[green]✓ Authentication successful[/green]\n")

        result = runner.run(iterations=iterations, vus=vus, duration=duration)

        written = write_reports(result.report, project.report_outputs, console)
        for path in written:
            console.print(f"[green]✓[/green] Report written: {path}")

        if result.transport_errors:
            console.print(
                f"[yellow]Warning:[/yellow] {result.transport_errors} call(s) got no response"
            )

    except AuthenticationException as e:
        console.print(f"\n[bold red]Authentication failed:[/bold red] {e}")
        sys.exit(1)
    except LoadFlowException as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)


@cli.command()
@click.argument("project_path", type=click.Path(exists=True))
def validate(project_path: str):
    """Validate a project file and show what would run.

    Example:
        loadflow validate projects/crud-flow.yaml
    """
    try:
        project = ProjectConfigParser().parse(project_path)
    except LoadFlowException as e:
        console.print(
            Panel(f"[bold red]✗ Invalid project[/bold red]\n\n{e}", border_style="red")
        )
        sys.exit(1)

    console.print(
        Panel(
            f"[bold green]✓ Project is valid[/bold green]\n\n"
            f"[bold]Name:[/bold]     {project.name}\n"
            f"[bold]Base URL:[/bold] {project.base_url}\n"
            f"[bold]Load:[/bold]     {project.load.vus} VUs, {project.load.duration}\n"
            f"[bold]Auth:[/bold]     {describe_auth(project.auth)}\n"
            f"[bold]Scenario:[/bold] {project.scenario}",
            border_style="green",
        )
    )

    table = Table(title="Endpoints", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Method")
    table.add_column("Extracts")
    for i, endpoint in enumerate(project.endpoints, 1):
        table.add_row(
            str(i),
            endpoint.name,
            endpoint.method,
            ", ".join(endpoint.extract) or "-",
        )
    console.print(table)


@cli.command()
@click.argument("project_path", type=click.Path(exists=True))
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
def auth(project_path: str, verbose: bool):
    """Run only the authentication phase of a project.

    Example:
        loadflow auth projects/otp.yaml
    """
    _configure_logging(verbose)

    try:
        project = ProjectConfigParser().parse(project_path)
    except LoadFlowException as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    transport = RequestsTransport()
    try:
        result = authenticate(project.auth, project.base_url, transport)
    finally:
        transport.close()

    if not result.success:
        console.print(f"\n[bold red]✗ Authentication failed:[/bold red] {result.error}")
        sys.exit(1)

    console.print(
        f"\n[bold green]✓ Authentication successful[/bold green] ({describe_auth(project.auth)})"
    )
    if result.context:
        table = Table(title="Auth Context", show_header=True, header_style="bold cyan")
        table.add_column("Key")
        table.add_column("Value")
        for key, value in result.context.to_dict().items():
            table.add_row(key, str(value))
        console.print(table)


def main():
    """Entry point for CLI application."""
    cli()


if __name__ == "__main__":
    main()
