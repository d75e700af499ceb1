"""Tests for CLI module."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner
from conftest import FakeTransport, json_response

from loadflow import __version__
from loadflow.cli import cli
from loadflow.core.data_structures import HttpResponse, LoadProfile, SummaryMetrics
from loadflow.core.reporters import build_report_data
from loadflow.exceptions import AuthenticationException


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CLI runner for testing.

    Returns:
        CliRunner instance
    """
    return CliRunner()


@pytest.fixture
def run_result():
    """Result returned by a mocked LoadTestRunner.run."""
    summary = SummaryMetrics(requests=20, rps=2.0, error_rate=0, avg_latency=50)
    return Mock(
        summary=summary,
        transport_errors=0,
        report=build_report_data("products", "simple", LoadProfile(2, "10s"), summary),
    )


class TestCLI:
    """Test suite for top-level CLI behaviour."""

    def test_cli_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "run" in result.output
        assert "validate" in result.output
        assert "auth" in result.output

    def test_cli_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_project_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(cli, ["run", str(tmp_path / "missing.yaml")])

        assert result.exit_code != 0
        assert "does not exist" in result.output


class TestRunCommand:
    """Tests for `loadflow run`."""

    def test_run_success(self, runner: CliRunner, simple_project_file: Path, run_result):
        with patch("loadflow.cli.LoadTestRunner") as mock_runner_class:
            mock_runner = mock_runner_class.return_value
            mock_runner.run.return_value = run_result

            result = runner.invoke(cli, ["run", str(simple_project_file)])

        assert result.exit_code == 0, result.output
        assert "Starting load test for:" in result.output
        assert "Authentication successful" in result.output
        assert "Load Test Report" in result.output
        mock_runner.setup.assert_called_once()
        mock_runner.run.assert_called_once_with(iterations=None, vus=None, duration=None)

    def test_run_overrides(self, runner: CliRunner, simple_project_file: Path, run_result):
        with patch("loadflow.cli.LoadTestRunner") as mock_runner_class:
            mock_runner_class.return_value.run.return_value = run_result

            result = runner.invoke(
                cli,
                [
                    "run",
                    str(simple_project_file),
                    "--vus",
                    "3",
                    "--iterations",
                    "2",
                    "--scenario",
                    "flow",
                    "--think-time",
                    "0.25",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "2 iterations" in result.output
        project = mock_runner_class.call_args[0][0]
        assert project.scenario == "flow"
        assert project.think_time == 0.25
        mock_runner_class.return_value.run.assert_called_once_with(
            iterations=2, vus=3, duration=None
        )

    def test_run_auth_failure(self, runner: CliRunner, simple_project_file: Path):
        with patch("loadflow.cli.LoadTestRunner") as mock_runner_class:
            mock_runner_class.return_value.setup.side_effect = AuthenticationException(
                "Authentication failed: Login failed with status 401: denied"
            )

            result = runner.invoke(cli, ["run", str(simple_project_file)])

        assert result.exit_code == 1
        assert "Authentication failed" in result.output
        mock_runner_class.return_value.run.assert_not_called()

    def test_run_invalid_project(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: x\n")

        result = runner.invoke(cli, ["run", str(path)])

        assert result.exit_code == 1
        assert "base_url" in result.output

    def test_run_transport_error_warning(
        self, runner: CliRunner, simple_project_file: Path, run_result
    ):
        run_result.transport_errors = 3
        with patch("loadflow.cli.LoadTestRunner") as mock_runner_class:
            mock_runner_class.return_value.run.return_value = run_result

            result = runner.invoke(cli, ["run", str(simple_project_file)])

        assert result.exit_code == 0
        assert "3 call(s) got no response" in result.output

    def test_invalid_vus(self, runner: CliRunner, simple_project_file: Path):
        result = runner.invoke(cli, ["run", str(simple_project_file), "--vus", "0"])

        assert result.exit_code == 2


class TestValidateCommand:
    """Tests for `loadflow validate`."""

    def test_valid_project(self, runner: CliRunner, flow_project_file: Path):
        result = runner.invoke(cli, ["validate", str(flow_project_file)])

        assert result.exit_code == 0
        assert "Project is valid" in result.output
        assert "crud-flow" in result.output
        assert "Create Task" in result.output
        assert "jwt, 2 steps" in result.output

    def test_invalid_project(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: x\nbase_url: http://localhost\nscenario: soak\n")

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Invalid project" in result.output


class TestAuthCommand:
    """Tests for `loadflow auth`."""

    def test_multi_step_success(self, runner: CliRunner, flow_project_file: Path):
        transport = FakeTransport(
            [
                json_response(200, {"data": {"ref": "R-1"}}),
                json_response(200, {"data": {"token": "jwt-2"}}),
            ]
        )

        with patch("loadflow.cli.RequestsTransport", return_value=transport):
            result = runner.invoke(cli, ["auth", str(flow_project_file)])

        assert result.exit_code == 0, result.output
        assert "Authentication successful" in result.output
        assert "otpRef" in result.output
        assert "R-1" in result.output
        assert transport.closed

    def test_failure(self, runner: CliRunner, flow_project_file: Path):
        transport = FakeTransport([HttpResponse.from_raw(503, "unavailable")])

        with patch("loadflow.cli.RequestsTransport", return_value=transport):
            result = runner.invoke(cli, ["auth", str(flow_project_file)])

        assert result.exit_code == 1
        assert "Authentication failed" in result.output
        assert "Step 1 'Request OTP'" in result.output
