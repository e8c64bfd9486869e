"""
Tests for the CLI interface.
"""
import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from fleet_cost.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from fleet_cost.config.loader import AccountConfig, FleetCostConfig
from fleet_cost.core.allocation import allocate_free_tier
from fleet_cost.core.errors import AppNotFoundError, UpstreamUnavailable
from fleet_cost.core.pricing import PricingDimension
from fleet_cost.core.usage import AggregatedApp, UsageVector

runner = CliRunner()


def make_result(*names):
    """Build a fleet result where every app overruns the request allowance."""
    apps = [
        AggregatedApp(
            name,
            UsageVector({
                PricingDimension.WORKER_REQUESTS: 8_000_000,
                PricingDimension.DO_REQUESTS: 2_000,
                PricingDimension.CONTAINER_VCPU_SEC: 7_200,
            }),
            inbound_messages=40_000,
        )
        for name in names
    ]
    return allocate_free_tier(apps)


@pytest.fixture
def mock_config():
    """Provide a configuration with credentials."""
    config = FleetCostConfig(account=AccountConfig("acct", "token"))
    with patch('fleet_cost.cli.main.load_config', return_value=config) as mock:
        yield mock


@pytest.fixture
def mock_estimate():
    """Mock the estimate_costs coroutine."""
    with patch('fleet_cost.cli.main.estimate_costs', new_callable=AsyncMock) as mock:
        yield mock


class TestCLI:
    """Test the cost command."""

    def test_fleet_output(self, mock_config, mock_estimate):
        """Fleet view lists apps and totals."""
        mock_estimate.return_value = make_result("api", "web")

        result = runner.invoke(app, ["cost"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Estimated costs" in result.output
        assert "api" in result.output
        assert "web" in result.output
        assert "Subtotal" in result.output
        assert "Free tier" in result.output
        assert "Platform" in result.output
        assert "TOTAL" in result.output
        assert "$5.00" in result.output

    def test_single_app_output(self, mock_config, mock_estimate):
        """Single-app view shows per-component usage."""
        mock_estimate.return_value = make_result("api")

        result = runner.invoke(app, ["cost", "api"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Estimated cost for" in result.output
        assert "8.0M requests" in result.output
        assert "40.0K WS msgs" in result.output
        assert "2.0 vCPU-hrs" in result.output
        args, _ = mock_estimate.call_args
        assert args[2] == "api"

    def test_since_is_forwarded(self, mock_config, mock_estimate):
        """The period selector determines the date range passed on."""
        mock_estimate.return_value = make_result("api")

        result = runner.invoke(app, ["cost", "--since", "7d"])

        assert result.exit_code == EXIT_CODE_PASS
        args, _ = mock_estimate.call_args
        date_range = args[1]
        assert (date_range.until - date_range.since).days == 7

    def test_json_output(self, mock_config, mock_estimate):
        """--json prints the fleet report."""
        mock_estimate.return_value = make_result("api", "web")

        result = runner.invoke(app, ["cost", "--json"])

        assert result.exit_code == EXIT_CODE_PASS
        report = json.loads(result.stdout)
        assert [a["name"] for a in report["apps"]] == ["api", "web"]
        assert report["platform"] == 5.0
        assert report["total"] == pytest.approx(report["netFleetTotal"] + 5.0)
        assert set(report["period"]) == {"since", "until", "label"}

    def test_invalid_since_fails_before_fetching(self, mock_config, mock_estimate):
        """A malformed selector is reported and nothing is fetched."""
        result = runner.invoke(app, ["cost", "--since", "last-week"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid period selector" in result.output
        mock_estimate.assert_not_called()

    def test_out_of_range_since_fails_cleanly(self, mock_config, mock_estimate):
        """An oversized day count is reported instead of crashing."""
        result = runner.invoke(app, ["cost", "--since", "99999999d"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "out of range" in result.output
        mock_estimate.assert_not_called()

    def test_upstream_failure(self, mock_config, mock_estimate):
        """An unavailable source aborts with a failing exit code."""
        mock_estimate.side_effect = UpstreamUnavailable("workers", "401 Unauthorized")

        result = runner.invoke(app, ["cost"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "workers: 401 Unauthorized" in result.output

    def test_unknown_app(self, mock_config, mock_estimate):
        """A missing app is reported."""
        mock_estimate.side_effect = AppNotFoundError("App nope not found.")

        result = runner.invoke(app, ["cost", "nope"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "App nope not found." in result.output

    def test_config_error(self, mock_estimate):
        """Invalid configuration fails without fetching."""
        with patch('fleet_cost.cli.main.load_config', side_effect=ValueError("Unknown configuration keys: {'x'}")):
            result = runner.invoke(app, ["cost"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown configuration keys" in result.output
        mock_estimate.assert_not_called()
