"""
Tests for structured report output.
"""

import json
from datetime import datetime, timezone

import pytest

from fleet_cost.core.allocation import allocate_free_tier
from fleet_cost.core.date_range import resolve_date_range
from fleet_cost.core.pricing import PricingDimension
from fleet_cost.core.report import build_app_report, build_fleet_report
from fleet_cost.core.usage import AggregatedApp, UsageVector

DATE_RANGE = resolve_date_range("2024-01-01", now=datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc))


def make_result():
    apps = [
        AggregatedApp("api", UsageVector({PricingDimension.WORKER_REQUESTS: 12_000_000})),
        AggregatedApp("web", UsageVector({PricingDimension.CONTAINER_EGRESS_GB: 2})),
    ]
    return allocate_free_tier(apps)


class TestAppReport:
    """Test per-app report shape."""

    def test_fields(self):
        """App report carries usage, gross costs, and totals."""
        app = make_result().apps[0]
        report = build_app_report(app)

        assert report["name"] == "api"
        assert list(report["usage"]) == [dim.value for dim in PricingDimension]
        assert list(report["costs"]) == [dim.value for dim in PricingDimension]
        assert report["usage"]["workerRequests"] == 12_000_000
        assert report["costs"]["workerRequests"] == pytest.approx(3.60)
        assert report["grossTotal"] == app.gross_total
        assert report["freeTierDiscount"] == app.free_tier_discount
        assert report["netTotal"] == app.net_total


class TestFleetReport:
    """Test fleet report shape."""

    def test_fields(self):
        """Fleet report carries the period, apps, and totals."""
        result = make_result()
        report = build_fleet_report(result, DATE_RANGE)

        assert report["period"] == {
            "since": "2024-01-01T00:00:00Z",
            "until": "2024-01-15T09:00:00Z",
            "label": "Jan 1 – Jan 15",
        }
        assert [app["name"] for app in report["apps"]] == ["api", "web"]
        assert report["grossFleetTotal"] == result.gross_fleet_total
        assert report["freeTierDiscount"] == result.free_tier_discount
        assert report["netFleetTotal"] == result.net_fleet_total
        assert report["platform"] == 5.0
        assert report["total"] == pytest.approx(result.net_fleet_total + 5.0)

    def test_json_serializable(self):
        """Report contains only JSON-native values."""
        report = build_fleet_report(make_result(), DATE_RANGE)
        assert json.loads(json.dumps(report)) == report
