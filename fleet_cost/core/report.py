"""
Structured report output.

Converts engine results into plain dictionaries for JSON rendering.
Values are left unrounded; rounding is a display concern.
"""

from typing import Any, Dict

from .allocation import AppUsage, FleetResult
from .date_range import DateRange
from .pricing import PricingDimension


def build_app_report(app: AppUsage) -> Dict[str, Any]:
    """Build the report for a single app."""
    return {
        "name": app.app_name,
        "usage": app.usage.to_dict(),
        "costs": {dim.value: app.gross_cost[dim] for dim in PricingDimension},
        "grossTotal": app.gross_total,
        "freeTierDiscount": app.free_tier_discount,
        "netTotal": app.net_total,
    }


def build_fleet_report(result: FleetResult, date_range: DateRange) -> Dict[str, Any]:
    """Build the fleet-wide report, including the period and platform fee."""
    return {
        "period": {
            "since": date_range.since_iso,
            "until": date_range.until_iso,
            "label": date_range.label,
        },
        "apps": [build_app_report(app) for app in result.apps],
        "grossFleetTotal": result.gross_fleet_total,
        "freeTierDiscount": result.free_tier_discount,
        "netFleetTotal": result.net_fleet_total,
        "platform": result.platform_fee,
        "total": result.total,
    }
