"""
Shared free-tier allocation.

The vendor grants included quotas once per account, not once per app.
Fleet-wide overage gives the true net cost; the difference from gross
cost is the free-tier discount, which is then split across apps in
proportion to each app's share of gross cost.

This is an order-independent approximation: exact attribution would
depend on which app's usage happened to consume the quota first.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from .pricing import (
    PRICING_TABLE,
    GrossCost,
    PricingDimension,
    PricingTable,
    calculate_gross_cost,
)
from .usage import AggregatedApp, UsageVector


@dataclass(frozen=True)
class AppUsage:
    """Usage and cost breakdown for one app."""
    app_name: str
    usage: UsageVector
    gross_cost: GrossCost
    gross_total: float
    free_tier_discount: float
    net_total: float
    inbound_messages: float = 0.0


@dataclass(frozen=True)
class FleetResult:
    """Cost breakdown for every app plus fleet-wide totals."""
    apps: List[AppUsage]
    fleet_usage: UsageVector
    gross_fleet_total: float
    free_tier_discount: float
    net_fleet_total: float
    platform_fee: float

    @property
    def total(self) -> float:
        """Grand total for display: net fleet cost plus the flat platform fee."""
        return self.net_fleet_total + self.platform_fee


def allocate_free_tier(
    apps: Sequence[AggregatedApp],
    table: PricingTable = PRICING_TABLE,
) -> FleetResult:
    """Compute gross and net cost per app with the shared free tier applied.

    Args:
        apps: Aggregated usage, one entry per app
        table: Pricing table with included quotas and rates

    Returns:
        FleetResult with apps in input order
    """
    fleet_usage = _sum_usage(app.usage for app in apps)

    net_fleet_total = 0.0
    for dim in PricingDimension:
        rule = table.get_rule(dim)
        overage = max(0.0, fleet_usage[dim] - rule.included_quota)
        net_fleet_total += overage * rule.marginal_rate

    gross_costs = [calculate_gross_cost(app.usage, table) for app in apps]
    gross_totals = [cost.total for cost in gross_costs]
    gross_fleet_total = sum(gross_totals)
    fleet_discount = gross_fleet_total - net_fleet_total

    results = []
    for app, gross_cost, gross_total in zip(apps, gross_costs, gross_totals):
        if gross_fleet_total > 0:
            discount = fleet_discount * (gross_total / gross_fleet_total)
            # Clamp floating-point drift into [0, gross_total]
            discount = min(max(0.0, discount), gross_total)
        else:
            discount = 0.0
        results.append(AppUsage(
            app_name=app.name,
            usage=app.usage,
            gross_cost=gross_cost,
            gross_total=gross_total,
            free_tier_discount=discount,
            net_total=max(0.0, gross_total - discount),
            inbound_messages=app.inbound_messages,
        ))

    return FleetResult(
        apps=results,
        fleet_usage=fleet_usage,
        gross_fleet_total=gross_fleet_total,
        free_tier_discount=fleet_discount,
        net_fleet_total=net_fleet_total,
        platform_fee=table.platform_fee,
    )


def _sum_usage(vectors) -> UsageVector:
    totals: Dict[PricingDimension, float] = {dim: 0.0 for dim in PricingDimension}
    for vector in vectors:
        for dim in PricingDimension:
            totals[dim] += vector[dim]
    return UsageVector(totals)
