"""
Pricing calculations and rate management.

Holds the static per-dimension pricing table and computes gross cost,
i.e. cost as if no free allowance existed. Free-tier handling lives in
the allocation module.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Mapping, Optional

if TYPE_CHECKING:
    from .usage import UsageVector


class PricingDimension(Enum):
    """Billable usage dimensions, in fixed summation order."""
    WORKER_REQUESTS = "workerRequests"
    WORKER_CPU_MS = "workerCpuMs"
    DO_REQUESTS = "doRequests"
    DO_GB_SECONDS = "doGbSeconds"
    CONTAINER_VCPU_SEC = "containerVcpuSec"
    CONTAINER_MEM_GIB_SEC = "containerMemGibSec"
    CONTAINER_DISK_GB_SEC = "containerDiskGbSec"
    CONTAINER_EGRESS_GB = "containerEgressGb"


@dataclass(frozen=True)
class PricingRule:
    """Account-wide included quota and marginal rate for one dimension."""
    included_quota: float
    marginal_rate: float  # currency per unit

    def __post_init__(self):
        """Validate quota and rate are non-negative."""
        if self.included_quota < 0:
            raise ValueError("included_quota cannot be negative")
        if self.marginal_rate < 0:
            raise ValueError("marginal_rate cannot be negative")


@dataclass(frozen=True)
class PricingTable:
    """Complete pricing configuration: one rule per dimension plus a flat fee."""
    rules: Dict[PricingDimension, PricingRule]
    platform_fee: float = 0.0

    def __post_init__(self):
        missing = [dim.value for dim in PricingDimension if dim not in self.rules]
        if missing:
            raise ValueError(f"Pricing table missing dimensions: {missing}")
        if self.platform_fee < 0:
            raise ValueError("platform_fee cannot be negative")

    def get_rule(self, dimension: PricingDimension) -> PricingRule:
        """Get the pricing rule for a dimension."""
        return self.rules[dimension]

    def with_overrides(
        self,
        rules: Optional[Mapping[PricingDimension, PricingRule]] = None,
        platform_fee: Optional[float] = None,
    ) -> "PricingTable":
        """Return a copy with some rules and/or the platform fee replaced."""
        merged = dict(self.rules)
        merged.update(rules or {})
        return PricingTable(
            rules=merged,
            platform_fee=self.platform_fee if platform_fee is None else platform_fee,
        )


# Workers Paid plan, monthly allowances
PRICING_TABLE = PricingTable(
    rules={
        PricingDimension.WORKER_REQUESTS: PricingRule(10_000_000, 0.30 / 1_000_000),
        PricingDimension.WORKER_CPU_MS: PricingRule(30_000_000, 0.02 / 1_000_000),
        PricingDimension.DO_REQUESTS: PricingRule(1_000_000, 0.15 / 1_000_000),
        PricingDimension.DO_GB_SECONDS: PricingRule(400_000, 12.50 / 1_000_000),
        PricingDimension.CONTAINER_VCPU_SEC: PricingRule(375 * 60, 0.000020),
        PricingDimension.CONTAINER_MEM_GIB_SEC: PricingRule(25 * 3600, 0.0000025),
        PricingDimension.CONTAINER_DISK_GB_SEC: PricingRule(200 * 3600, 0.00000007),
        PricingDimension.CONTAINER_EGRESS_GB: PricingRule(0, 0.025),
    },
    platform_fee=5.0,
)


@dataclass(frozen=True)
class GrossCost:
    """Per-dimension gross cost for one usage vector."""
    costs: Dict[PricingDimension, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        # Fixed dimension order keeps repeated runs bit-identical
        return sum(self.costs.get(dim, 0.0) for dim in PricingDimension)

    def __getitem__(self, dimension: PricingDimension) -> float:
        return self.costs.get(dimension, 0.0)


def calculate_gross_cost(usage: "UsageVector", table: PricingTable = PRICING_TABLE) -> GrossCost:
    """Calculate gross cost for a usage vector, ignoring included quotas.

    Args:
        usage: Usage amounts for every dimension
        table: Pricing table to apply

    Returns:
        GrossCost with one entry per dimension
    """
    return GrossCost({
        dim: usage[dim] * table.get_rule(dim).marginal_rate
        for dim in PricingDimension
    })
