"""
Unit tests for pricing calculations.

Tests the pricing table, validation, and gross cost computation.
"""

import pytest

from fleet_cost.core.pricing import (
    PRICING_TABLE,
    GrossCost,
    PricingDimension,
    PricingRule,
    PricingTable,
    calculate_gross_cost,
)
from fleet_cost.core.usage import UsageVector


class TestPricingTable:
    """Test pricing table functionality."""

    def test_every_dimension_priced(self):
        """Default table covers every dimension."""
        for dim in PricingDimension:
            assert isinstance(PRICING_TABLE.get_rule(dim), PricingRule)

    def test_default_worker_request_rule(self):
        """Verify default worker request quota and rate."""
        rule = PRICING_TABLE.get_rule(PricingDimension.WORKER_REQUESTS)
        assert rule.included_quota == 10_000_000
        assert rule.marginal_rate == pytest.approx(0.30 / 1_000_000)

    def test_default_container_rules(self):
        """Verify container allowances expressed in seconds."""
        assert PRICING_TABLE.get_rule(PricingDimension.CONTAINER_VCPU_SEC).included_quota == 22_500
        assert PRICING_TABLE.get_rule(PricingDimension.CONTAINER_EGRESS_GB).included_quota == 0

    def test_platform_fee(self):
        """Default flat platform fee."""
        assert PRICING_TABLE.platform_fee == 5.0

    def test_missing_dimension_raises_error(self):
        """A table must price every dimension."""
        rules = dict(PRICING_TABLE.rules)
        del rules[PricingDimension.DO_GB_SECONDS]
        with pytest.raises(ValueError, match="doGbSeconds"):
            PricingTable(rules=rules)

    def test_negative_platform_fee_raises_error(self):
        """Platform fee cannot be negative."""
        with pytest.raises(ValueError, match="platform_fee cannot be negative"):
            PricingTable(rules=dict(PRICING_TABLE.rules), platform_fee=-1)

    def test_negative_rule_values_raise_error(self):
        """Quota and rate must be non-negative."""
        with pytest.raises(ValueError, match="included_quota cannot be negative"):
            PricingRule(included_quota=-1, marginal_rate=0.1)
        with pytest.raises(ValueError, match="marginal_rate cannot be negative"):
            PricingRule(included_quota=0, marginal_rate=-0.1)

    def test_with_overrides(self):
        """Overrides replace only the named rules."""
        rule = PricingRule(included_quota=0, marginal_rate=1.0)
        table = PRICING_TABLE.with_overrides({PricingDimension.WORKER_REQUESTS: rule}, platform_fee=0)
        assert table.get_rule(PricingDimension.WORKER_REQUESTS) == rule
        assert table.get_rule(PricingDimension.WORKER_CPU_MS) == PRICING_TABLE.get_rule(PricingDimension.WORKER_CPU_MS)
        assert table.platform_fee == 0
        # Original table unchanged
        assert PRICING_TABLE.get_rule(PricingDimension.WORKER_REQUESTS).marginal_rate != 1.0


class TestGrossCost:
    """Test gross cost calculation."""

    def test_ignores_included_quota(self):
        """Gross cost prices usage as if nothing were free."""
        usage = UsageVector({PricingDimension.WORKER_REQUESTS: 12_000_000})
        cost = calculate_gross_cost(usage)
        assert cost[PricingDimension.WORKER_REQUESTS] == pytest.approx(3.60)
        assert cost.total == pytest.approx(3.60)

    def test_every_dimension_present(self):
        """Result holds a cost for every dimension."""
        cost = calculate_gross_cost(UsageVector())
        assert set(cost.costs) == set(PricingDimension)
        assert cost.total == 0

    def test_total_sums_dimensions(self):
        """Total is the sum over dimensions."""
        usage = UsageVector({
            PricingDimension.CONTAINER_VCPU_SEC: 1000,     # 1000 * 0.00002 = 0.02
            PricingDimension.CONTAINER_EGRESS_GB: 4,       # 4 * 0.025 = 0.10
        })
        cost = calculate_gross_cost(usage)
        assert cost.total == pytest.approx(0.12)

    def test_custom_table(self):
        """Rates come from the supplied table."""
        table = PRICING_TABLE.with_overrides({
            PricingDimension.DO_REQUESTS: PricingRule(included_quota=0, marginal_rate=2.0),
        })
        cost = calculate_gross_cost(UsageVector({PricingDimension.DO_REQUESTS: 3}), table)
        assert cost[PricingDimension.DO_REQUESTS] == 6.0

    @pytest.mark.parametrize("dim", list(PricingDimension))
    def test_non_negative_and_monotonic(self, dim):
        """Gross cost is non-negative and non-decreasing in usage."""
        previous = -1.0
        for amount in (0, 1, 10, 1_000, 1_000_000, 1e9):
            cost = calculate_gross_cost(UsageVector({dim: amount}))[dim]
            assert cost >= 0
            assert cost >= previous
            previous = cost

    def test_missing_dimension_reads_zero(self):
        """GrossCost lookups default to zero."""
        assert GrossCost()[PricingDimension.WORKER_CPU_MS] == 0.0
