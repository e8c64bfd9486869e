"""
Fleet cost estimation.

Issues the four metric-source fetches concurrently, then aggregates,
prices, and allocates the shared free tier in a single synchronous pass.

Any source that fails outright aborts the whole estimate. A source
whose identifier list is empty is skipped without a network call.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

from .allocation import FleetResult, allocate_free_tier
from .date_range import DateRange
from .errors import FleetCostError, UpstreamUnavailable
from .pricing import PRICING_TABLE, PricingTable
from .usage import DEFAULT_BILLING, AppTarget, BillingConstants, aggregate_usage
from fleet_cost.metrics.fetcher import MetricsFetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def estimate_fleet_cost(
    fetcher: MetricsFetcher,
    apps: Sequence[AppTarget],
    date_range: DateRange,
    table: PricingTable = PRICING_TABLE,
    billing: BillingConstants = DEFAULT_BILLING,
) -> FleetResult:
    """Fetch metrics for the given apps and compute the fleet cost breakdown.

    Args:
        fetcher: Source of raw metric rows
        apps: Target apps, in the order results should be reported
        date_range: Query window
        table: Pricing table to apply
        billing: Unit-conversion constants

    Returns:
        FleetResult for the target apps

    Raises:
        UpstreamUnavailable: If any metric source fails entirely
    """
    script_ids = _unique(app.script_id for app in apps)
    namespace_ids = _unique(app.namespace_id for app in apps if app.namespace_id)
    application_ids = _unique(app.application_id for app in apps if app.application_id)

    tasks = [
        asyncio.create_task(_fetch("workers", fetcher.worker_invocations, script_ids, date_range)),
        asyncio.create_task(_fetch("do_requests", fetcher.durable_object_requests, namespace_ids, date_range)),
        asyncio.create_task(_fetch("do_duration", fetcher.durable_object_duration, namespace_ids, date_range)),
        asyncio.create_task(_fetch("containers", fetcher.container_metrics, application_ids, date_range)),
    ]
    try:
        worker_rows, do_request_rows, do_duration_rows, container_rows = await asyncio.gather(*tasks)
    except Exception:
        # Cancel and drain the remaining fetches before propagating
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    aggregated = aggregate_usage(
        apps,
        worker_rows=worker_rows,
        do_request_rows=do_request_rows,
        do_duration_rows=do_duration_rows,
        container_rows=container_rows,
        billing=billing,
    )
    return allocate_free_tier(aggregated, table)


async def _fetch(
    source: str,
    operation: Callable[[Sequence[str], DateRange], Awaitable[List[T]]],
    identifiers: List[str],
    date_range: DateRange,
) -> List[T]:
    if not identifiers:
        logger.debug("Skipping %s fetch: no identifiers", source)
        return []

    try:
        rows = await operation(identifiers, date_range)
    except FleetCostError:
        raise
    except Exception as e:
        raise UpstreamUnavailable(source, str(e) or type(e).__name__) from e

    logger.debug("Fetched %d %s rows for %d identifiers", len(rows), source, len(identifiers))
    return list(rows)


def _unique(values) -> List[str]:
    # Preserve first-seen order
    return list(dict.fromkeys(values))
