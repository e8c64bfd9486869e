"""
Usage aggregation across metric sources.

Joins raw rows keyed by script, namespace, and container application
identifiers into exactly one usage vector per target app, correcting
sampled sources and converting units into billing units.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .pricing import PricingDimension
from fleet_cost.metrics.models import (
    ContainerMetricsRow,
    DurableObjectDurationRow,
    DurableObjectRequestRow,
    WorkerInvocationRow,
)

logger = logging.getLogger(__name__)

BYTES_PER_GIB = 2 ** 30
BYTES_PER_GB = 1e9
MICROS_PER_SECOND = 1e6
MICROS_PER_MS = 1000.0


@dataclass(frozen=True)
class AppTarget:
    """One deployed app and its identifier in each metric keyspace."""
    name: str
    script_id: str
    namespace_id: Optional[str] = None
    application_id: Optional[str] = None


@dataclass(frozen=True)
class BillingConstants:
    """Vendor billing equivalences used during unit conversion."""
    websocket_messages_per_request: float = 20.0
    durable_object_memory_mib: float = 128.0

    def __post_init__(self):
        if self.websocket_messages_per_request <= 0:
            raise ValueError("websocket_messages_per_request must be > 0")
        if self.durable_object_memory_mib <= 0:
            raise ValueError("durable_object_memory_mib must be > 0")


DEFAULT_BILLING = BillingConstants()


@dataclass(frozen=True)
class UsageVector:
    """Usage amount for every pricing dimension, in billing units.

    Always complete: dimensions not supplied default to 0.
    """
    amounts: Mapping[PricingDimension, float] = field(default_factory=dict)

    def __post_init__(self):
        complete = {dim: float(self.amounts.get(dim, 0.0)) for dim in PricingDimension}
        for dim, amount in complete.items():
            if amount < 0:
                raise ValueError(f"usage for {dim.value} cannot be negative")
        object.__setattr__(self, "amounts", complete)

    def __getitem__(self, dimension: PricingDimension) -> float:
        return self.amounts[dimension]

    def to_dict(self) -> Dict[str, float]:
        """Usage keyed by dimension name, in fixed dimension order."""
        return {dim.value: self.amounts[dim] for dim in PricingDimension}


@dataclass(frozen=True)
class AggregatedApp:
    """Aggregation output for one app."""
    name: str
    usage: UsageVector
    inbound_messages: float = 0.0  # informational; already folded into DO requests


@dataclass
class _WorkerTotals:
    requests: float = 0.0
    cpu_micros: float = 0.0


@dataclass
class _DurationTotals:
    active_micros: float = 0.0
    inbound_messages: float = 0.0


@dataclass
class _ContainerTotals:
    cpu_seconds: float = 0.0
    memory_byte_seconds: float = 0.0
    disk_byte_seconds: float = 0.0
    egress_bytes: float = 0.0


def aggregate_usage(
    apps: Sequence[AppTarget],
    worker_rows: Iterable[WorkerInvocationRow] = (),
    do_request_rows: Iterable[DurableObjectRequestRow] = (),
    do_duration_rows: Iterable[DurableObjectDurationRow] = (),
    container_rows: Iterable[ContainerMetricsRow] = (),
    billing: BillingConstants = DEFAULT_BILLING,
) -> List[AggregatedApp]:
    """Build one usage vector per app, in input order.

    Worker and Durable Object request rows are sampled and are scaled by
    their sample interval before summing. Durable Object duration rows and
    container rows are exact and summed directly. Apps with no matching
    rows get zero usage.

    Args:
        apps: Target apps with their per-source identifiers
        worker_rows: Rows keyed by script identifier
        do_request_rows: Rows keyed by namespace identifier
        do_duration_rows: Rows keyed by namespace identifier
        container_rows: Rows keyed by container application identifier
        billing: Message-to-request ratio and Durable Object memory footprint

    Returns:
        List of AggregatedApp, one per input app
    """
    workers: Dict[str, _WorkerTotals] = defaultdict(_WorkerTotals)
    for row in worker_rows:
        totals = workers[row.script_id]
        totals.requests += row.requests * row.sample_interval
        totals.cpu_micros += row.cpu_time_micros * row.sample_interval

    do_requests: Dict[str, float] = defaultdict(float)
    for row in do_request_rows:
        do_requests[row.namespace_id] += row.requests * row.sample_interval

    durations: Dict[str, _DurationTotals] = defaultdict(_DurationTotals)
    for row in do_duration_rows:
        totals = durations[row.namespace_id]
        totals.active_micros += row.active_time_micros
        totals.inbound_messages += row.inbound_message_count

    containers: Dict[str, _ContainerTotals] = defaultdict(_ContainerTotals)
    for row in container_rows:
        totals = containers[row.application_id]
        totals.cpu_seconds += row.cpu_seconds
        totals.memory_byte_seconds += row.allocated_memory_byte_seconds
        totals.disk_byte_seconds += row.allocated_disk_byte_seconds
        totals.egress_bytes += row.egress_bytes

    _log_unmatched(apps, workers, do_requests, durations, containers)

    footprint_gb = billing.durable_object_memory_mib / 1024
    results = []
    for app in apps:
        worker = workers.get(app.script_id, _WorkerTotals())

        http_requests = 0.0
        duration = _DurationTotals()
        if app.namespace_id:
            http_requests = do_requests.get(app.namespace_id, 0.0)
            duration = durations.get(app.namespace_id, duration)

        container = _ContainerTotals()
        if app.application_id:
            container = containers.get(app.application_id, container)

        usage = UsageVector({
            PricingDimension.WORKER_REQUESTS: worker.requests,
            PricingDimension.WORKER_CPU_MS: worker.cpu_micros / MICROS_PER_MS,
            PricingDimension.DO_REQUESTS: (
                http_requests
                + duration.inbound_messages / billing.websocket_messages_per_request
            ),
            PricingDimension.DO_GB_SECONDS: (
                duration.active_micros / MICROS_PER_SECOND * footprint_gb
            ),
            PricingDimension.CONTAINER_VCPU_SEC: container.cpu_seconds,
            PricingDimension.CONTAINER_MEM_GIB_SEC: container.memory_byte_seconds / BYTES_PER_GIB,
            PricingDimension.CONTAINER_DISK_GB_SEC: container.disk_byte_seconds / BYTES_PER_GB,
            PricingDimension.CONTAINER_EGRESS_GB: container.egress_bytes / BYTES_PER_GB,
        })
        results.append(AggregatedApp(
            name=app.name,
            usage=usage,
            inbound_messages=duration.inbound_messages,
        ))

    return results


def _log_unmatched(apps, workers, do_requests, durations, containers) -> None:
    """Log row keys that belong to none of the target apps."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    script_ids = {app.script_id for app in apps}
    namespace_ids = {app.namespace_id for app in apps if app.namespace_id}
    application_ids = {app.application_id for app in apps if app.application_id}

    for source, keys, known in (
        ("workers", workers.keys(), script_ids),
        ("do_requests", do_requests.keys(), namespace_ids),
        ("do_duration", durations.keys(), namespace_ids),
        ("containers", containers.keys(), application_ids),
    ):
        unmatched = sorted(set(keys) - known)
        if unmatched:
            logger.debug("Ignoring %s rows for unknown keys: %s", source, unmatched)
