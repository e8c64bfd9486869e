"""
Interface for the four metric sources consumed by the estimator.
"""

from typing import List, Protocol, Sequence

from fleet_cost.core.date_range import DateRange
from .models import (
    ContainerMetricsRow,
    DurableObjectDurationRow,
    DurableObjectRequestRow,
    WorkerInvocationRow,
)


class MetricsFetcher(Protocol):
    """Supplies raw metric rows for a set of identifiers over a date range.

    Contract for every method:
    - An empty identifier list yields an empty list, not an error.
    - A source that cannot be queried at all raises an exception; the
      estimator treats this as fatal for the whole computation.
    - Identifiers with no traffic simply produce no rows.
    """

    async def worker_invocations(
        self, script_ids: Sequence[str], date_range: DateRange
    ) -> List[WorkerInvocationRow]:
        ...

    async def durable_object_requests(
        self, namespace_ids: Sequence[str], date_range: DateRange
    ) -> List[DurableObjectRequestRow]:
        ...

    async def durable_object_duration(
        self, namespace_ids: Sequence[str], date_range: DateRange
    ) -> List[DurableObjectDurationRow]:
        ...

    async def container_metrics(
        self, application_ids: Sequence[str], date_range: DateRange
    ) -> List[ContainerMetricsRow]:
        ...
