"""
Vendor API client.

Implements the MetricsFetcher protocol on top of the GraphQL analytics
endpoint, and exposes the REST calls used for app discovery.
No retries are attempted here; every failure surfaces as
UpstreamUnavailable for the source being queried.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from fleet_cost.core.date_range import DateRange
from fleet_cost.core.errors import UpstreamUnavailable
from .models import (
    ContainerMetricsRow,
    DurableObjectDurationRow,
    DurableObjectRequestRow,
    WorkerInvocationRow,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.cloudflare.com/client/v4"
ROW_LIMIT = 10000

T = TypeVar("T")

WORKERS_QUERY = """query Workers($accountTag: string!, $filter: WorkersInvocationsAdaptiveFilter_InputObject!) {
  viewer {
    accounts(filter: { accountTag: $accountTag }) {
      workersInvocationsAdaptive(limit: %d, filter: $filter) {
        dimensions { scriptName }
        sum { requests cpuTimeUs }
        avg { sampleInterval }
      }
    }
  }
}""" % ROW_LIMIT

DO_REQUESTS_QUERY = """query DORequests($accountTag: string!, $filter: DurableObjectsInvocationsAdaptiveGroupsFilter_InputObject!) {
  viewer {
    accounts(filter: { accountTag: $accountTag }) {
      durableObjectsInvocationsAdaptiveGroups(limit: %d, filter: $filter) {
        dimensions { namespaceId }
        sum { requests }
        avg { sampleInterval }
      }
    }
  }
}""" % ROW_LIMIT

DO_DURATION_QUERY = """query DODuration($accountTag: string!, $filter: DurableObjectsPeriodicGroupsFilter_InputObject!) {
  viewer {
    accounts(filter: { accountTag: $accountTag }) {
      durableObjectsPeriodicGroups(limit: %d, filter: $filter) {
        dimensions { namespaceId }
        sum { activeTime inboundWebsocketMsgCount }
      }
    }
  }
}""" % ROW_LIMIT

CONTAINERS_QUERY = """query Containers($accountTag: string!, $filter: AccountContainersMetricsAdaptiveGroupsFilter_InputObject!) {
  viewer {
    accounts(filter: { accountTag: $accountTag }) {
      containersMetricsAdaptiveGroups(limit: %d, filter: $filter) {
        dimensions { applicationId }
        sum { cpuTimeSec allocatedMemory allocatedDisk txBytes }
      }
    }
  }
}""" % ROW_LIMIT


class CloudflareClient:
    """Async client for the analytics GraphQL API and account REST API.

    Use as an async context manager, or pass an existing
    ``httpx.AsyncClient`` whose lifetime the caller manages.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = API_BASE_URL,
        timeout: float = 30.0,
    ):
        if not account_id or not account_id.strip():
            raise ValueError("account_id is required and cannot be empty")
        if not api_token or not api_token.strip():
            raise ValueError("api_token is required and cannot be empty")

        self.account_id = account_id
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_token}"}

    async def __aenter__(self) -> "CloudflareClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- transport ---

    async def graphql(self, source: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            UpstreamUnavailable: On transport errors, HTTP errors, GraphQL
                errors, or a malformed response body
        """
        payload = await self._request(
            source, "POST", "/graphql", json={"query": query, "variables": variables}
        )
        errors = payload.get("errors")
        if errors:
            messages = ", ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e)
                                 for e in errors)
            raise UpstreamUnavailable(source, f"GraphQL error: {messages}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise UpstreamUnavailable(source, "GraphQL response missing data")
        return data

    async def rest_get(self, source: str, path: str) -> List[Dict[str, Any]]:
        """GET an account-scoped REST resource and return its ``result`` list."""
        payload = await self._request(source, "GET", f"/accounts/{self.account_id}{path}")
        result = payload.get("result") or []
        if not isinstance(result, list):
            raise UpstreamUnavailable(source, f"Unexpected response shape for {path}")
        return result

    async def _request(self, source: str, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(source, f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise UpstreamUnavailable(
                source, f"{method} {path}: {response.status_code} {response.text}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(source, f"{method} {path}: invalid JSON response") from e
        if not isinstance(payload, dict):
            raise UpstreamUnavailable(source, f"{method} {path}: unexpected response body")
        return payload

    # --- metric sources ---

    async def worker_invocations(
        self, script_ids: Sequence[str], date_range: DateRange
    ) -> List[WorkerInvocationRow]:
        return await self._query_rows(
            "workers", WORKERS_QUERY, "workersInvocationsAdaptive",
            "scriptName_in", script_ids, date_range,
            lambda row: WorkerInvocationRow(
                script_id=_dimension(row, "scriptName"),
                requests=_number(row, "sum", "requests"),
                cpu_time_micros=_number(row, "sum", "cpuTimeUs"),
                sample_interval=_sample_interval(row),
            ),
        )

    async def durable_object_requests(
        self, namespace_ids: Sequence[str], date_range: DateRange
    ) -> List[DurableObjectRequestRow]:
        return await self._query_rows(
            "do_requests", DO_REQUESTS_QUERY, "durableObjectsInvocationsAdaptiveGroups",
            "namespaceId_in", namespace_ids, date_range,
            lambda row: DurableObjectRequestRow(
                namespace_id=_dimension(row, "namespaceId"),
                requests=_number(row, "sum", "requests"),
                sample_interval=_sample_interval(row),
            ),
        )

    async def durable_object_duration(
        self, namespace_ids: Sequence[str], date_range: DateRange
    ) -> List[DurableObjectDurationRow]:
        return await self._query_rows(
            "do_duration", DO_DURATION_QUERY, "durableObjectsPeriodicGroups",
            "namespaceId_in", namespace_ids, date_range,
            lambda row: DurableObjectDurationRow(
                namespace_id=_dimension(row, "namespaceId"),
                active_time_micros=_number(row, "sum", "activeTime"),
                inbound_message_count=_number(row, "sum", "inboundWebsocketMsgCount"),
            ),
        )

    async def container_metrics(
        self, application_ids: Sequence[str], date_range: DateRange
    ) -> List[ContainerMetricsRow]:
        return await self._query_rows(
            "containers", CONTAINERS_QUERY, "containersMetricsAdaptiveGroups",
            "applicationId_in", application_ids, date_range,
            lambda row: ContainerMetricsRow(
                application_id=_dimension(row, "applicationId"),
                cpu_seconds=_number(row, "sum", "cpuTimeSec"),
                allocated_memory_byte_seconds=_number(row, "sum", "allocatedMemory"),
                allocated_disk_byte_seconds=_number(row, "sum", "allocatedDisk"),
                egress_bytes=_number(row, "sum", "txBytes"),
            ),
        )

    async def _query_rows(
        self,
        source: str,
        query: str,
        node: str,
        id_filter: str,
        identifiers: Sequence[str],
        date_range: DateRange,
        parse_row: Callable[[Dict[str, Any]], T],
    ) -> List[T]:
        if not identifiers:
            return []

        variables = {
            "accountTag": self.account_id,
            "filter": {
                "datetimeHour_geq": date_range.since_iso,
                "datetimeHour_leq": date_range.until_iso,
                id_filter: list(identifiers),
            },
        }
        data = await self.graphql(source, query, variables)

        try:
            accounts = data["viewer"]["accounts"]
            raw_rows = (accounts[0].get(node) if accounts else None) or []
            rows = [parse_row(row) for row in raw_rows]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamUnavailable(source, f"Malformed analytics response: {e!r}") from e

        logger.debug("%s: %d rows", source, len(rows))
        return rows


def _dimension(row: Dict[str, Any], name: str) -> str:
    value = row["dimensions"][name]
    if not isinstance(value, str):
        raise ValueError(f"dimension {name} is not a string")
    return value


def _number(row: Dict[str, Any], group: str, name: str) -> float:
    value = (row.get(group) or {}).get(name)
    return float(value or 0)


def _sample_interval(row: Dict[str, Any]) -> float:
    # Unsampled rows may omit the interval or report 0
    return _number(row, "avg", "sampleInterval") or 1.0
