"""
Raw metric rows returned by the analytics sources.

Rows are transient: the aggregator folds them into usage vectors and
does not keep them.
"""

from dataclasses import dataclass


def _check_non_negative(row: object, *names: str) -> None:
    for name in names:
        if getattr(row, name) < 0:
            raise ValueError(f"{type(row).__name__}.{name} cannot be negative")


@dataclass(frozen=True)
class WorkerInvocationRow:
    """Sampled worker invocation totals for one script."""
    script_id: str
    requests: float = 0.0
    cpu_time_micros: float = 0.0
    sample_interval: float = 1.0  # reciprocal of the sampling probability

    def __post_init__(self):
        _check_non_negative(self, "requests", "cpu_time_micros")
        if self.sample_interval <= 0:
            raise ValueError("sample_interval must be > 0")


@dataclass(frozen=True)
class DurableObjectRequestRow:
    """Sampled Durable Object invocation totals for one namespace."""
    namespace_id: str
    requests: float = 0.0
    sample_interval: float = 1.0

    def __post_init__(self):
        _check_non_negative(self, "requests")
        if self.sample_interval <= 0:
            raise ValueError("sample_interval must be > 0")


@dataclass(frozen=True)
class DurableObjectDurationRow:
    """Unsampled Durable Object active time for one namespace."""
    namespace_id: str
    active_time_micros: float = 0.0
    inbound_message_count: float = 0.0

    def __post_init__(self):
        _check_non_negative(self, "active_time_micros", "inbound_message_count")


@dataclass(frozen=True)
class ContainerMetricsRow:
    """Container resource occupancy for one container application."""
    application_id: str
    cpu_seconds: float = 0.0
    allocated_memory_byte_seconds: float = 0.0
    allocated_disk_byte_seconds: float = 0.0
    egress_bytes: float = 0.0

    def __post_init__(self):
        _check_non_negative(
            self,
            "cpu_seconds",
            "allocated_memory_byte_seconds",
            "allocated_disk_byte_seconds",
            "egress_bytes",
        )
