"""
Metric sources for Fleet Cost.

Provides the raw row types, the fetcher protocol, and the GraphQL-backed
implementation used by the CLI.
"""

from .fetcher import MetricsFetcher
from .graphql_client import CloudflareClient

__all__ = ["MetricsFetcher", "CloudflareClient"]
