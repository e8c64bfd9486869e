"""
CLI interface for Fleet Cost.

Fetches usage for deployed apps and renders the estimated cost breakdown.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from fleet_cost.config.loader import FleetCostConfig, load_config
from fleet_cost.core.allocation import AppUsage, FleetResult
from fleet_cost.core.date_range import DateRange, resolve_date_range
from fleet_cost.core.errors import FleetCostError
from fleet_cost.core.estimator import estimate_fleet_cost
from fleet_cost.core.pricing import PricingDimension
from fleet_cost.core.report import build_fleet_report
from fleet_cost.metrics.discovery import discover_apps
from fleet_cost.metrics.graphql_client import CloudflareClient

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

PRICING_NOTE = "Estimates based on Cloudflare Workers Paid plan pricing."

WORKER_DIMENSIONS = (PricingDimension.WORKER_REQUESTS, PricingDimension.WORKER_CPU_MS)
DO_DIMENSIONS = (PricingDimension.DO_REQUESTS, PricingDimension.DO_GB_SECONDS)
CONTAINER_DIMENSIONS = (
    PricingDimension.CONTAINER_VCPU_SEC,
    PricingDimension.CONTAINER_MEM_GIB_SEC,
    PricingDimension.CONTAINER_DISK_GB_SEC,
    PricingDimension.CONTAINER_EGRESS_GB,
)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Fleet Cost CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Fleet Cost - Use --help to see available commands")


async def estimate_costs(
    config: FleetCostConfig,
    date_range: DateRange,
    app_name: Optional[str] = None,
) -> FleetResult:
    """Discover target apps and estimate their cost over the date range."""
    account = config.require_account()
    async with CloudflareClient(account.account_id, account.api_token) as client:
        apps = await discover_apps(client, config.script_prefix, app_name)
        return await estimate_fleet_cost(
            client, apps, date_range, table=config.pricing, billing=config.billing
        )


@app.command()
def cost(
    name: Optional[str] = typer.Argument(
        None,
        help="Estimate a single app instead of the whole fleet"
    ),
    since: Optional[str] = typer.Option(
        None,
        "--since",
        "-s",
        help="Start of period: YYYY-MM-DD or Nd (e.g. 7d). Defaults to the 1st of this month"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the cost report as JSON"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    ),
):
    """
    Estimate usage cost for deployed apps.

    The account-wide free tier is applied once to the whole fleet and
    its value is shared across apps in proportion to their gross cost.
    """
    _configure_logging(verbose)

    try:
        config = load_config(config_path)
        date_range = resolve_date_range(since)
        if not json_output:
            console.print(f"[dim]Fetching analytics ({date_range.label})...[/]")
        result = asyncio.run(estimate_costs(config, date_range, name))
    except (FleetCostError, ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    if json_output:
        typer.echo(json.dumps(build_fleet_report(result, date_range), indent=2))
    elif name is not None:
        _display_single_app(result.apps[0], date_range, config.billing.websocket_messages_per_request)
    else:
        _display_fleet(result, date_range)
    sys.exit(EXIT_CODE_PASS)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _format_number(n: float) -> str:
    return f"{n:,.2f}".rstrip("0").rstrip(".")


def _format_usage(n: float, unit: str) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M {unit}"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K {unit}"
    return f"{_format_number(n)} {unit}"


def _format_time_units(seconds: float, unit: str) -> str:
    """Render unit-seconds as unit-hrs, or unit-min below one hour."""
    hours = seconds / 3600
    if hours >= 1:
        return f"{hours:.1f} {unit}-hrs"
    return f"{seconds / 60:.1f} {unit}-min"


def _group_cost(app_usage: AppUsage, dimensions) -> float:
    return sum(app_usage.gross_cost[dim] for dim in dimensions)


def _display_single_app(app_usage: AppUsage, date_range: DateRange, messages_per_request: float) -> None:
    """Display one app's per-component usage and cost."""
    usage = app_usage.usage
    costs = app_usage.gross_cost
    console.print(
        f"\n[bold]Estimated cost for[/bold] [cyan]{app_usage.app_name}[/] "
        f"[dim]({date_range.label})[/]\n"
    )

    table = Table(box=None, show_edge=False, pad_edge=False)
    table.add_column("COMPONENT", style="bold")
    table.add_column("USAGE")
    table.add_column("ESTIMATED COST", justify="right")

    def add(component, dim, text):
        table.add_row(component, text, _format_currency(costs[dim]))

    add("Workers", PricingDimension.WORKER_REQUESTS,
        _format_usage(usage[PricingDimension.WORKER_REQUESTS], "requests"))
    add("", PricingDimension.WORKER_CPU_MS,
        _format_usage(usage[PricingDimension.WORKER_CPU_MS], "CPU-ms"))
    add("Durable Obj", PricingDimension.DO_REQUESTS,
        _format_usage(usage[PricingDimension.DO_REQUESTS], "requests"))
    if app_usage.inbound_messages > 0:
        table.add_row("", _format_usage(app_usage.inbound_messages, "WS msgs") + f" [dim]({messages_per_request:g}:1)[/]", "")
    add("", PricingDimension.DO_GB_SECONDS,
        _format_usage(usage[PricingDimension.DO_GB_SECONDS], "GB-s"))
    add("Containers", PricingDimension.CONTAINER_VCPU_SEC,
        _format_time_units(usage[PricingDimension.CONTAINER_VCPU_SEC], "vCPU"))
    add("", PricingDimension.CONTAINER_MEM_GIB_SEC,
        _format_time_units(usage[PricingDimension.CONTAINER_MEM_GIB_SEC], "GiB") + " mem")
    add("", PricingDimension.CONTAINER_DISK_GB_SEC,
        _format_time_units(usage[PricingDimension.CONTAINER_DISK_GB_SEC], "GB") + " disk")
    add("", PricingDimension.CONTAINER_EGRESS_GB,
        _format_usage(usage[PricingDimension.CONTAINER_EGRESS_GB], "GB egress"))

    table.add_section()
    table.add_row("", "", f"[bold]{_format_currency(app_usage.gross_total)}[/]")
    if app_usage.free_tier_discount > 0:
        table.add_row("", "[dim]Free tier[/]", f"[dim]-{_format_currency(app_usage.free_tier_discount)}[/]")
        table.add_row("", "[bold]Net[/]", f"[bold]{_format_currency(app_usage.net_total)}[/]")

    console.print(table)
    console.print(f"\n[dim]{PRICING_NOTE}[/]\n")


def _display_fleet(result: FleetResult, date_range: DateRange) -> None:
    """Display per-app cost by product plus fleet totals."""
    console.print(f"\n[bold]Estimated costs[/bold] [dim]({date_range.label})[/]\n")

    table = Table(box=None, show_edge=False, pad_edge=False)
    table.add_column("NAME", style="cyan")
    for header in ("WORKERS", "DO", "CONTAINERS", "TOTAL"):
        table.add_column(header, justify="right")
    for app_usage in result.apps:
        table.add_row(
            app_usage.app_name,
            _format_currency(_group_cost(app_usage, WORKER_DIMENSIONS)),
            _format_currency(_group_cost(app_usage, DO_DIMENSIONS)),
            _format_currency(_group_cost(app_usage, CONTAINER_DIMENSIONS)),
            _format_currency(app_usage.gross_total),
        )
    console.print(table)
    console.print()

    label_width = 44
    console.print(f"[dim]{'Subtotal'.ljust(label_width)}[/]{_format_currency(result.gross_fleet_total)}")
    if result.free_tier_discount > 0:
        console.print(
            f"[dim]{'Free tier'.ljust(label_width)}-{_format_currency(result.free_tier_discount)}[/]"
        )
    console.print(f"[dim]{'Platform'.ljust(label_width)}[/]{_format_currency(result.platform_fee)}")
    console.print(f"[dim]{'─' * (label_width + 8)}[/]")
    console.print(f"[bold]{'TOTAL'.ljust(label_width)}{_format_currency(result.total)}[/]")
    console.print(f"\n[dim]{PRICING_NOTE}[/]\n")


if __name__ == "__main__":
    app()
