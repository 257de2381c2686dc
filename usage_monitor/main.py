"""Entry point for the usage monitor — `usage-monitor` console script."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from usage_monitor.config import settings
from usage_monitor.engine.credentials import extract_token
from usage_monitor.engine.errors import InvalidTimestampError, UsageResolutionError
from usage_monitor.engine.models import UsageSnapshot
from usage_monitor.monitor.status import status_indicator
from usage_monitor.portal.client import PortalError, PortalOfflineError

console = Console()


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Usage Monitor API Server", style="bold green"))
    if not settings.portal_token:
        console.print(
            "[yellow]WARNING: No PORTAL_TOKEN set. "
            "POST /api/usage/token before refreshing.[/yellow]\n"
        )
    uvicorn.run(
        "usage_monitor.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


def render_snapshot(snapshot: UsageSnapshot) -> None:
    """Print a snapshot as a summary panel plus tables."""
    indicator = status_indicator(snapshot, alert_threshold=settings.alert_threshold)
    style = "bold yellow" if indicator.warning else "bold blue"
    default_note = " (default allowance)" if snapshot.default_allowance_applied else ""
    console.print(
        Panel.fit(
            f"[bold]{indicator.text}[/bold]\n"
            f"Account:    {snapshot.email}\n"
            f"Mode:       {snapshot.billing_mode.value} ({snapshot.allowance_source.value}{default_note})\n"
            f"Total:      {snapshot.total} {snapshot.unit}\n"
            f"Used:       {snapshot.used}\n"
            f"Remaining:  {snapshot.remaining}\n"
            f"Registered: {snapshot.registration_date or 'N/A'}\n"
            f"Expires:    {snapshot.expiration_date or 'N/A'}",
            title="Usage",
            border_style=style,
        )
    )

    sub = snapshot.subscription
    period = sub.current_billing_period
    console.print(
        f"[dim]Subscription {sub.id} · {sub.status or 'N/A'} · {sub.currency or 'N/A'}"
        f" · price {sub.price_id}"
        + (f" · period {period.start} → {period.end}" if period else "")
        + "[/dim]"
    )

    daily = Table(title="Daily usage")
    daily.add_column("Date")
    daily.add_column("Usage", justify="right")
    for entry in snapshot.daily_usage:
        daily.add_row(entry.date, str(entry.usage))
    console.print(daily)

    intervals = Table(title="Pricing intervals")
    for column in ("Name", "Start", "End", "Allocation", "Price"):
        intervals.add_column(column)
    for pi in sub.price_intervals:
        allocation = (
            f"{pi.allocation.amount} {pi.allocation.pricing_unit} / {pi.allocation.cadence}"
            if pi.allocation
            else "-"
        )
        intervals.add_row(
            pi.name,
            pi.start_date,
            pi.end_date or "-",
            allocation,
            f"{pi.price.unit_amount} {pi.price.currency}",
        )
    console.print(intervals)


def run_show(credential: str | None) -> int:
    """Resolve once and print the snapshot."""
    from usage_monitor.api.server import build_resolver

    token = credential or settings.portal_token
    if not token:
        console.print("[red]No token given and PORTAL_TOKEN is not set.[/red]")
        return 2

    resolver = build_resolver()
    try:
        with console.status("[bold green]Fetching usage..."):
            snapshot = resolver.resolve(token)
    except PortalOfflineError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    except PortalError as e:
        console.print(f"[red]Portal returned {e.status_code}: {e.detail}[/red]")
        return 1
    except UsageResolutionError as e:
        mode = f" (billing mode: {e.billing_mode})" if e.billing_mode else ""
        console.print(f"[red]Could not resolve usage{mode}: {e}[/red]")
        return 1
    except InvalidTimestampError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    render_snapshot(snapshot)
    return 0


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Subscription usage monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    show_parser = sub.add_parser("show", help="Resolve and print current usage")
    show_parser.add_argument("token", nargs="?", help="Token or portal URL (default: PORTAL_TOKEN)")

    token_parser = sub.add_parser("token", help="Print the bare token from a token or portal URL")
    token_parser.add_argument("value", help="Token or portal URL")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "show":
        sys.exit(run_show(args.token))
    elif args.command == "token":
        console.print(extract_token(args.value), markup=False)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
