#!/usr/bin/env python3
"""
BrokerPro billing core: CLI entry point.

Usage examples:
  python main.py check                              # Verify setup (database, settings)
  python main.py totals items.json                  # Line-item totals, default commission
  python main.py totals items.csv --rate 7.5        # Line-item totals at 7.5%
  python main.py shipping --freight 1200 --insurance 150 --handling 75
  python main.py audit                              # Consistency check of every stored document
  python main.py audit ORD-1042                     # ... of one order only
"""
import json
import logging
import sqlite3
import sys
from pathlib import Path

import click

from billing import BillingError, DocumentService, aggregate, aggregate_shipping, normalize
from billing.item_loader import load_raw_items
from config import Config


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """BrokerPro billing: line-item totals and consistency audits of stored documents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Show the active settings and verify the database opens."""
    config = Config()

    click.echo("\n=== Billing Setup Check ===\n")
    click.echo(f"  Commission rate:      {config.default_commission_rate}%")
    click.echo(f"  Payment terms:        {config.default_payment_terms}")
    click.echo(f"  Arithmetic tolerance: {config.arithmetic_tolerance}")
    click.echo(
        f"  Freight estimate:     {config.freight_rate_per_kg}/kg, "
        f"{config.freight_rate_per_cubic_metre}/m³"
    )
    click.echo()

    try:
        service = DocumentService(config)
    except (OSError, sqlite3.Error) as exc:
        click.echo(f"  Database:  ✗ cannot open {config.db_path} ({exc})", err=True)
        sys.exit(1)

    counts = service.stats()
    click.echo(f"  Database:  ✓  {config.db_path}")
    click.echo(f"  Orders:             {counts['orders']}")
    click.echo(f"  Purchase orders:    {counts['purchase_order']}")
    click.echo(f"  Sales invoices:     {counts['sales_invoice']}")
    click.echo(f"  Shipping invoices:  {counts['shipping_invoice']}")
    click.echo()


# --------------------------------------------------------------------
# totals command
# --------------------------------------------------------------------

@cli.command()
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--rate", "-r", default=None, help="Commission rate in percent (default: configured rate)")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def totals(ctx: click.Context, items_file: str, rate: str | None, as_json: bool) -> None:
    """Normalize the line items in ITEMS_FILE (.json or .csv) and total them."""
    config = Config()
    try:
        items = [normalize(raw) for raw in load_raw_items(Path(items_file))]
        result = aggregate(items, config.default_commission_rate if rate is None else rate)
    except BillingError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "items":  [i.model_dump(mode="json", by_alias=True) for i in items],
            "totals": result.model_dump(by_alias=True),
        }, indent=2))
        return

    click.echo()
    for item in items:
        click.echo(
            f"  {item.description[:40]:<40}  {item.quantity:>10g} × {item.unit_price:>12.2f}"
            f"  = {item.total:>12.2f}"
        )
    click.echo()
    for label, value in (
        ("Subtotal:", result.subtotal),
        (f"Commission ({result.fee_rate:g}%):", result.fee_amount),
        ("Total:", result.total),
    ):
        click.echo(f"  {label:<22} {value:>12.2f}")
    click.echo()


# --------------------------------------------------------------------
# shipping command
# --------------------------------------------------------------------

@cli.command()
@click.option("--freight", default="0", help="Freight charges")
@click.option("--insurance", default="0", help="Insurance")
@click.option("--handling", default="0", help="Handling fees")
@click.pass_context
def shipping(ctx: click.Context, freight: str, insurance: str, handling: str) -> None:
    """Total a shipping invoice's freight, insurance, and handling charges."""
    try:
        result = aggregate_shipping(freight, insurance, handling)
    except BillingError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo()
    click.echo(f"  Freight:     {result.freight_charges:>12.2f}")
    click.echo(f"  Insurance:   {result.insurance:>12.2f}")
    click.echo(f"  Handling:    {result.handling_fees:>12.2f}")
    click.echo(f"  Total:       {result.total_shipping_cost:>12.2f}")
    click.echo()


# --------------------------------------------------------------------
# audit command
# --------------------------------------------------------------------

@cli.command()
@click.argument("order_id", required=False)
@click.pass_context
def audit(ctx: click.Context, order_id: str | None) -> None:
    """
    Recompute every stored document's totals and report drift.

    \b
    Exits with status 1 when any document has an error-level discrepancy,
    so the command can gate a data migration.
    """
    service = DocumentService(Config())
    try:
        results = service.audit(order_id)
    except BillingError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"\nAudited {len(results)} documents.")
    flagged = [r for r in results if r.discrepancies]
    for r in flagged:
        click.echo(f"\n  {r.kind} {r.document_id} (order {r.order_id})")
        for d in r.discrepancies:
            icon = "✗" if d.severity == "error" else ("⚠" if d.severity == "warning" else "ℹ")
            click.echo(f"    {icon} [{d.severity.upper()}] {d.description}")

    if not flagged:
        click.echo("  ✓ No discrepancies found")
    click.echo()

    if any(r.error_count for r in results):
        sys.exit(1)


if __name__ == "__main__":
    cli()
