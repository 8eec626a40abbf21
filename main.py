#!/usr/bin/env python3
"""
BOM Procurement Tracker — CLI entry point.

Usage examples:
  python main.py init-config                        # Restore config files from defaults/
  python main.py check                              # Verify setup (store, company, LLM, PDF service)
  python main.py cost PRJ-001                       # Total BOM cost for a project
  python main.py inward PRJ-001                     # Inward tracking summary
  python main.py import-bom parts.txt --project PRJ-001
  python main.py vendors import vendors.csv         # Bulk-add vendors from CSV
  python main.py gstin 27AAPFU0939F1ZV              # Look up a GSTIN
  python main.py serve --port 8000                  # Run the dashboard API

  python main.py po list PRJ-001
  python main.py po send PRJ-001 <po_id> --by alice --email sales@vendor.com
"""
import json
import logging
from datetime import date
from pathlib import Path

import click
import uvicorn

from bootstrap import ensure_config_files
from config import Config
from procurement.bom import get_total_bom_cost
from procurement.errors import ProcurementError, ValidationError
from procurement.gst import GSTVerifier
from procurement.tax import quantize_money
from procurement.tracker import BOMTracker
from procurement.validation import parse_vendor_csv


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def _tracker(ctx: click.Context) -> BOMTracker:
    config = Config()
    if ctx.obj.get("db"):
        config.db_path = Path(ctx.obj["db"])
    return BOMTracker(config)


def _fail(e: ProcurementError) -> click.ClickException:
    if isinstance(e, ValidationError):
        return click.ClickException("\n  ".join(["Validation failed:", *e.messages]))
    return click.ClickException(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(dir_okay=False), help="Path to the procurement database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """BOM Procurement Tracker: BOM costing and purchase orders."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db"] = db
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.option("--skip-llm", is_flag=True, help="Do not contact the LLM endpoint")
@click.pass_context
def check(ctx: click.Context, skip_llm: bool) -> None:
    """Verify the store, company settings and external services."""
    tracker = _tracker(ctx)
    status = tracker.check_setup(check_llm=not skip_llm)

    click.echo("\n=== Procurement Setup Check ===\n")
    click.echo(f"  Document store:   ✓  {status['store']['path']}")

    company = status["company"]
    if company["ok"]:
        click.echo("  Company settings: ✓")
    else:
        click.echo("  Company settings: ✗")
        for error in company["errors"]:
            click.echo(f"     → {error}")

    llm = status["llm"]
    if llm.get("skipped"):
        click.echo("  LLM backend:      - skipped")
    elif llm["ok"]:
        model_status = "✓ available" if llm.get("model_available") else "✗ NOT found"
        click.echo(f"  LLM '{tracker.config.llm_model}':  {model_status}")
    else:
        click.echo(f"  LLM backend:      ✗ NOT reachable ({llm.get('error')})")
        click.echo("  → BOM import will use keyword matching only")

    for key, label in [("pdf_service", "PDF service"), ("gst_api", "GST API")]:
        info = status[key]
        tick = "✓" if info["ok"] else "✗ not configured"
        click.echo(f"  {label + ':':<17} {tick}  {info['url'] or ''}")
    click.echo()


@cli.command("init-config")
def init_config() -> None:
    """Restore missing or broken files in the config directory from defaults/."""
    restored = ensure_config_files()
    click.echo(f"  Restored {len(restored)} file(s)" if restored else "  Config directory is complete")


# --------------------------------------------------------------------
# cost / inward
# --------------------------------------------------------------------

@cli.command()
@click.argument("project_id")
@click.pass_context
def cost(ctx: click.Context, project_id: str) -> None:
    """Print the total BOM cost of a project, per category and overall."""
    tracker = _tracker(ctx)
    categories = tracker.get_bom(project_id)
    if not categories:
        raise click.ClickException(f"No BOM found for project {project_id}")

    for category in categories:
        subtotal = get_total_bom_cost([category])
        click.echo(f"  {category.name:<30} {len(category.items):>4} items  ₹{quantize_money(subtotal):>14,}")
    total = get_total_bom_cost(categories)
    click.echo(f"  {'Total':<30} {'':>10}  ₹{quantize_money(total):>14,}")


@cli.command()
@click.argument("project_id")
@click.option("--today", default=None, help="Reference date (YYYY-MM-DD), default today")
@click.option("--json", "as_json", is_flag=True, help="Print the per-item report as JSON")
@click.pass_context
def inward(ctx: click.Context, project_id: str, today: str | None, as_json: bool) -> None:
    """Show inward tracking status for every component."""
    tracker = _tracker(ctx)
    ref = date.fromisoformat(today) if today else None
    report = tracker.get_inward_report(project_id, ref)

    if as_json:
        click.echo(json.dumps(report, indent=2))
        return

    summary = tracker.get_inward_summary(project_id, ref)
    click.echo("  " + "  ".join(f"{k}: {v}" for k, v in summary.items()))
    click.echo()
    for row in report:
        if row["inward_status"] == "not-ordered":
            continue
        click.echo(
            f"  {row['inward_status']:<14} {row['name'][:40]:<40} "
            f"{row['vendor'] or '-':<20} expected {row['expected_arrival'] or '-'}"
        )


# --------------------------------------------------------------------
# serve
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the dashboard API."""
    import dashboard.app as dashboard_app

    dashboard_app._tracker = _tracker(ctx)
    click.echo(f"  Dashboard API on http://{host}:{port}")
    uvicorn.run(dashboard_app.app, host=host, port=port)


# --------------------------------------------------------------------
# import-bom / vendors / gstin
# --------------------------------------------------------------------

@cli.command("import-bom")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", "project_id", required=True, help="Project to import into")
@click.pass_context
def import_bom(ctx: click.Context, file: str, project_id: str) -> None:
    """Extract BOM items from a text file and add them to a project."""
    tracker = _tracker(ctx)
    text = Path(file).read_text(encoding="utf-8")
    try:
        items = tracker.import_bom(project_id, text)
    except ProcurementError as e:
        raise _fail(e)
    for item in items:
        click.echo(f"  + [{item.category}] {item.name} x{item.quantity}" + (f" ({item.make})" if item.make else ""))
    click.echo(f"\n  Imported {len(items)} item(s) into {project_id}")


@cli.group()
def vendors() -> None:
    """Vendor master list."""


@vendors.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_vendors(ctx: click.Context, file: str) -> None:
    """Add vendors from a CSV file (all rows are validated first)."""
    tracker = _tracker(ctx)
    try:
        parsed = parse_vendor_csv(Path(file).read_text(encoding="utf-8"))
    except ValidationError as e:
        raise _fail(e)
    for vendor in parsed:
        tracker.repo.add_vendor(vendor)
    click.echo(f"  Imported {len(parsed)} vendor(s)")


@cli.command()
@click.argument("gstin")
@click.pass_context
def gstin(ctx: click.Context, gstin: str) -> None:
    """Look up a GSTIN with the GST verification API."""
    result = GSTVerifier(Config()).verify(gstin)
    if not result.success:
        raise click.ClickException(result.error or "GST verification failed")
    click.echo(json.dumps(result.data.model_dump(), indent=2))


# --------------------------------------------------------------------
# po commands
# --------------------------------------------------------------------

@cli.group()
def po() -> None:
    """Purchase orders."""


@po.command("list")
@click.argument("project_id")
@click.option("--status", default=None, help="Only POs in this status")
@click.pass_context
def po_list(ctx: click.Context, project_id: str, status: str | None) -> None:
    """List a project's purchase orders, newest first."""
    tracker = _tracker(ctx)
    orders = tracker.po_service.list_purchase_orders(project_id, status=status)
    if not orders:
        click.echo("  No purchase orders")
        return
    for order in orders:
        click.echo(
            f"  {order.po_number:<20} {order.status:<18} {order.vendor_name[:30]:<30} "
            f"₹{quantize_money(order.total_amount):>14,}  {order.id}"
        )


@po.command("send")
@click.argument("project_id")
@click.argument("po_id")
@click.option("--by", "sent_by", required=True, help="User sending the PO")
@click.option("--email", "sent_to_email", default=None, help="Vendor email (defaults to the PO's)")
@click.option("--pdf", is_flag=True, help="Also generate and email the PDF via the PDF service")
@click.pass_context
def po_send(
    ctx: click.Context,
    project_id: str,
    po_id: str,
    sent_by: str,
    sent_to_email: str | None,
    pdf: bool,
) -> None:
    """Send a draft PO and mark its BOM items as ordered."""
    tracker = _tracker(ctx)
    try:
        order = tracker.send_purchase_order(project_id, po_id, sent_by, sent_to_email)
    except ProcurementError as e:
        raise _fail(e)
    click.echo(f"  Sent {order.po_number} ({len(order.bom_item_ids)} BOM item(s) marked ordered)")

    if pdf:
        result = tracker.generate_po_pdf(po_id, order.sent_to_email)
        if result["status"] == "success":
            click.echo(f"  PDF: {result['pdf_url']}")
        else:
            click.echo(f"  PDF {result['status']}: {result.get('error') or result.get('reason')}", err=True)


if __name__ == "__main__":
    cli(obj={})
