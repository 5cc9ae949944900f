# dkprice/cli/runner.py

"""Headless commands: track a product page, show its price history."""

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any

from curl_cffi import requests as curl_requests
from rich.console import Console
from rich.table import Table

from dkprice.config.settings import Settings
from dkprice.models.price_observation import MergedTimeline
from dkprice.models.product import CanonicalProductRecord, ProductIdentity
from dkprice.scrapers.network_observer import NetworkTokenObserver
from dkprice.scrapers.page_loader import PageLoader
from dkprice.scrapers.token_acquirer import TokenAcquirer
from dkprice.services.extraction_pipeline import ExtractionPipeline
from dkprice.services.series_merger import SeriesMerger
from dkprice.storage.backend_client import BackendClient, BackendError

logger = logging.getLogger("dkprice.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _record_to_dict(record: CanonicalProductRecord) -> dict[str, Any]:
    """Ingest payload plus which extractor produced it."""
    return {**record.to_ingest_payload(), "source": record.source}


def _print_record_table(record: CanonicalProductRecord) -> None:
    table = Table(
        title=f"Product dkp-{record.product_id}",
        show_header=False,
        title_style="bold cyan",
    )
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Title", record.title)
    table.add_row("Variant", record.variant_id or "—")
    table.add_row("Price", f"{record.price:,} IRR")
    table.add_row("List price", f"{record.list_price:,} IRR")
    table.add_row("Seller", record.seller_name)
    table.add_row(
        "Active",
        "[green]yes[/green]" if record.is_active else "[red]no[/red]",
    )
    table.add_row("Extracted by", record.source)
    Console().print(table)


def _timeline_to_dicts(timeline: MergedTimeline) -> list[dict[str, Any]]:
    return [
        {
            "time": o.timestamp_seconds,
            "price": o.price,
            "seller_id": o.seller_id,
            "is_buy_box": o.is_buy_box,
            "variant_id": o.variant_id,
        }
        for o in timeline.observations
    ]


def _print_timeline_table(timeline: MergedTimeline, title: str) -> None:
    table = Table(title=title, show_lines=False, title_style="bold cyan")
    table.add_column("Date", style="dim")
    if not timeline.is_single_series:
        table.add_column("Variant", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Seller")
    table.add_column("Buy box", justify="center")

    for o in timeline.observations:
        stamp = datetime.fromtimestamp(o.timestamp_seconds).strftime(
            "%Y-%m-%d %H:%M"
        )
        row = [stamp]
        if not timeline.is_single_series:
            row.append(str(o.variant_id))
        row.extend([
            f"{o.price:,}",
            o.seller_id,
            "✓" if o.is_buy_box else "",
        ])
        table.add_row(*row)
    Console().print(table)


async def track_product(
    url: str,
    ingest: bool,
    timeout_ms: int | None,
    output_format: str,
) -> int:
    """Extract one product page; exit code 0 on a record, 1 otherwise."""
    try:
        identity = ProductIdentity.from_url(url)
    except ValueError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1

    # The page session is also the "host" whose API calls are watched
    session = curl_requests.Session(
        impersonate=Settings.IMPERSONATE_BROWSER
    )
    page = await asyncio.to_thread(PageLoader(session).load, url)
    if page is None:
        _err.print("[red]Could not load the product page.[/red]")
        return 1

    pipeline = ExtractionPipeline(
        page,
        acquirer=TokenAcquirer(observer=NetworkTokenObserver(session)),
        timeout_ms=timeout_ms,
    )
    record = await pipeline.run(identity)
    if record is None:
        _err.print("[yellow]No price data available yet.[/yellow]")
        return 1

    if output_format == "table":
        _print_record_table(record)
    else:
        json.dump(
            _record_to_dict(record), sys.stdout,
            ensure_ascii=False, indent=2,
        )
        sys.stdout.write("\n")

    if ingest:
        try:
            await asyncio.to_thread(BackendClient().ingest, record)
        except BackendError as exc:
            logger.error("Ingest failed: %s", exc)
            _err.print(f"[red]Ingest failed: {exc}[/red]")
            return 1
        _err.print("[green]✓ Sent to backend[/green]")
    return 0


def show_history(
    product_id: str,
    variant_id: str | None,
    output_format: str,
) -> int:
    """Print the merged price timeline for a product."""
    try:
        payload = BackendClient().fetch_history(product_id, variant_id)
    except BackendError as exc:
        logger.error("History fetch failed: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return 1

    timeline = SeriesMerger.from_history_payload(payload)
    if not timeline.observations:
        _err.print("[yellow]No price history yet.[/yellow]")
        return 1

    series_note = (
        "single series"
        if timeline.is_single_series
        else f"{len(timeline.variant_ids)} variants"
    )
    _err.print(
        f"[green]✓ {len(timeline)} observations ({series_note})[/green]"
    )
    if output_format == "table":
        _print_timeline_table(
            timeline, f"Price history: dkp-{product_id}"
        )
    else:
        json.dump(
            _timeline_to_dicts(timeline), sys.stdout,
            ensure_ascii=False, indent=2,
        )
        sys.stdout.write("\n")
    return 0
