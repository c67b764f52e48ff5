"""Command line tools for quoting print jobs and watching a store's orders."""

import asyncio
import json
from decimal import Decimal
from pathlib import Path

import click
import structlog

from printshop.config import settings
from printshop.logging import setup_logging
from printshop.models.order import FileSpec
from printshop.models.pricing import resolve_pricing_table
from printshop.services.external.orders_api import OrdersApiClient
from printshop.services.pricing.page_ranges import check_page_spec, correct_page_spec
from printshop.services.pricing.pricing_service import price_file
from printshop.services.sync.channel import SyncChannel
from printshop.services.sync.reconciler import Reconciler
from printshop.services.sync.transport import MercureTransport


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.option("--json-logs", is_flag=True, help="Log one JSON object per line.")
def cli(log_level: str | None, json_logs: bool) -> None:
    """Print shop order tools."""
    setup_logging(log_level, "json" if json_logs else None)


@cli.command()
@click.argument("order_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def quote(order_file: Path) -> None:
    """Price the files of an order JSON document.

    The document holds ``files`` (storefront file specs) and an optional
    ``pricing`` table overriding the default price list.
    """
    try:
        document = json.loads(order_file.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{order_file} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise click.ClickException(f"{order_file} must contain a JSON object")

    table = resolve_pricing_table(document.get("pricing"))
    total = Decimal(0)
    for index, raw in enumerate(document.get("files") or [], start=1):
        spec = FileSpec.model_validate(raw)
        price = price_file(spec, table)
        total += price.total

        name = spec.file_name or f"file {index}"
        estimated = " (estimated)" if price.page_count_estimated else ""
        click.echo(f"{name}: {price.pages} pages{estimated} x {spec.copies} = {price.total}")
        if price.warning is not None:
            click.secho(f"  warning: {price.warning}; use {price.warning.corrected_spec!r}", fg="yellow")

    click.echo(f"Total: {total}")


@cli.command("correct-pages")
@click.argument("spec")
@click.option("--page-count", type=click.IntRange(min=0), required=True, help="Pages in the document.")
def correct_pages(spec: str, page_count: int) -> None:
    """Print SPEC rewritten to reference only existing pages."""
    warning = check_page_spec(spec, page_count)
    if warning is not None:
        click.secho(str(warning), fg="yellow", err=True)
    click.echo(correct_page_spec(spec, page_count))


@cli.command()
@click.argument("store_id")
@click.option("--owner-id", default=None, help="Only show orders of this customer.")
def watch(store_id: str, owner_id: str | None) -> None:
    """Follow a store's orders live until interrupted."""
    try:
        asyncio.run(_watch(store_id, owner_id))
    except KeyboardInterrupt:
        pass


async def _watch(store_id: str, owner_id: str | None) -> None:
    logger = structlog.get_logger("printshop.watch")
    reconciler = Reconciler(OrdersApiClient(), store_id=store_id, owner_id=owner_id)
    reconciler.on_change(
        lambda orders: logger.info(
            "Orders changed",
            count=len(orders),
            statuses={order.id: order.status.value for order in orders},
            mode=reconciler.mode.value,
        )
    )

    await reconciler.resync()
    channel = SyncChannel(MercureTransport(), settings.mercure_url)
    reconciler.bind(channel)
    await channel.join(store_id)
    async with channel:
        try:
            await asyncio.Event().wait()
        finally:
            await reconciler.close()


if __name__ == "__main__":
    cli()
