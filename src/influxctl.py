#!/usr/bin/env python3
"""
CLI tool for the InfluxDB reconciler
Provides a kubectl-like interface for applying manifests of InfluxDB resources
"""

import asyncio
import dataclasses
import logging
from typing import List, Optional, Sequence, Tuple

import click
from tabulate import tabulate

from apis import KIND_ORDER, ManagedResource
from clients import InfluxDBClient
from config import Config, get_config
from controller import Controller, ReconcileResult
from events import EventBus, EventSubscription
from manifest import ManifestError, dump_manifest, load_manifest
from reconcilers import ReconcileError, new_external_clients
from references import InMemoryResolver, extract_id

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

endpoint_option = click.option(
    "--endpoint", default=None, help="InfluxDB URL, overrides INFLUXDB_ENDPOINT"
)


def _build_controller(
    cfg: Config, endpoint: Optional[str], event_bus: Optional[EventBus] = None
) -> Controller:
    influxdb = cfg.influxdb
    if endpoint:
        influxdb = dataclasses.replace(influxdb, endpoint=endpoint)
    api = InfluxDBClient.from_config(influxdb)
    return Controller(
        new_external_clients(api), event_bus=event_bus, config=cfg.controller
    )


def _load(filename: str) -> List[ManagedResource]:
    try:
        return load_manifest(filename)
    except ManifestError as e:
        raise click.ClickException(e.message)


def _record_id(record: ManagedResource) -> str:
    return extract_id(record.kind, record) or record.get_external_name()


def _print_results(
    records: Sequence[ManagedResource], results: Sequence[ReconcileResult]
) -> None:
    headers = ["Kind", "Name", "ID", "Action", "Synced", "Message"]
    rows = []
    for record, result in zip(records, results):
        rows.append(
            [
                result.kind,
                result.name,
                _record_id(record),
                result.action.value,
                "✓" if result.success else "✗",
                result.message,
            ]
        )
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


async def _print_events(subscription: EventSubscription) -> None:
    async for event in subscription:
        click.echo(
            f"{event.timestamp} {event.event_type.value} "
            f"{event.kind}/{event.name} {event.message}".rstrip(),
            err=event.warning,
        )


async def _converge(
    controller: Controller,
    records: List[ManagedResource],
    max_passes: Optional[int],
    order: Sequence[str],
    event_bus: Optional[EventBus] = None,
) -> List[ReconcileResult]:
    printer = None
    if event_bus is not None:
        subscriber_id, subscription = await event_bus.subscribe()
        printer = asyncio.create_task(_print_events(subscription))
    try:
        return await controller.converge(records, max_passes, order=order)
    finally:
        if printer is not None:
            await event_bus.unsubscribe(subscriber_id)
            await printer


@click.group()
@click.pass_context
def cli(ctx):
    """InfluxDB reconciler CLI - kubectl-like interface for InfluxDB resources"""
    try:
        cfg = get_config()
    except ValueError as e:
        raise click.ClickException(str(e))

    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
    ctx.obj = cfg


@cli.command()
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@endpoint_option
@click.option(
    "--max-passes",
    type=click.IntRange(min=1),
    default=None,
    help="Passes per kind before giving up on a changing record",
)
@click.option("--output", "-o", type=click.Choice(["table", "yaml"]), default="table")
@click.option("--events", is_flag=True, help="Print reconciliation events")
@click.pass_context
def apply(ctx, filename, endpoint, max_passes, output, events):
    """Create or update the resources of a YAML/JSON manifest"""
    records = _load(filename)
    event_bus = EventBus() if events else None
    controller = _build_controller(ctx.obj, endpoint, event_bus)

    results = asyncio.run(
        _converge(controller, records, max_passes, KIND_ORDER, event_bus)
    )

    if output == "yaml":
        click.echo(dump_manifest(records), nl=False)
    else:
        _print_results(records, results)

    if not all(result.success for result in results):
        ctx.exit(1)


async def _observe_all(
    controller: Controller, records: List[ManagedResource]
) -> List[Tuple[bool, bool, str]]:
    resolver = InMemoryResolver(records)
    observed = {}
    # Referenced records first so their ids are known to the records after.
    for kind in KIND_ORDER:
        for i, record in enumerate(records):
            if record.kind != kind:
                continue
            try:
                observation = await controller.observe(record, resolver)
            except ReconcileError as e:
                observed[i] = (False, False, e.message)
                continue
            observed[i] = (
                observation.resource_exists,
                observation.resource_up_to_date,
                "",
            )
    return [observed[i] for i in range(len(records))]


@cli.command()
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@endpoint_option
@click.pass_context
def get(ctx, filename, endpoint):
    """Show whether the resources of a manifest exist and are up to date"""
    records = _load(filename)
    controller = _build_controller(ctx.obj, endpoint)

    observed = asyncio.run(_observe_all(controller, records))

    headers = ["Kind", "Name", "ID", "Exists", "Up to date", "Message"]
    rows = []
    failed = False
    for record, (exists, up_to_date, message) in zip(records, observed):
        failed = failed or bool(message)
        rows.append(
            [
                record.kind,
                record.metadata.name,
                _record_id(record) if exists else "",
                "✓" if exists else "✗",
                "✓" if exists and up_to_date else "✗",
                message,
            ]
        )
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))

    if failed:
        ctx.exit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@endpoint_option
@click.option("--max-passes", type=click.IntRange(min=1), default=None)
@click.confirmation_option(prompt="Are you sure you want to delete these resources?")
@click.pass_context
def delete(ctx, filename, endpoint, max_passes):
    """Delete the resources of a YAML/JSON manifest"""
    records = _load(filename)
    for record in records:
        record.mark_for_deletion()
    controller = _build_controller(ctx.obj, endpoint)

    # Dependents go first.
    results = asyncio.run(
        _converge(controller, records, max_passes, tuple(reversed(KIND_ORDER)))
    )
    _print_results(records, results)

    if not all(result.success for result in results):
        ctx.exit(1)


if __name__ == "__main__":
    cli()
