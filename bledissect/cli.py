"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from bledissect.core.errors import BledissectError
from bledissect.core.model import AdvertisementAggregate, DissectedEntry, describe_value
from bledissect.core.record_types import label_for
from bledissect.core.service import DissectorService, parse_record_type

app = typer.Typer(help="Dissect Apple BLE manufacturer data into annotated byte trees")


def _build_service() -> DissectorService:
    service = DissectorService()
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _echo_entry(entry: DissectedEntry, depth: int = 0) -> None:
    line = f"{'  ' * depth}{entry.name} [{entry.byte_range}]: {describe_value(entry.value)}"
    if entry.note:
        line += f"  ({entry.note})"
    typer.echo(line)
    for child in entry.children:
        _echo_entry(child, depth + 1)


def _echo_aggregates(aggregates: list[AdvertisementAggregate], *, tree: bool) -> None:
    for aggregate in aggregates:
        types = ", ".join(label_for(t) for t in sorted(aggregate.record_types)) or "-"
        typer.echo(
            f"{aggregate.identity} ({aggregate.name or '<unnamed>'}) "
            f"received={aggregate.reception_count} last_rssi={aggregate.rssi_values[-1]} types={types}"
        )
        if tree:
            _echo_entry(aggregate.dissection, depth=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("types")
def list_types() -> None:
    """List known record types and the decoder registered for each."""
    try:
        service = _build_service()
        for info in service.record_types():
            decoder = info.decoder_source or "<no decoder>"
            typer.echo(f"0x{info.type:02x} {info.label}: {decoder}")
    except BledissectError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("dissect")
def dissect(
    hex_data: str = typer.Argument(..., help="Manufacturer data as hex, company id first"),
    json_output: bool = typer.Option(False, "--json", help="Print the tree as JSON"),
) -> None:
    """Dissect manufacturer data and print the annotated tree."""
    try:
        service = _build_service()
        entry = service.dissect(hex_data)
        if json_output:
            typer.echo(json.dumps(entry.to_dict(), indent=2))
        else:
            _echo_entry(entry)
    except BledissectError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode(
    record_type: str = typer.Argument(..., help="Record type, e.g. 0x06"),
    hex_data: str = typer.Argument(..., help="Record value as hex, without type/length header"),
) -> None:
    """Run a single record decoder and print its fields."""
    try:
        service = _build_service()
        fields = service.decode_record(parse_record_type(record_type), hex_data)
        ordered = sorted(fields.items(), key=lambda item: (item[1].byte_range.start, item[0].lower()))
        for name, decoded in ordered:
            typer.echo(f"{name} [{decoded.byte_range}]: {describe_value(decoded.value)}")
    except BledissectError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("replay")
def replay(
    path: Path = typer.Argument(..., help="YAML replay file of captured receptions"),
    tree: bool = typer.Option(False, "--tree", help="Print each device's dissection"),
) -> None:
    """Merge captured receptions into per-device aggregates."""
    try:
        service = _build_service()
        aggregates = service.replay(path)
        if not aggregates:
            typer.echo("No receptions in replay file")
            return
        _echo_aggregates(aggregates, tree=tree)
    except BledissectError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("scan")
def scan(
    duration: float = typer.Option(10.0, "--duration", help="Scan duration in seconds"),
    tree: bool = typer.Option(False, "--tree", help="Print each device's dissection"),
) -> None:
    """Scan for advertisements and summarize them per device."""
    try:
        service = _build_service()
        aggregates = service.scan(duration)
        if not aggregates:
            typer.echo("No advertisements received")
            return
        _echo_aggregates(aggregates, tree=tree)
    except BledissectError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
