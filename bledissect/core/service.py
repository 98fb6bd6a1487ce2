"""Service layer used by the CLI and the public API."""

from __future__ import annotations

from pathlib import Path

from bledissect.core.aggregate import AggregateStore
from bledissect.core.decoders import BUILTIN_SOURCE
from bledissect.core.dissector import decoder_for, dissect_manufacturer_data
from bledissect.core.errors import DecoderNotAvailable, InputError
from bledissect.core.layout_loader import normalize_hex
from bledissect.core.model import (
    AdvertisementAggregate,
    DecodedField,
    DissectedEntry,
    Reception,
    RecordTypeInfo,
)
from bledissect.core.record_types import UNKNOWN_LABEL, AppleRecordType, label_for
from bledissect.core.registry import build_registry
from bledissect.core.replay import load_replay
from bledissect.transports.base import ReceptionSource
from bledissect.transports.ble_scan import BLEScanSource


class DissectorService:
    def __init__(self, *, scanner: ReceptionSource | None = None) -> None:
        loaded = build_registry(include_user=True)
        self.registry = loaded.registry
        self.load_warnings = loaded.warnings
        self.store = AggregateStore(registry=self.registry)
        self.scanner = scanner or BLEScanSource()

    def record_types(self) -> list[RecordTypeInfo]:
        known = {int(t) for t in AppleRecordType} | set(self.registry.types())
        infos: list[RecordTypeInfo] = []
        for record_type in sorted(known):
            label = label_for(record_type)
            if record_type == AppleRecordType.OFFLINE_FINDING:
                infos.append(RecordTypeInfo(type=record_type, label=label, decoder_source=BUILTIN_SOURCE))
                continue
            try:
                decoder = self.registry.lookup(record_type)
            except DecoderNotAvailable:
                infos.append(RecordTypeInfo(type=record_type, label=label, decoder_source=None))
                continue
            if label == UNKNOWN_LABEL:
                label = decoder.name
            infos.append(RecordTypeInfo(type=record_type, label=label, decoder_source=decoder.source))
        return infos

    def dissect(self, data: bytes | str) -> DissectedEntry:
        return dissect_manufacturer_data(_as_bytes(data), self.registry)

    def decode_record(self, record_type: int, data: bytes | str) -> dict[str, DecodedField]:
        decoder = decoder_for(record_type, self.registry)
        return decoder.decode(_as_bytes(data))

    def receive(self, reception: Reception) -> AdvertisementAggregate | None:
        return self.store.receive(reception)

    def attach_name(self, identity: str, name: str) -> AdvertisementAggregate | None:
        return self.store.attach_name(identity, name)

    def replay(self, path: Path) -> list[AdvertisementAggregate]:
        for reception in load_replay(path):
            self.store.receive(reception)
        return self.store.snapshot()

    def scan(self, duration_s: float) -> list[AdvertisementAggregate]:
        self.scanner.scan(duration_s, self.store.receive)
        return self.store.snapshot()

    def aggregates(self) -> list[AdvertisementAggregate]:
        return self.store.snapshot()


def _as_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return normalize_hex(data, context="Hex input", error=InputError, allow_empty=True)
    return bytes(data)


def parse_record_type(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise InputError(f"Record type '{text}' is not a number (use e.g. 0x06)") from None
    if not 0 <= value <= 0xFF:
        raise InputError(f"Record type {text} does not fit in one byte")
    return value
