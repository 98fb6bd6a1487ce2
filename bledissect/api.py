"""Stable public API for building tooling on top of bledissect.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from bledissect.core.aggregate import AggregateStore, merge
from bledissect.core.decoders import HomeKitDecoder, LayoutDecoder, RecordDecoder
from bledissect.core.dissector import dissect_apple_records, dissect_manufacturer_data
from bledissect.core.errors import (
    BledissectError,
    DecoderNotAvailable,
    DecodingError,
    FailedDecoding,
    IncorrectLength,
    IncorrectType,
    InputError,
    LayoutLoadError,
    LayoutValidationError,
    MalformedRecord,
    ReplayError,
    ScannerError,
)
from bledissect.core.model import (
    AdvertisementAggregate,
    AggregateState,
    ByteOrder,
    ByteRange,
    DecodedField,
    DissectedEntry,
    FieldValue,
    FieldWidth,
    Reception,
    Record,
    RecordBox,
    RecordTypeInfo,
    Sample,
)
from bledissect.core.record_types import APPLE_COMPANY_ID, AppleRecordType
from bledissect.core.registry import DecoderRegistry
from bledissect.core.service import DissectorService
from bledissect.core.tlv import decode_records, encode_records
from bledissect.transports.base import ReceptionSource

__all__ = [
    "BledissectError",
    "DecoderNotAvailable",
    "DecodingError",
    "FailedDecoding",
    "IncorrectLength",
    "IncorrectType",
    "InputError",
    "LayoutLoadError",
    "LayoutValidationError",
    "MalformedRecord",
    "ReplayError",
    "ScannerError",
    "AdvertisementAggregate",
    "AggregateState",
    "ByteOrder",
    "ByteRange",
    "DecodedField",
    "DissectedEntry",
    "FieldValue",
    "FieldWidth",
    "Reception",
    "Record",
    "RecordBox",
    "RecordTypeInfo",
    "Sample",
    "APPLE_COMPANY_ID",
    "AppleRecordType",
    "AggregateStore",
    "DecoderRegistry",
    "HomeKitDecoder",
    "LayoutDecoder",
    "RecordDecoder",
    "ReceptionSource",
    "decode_records",
    "encode_records",
    "dissect_apple_records",
    "dissect_manufacturer_data",
    "merge",
    "Client",
]


class Client:
    """Public client for interacting with bledissect core capabilities.

    A `Client` instance wraps decoder loading, dissection, and per-device
    aggregation behind a stable API intended for third-party tools
    (GUI/TUI/services/scripts).
    """

    def __init__(self, *, scanner: ReceptionSource | None = None) -> None:
        self._service = DissectorService(scanner=scanner)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def registry(self) -> DecoderRegistry:
        return self._service.registry

    def record_types(self) -> list[RecordTypeInfo]:
        return self._service.record_types()

    def dissect(self, data: bytes | str) -> DissectedEntry:
        return self._service.dissect(data)

    def decode_record(self, record_type: int, data: bytes | str) -> dict[str, DecodedField]:
        return self._service.decode_record(record_type, data)

    def receive(self, reception: Reception) -> AdvertisementAggregate | None:
        return self._service.receive(reception)

    def attach_name(self, identity: str, name: str) -> AdvertisementAggregate | None:
        """Attach a display name; held until the device is first received."""
        return self._service.attach_name(identity, name)

    def replay(self, path: Path) -> list[AdvertisementAggregate]:
        return self._service.replay(path)

    def scan(self, duration_s: float) -> list[AdvertisementAggregate]:
        return self._service.scan(duration_s)

    def aggregates(self) -> list[AdvertisementAggregate]:
        return self._service.aggregates()
