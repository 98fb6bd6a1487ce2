"""Manufacturer-data dissection into byte-range annotated trees.

Every range in a produced tree is expressed in the coordinates of the
buffer handed to :func:`dissect_manufacturer_data`. Decoders report ranges
relative to their own input; :func:`translate_range` is the single place
where those are moved into the parent's coordinate space.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from bledissect.core.decoders import OfflineFindingDecoder, RecordDecoder
from bledissect.core.errors import DecoderNotAvailable, DecodingError, FailedDecoding, IncorrectType
from bledissect.core.model import ByteRange, DecodedField, DissectedEntry
from bledissect.core.record_types import (
    APPLE_COMPANY_ID,
    UNKNOWN_LABEL,
    AppleRecordType,
    company_label,
    label_for,
)
from bledissect.core.registry import DecoderRegistry, default_registry

MANUFACTURER_DATA_LABEL = "Manufacturer Data"
COMPANY_ID_SIZE = 2
RECORD_HEADER_SIZE = 2

_OFFLINE_FINDING = OfflineFindingDecoder()
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppleRecord:
    """One framed sub-record; ``offset`` points at its type byte."""

    type: int
    value: bytes
    offset: int

    @property
    def value_offset(self) -> int:
        return self.offset + RECORD_HEADER_SIZE

    @property
    def byte_range(self) -> ByteRange:
        return ByteRange.of(self.offset, RECORD_HEADER_SIZE + len(self.value))


def translate_range(byte_range: ByteRange, origin: int) -> ByteRange:
    """Move a range relative to a child buffer starting at ``origin`` into parent coordinates."""
    return byte_range.shifted(origin)


def iter_apple_records(data: bytes) -> Iterator[AppleRecord]:
    """Yield 1-byte type / 1-byte length records until the stream ends or breaks.

    A truncated header or an overrunning length ends iteration silently;
    records already yielded stay valid.
    """
    index = 0
    while index < len(data):
        if len(data) - index < RECORD_HEADER_SIZE:
            LOGGER.debug("Dangling record header at offset %d", index)
            return
        record_type = data[index]
        length = data[index + 1]
        value_end = index + RECORD_HEADER_SIZE + length
        if value_end > len(data):
            LOGGER.debug(
                "Record 0x%02x at offset %d declares %d bytes, only %d remain",
                record_type,
                index,
                length,
                len(data) - index - RECORD_HEADER_SIZE,
            )
            return
        yield AppleRecord(
            type=record_type,
            value=bytes(data[index + RECORD_HEADER_SIZE : value_end]),
            offset=index,
        )
        index = value_end


def dissect_manufacturer_data(
    data: bytes,
    registry: DecoderRegistry | None = None,
) -> DissectedEntry:
    data = bytes(data)
    root_range = ByteRange.of(0, len(data))

    if len(data) < COMPANY_ID_SIZE:
        return DissectedEntry(
            name=MANUFACTURER_DATA_LABEL,
            value=data,
            data=data,
            byte_range=root_range,
            note="Too short to carry a company identifier",
        )

    company_id = int.from_bytes(data[:COMPANY_ID_SIZE], "little")
    children: tuple[DissectedEntry, ...] = ()
    if company_id == APPLE_COMPANY_ID:
        children = tuple(
            dissect_apple_records(data[COMPANY_ID_SIZE:], registry, origin=COMPANY_ID_SIZE)
        )

    return DissectedEntry(
        name=MANUFACTURER_DATA_LABEL,
        value=data,
        data=data,
        byte_range=root_range,
        children=children,
        note=f"Company identifier {company_label(company_id)}",
    )


def dissect_apple_records(
    data: bytes,
    registry: DecoderRegistry | None = None,
    *,
    origin: int = 0,
) -> list[DissectedEntry]:
    """Dissect an Apple record stream; ``origin`` is its offset in the enclosing buffer."""
    registry = registry if registry is not None else default_registry()
    data = bytes(data)
    return [_dissect_record(record, data, registry, origin) for record in iter_apple_records(data)]


def _dissect_record(
    record: AppleRecord,
    stream: bytes,
    registry: DecoderRegistry,
    origin: int,
) -> DissectedEntry:
    record_range = translate_range(record.byte_range, origin)
    record_bytes = record.byte_range.slice(stream)

    try:
        decoder = decoder_for(record.type, registry)
        fields = decoder.decode(record.value)
        children = _field_entries(fields, record, origin)
    except (DecoderNotAvailable, DecodingError) as exc:
        LOGGER.debug("Rendering record 0x%02x at offset %d as unknown: %s", record.type, record_range.start, exc)
        return DissectedEntry(
            name=UNKNOWN_LABEL,
            value=record.value,
            data=record_bytes,
            byte_range=record_range,
            note=f"Record type 0x{record.type:02x}: {exc}",
        )

    name = label_for(record.type)
    if name == UNKNOWN_LABEL:
        name = decoder.name
    return DissectedEntry(
        name=name,
        value=record.value,
        data=record_bytes,
        byte_range=record_range,
        children=children,
    )


def decoder_for(record_type: int, registry: DecoderRegistry) -> RecordDecoder:
    """Resolve the decoder for ``record_type``; offline finding bypasses the registry."""
    if record_type == AppleRecordType.OFFLINE_FINDING:
        return _OFFLINE_FINDING
    decoder = registry.lookup(record_type)
    if decoder.record_type != record_type:
        raise IncorrectType(
            f"Decoder '{decoder.name}' handles record type 0x{decoder.record_type:02x}, not 0x{record_type:02x}"
        )
    return decoder


def _field_entries(
    fields: dict[str, DecodedField],
    record: AppleRecord,
    origin: int,
) -> tuple[DissectedEntry, ...]:
    bounds = ByteRange.of(0, len(record.value))
    entries: list[DissectedEntry] = []
    for name, decoded in fields.items():
        if not bounds.contains(decoded.byte_range):
            raise FailedDecoding(f"Field '{name}' range {decoded.byte_range} lies outside the record")
        entries.append(
            DissectedEntry(
                name=name,
                value=decoded.value,
                data=decoded.byte_range.slice(record.value),
                byte_range=translate_range(decoded.byte_range, origin + record.value_offset),
            )
        )
    return tuple(sort_entries(entries))


def sort_entries(entries: list[DissectedEntry]) -> list[DissectedEntry]:
    return sorted(entries, key=lambda entry: (entry.byte_range.start, entry.name.lower()))
