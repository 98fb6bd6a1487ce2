"""Record decoders for Apple manufacturer-data sub-records."""

from __future__ import annotations

from typing import Protocol

from bledissect.core.errors import FailedDecoding, IncorrectLength, IncorrectType
from bledissect.core.model import ByteRange, DecodedField, FieldValue, LayoutField, RecordLayout
from bledissect.core.record_types import AppleRecordType

BUILTIN_SOURCE = "<builtin>"

FIXED_FORMAT_SIZES = {
    "uint8": 1,
    "high_nibble": 1,
    "low_nibble": 1,
    "uint16le": 2,
    "uint16be": 2,
    "uint32le": 4,
}


class RecordDecoder(Protocol):
    record_type: int
    name: str
    source: str

    def decode(self, data: bytes) -> dict[str, DecodedField]:
        """Decode one sub-record value into named fields.

        Byte ranges are relative to ``data``.
        """


class HomeKitDecoder:
    """HomeKit accessory records.

    ``globalStateNumber`` is decoded as a little-endian integer; its raw two
    bytes are ``byte_range.slice(data)`` here and ``DissectedEntry.data`` in a
    dissected tree.
    """

    record_type = int(AppleRecordType.HOMEKIT)
    name = AppleRecordType.HOMEKIT.label
    source = BUILTIN_SOURCE
    min_length = 12

    def decode(self, data: bytes) -> dict[str, DecodedField]:
        if len(data) < self.min_length:
            raise IncorrectLength(
                f"HomeKit record requires at least {self.min_length} bytes, got {len(data)}"
            )

        fields = {
            "status": DecodedField(value=data[0], byte_range=ByteRange(0, 0)),
            "deviceId": DecodedField(value=bytes(data[1:7]), byte_range=ByteRange(1, 6)),
            "category": DecodedField(value=bytes(data[7:9]), byte_range=ByteRange(7, 8)),
            "globalStateNumber": DecodedField(
                value=int.from_bytes(data[9:11], "little"),
                byte_range=ByteRange(9, 10),
            ),
            "configNumber": DecodedField(value=data[11], byte_range=ByteRange(11, 11)),
        }
        if len(data) > 12:
            fields["compatibleVersion"] = DecodedField(value=data[12], byte_range=ByteRange(12, 12))
        return fields


class OfflineFindingDecoder:
    """Find My (offline finding) records.

    A full 25 byte record carries the advertised public key; the short form
    sent while the owner device is nearby only carries the key bits.
    """

    record_type = int(AppleRecordType.OFFLINE_FINDING)
    name = AppleRecordType.OFFLINE_FINDING.label
    source = BUILTIN_SOURCE
    full_length = 25

    def decode(self, data: bytes) -> dict[str, DecodedField]:
        if not data:
            raise IncorrectLength("Offline finding record is empty")

        fields = {"status": DecodedField(value=data[0], byte_range=ByteRange(0, 0))}
        if len(data) >= self.full_length:
            fields["publicKey"] = DecodedField(value=bytes(data[1:23]), byte_range=ByteRange(1, 22))
            fields["publicKeyBits"] = DecodedField(value=data[23], byte_range=ByteRange(23, 23))
            fields["hint"] = DecodedField(value=data[24], byte_range=ByteRange(24, 24))
        elif len(data) >= 2:
            fields["publicKeyBits"] = DecodedField(value=data[1], byte_range=ByteRange(1, 1))
        return fields


class LayoutDecoder:
    """Decoder driven by a declarative RecordLayout."""

    def __init__(self, layout: RecordLayout) -> None:
        self.layout = layout
        self.record_type = layout.type
        self.name = layout.name
        self.source = layout.source

    def decode(self, data: bytes) -> dict[str, DecodedField]:
        if len(data) < self.layout.min_length:
            raise IncorrectLength(
                f"{self.name} record requires at least {self.layout.min_length} bytes, got {len(data)}"
            )

        fields: dict[str, DecodedField] = {}
        for spec in self.layout.fields:
            size = field_size(spec, len(data))
            if size <= 0 or spec.offset + size > len(data):
                if spec.optional:
                    continue
                raise IncorrectLength(
                    f"{self.name} field '{spec.name}' needs bytes {spec.offset}..{spec.offset + max(size, 1) - 1}"
                    f" but record has {len(data)}"
                )
            value = read_field(spec.format, data[spec.offset : spec.offset + size])
            if spec.expect is not None and value != spec.expect:
                raise IncorrectType(
                    f"{self.name} field '{spec.name}' is 0x{value:02x}, expected 0x{spec.expect:02x}"
                )
            fields[spec.name] = DecodedField(value=value, byte_range=ByteRange.of(spec.offset, size))
        return fields


def field_size(spec: LayoutField, available: int) -> int:
    if spec.size is None:
        return available - spec.offset
    return spec.size


def read_field(fmt: str, raw: bytes) -> FieldValue:
    if fmt == "bytes":
        return bytes(raw)
    if fmt == "uint8":
        return raw[0]
    if fmt == "high_nibble":
        return raw[0] >> 4
    if fmt == "low_nibble":
        return raw[0] & 0x0F
    if fmt in ("uint16le", "uint32le"):
        return int.from_bytes(raw, "little")
    if fmt == "uint16be":
        return int.from_bytes(raw, "big")
    raise FailedDecoding(f"Unsupported field format '{fmt}'")
