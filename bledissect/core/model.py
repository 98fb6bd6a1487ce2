"""Core data models used across codec, dissector, aggregates, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

# Decoded values are closed over integers, raw bytes, and ordered lists of either.
FieldValue = Union[int, bytes, tuple["FieldValue", ...]]


class FieldWidth(Enum):
    BITS_8 = 8
    BITS_16 = 16
    BITS_32 = 32
    BITS_64 = 64

    @property
    def size(self) -> int:
        return self.value // 8


class ByteOrder(Enum):
    LITTLE = "little"
    BIG = "big"


class AggregateState(Enum):
    NEW = "new"
    TRACKED = "tracked"


@dataclass(frozen=True)
class ByteRange:
    """Inclusive start/end offsets into a buffer.

    An empty range is expressed as ``end == start - 1``.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start - 1:
            raise ValueError(f"Invalid byte range {self.start}...{self.end}")

    @classmethod
    def of(cls, start: int, length: int) -> ByteRange:
        return cls(start, start + length - 1)

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def contains(self, other: ByteRange) -> bool:
        if other.length == 0:
            return self.start <= other.start <= self.end + 1
        return self.start <= other.start and other.end <= self.end

    def shifted(self, offset: int) -> ByteRange:
        return ByteRange(self.start + offset, self.end + offset)

    def slice(self, data: bytes) -> bytes:
        return bytes(data[self.start : self.end + 1])

    def __str__(self) -> str:
        return f"{self.start}...{self.end}"


@dataclass(frozen=True)
class Record:
    type: int
    value: bytes

    @property
    def length(self) -> int:
        return len(self.value)


@dataclass(frozen=True)
class RecordBox:
    """Ordered records sharing one field width and byte order."""

    records: tuple[Record, ...] = ()
    width: FieldWidth = FieldWidth.BITS_8
    byte_order: ByteOrder = ByteOrder.LITTLE

    def __post_init__(self) -> None:
        limit = (1 << self.width.value) - 1
        for record in self.records:
            if not 0 <= record.type <= limit:
                raise ValueError(f"Record type {record.type:#x} does not fit a {self.width.value}-bit field")
            if record.length > limit:
                raise ValueError(
                    f"Record {record.type:#x} value of {record.length} bytes does not fit a {self.width.value}-bit length"
                )

    def with_value(self, record_type: int, value: bytes) -> RecordBox:
        return replace(self, records=self.records + (Record(type=record_type, value=bytes(value)),))

    def with_int(self, record_type: int, value: int) -> RecordBox:
        return self.with_value(record_type, bytes([value & 0xFF]))

    def types(self) -> list[int]:
        return [record.type for record in self.records]

    def value_for(self, record_type: int) -> bytes | None:
        for record in self.records:
            if record.type == record_type:
                return record.value
        return None

    def values_by_type(self) -> dict[int, bytes]:
        return {record.type: record.value for record in self.records}


@dataclass(frozen=True)
class DecodedField:
    value: FieldValue
    byte_range: ByteRange


@dataclass(frozen=True)
class DissectedEntry:
    name: str
    value: FieldValue
    data: bytes
    byte_range: ByteRange
    children: tuple[DissectedEntry, ...] = ()
    note: str | None = None

    def child(self, name: str) -> DissectedEntry | None:
        for entry in self.children:
            if entry.name == name:
                return entry
        return None

    def walk(self):
        yield self
        for entry in self.children:
            yield from entry.walk()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "value": _jsonable(self.value),
            "data": self.data.hex(),
            "byte_range": [self.byte_range.start, self.byte_range.end],
            "children": [entry.to_dict() for entry in self.children],
        }
        if self.note:
            result["note"] = self.note
        return result


@dataclass(frozen=True)
class LayoutField:
    name: str
    offset: int
    format: str
    size: int | None = None
    optional: bool = False
    expect: int | None = None


@dataclass(frozen=True)
class RecordLayout:
    type: int
    name: str
    min_length: int
    fields: tuple[LayoutField, ...]
    source: str = "<builtin>"


@dataclass(frozen=True)
class RecordTypeInfo:
    type: int
    label: str
    decoder_source: str | None


@dataclass(frozen=True)
class Sample:
    timestamp: float
    rssi: int


@dataclass(frozen=True)
class Reception:
    identity: str
    data: bytes
    rssi: int
    timestamp: float
    name: str | None = None
    tx_power: int | None = None
    service_uuids: tuple[str, ...] = ()
    service_data: dict[str, bytes] = field(default_factory=dict)
    connectable: bool | None = None


@dataclass(frozen=True)
class AdvertisementAggregate:
    identity: str
    manufacturer_data: bytes
    records: RecordBox | None
    record_types: frozenset[int]
    dissection: DissectedEntry
    samples: tuple[Sample, ...]
    reception_count: int = 1
    name: str | None = None
    tx_power_levels: tuple[int, ...] = ()
    service_uuids: tuple[str, ...] = ()
    service_data: dict[str, bytes] = field(default_factory=dict)
    connectable: bool | None = None

    @property
    def state(self) -> AggregateState:
        return AggregateState.NEW if self.reception_count == 1 else AggregateState.TRACKED

    @property
    def last_seen(self) -> float:
        return self.samples[-1].timestamp

    @property
    def rssi_values(self) -> tuple[int, ...]:
        return tuple(sample.rssi for sample in self.samples)


def describe_value(value: FieldValue) -> str:
    if isinstance(value, (bytes, bytearray)):
        return " ".join(f"{b:02x}" for b in value)
    if isinstance(value, tuple):
        return ", ".join(describe_value(item) for item in value)
    return f"0x{value:02x} ({value})"


def _jsonable(value: FieldValue) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, tuple):
        return [_jsonable(item) for item in value]
    return value
