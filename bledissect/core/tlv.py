"""Generic type-length-value record codec."""

from __future__ import annotations

from bledissect.core.errors import MalformedRecord
from bledissect.core.model import ByteOrder, FieldWidth, Record, RecordBox


def _reverse(value: int, width: FieldWidth) -> int:
    return int.from_bytes(value.to_bytes(width.size, "little"), "big")


def encode_records(box: RecordBox) -> bytes:
    """Serialize ``box`` as type, length and value for each record in order."""
    size = box.width.size
    out = bytearray()
    for record in box.records:
        out += record.type.to_bytes(size, box.byte_order.value)
        out += record.length.to_bytes(size, box.byte_order.value)
        out += record.value
    return bytes(out)


def decode_records(
    data: bytes,
    width: FieldWidth = FieldWidth.BITS_8,
    byte_order: ByteOrder = ByteOrder.LITTLE,
) -> RecordBox:
    """Parse ``data`` into a RecordBox.

    Decoding is all-or-nothing: the first framing violation raises
    MalformedRecord and no records are returned.
    """
    size = width.size
    header = 2 * size
    index = 0
    records: list[Record] = []

    while index < len(data):
        if len(data) - index < header:
            raise MalformedRecord(
                f"Truncated record header at offset {index}: "
                f"need {header} bytes, have {len(data) - index}"
            )
        # Fields are extracted little-endian; big-endian boxes reverse them afterwards.
        record_type = int.from_bytes(data[index : index + size], "little")
        length = int.from_bytes(data[index + size : index + header], "little")
        if byte_order is ByteOrder.BIG:
            record_type = _reverse(record_type, width)
            length = _reverse(length, width)
        index += header

        value_end = index + length
        if value_end > len(data):
            raise MalformedRecord(
                f"Record 0x{record_type:02x} at offset {index - header} declares "
                f"{length} bytes but only {len(data) - index} remain"
            )
        records.append(Record(type=record_type, value=bytes(data[index:value_end])))
        index = value_end

    return RecordBox(records=tuple(records), width=width, byte_order=byte_order)
