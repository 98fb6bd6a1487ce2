from __future__ import annotations

from bledissect.core.decoders import HomeKitDecoder
from bledissect.core.dissector import (
    MANUFACTURER_DATA_LABEL,
    dissect_apple_records,
    dissect_manufacturer_data,
    translate_range,
)
from bledissect.core.model import ByteRange, DissectedEntry
from bledissect.core.registry import DecoderRegistry

HOMEKIT_VALUE = bytes([0x01, 11, 22, 33, 44, 55, 66, 0x00, 0x05, 0x34, 0x12, 0x08, 0x02])
APPLE = bytes.fromhex("4c00")


def _assert_ranges_consistent(root: DissectedEntry, data: bytes) -> None:
    for entry in root.walk():
        assert entry.byte_range.end < len(data) or entry.byte_range.length == 0
        assert entry.data == entry.byte_range.slice(data)
        for child in entry.children:
            assert entry.byte_range.contains(child.byte_range)


def test_homekit_record_ranges_are_in_buffer_coordinates() -> None:
    data = APPLE + bytes([0x06, len(HOMEKIT_VALUE)]) + HOMEKIT_VALUE
    root = dissect_manufacturer_data(data)

    assert root.name == MANUFACTURER_DATA_LABEL
    assert len(root.children) == 1
    homekit = root.children[0]
    assert homekit.name == "HomeKit"
    assert homekit.value == HOMEKIT_VALUE
    assert homekit.byte_range == ByteRange(2, len(data) - 1)

    names = [child.name for child in homekit.children]
    assert names == [
        "status",
        "deviceId",
        "category",
        "globalStateNumber",
        "configNumber",
        "compatibleVersion",
    ]
    ranges = {child.name: child.byte_range for child in homekit.children}
    assert ranges["status"] == ByteRange(4, 4)
    assert ranges["deviceId"] == ByteRange(5, 10)
    assert ranges["globalStateNumber"] == ByteRange(13, 14)
    assert ranges["compatibleVersion"] == ByteRange(16, 16)
    assert homekit.child("globalStateNumber").value == 0x1234
    assert homekit.child("globalStateNumber").data == b"\x34\x12"
    _assert_ranges_consistent(root, data)


def test_truncated_last_record_keeps_earlier_records() -> None:
    stream = bytes.fromhex("1002" "311c" "0c05" "0012aa0102" "0708" "0102")
    entries = dissect_apple_records(stream)

    assert [entry.name for entry in entries] == ["Nearby", "Handoff"]
    assert entries[1].byte_range == ByteRange(4, 10)


def test_dangling_type_byte_is_ignored() -> None:
    entries = dissect_apple_records(bytes.fromhex("1002311c" "10"))
    assert [entry.name for entry in entries] == ["Nearby"]


def test_unknown_type_becomes_opaque_entry() -> None:
    data = APPLE + bytes.fromhex("9903aabbcc" "1002311c")
    root = dissect_manufacturer_data(data)

    unknown, nearby = root.children
    assert unknown.name == "Unknown"
    assert unknown.value == bytes.fromhex("aabbcc")
    assert unknown.children == ()
    assert "0x99" in unknown.note
    assert nearby.name == "Nearby"
    _assert_ranges_consistent(root, data)


def test_decoder_rejection_becomes_opaque_entry() -> None:
    root = dissect_manufacturer_data(APPLE + bytes.fromhex("0603010203"))
    (entry,) = root.children
    assert entry.name == "Unknown"
    assert entry.value == bytes.fromhex("010203")
    assert "requires at least 12 bytes" in entry.note


def test_fields_sharing_a_byte_sort_by_name() -> None:
    root = dissect_manufacturer_data(APPLE + bytes.fromhex("1002311c"))
    nearby = root.children[0]
    assert [child.name for child in nearby.children] == ["actionCode", "statusFlags", "dataFlags"]


def test_offline_finding_is_dissected_outside_registry() -> None:
    value = bytes([0x10]) + bytes(22) + bytes([0x01, 0x42])
    data = APPLE + bytes([0x12, len(value)]) + value
    root = dissect_manufacturer_data(data)

    (entry,) = root.children
    assert entry.name == "Offline Finding"
    assert entry.child("hint").byte_range == ByteRange(28, 28)
    _assert_ranges_consistent(root, data)


def test_other_manufacturer_has_no_children() -> None:
    root = dissect_manufacturer_data(bytes.fromhex("75000142"))
    assert root.children == ()
    assert "0x0075" in root.note


def test_empty_input_yields_bare_root() -> None:
    root = dissect_manufacturer_data(b"")
    assert root.children == ()
    assert root.byte_range.length == 0


def test_single_byte_input_yields_bare_root() -> None:
    root = dissect_manufacturer_data(b"\x4c")
    assert root.children == ()
    assert root.byte_range == ByteRange(0, 0)
    assert "Too short" in root.note


def test_multi_record_payload_keeps_ranges_nested() -> None:
    data = APPLE + bytes.fromhex(
        "0c0e" "00" "3412" "aa" "0102030405060708090a"
        "1005" "311caabbcc"
        "0603010203"
    )
    root = dissect_manufacturer_data(data)
    assert [entry.name for entry in root.children] == ["Handoff", "Nearby", "Unknown"]
    _assert_ranges_consistent(root, data)


def test_translate_range_shifts_into_parent_space() -> None:
    assert translate_range(ByteRange(0, 5), 4) == ByteRange(4, 9)


def test_to_dict_is_json_friendly() -> None:
    root = dissect_manufacturer_data(APPLE + bytes.fromhex("1002311c"))
    as_dict = root.to_dict()
    assert as_dict["data"] == "4c001002311c"
    assert as_dict["children"][0]["children"][0] == {
        "name": "actionCode",
        "value": 1,
        "data": "31",
        "byte_range": [4, 4],
        "children": [],
    }


def test_decoder_registered_under_other_type_becomes_opaque_entry() -> None:
    registry = DecoderRegistry()
    registry.register(HomeKitDecoder(), record_type=0x10)

    (entry,) = dissect_apple_records(bytes.fromhex("1002311c"), registry)

    assert entry.name == "Unknown"
    assert entry.note == "Record type 0x10: Decoder 'HomeKit' handles record type 0x06, not 0x10"
