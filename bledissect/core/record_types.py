"""Apple manufacturer-data record type identifiers."""

from __future__ import annotations

from enum import IntEnum

APPLE_COMPANY_ID = 0x004C
APPLE_COMPANY_PREFIX = APPLE_COMPANY_ID.to_bytes(2, "little")

UNKNOWN_LABEL = "Unknown"


class AppleRecordType(IntEnum):
    AIRPRINT = 0x03
    AIRDROP = 0x05
    HOMEKIT = 0x06
    PROXIMITY_PAIRING = 0x07
    HEY_SIRI = 0x08
    AIRPLAY_TARGET = 0x09
    AIRPLAY_SOURCE = 0x0A
    MAGIC_SWITCH = 0x0B
    HANDOFF = 0x0C
    WIFI_SETTINGS = 0x0D
    INSTANT_HOTSPOT = 0x0E
    NEARBY_ACTION = 0x0F
    NEARBY = 0x10
    OFFLINE_FINDING = 0x12

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    AppleRecordType.AIRPRINT: "AirPrint",
    AppleRecordType.AIRDROP: "AirDrop",
    AppleRecordType.HOMEKIT: "HomeKit",
    AppleRecordType.PROXIMITY_PAIRING: "Proximity Pairing",
    AppleRecordType.HEY_SIRI: "Hey Siri",
    AppleRecordType.AIRPLAY_TARGET: "AirPlay Target",
    AppleRecordType.AIRPLAY_SOURCE: "AirPlay Source",
    AppleRecordType.MAGIC_SWITCH: "Magic Switch",
    AppleRecordType.HANDOFF: "Handoff",
    AppleRecordType.WIFI_SETTINGS: "Wi-Fi Settings",
    AppleRecordType.INSTANT_HOTSPOT: "Instant Hotspot",
    AppleRecordType.NEARBY_ACTION: "Nearby Action",
    AppleRecordType.NEARBY: "Nearby",
    AppleRecordType.OFFLINE_FINDING: "Offline Finding",
}


def label_for(record_type: int) -> str:
    try:
        return AppleRecordType(record_type).label
    except ValueError:
        return UNKNOWN_LABEL


def company_label(company_id: int) -> str:
    if company_id == APPLE_COMPANY_ID:
        return f"0x{company_id:04X} (Apple)"
    return f"0x{company_id:04X}"
