from __future__ import annotations

import pytest

from bledissect.core.decoders import HomeKitDecoder
from bledissect.core.errors import DecoderNotAvailable
from bledissect.core.record_types import AppleRecordType
from bledissect.core.registry import DecoderRegistry, default_registry


def test_every_documented_type_has_a_decoder() -> None:
    registry = default_registry()
    for record_type in AppleRecordType:
        if record_type is AppleRecordType.OFFLINE_FINDING:
            continue
        decoder = registry.lookup(record_type)
        assert decoder.record_type == record_type


def test_unregistered_type_is_not_available() -> None:
    with pytest.raises(DecoderNotAvailable):
        default_registry().lookup(0x99)


def test_offline_finding_lives_outside_registry() -> None:
    assert AppleRecordType.OFFLINE_FINDING not in default_registry()


def test_register_returns_replaced_decoder() -> None:
    registry = DecoderRegistry()
    first = HomeKitDecoder()
    assert registry.register(first) is None
    assert registry.register(HomeKitDecoder()) is first
    assert registry.types() == [0x06]
    assert len(registry) == 1


def test_register_under_explicit_type() -> None:
    registry = DecoderRegistry()
    decoder = HomeKitDecoder()
    registry.register(decoder, record_type=0x42)

    assert registry.lookup(0x42) is decoder
    assert 0x06 not in registry
