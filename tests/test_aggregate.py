from __future__ import annotations

import threading

import pytest

from bledissect.core.aggregate import AggregateStore, attach_name, merge
from bledissect.core.model import AggregateState, Reception

NEARBY = bytes.fromhex("4c00" "1002311c" "0c0e" "003412aa0102030405060708090a")


def _reception(timestamp: float, rssi: int = -60, data: bytes = NEARBY, **kwargs) -> Reception:
    return Reception(identity="AA:BB:CC:DD:EE:FF", data=data, rssi=rssi, timestamp=timestamp, **kwargs)


def test_first_reception_creates_new_aggregate() -> None:
    aggregate = merge(None, _reception(100.0))

    assert aggregate.state is AggregateState.NEW
    assert aggregate.reception_count == 1
    assert aggregate.record_types == frozenset({0x10, 0x0C})
    assert aggregate.records is not None
    assert aggregate.records.types() == [0x10, 0x0C]
    assert [entry.name for entry in aggregate.dissection.children] == ["Nearby", "Handoff"]


def test_repeated_reception_merges_into_one_aggregate() -> None:
    store = AggregateStore()
    store.receive(_reception(100.0, rssi=-60))
    store.receive(_reception(101.0, rssi=-55))

    assert len(store) == 1
    aggregate = store.get("AA:BB:CC:DD:EE:FF")
    assert aggregate.reception_count == 2
    assert aggregate.state is AggregateState.TRACKED
    assert [(s.timestamp, s.rssi) for s in aggregate.samples] == [(100.0, -60), (101.0, -55)]
    assert aggregate.last_seen == 101.0


def test_changed_content_keeps_first_dissection() -> None:
    first = merge(None, _reception(1.0))
    second = merge(first, _reception(2.0, data=bytes.fromhex("4c00" "1002511c")))

    assert second.dissection is first.dissection
    assert second.manufacturer_data == NEARBY
    assert second.reception_count == 2


def test_short_payload_still_tracked() -> None:
    aggregate = merge(None, _reception(1.0, data=b"\x4c"))

    assert aggregate.dissection.children == ()
    assert aggregate.records is None
    assert aggregate.record_types == frozenset()
    assert aggregate.reception_count == 1


def test_truncated_payload_keeps_framed_types_without_record_box() -> None:
    aggregate = merge(None, _reception(1.0, data=bytes.fromhex("4c00" "1002311c" "0708aa")))

    assert aggregate.records is None
    assert aggregate.record_types == frozenset({0x10})


def test_other_manufacturer_has_no_records() -> None:
    aggregate = merge(None, _reception(1.0, data=bytes.fromhex("75000142")))
    assert aggregate.records is None
    assert aggregate.record_types == frozenset()


def test_late_name_is_attached() -> None:
    store = AggregateStore()
    store.receive(_reception(1.0))
    store.receive(_reception(2.0, name="Kitchen iPad"))
    assert store.get("AA:BB:CC:DD:EE:FF").name == "Kitchen iPad"

    store.receive(_reception(3.0))
    assert store.get("AA:BB:CC:DD:EE:FF").name == "Kitchen iPad"

    renamed = store.attach_name("AA:BB:CC:DD:EE:FF", "Office iPad")
    assert renamed.name == "Office iPad"
    assert renamed.reception_count == 3
    assert store.attach_name("00:00:00:00:00:00", "Nobody") is None


def test_attach_name_is_pure() -> None:
    aggregate = merge(None, _reception(1.0))
    assert attach_name(aggregate, "Phone").name == "Phone"
    assert aggregate.name is None


def test_merge_rejects_other_identity() -> None:
    aggregate = merge(None, _reception(1.0))
    other = Reception(identity="11:22:33:44:55:66", data=NEARBY, rssi=-70, timestamp=2.0)
    with pytest.raises(ValueError):
        merge(aggregate, other)


def test_concurrent_receptions_are_not_lost() -> None:
    store = AggregateStore()
    threads_count, per_thread = 8, 50

    def _worker(offset: int) -> None:
        for i in range(per_thread):
            store.receive(_reception(float(offset * per_thread + i), rssi=-40 - offset))

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    aggregate = store.get("AA:BB:CC:DD:EE:FF")
    assert aggregate.reception_count == threads_count * per_thread
    assert len(aggregate.samples) == threads_count * per_thread


def test_closed_store_discards_receptions() -> None:
    store = AggregateStore()
    store.receive(_reception(1.0))
    store.close()

    assert store.receive(_reception(2.0)) is None
    assert store.get("AA:BB:CC:DD:EE:FF").reception_count == 1


def test_forget_drops_device() -> None:
    store = AggregateStore()
    store.receive(_reception(1.0))
    store.forget("AA:BB:CC:DD:EE:FF")
    assert store.snapshot() == []


def test_name_attached_before_first_reception_is_applied() -> None:
    store = AggregateStore()
    assert store.attach_name("AA:BB:CC:DD:EE:FF", "Hallway HomePod") is None
    assert len(store) == 0

    aggregate = store.receive(_reception(1.0))
    assert aggregate.name == "Hallway HomePod"

    store.receive(_reception(2.0))
    assert store.get("AA:BB:CC:DD:EE:FF").name == "Hallway HomePod"


def test_advertised_name_wins_over_pending_name() -> None:
    store = AggregateStore()
    store.attach_name("AA:BB:CC:DD:EE:FF", "Old Name")
    assert store.receive(_reception(1.0, name="Living Room TV")).name == "Living Room TV"


def test_tx_power_and_services_are_tracked() -> None:
    first = merge(
        None,
        _reception(
            1.0,
            tx_power=12,
            service_uuids=("0000fd6f-0000-1000-8000-00805f9b34fb",),
            service_data={"0000fd6f-0000-1000-8000-00805f9b34fb": b"\x01\x02"},
            connectable=True,
        ),
    )
    assert first.tx_power_levels == (12,)
    assert first.service_uuids == ("0000fd6f-0000-1000-8000-00805f9b34fb",)
    assert first.connectable is True

    second = merge(first, _reception(2.0))
    assert second.tx_power_levels == (12,)
    assert second.service_uuids == first.service_uuids
    assert second.service_data == {"0000fd6f-0000-1000-8000-00805f9b34fb": b"\x01\x02"}
    assert second.connectable is True

    third = merge(
        second,
        _reception(3.0, tx_power=8, service_data={"0000fe2c-0000-1000-8000-00805f9b34fb": b"\xff"}, connectable=False),
    )
    assert third.tx_power_levels == (12, 8)
    assert third.service_data == {"0000fe2c-0000-1000-8000-00805f9b34fb": b"\xff"}
    assert third.connectable is False
    assert third.dissection is first.dissection
