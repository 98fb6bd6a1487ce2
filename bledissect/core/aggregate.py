"""Per-device aggregation of repeated advertisement receptions."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

from bledissect.core.dissector import COMPANY_ID_SIZE, dissect_manufacturer_data, iter_apple_records
from bledissect.core.errors import MalformedRecord
from bledissect.core.model import AdvertisementAggregate, FieldWidth, RecordBox, Reception, Sample
from bledissect.core.record_types import APPLE_COMPANY_PREFIX
from bledissect.core.registry import DecoderRegistry
from bledissect.core.tlv import decode_records

LOGGER = logging.getLogger(__name__)


def _apple_payload(data: bytes) -> bytes | None:
    if len(data) < COMPANY_ID_SIZE or data[:COMPANY_ID_SIZE] != APPLE_COMPANY_PREFIX:
        return None
    return data[COMPANY_ID_SIZE:]


def _record_box(payload: bytes) -> RecordBox | None:
    try:
        return decode_records(payload, FieldWidth.BITS_8)
    except MalformedRecord as exc:
        LOGGER.debug("Apple payload does not frame cleanly: %s", exc)
        return None


def merge(
    current: AdvertisementAggregate | None,
    reception: Reception,
    registry: DecoderRegistry | None = None,
) -> AdvertisementAggregate:
    """Fold one reception into the aggregate for its device.

    The first reception is dissected; later ones only extend the sample
    history, since content is treated as stable for a device identity.
    Service UUIDs and service data are replaced when a reception carries
    them; tx power levels accumulate like RSSI samples.
    """
    sample = Sample(timestamp=reception.timestamp, rssi=reception.rssi)

    if current is None:
        data = bytes(reception.data)
        payload = _apple_payload(data)
        records = _record_box(payload) if payload is not None else None
        record_types = (
            frozenset(record.type for record in iter_apple_records(payload))
            if payload is not None
            else frozenset()
        )
        return AdvertisementAggregate(
            identity=reception.identity,
            manufacturer_data=data,
            records=records,
            record_types=record_types,
            dissection=dissect_manufacturer_data(data, registry),
            samples=(sample,),
            reception_count=1,
            name=reception.name,
            tx_power_levels=() if reception.tx_power is None else (reception.tx_power,),
            service_uuids=tuple(reception.service_uuids),
            service_data=dict(reception.service_data),
            connectable=reception.connectable,
        )

    if current.identity != reception.identity:
        raise ValueError(
            f"Reception for {reception.identity} cannot merge into aggregate for {current.identity}"
        )
    if reception.data != current.manufacturer_data:
        LOGGER.debug("Content changed for %s; keeping first dissection", current.identity)

    return replace(
        current,
        samples=current.samples + (sample,),
        reception_count=current.reception_count + 1,
        name=reception.name or current.name,
        tx_power_levels=(
            current.tx_power_levels
            if reception.tx_power is None
            else current.tx_power_levels + (reception.tx_power,)
        ),
        service_uuids=tuple(reception.service_uuids) or current.service_uuids,
        service_data=dict(reception.service_data) or current.service_data,
        connectable=current.connectable if reception.connectable is None else reception.connectable,
    )


def attach_name(current: AdvertisementAggregate, name: str) -> AdvertisementAggregate:
    return replace(current, name=name)


class AggregateStore:
    """Aggregates for one scanning session, keyed by device identity.

    Each receive is one read-merge-write under the store lock. A name
    attached before a device's first reception is held until it arrives.
    """

    def __init__(self, registry: DecoderRegistry | None = None) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        self._aggregates: dict[str, AdvertisementAggregate] = {}
        self._pending_names: dict[str, str] = {}
        self._closed = False

    def receive(self, reception: Reception) -> AdvertisementAggregate | None:
        with self._lock:
            if self._closed:
                LOGGER.debug("Discarding reception for %s after close", reception.identity)
                return None
            updated = merge(self._aggregates.get(reception.identity), reception, self._registry)
            pending = self._pending_names.pop(reception.identity, None)
            if pending is not None and updated.name is None:
                updated = attach_name(updated, pending)
            self._aggregates[reception.identity] = updated
            return updated

    def attach_name(self, identity: str, name: str) -> AdvertisementAggregate | None:
        with self._lock:
            if self._closed:
                return None
            current = self._aggregates.get(identity)
            if current is None:
                self._pending_names[identity] = name
                return None
            updated = attach_name(current, name)
            self._aggregates[identity] = updated
            return updated

    def get(self, identity: str) -> AdvertisementAggregate | None:
        with self._lock:
            return self._aggregates.get(identity)

    def snapshot(self) -> list[AdvertisementAggregate]:
        with self._lock:
            return list(self._aggregates.values())

    def forget(self, identity: str) -> None:
        with self._lock:
            self._aggregates.pop(identity, None)
            self._pending_names.pop(identity, None)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._aggregates)
