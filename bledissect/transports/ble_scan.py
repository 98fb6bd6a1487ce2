"""Live advertisement scanning through bleak."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from bledissect.core.errors import ScannerError
from bledissect.core.model import Reception
from bledissect.core.record_types import APPLE_COMPANY_ID

LOGGER = logging.getLogger(__name__)


def _select_manufacturer_entry(identity: str, manufacturer_data: Mapping[int, bytes]) -> bytes:
    if not manufacturer_data:
        return b""
    company_id = APPLE_COMPANY_ID if APPLE_COMPANY_ID in manufacturer_data else next(iter(manufacturer_data))
    skipped = sorted(cid for cid in manufacturer_data if cid != company_id)
    if skipped:
        LOGGER.debug(
            "%s advertised %d manufacturer entries; tracking 0x%04X, ignoring %s",
            identity,
            len(manufacturer_data),
            company_id,
            ", ".join(f"0x{cid:04X}" for cid in skipped),
        )
    return company_id.to_bytes(2, "little") + bytes(manufacturer_data[company_id])


def reception_from_advertisement(
    address: str,
    manufacturer_data: Mapping[int, bytes],
    rssi: int,
    name: str | None,
    timestamp: float,
    *,
    tx_power: int | None = None,
    service_uuids: Iterable[str] = (),
    service_data: Mapping[str, bytes] | None = None,
    connectable: bool | None = None,
) -> Reception:
    """Build the single reception for one detected advertisement.

    Manufacturer data is rebuilt company id first. When several entries are
    present the Apple one is tracked, otherwise the first reported.
    """
    identity = address.upper()
    return Reception(
        identity=identity,
        data=_select_manufacturer_entry(identity, manufacturer_data),
        rssi=rssi,
        timestamp=timestamp,
        name=name or None,
        tx_power=tx_power,
        service_uuids=tuple(service_uuids),
        service_data={uuid: bytes(value) for uuid, value in (service_data or {}).items()},
        connectable=connectable,
    )


class BLEScanSource:
    def scan(
        self,
        duration_s: float,
        on_reception: Callable[[Reception], None],
    ) -> None:
        try:
            from bleak import BleakScanner  # type: ignore
        except Exception as exc:  # pragma: no cover - import failure path
            raise ScannerError(
                "Live scanning requires 'bleak'. Install dependency and retry."
            ) from exc

        def _detection_callback(device: Any, advertisement_data: Any) -> None:
            on_reception(
                reception_from_advertisement(
                    device.address,
                    advertisement_data.manufacturer_data,
                    advertisement_data.rssi,
                    advertisement_data.local_name or device.name,
                    time.time(),
                    tx_power=advertisement_data.tx_power,
                    service_uuids=advertisement_data.service_uuids,
                    service_data=advertisement_data.service_data,
                    # Only some backends report connectability.
                    connectable=getattr(advertisement_data, "connectable", None),
                )
            )

        async def _run() -> None:
            async with BleakScanner(detection_callback=_detection_callback):
                await asyncio.sleep(duration_s)

        try:
            asyncio.run(_run())
        except ScannerError:
            raise
        except Exception as exc:
            raise ScannerError(f"BLE scan failed: {exc}") from exc
