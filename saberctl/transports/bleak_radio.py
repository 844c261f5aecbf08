"""BLE radio adapter implementation on top of bleak."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from saberctl.core.errors import TransportConnectError, TransportScanError
from saberctl.core.model import GattService, PeripheralReport

LOGGER = logging.getLogger(__name__)


def _load_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportScanError(
            "BLE radio requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


def _address_of(handle: Any) -> str:
    return str(getattr(handle, "address", handle)).upper()


def _manufacturer_hint(manufacturer_data: dict[int, bytes] | None) -> str | None:
    if not manufacturer_data:
        return None
    return f"0x{next(iter(manufacturer_data)):04X}"


def to_peripheral_report(device: Any, advertisement: Any) -> PeripheralReport:
    return PeripheralReport(
        address=device.address,
        name=device.name or advertisement.local_name,
        manufacturer=_manufacturer_hint(advertisement.manufacturer_data),
        handle=device,
    )


def to_gatt_services(collection: Any) -> tuple[GattService, ...]:
    return tuple(
        GattService(uuid=uuid.UUID(str(service.uuid)), instance_id=int(service.handle))
        for service in collection
    )


class BleakRadioAdapter:
    def __init__(self, *, connect_timeout_s: float = 10.0) -> None:
        self.connect_timeout_s = connect_timeout_s
        self._scanner: Any = None
        self._clients: dict[str, Any] = {}

    def supported(self) -> bool:
        try:
            _load_bleak()
        except TransportScanError:
            return False
        return True

    async def start_scan(self, callback: Callable[[PeripheralReport], None]) -> None:
        bleak = _load_bleak()

        def _detection_handler(device: Any, advertisement: Any) -> None:
            try:
                report = to_peripheral_report(device, advertisement)
            except PermissionError as exc:
                LOGGER.debug("Dropping scan result without permission: %s", exc)
                return
            callback(report)

        if self._scanner is not None:
            return
        scanner = bleak.BleakScanner(detection_callback=_detection_handler)
        try:
            await scanner.start()
        except Exception as exc:
            raise TransportScanError(f"BLE scan could not start: {exc}") from exc
        self._scanner = scanner

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except Exception as exc:
            raise TransportScanError(f"BLE scan could not stop: {exc}") from exc

    def connected_peripherals(self) -> Sequence[PeripheralReport]:
        """Links opened through this adapter; bleak cannot list system-wide connections."""
        reports: list[PeripheralReport] = []
        for address, client in self._clients.items():
            if client.is_connected:
                reports.append(PeripheralReport(address=address, name=getattr(client, "name", None), handle=address))
        return reports

    async def connect(self, handle: Any) -> None:
        bleak = _load_bleak()
        address = _address_of(handle)
        client = self._clients.get(address)
        if client is not None and client.is_connected:
            return

        client = bleak.BleakClient(handle, timeout=self.connect_timeout_s)
        self._clients[address] = client
        try:
            await client.connect()
        except Exception as exc:
            self._clients.pop(address, None)
            raise TransportConnectError(f"BLE connect failed for {address}: {exc}") from exc
        if not client.is_connected:
            self._clients.pop(address, None)
            raise TransportConnectError(f"BLE connect failed for {address}")
        LOGGER.info("Connected to %s", address)

    def services(self, handle: Any) -> Sequence[GattService]:
        client = self._clients.get(_address_of(handle))
        if client is None:
            return ()
        bleak = _load_bleak()
        try:
            collection = client.services
        except bleak.exc.BleakError:
            # Service discovery has not completed yet.
            return ()
        return to_gatt_services(collection)

    async def disconnect(self, handle: Any) -> None:
        client = self._clients.pop(_address_of(handle), None)
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            raise TransportConnectError(f"BLE disconnect failed: {exc}") from exc
