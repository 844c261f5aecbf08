from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

import pytest

from saberctl.core.model import GattService, PeripheralReport

BLADE_LED = uuid.UUID("7d0a7103-7699-494e-b638-deadbeef0000")
MIXER = uuid.UUID("7d0a309f-7699-494e-b638-deadbeef0000")
BATTERY = uuid.UUID("0000180f-0000-1000-8000-00805f9b34fb")


class FakeRadio:
    def __init__(
        self,
        *,
        supported: bool = True,
        advertising: Sequence[PeripheralReport] = (),
        connected: Sequence[PeripheralReport] = (),
        service_script: Sequence[Sequence[GattService]] = (),
        connect_error: Exception | None = None,
        services_error: Exception | None = None,
    ) -> None:
        self.is_supported = supported
        self.advertising = list(advertising)
        self.connected = list(connected)
        self.service_script = [tuple(step) for step in service_script]
        self.connect_error = connect_error
        self.services_error = services_error
        self.scan_callback: Any = None
        self.scanning = False
        self.start_calls = 0
        self.stop_calls = 0
        self.service_reads = 0
        self.connect_calls: list[Any] = []
        self.disconnect_calls: list[Any] = []

    def supported(self) -> bool:
        return self.is_supported

    async def start_scan(self, callback) -> None:
        self.scan_callback = callback
        self.scanning = True
        self.start_calls += 1
        for report in self.advertising:
            callback(report)

    async def stop_scan(self) -> None:
        self.scanning = False
        self.stop_calls += 1

    def connected_peripherals(self) -> list[PeripheralReport]:
        return list(self.connected)

    async def connect(self, handle: Any) -> None:
        self.connect_calls.append(handle)
        if self.connect_error is not None:
            raise self.connect_error

    def services(self, handle: Any) -> tuple[GattService, ...]:
        self.service_reads += 1
        if self.services_error is not None:
            raise self.services_error
        if not self.service_script:
            return ()
        index = min(self.service_reads, len(self.service_script)) - 1
        return self.service_script[index]

    async def disconnect(self, handle: Any) -> None:
        self.disconnect_calls.append(handle)

    def emit(self, report: PeripheralReport) -> None:
        self.scan_callback(report)


def report(address: str, name: str | None = "Saber", handle: Any = "handle") -> PeripheralReport:
    return PeripheralReport(address=address, name=name, handle=handle)


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()
