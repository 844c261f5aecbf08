"""Scan session: permission-gated discovery with de-duplication by address."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from saberctl.core import permissions
from saberctl.core.errors import ScannerUnavailableError
from saberctl.core.model import UNNAMED_DEVICE, DiscoveredDevice, PeripheralReport
from saberctl.transports.base import RadioAdapter

LOGGER = logging.getLogger(__name__)

DiscoveryCallback = Callable[[DiscoveredDevice], None]


class ScanState(enum.Enum):
    NOT_SCANNING = "not_scanning"
    SCANNING = "scanning"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ScanSession:
    """Owns one BLE discovery scan and the registry of devices it has seen.

    All state lives on the event loop that called :meth:`start`. Radio events
    arriving from other threads are handed over to that loop before they touch
    the registry. The registry survives :meth:`stop`; only ``start(fresh=True)``
    clears it.
    """

    def __init__(
        self,
        radio: RadioAdapter,
        probe: permissions.Probe,
        *,
        scan_period_s: float = 90.0,
    ) -> None:
        self.radio = radio
        self.probe = probe
        self.scan_period_s = scan_period_s
        self._registry: dict[str, DiscoveredDevice] = {}
        self._on_discovered: DiscoveryCallback | None = None
        self._state = ScanState.NOT_SCANNING
        self._generation = 0
        self._timer: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def scanning(self) -> bool:
        return self._state is ScanState.SCANNING

    def supported(self) -> bool:
        return self.radio.supported()

    def devices(self) -> Mapping[str, DiscoveredDevice]:
        return MappingProxyType(dict(self._registry))

    async def start(
        self,
        required: Iterable[str],
        on_discovered: DiscoveryCallback | None = None,
        *,
        fresh: bool = False,
    ) -> None:
        permissions.require(required, self.probe)
        if self._state is ScanState.SCANNING:
            LOGGER.debug("Scan already running; start ignored")
            return
        if not self.radio.supported():
            raise ScannerUnavailableError("No usable BLE scanner on this platform")

        self._loop = asyncio.get_running_loop()
        if fresh:
            self._registry.clear()
        self._on_discovered = on_discovered
        self._state = ScanState.SCANNING
        self._generation += 1
        generation = self._generation

        LOGGER.info("Starting scan")
        try:
            for report in self.radio.connected_peripherals():
                self._handle_report(report)
            await self.radio.start_scan(self.on_radio_event)
        except BaseException:
            if generation == self._generation:
                self._state = ScanState.NOT_SCANNING
            raise

        if generation == self._generation and self._state is ScanState.SCANNING:
            self._timer = self._loop.create_task(self._auto_stop(generation))

    async def stop(self, required: Iterable[str]) -> None:
        permissions.require(required, self.probe)
        self._disarm_timer()
        self._generation += 1
        self._state = ScanState.NOT_SCANNING
        LOGGER.info("Stopping scan")
        await self.radio.stop_scan()

    def on_radio_event(self, report: PeripheralReport) -> None:
        """Entry point for radio discovery events; safe to call from any thread."""
        loop = self._loop
        if loop is not None and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._handle_report, report)
            return
        self._handle_report(report)

    def _handle_report(self, report: PeripheralReport) -> None:
        try:
            device = DiscoveredDevice(
                display_name=report.name or UNNAMED_DEVICE,
                address=report.address,
                manufacturer_hint=report.manufacturer or "",
                native_handle=report.handle,
            )
        except PermissionError as exc:
            LOGGER.debug("Dropping scan result without permission: %s", exc)
            return

        if device.address in self._registry:
            return
        self._registry[device.address] = device
        LOGGER.debug("Modified device list: %s", ", ".join(self._registry))

        if self._on_discovered is not None:
            try:
                self._on_discovered(device)
            except Exception:
                LOGGER.exception("Discovery subscriber failed for %s", device.address)

    async def _auto_stop(self, generation: int) -> None:
        await asyncio.sleep(self.scan_period_s)
        if generation != self._generation or self._state is not ScanState.SCANNING:
            return
        LOGGER.info("Scan timed out")
        self._state = ScanState.NOT_SCANNING
        self._timer = None
        try:
            await self.radio.stop_scan()
        except Exception as exc:
            LOGGER.warning("Scan auto-stop failed: %s", exc)

    def _disarm_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()
