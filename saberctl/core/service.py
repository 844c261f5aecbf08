"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable

from saberctl.core.coordinator import SessionCoordinator
from saberctl.core.enumeration import EnumerationSession
from saberctl.core.errors import DeviceSelectionError, TransportError
from saberctl.core.model import DiscoveredDevice, EnumerationOutcome, Settings
from saberctl.core.permissions import Probe, grant_all_probe, required_capabilities, static_probe
from saberctl.core.scan import ScanSession
from saberctl.core.settings import load_settings
from saberctl.transports.base import RadioAdapter
from saberctl.transports.bleak_radio import BleakRadioAdapter

LOGGER = logging.getLogger(__name__)


class SaberService:
    def __init__(
        self,
        *,
        radio: RadioAdapter | None = None,
        settings: Settings | None = None,
        probe: Probe | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.load_warnings = self.settings.warnings
        self.radio = radio or BleakRadioAdapter()
        self.required = required_capabilities(self.settings.platform_version)
        if probe is None:
            granted = self.settings.granted_capabilities
            probe = grant_all_probe if granted is None else static_probe(granted)
        self.probe = probe
        self.runtime_warnings = _runtime_warnings(self.radio)
        self.coordinator = self._build_coordinator()

    def _build_coordinator(self) -> SessionCoordinator:
        timings = self.settings.timings
        scan = ScanSession(self.radio, self.probe, scan_period_s=timings.scan_period_s)
        enumeration = EnumerationSession(
            self.radio,
            self.probe,
            poll_interval_s=timings.poll_interval_s,
            poll_attempts=timings.poll_attempts,
            module_names=self.settings.module_names,
        )
        return SessionCoordinator(scan, enumeration, self.required)

    def module_catalog(self) -> list[tuple[uuid.UUID, str]]:
        return sorted(self.settings.module_names.items(), key=lambda item: str(item[0]))

    def discover(
        self,
        duration_s: float,
        on_device: Callable[[DiscoveredDevice], None] | None = None,
    ) -> list[DiscoveredDevice]:
        return asyncio.run(self._discover(duration_s, on_device))

    def load_modules(
        self,
        address: str,
        *,
        scan_timeout_s: float = 10.0,
    ) -> tuple[DiscoveredDevice, EnumerationOutcome]:
        return asyncio.run(self._load_modules(address, scan_timeout_s))

    async def _discover(
        self,
        duration_s: float,
        on_device: Callable[[DiscoveredDevice], None] | None,
    ) -> list[DiscoveredDevice]:
        self.coordinator.on_device = on_device
        await self.coordinator.start_scan(fresh=True)
        try:
            await asyncio.sleep(duration_s)
        finally:
            if self.coordinator.scan.scanning:
                await self.coordinator.stop_scan()
        return list(self.coordinator.devices().values())

    async def _load_modules(
        self,
        address: str,
        scan_timeout_s: float,
    ) -> tuple[DiscoveredDevice, EnumerationOutcome]:
        wanted = address.lower()
        seen = asyncio.Event()

        def _watch(device: DiscoveredDevice) -> None:
            if device.address.lower() == wanted:
                seen.set()

        self.coordinator.on_device = _watch
        await self.coordinator.start_scan(fresh=True)
        if not any(known.lower() == wanted for known in self.coordinator.devices()):
            try:
                await asyncio.wait_for(seen.wait(), timeout=scan_timeout_s)
            except asyncio.TimeoutError:
                await self.coordinator.stop_scan()
                raise DeviceSelectionError(
                    f"Device '{address}' was not seen within {scan_timeout_s:g}s of scanning."
                ) from None

        device = await self.coordinator.pick_device(address)
        try:
            outcome = await self.coordinator.load_modules()
        finally:
            if device.native_handle is not None:
                try:
                    await self.radio.disconnect(device.native_handle)
                except TransportError as exc:
                    LOGGER.warning("Disconnect from %s failed: %s", device.address, exc)
        return device, outcome


def _runtime_warnings(radio: RadioAdapter) -> tuple[str, ...]:
    warnings: list[str] = []
    if not radio.supported():
        warnings.append(
            "No usable BLE scanner (is 'bleak' installed and a Bluetooth adapter present?); scan commands will fail."
        )
    return tuple(warnings)
