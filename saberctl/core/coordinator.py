"""Sequencing of scan and enumeration sessions for UI frontends."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Mapping

from saberctl.core import permissions
from saberctl.core.enumeration import EnumerationSession
from saberctl.core.errors import BusyError, DeviceSelectionError, SaberctlError
from saberctl.core.model import DiscoveredDevice, EnumerationOutcome
from saberctl.core.scan import DiscoveryCallback, ScanSession

LOGGER = logging.getLogger(__name__)

StateListener = Callable[["CoordinatorState"], None]


class CoordinatorState(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DEVICE_CHOSEN = "device_chosen"
    ENUMERATING = "enumerating"
    DONE = "done"


class SessionCoordinator:
    """Runs Idle -> Scanning -> DeviceChosen -> Enumerating -> Done.

    The scan is always stopped before connecting; scanning and connecting at
    the same time is unreliable on constrained radios.
    """

    def __init__(
        self,
        scan: ScanSession,
        enumeration: EnumerationSession,
        required: Iterable[str],
        *,
        on_device: DiscoveryCallback | None = None,
    ) -> None:
        self.scan = scan
        self.enumeration = enumeration
        self.required = frozenset(required)
        self.on_device = on_device
        self._state = CoordinatorState.IDLE
        self._chosen: DiscoveredDevice | None = None
        self._awaiting_outcome = False
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> CoordinatorState:
        self._sync_states()
        return self._state

    @property
    def chosen(self) -> DiscoveredDevice | None:
        return self._chosen

    @property
    def outcome(self) -> EnumerationOutcome:
        return self.enumeration.outcome

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def missing_capabilities(self) -> frozenset[str]:
        return permissions.check(self.required, self.scan.probe)

    def devices(self) -> Mapping[str, DiscoveredDevice]:
        return self.scan.devices()

    async def start_scan(self, *, fresh: bool = False) -> None:
        self._reject_while_enumerating()
        await self.scan.start(self.required, self._on_discovered, fresh=fresh)
        self._set_state(CoordinatorState.SCANNING)

    async def stop_scan(self) -> None:
        await self.scan.stop(self.required)
        if self._state is CoordinatorState.SCANNING:
            self._set_state(CoordinatorState.IDLE)

    async def pick_device(self, address: str) -> DiscoveredDevice:
        self._reject_while_enumerating()
        device = self._lookup(address)
        if self.scan.scanning:
            await self.scan.stop(self.required)
        self._chosen = device
        LOGGER.info("Picked device %s (%s)", device.display_name, device.address)
        self._set_state(CoordinatorState.DEVICE_CHOSEN)
        return device

    async def load_modules(self) -> EnumerationOutcome:
        self._reject_while_enumerating()
        if self._chosen is None:
            raise DeviceSelectionError("No device chosen. Pick a device before loading modules.")
        if self.scan.scanning:
            await self.scan.stop(self.required)

        self._set_state(CoordinatorState.ENUMERATING)
        self._awaiting_outcome = True
        try:
            outcome = await self.enumeration.start(self._chosen, self.required)
        except SaberctlError:
            self._set_state(CoordinatorState.DEVICE_CHOSEN)
            raise
        finally:
            self._awaiting_outcome = False
        self._set_state(CoordinatorState.DONE)
        return outcome

    def _on_discovered(self, device: DiscoveredDevice) -> None:
        if self.on_device is not None:
            self.on_device(device)

    def _lookup(self, address: str) -> DiscoveredDevice:
        devices = self.scan.devices()
        device = devices.get(address)
        if device is None:
            wanted = address.lower()
            device = next((d for key, d in devices.items() if key.lower() == wanted), None)
        if device is None:
            raise DeviceSelectionError(f"No scanned device with address '{address}'")
        return device

    def _reject_while_enumerating(self) -> None:
        self._sync_states()
        if self._state is CoordinatorState.ENUMERATING:
            raise BusyError("Module enumeration is in progress")

    def _sync_states(self) -> None:
        # The scan may auto-stop, and an abandoned enumeration still settles.
        if self._state is CoordinatorState.SCANNING and not self.scan.scanning:
            self._set_state(CoordinatorState.IDLE)
        elif (
            self._state is CoordinatorState.ENUMERATING
            and not self._awaiting_outcome
            and not self.enumeration.busy
            and self.enumeration.outcome.is_terminal
        ):
            self._set_state(CoordinatorState.DONE)

    def _set_state(self, state: CoordinatorState) -> None:
        if state is self._state:
            return
        LOGGER.debug("Coordinator state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            listener(state)
