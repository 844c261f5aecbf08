"""Connect to a chosen saber and enumerate its modules."""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from saberctl.core import permissions
from saberctl.core.classifier import MODULE_NAMES, classify_all
from saberctl.core.errors import BusyError, NotConnectableError, TransportError
from saberctl.core.model import DiscoveredDevice, EnumerationOutcome, GattService, OutcomeKind
from saberctl.transports.base import RadioAdapter

LOGGER = logging.getLogger(__name__)


class EnumerationState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_SERVICES = "awaiting_services"
    READY = "ready"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


_STATE_FOR_OUTCOME = {
    OutcomeKind.READY: EnumerationState.READY,
    OutcomeKind.TIMED_OUT: EnumerationState.TIMED_OUT,
    OutcomeKind.FAILED: EnumerationState.FAILED,
}

CANCELLED_REASON = "cancelled"


class EnumerationSession:
    """Connect-then-wait-for-services workflow for one peripheral at a time.

    Service discovery is driven by the platform after the connection is made,
    so the session polls the peripheral's known services on a fixed interval
    and gives up after ``poll_attempts`` empty reads. A device that answers
    with no recognised service ends ``READY`` with zero modules; a device that
    never answers ends ``TIMED_OUT``.
    """

    def __init__(
        self,
        radio: RadioAdapter,
        probe: permissions.Probe,
        *,
        poll_interval_s: float = 0.5,
        poll_attempts: int = 20,
        module_names: Mapping[uuid.UUID, str] = MODULE_NAMES,
    ) -> None:
        self.radio = radio
        self.probe = probe
        self.poll_interval_s = poll_interval_s
        self.poll_attempts = poll_attempts
        self.module_names = module_names
        self._state = EnumerationState.IDLE
        self._outcome = EnumerationOutcome.pending()
        self._device: DiscoveredDevice | None = None
        self._task: asyncio.Task[EnumerationOutcome] | None = None

    @property
    def state(self) -> EnumerationState:
        return self._state

    @property
    def outcome(self) -> EnumerationOutcome:
        return self._outcome

    @property
    def device(self) -> DiscoveredDevice | None:
        return self._device

    @property
    def busy(self) -> bool:
        return self._state in (EnumerationState.CONNECTING, EnumerationState.AWAITING_SERVICES)

    async def start(
        self,
        device: DiscoveredDevice,
        required: Iterable[str] = (),
    ) -> EnumerationOutcome:
        if self.busy:
            current = self._device.address if self._device else "<unknown>"
            raise BusyError(f"Enumeration already in progress for {current}")
        permissions.require(required, self.probe)

        self._device = device
        self._outcome = EnumerationOutcome.pending()
        if device.native_handle is None:
            error = NotConnectableError(
                f"Device {device.display_name} ({device.address}) has no connectable handle"
            )
            LOGGER.warning("%s", error)
            return self._finish(EnumerationOutcome.failed(str(error)))

        self._set_state(EnumerationState.CONNECTING)
        task = asyncio.ensure_future(self._run(device))
        self._task = task
        try:
            # Shielded so that a caller losing interest does not abort the session.
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self._outcome
            raise

    async def cancel(self) -> None:
        if not self.busy:
            return
        task, self._task = self._task, None
        device = self._device
        self._finish(EnumerationOutcome.failed(CANCELLED_REASON))
        if task is not None:
            task.cancel()
        if device is not None and device.native_handle is not None:
            try:
                await self.radio.disconnect(device.native_handle)
            except TransportError as exc:
                LOGGER.warning("Disconnect after cancel failed: %s", exc)

    async def _run(self, device: DiscoveredDevice) -> EnumerationOutcome:
        handle = device.native_handle
        try:
            await self.radio.connect(handle)
        except Exception as exc:
            LOGGER.warning("Connect to %s failed: %s", device.address, exc)
            return self._finish(EnumerationOutcome.failed(f"Connect failed: {exc}"))

        self._set_state(EnumerationState.AWAITING_SERVICES)
        try:
            services = await self._await_services(handle)
        except Exception as exc:
            LOGGER.warning("Reading services from %s failed: %s", device.address, exc)
            return self._finish(EnumerationOutcome.failed(f"Reading services failed: {exc}"))

        if not services:
            LOGGER.warning(
                "Could not find modules on device: %s (%s)",
                device.display_name,
                device.address,
            )
            return self._finish(EnumerationOutcome.timed_out())

        modules = classify_all(services, self.module_names)
        LOGGER.info(
            "Found modules: %s",
            ", ".join(f"{module.display_name} ({module.uuid})" for module in modules),
        )
        return self._finish(EnumerationOutcome.ready(modules))

    async def _await_services(self, handle: Any) -> tuple[GattService, ...]:
        for attempt in range(1, self.poll_attempts + 1):
            services = tuple(self.radio.services(handle))
            if services:
                return services
            LOGGER.debug("No services yet (attempt %d/%d)", attempt, self.poll_attempts)
            await asyncio.sleep(self.poll_interval_s)
        return tuple(self.radio.services(handle))

    def _finish(self, outcome: EnumerationOutcome) -> EnumerationOutcome:
        self._outcome = outcome
        self._set_state(_STATE_FOR_OUTCOME[outcome.kind])
        return outcome

    def _set_state(self, state: EnumerationState) -> None:
        LOGGER.debug("Enumeration state %s -> %s", self._state.value, state.value)
        self._state = state
