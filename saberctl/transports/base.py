"""Radio adapter interface."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from saberctl.core.model import GattService, PeripheralReport


class RadioAdapter(Protocol):
    def supported(self) -> bool:
        """Report whether the platform exposes a usable BLE scanner."""

    async def start_scan(self, callback: Callable[[PeripheralReport], None]) -> None:
        """Begin delivering discovery events to ``callback``."""

    async def stop_scan(self) -> None:
        """Stop a running scan. Stopping an idle radio is not an error."""

    def connected_peripherals(self) -> Sequence[PeripheralReport]:
        """Peripherals already connected to this host."""

    async def connect(self, handle: Any) -> None:
        """Connect to the peripheral behind ``handle``."""

    def services(self, handle: Any) -> Sequence[GattService]:
        """Return the services discovered so far for ``handle``."""

    async def disconnect(self, handle: Any) -> None:
        """Drop the connection to ``handle`` if there is one."""
