"""Public names for saber discovery and module enumeration.

Everything listed in ``__all__`` keeps its name and signature across minor
releases. ``Client`` wraps a scan-then-enumerate run in blocking calls.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from saberctl.core.classifier import MODULE_NAMES, UNNAMED_MODULE, classify, classify_all, is_module
from saberctl.core.coordinator import CoordinatorState, SessionCoordinator
from saberctl.core.enumeration import EnumerationSession, EnumerationState
from saberctl.core.errors import (
    BusyError,
    DeviceSelectionError,
    NotConnectableError,
    PermissionDeniedError,
    SaberctlError,
    ScannerUnavailableError,
    SettingsError,
    SettingsLoadError,
    SettingsValidationError,
    TransportConnectError,
    TransportError,
    TransportScanError,
)
from saberctl.core.model import (
    DiscoveredDevice,
    EnumerationOutcome,
    GattService,
    ModuleDescriptor,
    OutcomeKind,
    PeripheralReport,
    SessionTimings,
    Settings,
)
from saberctl.core.scan import ScanSession, ScanState
from saberctl.core.service import SaberService
from saberctl.transports.base import RadioAdapter
from saberctl.transports.bleak_radio import BleakRadioAdapter

__all__ = [
    "SaberctlError",
    "PermissionDeniedError",
    "ScannerUnavailableError",
    "NotConnectableError",
    "BusyError",
    "DeviceSelectionError",
    "SettingsError",
    "SettingsLoadError",
    "SettingsValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportScanError",
    "DiscoveredDevice",
    "EnumerationOutcome",
    "GattService",
    "ModuleDescriptor",
    "OutcomeKind",
    "PeripheralReport",
    "SessionTimings",
    "Settings",
    "MODULE_NAMES",
    "UNNAMED_MODULE",
    "classify",
    "classify_all",
    "is_module",
    "ScanSession",
    "ScanState",
    "EnumerationSession",
    "EnumerationState",
    "SessionCoordinator",
    "CoordinatorState",
    "RadioAdapter",
    "BleakRadioAdapter",
    "Client",
]


class Client:
    """Public client for discovering sabers and listing their modules.

    A `Client` instance wraps settings loading, scanning, and module enumeration
    behind a blocking API intended for third-party tools (GUI/TUI/scripts).
    Frontends running their own event loop should drive a `SessionCoordinator`
    directly instead.
    """

    def __init__(
        self,
        *,
        radio: RadioAdapter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._service = SaberService(radio=radio, settings=settings)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def coordinator(self) -> SessionCoordinator:
        return self._service.coordinator

    def missing_permissions(self) -> frozenset[str]:
        return self._service.coordinator.missing_capabilities()

    def scan(
        self,
        duration_s: float = 10.0,
        *,
        on_device: Callable[[DiscoveredDevice], None] | None = None,
    ) -> list[DiscoveredDevice]:
        return self._service.discover(duration_s, on_device)

    def load_modules(
        self,
        address: str,
        *,
        scan_timeout_s: float = 10.0,
    ) -> EnumerationOutcome:
        _, outcome = self._service.load_modules(address, scan_timeout_s=scan_timeout_s)
        return outcome

    def module_catalog(self) -> dict[uuid.UUID, str]:
        return dict(self._service.module_catalog())
