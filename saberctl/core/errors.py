"""Domain-specific errors for saberctl."""

from __future__ import annotations

from collections.abc import Iterable


class SaberctlError(Exception):
    """Base error for saberctl."""


class PermissionDeniedError(SaberctlError):
    """Raised when required platform capabilities are not granted."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = frozenset(missing)
        super().__init__(
            "Missing Bluetooth permissions: " + ", ".join(sorted(self.missing))
        )


class ScannerUnavailableError(SaberctlError):
    """Raised when the platform exposes no usable BLE scanner."""


class NotConnectableError(SaberctlError):
    """Raised when a device carries no connectable peripheral handle."""


class BusyError(SaberctlError):
    """Raised when an enumeration is already in flight."""


class DeviceSelectionError(SaberctlError):
    """Raised when a device cannot be picked from the scan results."""


class SettingsError(SaberctlError):
    """Base configuration error."""


class SettingsValidationError(SettingsError):
    """Raised when the settings file does not conform to schema or semantics."""


class SettingsLoadError(SettingsError):
    """Raised when reading the settings file fails."""


class TransportError(SaberctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on BLE connect failures."""


class TransportScanError(TransportError):
    """Raised when the radio cannot start or stop a scan."""
