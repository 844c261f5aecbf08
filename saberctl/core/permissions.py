"""Platform capability checks gating scan and connect operations."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from saberctl.core.errors import PermissionDeniedError

LOGGER = logging.getLogger(__name__)

Probe = Callable[[str], bool]

SCAN = "scan"
CONNECT = "connect"
FINE_LOCATION = "fine-location"
COARSE_LOCATION = "coarse-location"
BLUETOOTH = "bluetooth"
BLUETOOTH_ADMIN = "bluetooth-admin"

# Platform release where scan/connect became their own runtime permissions.
SPLIT_PERMISSIONS_VERSION = 31

_SPLIT_CAPABILITIES = frozenset({SCAN, CONNECT})
_LEGACY_CAPABILITIES = frozenset({FINE_LOCATION, COARSE_LOCATION, BLUETOOTH, BLUETOOTH_ADMIN})


def required_capabilities(platform_version: int) -> frozenset[str]:
    if platform_version >= SPLIT_PERMISSIONS_VERSION:
        return _SPLIT_CAPABILITIES
    return _LEGACY_CAPABILITIES


def check(required: Iterable[str], probe: Probe) -> frozenset[str]:
    """Return the subset of ``required`` that ``probe`` reports as not granted.

    The probe is consulted on every call. Permission state can change between a
    check and the privileged operation, so results must not be cached.
    """
    missing: set[str] = set()
    for capability in required:
        if probe(capability):
            LOGGER.debug("Check for capability %s succeeded", capability)
        else:
            LOGGER.debug("Check for capability %s failed", capability)
            missing.add(capability)
    return frozenset(missing)


def require(required: Iterable[str], probe: Probe) -> None:
    missing = check(required, probe)
    if missing:
        raise PermissionDeniedError(missing)


def static_probe(granted: Iterable[str]) -> Probe:
    granted_set = frozenset(granted)
    return lambda capability: capability in granted_set


def grant_all_probe(capability: str) -> bool:
    return True
