"""Core data models used across sessions, service, and CLI."""

from __future__ import annotations

import enum
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

UNNAMED_DEVICE = "(unnamed)"


@dataclass(frozen=True)
class PeripheralReport:
    """One discovery event as delivered by the radio adapter."""

    address: str
    name: str | None = None
    manufacturer: str | None = None
    handle: Any = None


@dataclass(frozen=True)
class DiscoveredDevice:
    """A peripheral seen by a scan. Identity is the radio address only."""

    display_name: str = field(compare=False)
    address: str
    manufacturer_hint: str = field(default="", compare=False)
    native_handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class GattService:
    uuid: uuid.UUID
    instance_id: int = 0


@dataclass(frozen=True)
class ModuleDescriptor:
    display_name: str
    uuid: uuid.UUID
    instance_id: int = 0


class OutcomeKind(enum.Enum):
    PENDING = "pending"
    READY = "ready"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class EnumerationOutcome:
    kind: OutcomeKind
    modules: tuple[ModuleDescriptor, ...] = ()
    reason: str | None = None

    @classmethod
    def pending(cls) -> EnumerationOutcome:
        return cls(OutcomeKind.PENDING)

    @classmethod
    def ready(cls, modules: Sequence[ModuleDescriptor]) -> EnumerationOutcome:
        return cls(OutcomeKind.READY, modules=tuple(modules))

    @classmethod
    def timed_out(cls) -> EnumerationOutcome:
        return cls(OutcomeKind.TIMED_OUT)

    @classmethod
    def failed(cls, reason: str) -> EnumerationOutcome:
        return cls(OutcomeKind.FAILED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not OutcomeKind.PENDING


@dataclass(frozen=True)
class SessionTimings:
    scan_period_s: float = 90.0
    poll_interval_s: float = 0.5
    poll_attempts: int = 20


@dataclass(frozen=True)
class Settings:
    platform_version: int
    granted_capabilities: frozenset[str] | None
    timings: SessionTimings
    module_names: Mapping[uuid.UUID, str]
    warnings: tuple[str, ...] = ()
