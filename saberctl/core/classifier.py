"""Classification of GATT services into saber modules."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from saberctl.core.model import GattService, ModuleDescriptor

LOGGER = logging.getLogger(__name__)

# Saber services live in 7d0a0000-7699-494e-... through 7d0affff-7699-494e-...,
# compared as unsigned most-significant 64 bits.
MODULE_RANGE_MIN = 0x7D0A00007699494E
MODULE_RANGE_MAX = 0x7D0AFFFF7699494E

UNNAMED_MODULE = "Unnamed Service"

MODULE_NAMES: Mapping[uuid.UUID, str] = MappingProxyType(
    {
        uuid.UUID("7d0a7103-7699-494e-b638-deadbeef0000"): "Blade LED",
        uuid.UUID("7d0a309f-7699-494e-b638-deadbeef0000"): "Mixer Service",
        uuid.UUID("7d0a00b1-7699-494e-b638-deadbeef0000"): "I2C On/Off LED Button",
        uuid.UUID("7d0a00b2-7699-494e-b638-deadbeef0000"): "Raw On/Off LED Button",
        uuid.UUID("adaf0001-4369-7263-7569-74507974686e"): "Adafruit Information Service",
    }
)


def _most_significant_bits(value: uuid.UUID) -> int:
    return value.int >> 64


def is_module(service: GattService) -> bool:
    bits = _most_significant_bits(service.uuid)
    LOGGER.debug("Filtering service %s (%016x)", service.uuid, bits)
    return MODULE_RANGE_MIN <= bits <= MODULE_RANGE_MAX


def classify(
    service: GattService,
    names: Mapping[uuid.UUID, str] = MODULE_NAMES,
) -> ModuleDescriptor:
    return ModuleDescriptor(
        display_name=names.get(service.uuid, UNNAMED_MODULE),
        uuid=service.uuid,
        instance_id=service.instance_id,
    )


def classify_all(
    services: Iterable[GattService],
    names: Mapping[uuid.UUID, str] = MODULE_NAMES,
) -> tuple[ModuleDescriptor, ...]:
    """Filter ``services`` to saber modules and name them, keeping transport order."""
    return tuple(classify(service, names) for service in services if is_module(service))


def merge_names(extra: Mapping[uuid.UUID, str]) -> Mapping[uuid.UUID, str]:
    merged = dict(MODULE_NAMES)
    merged.update(extra)
    return MappingProxyType(merged)
