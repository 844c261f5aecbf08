"""Loading and validation of the optional YAML settings file."""

from __future__ import annotations

import json
import logging
import os
import uuid
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from saberctl.core.classifier import MODULE_NAMES, merge_names
from saberctl.core.errors import SettingsLoadError, SettingsValidationError
from saberctl.core.model import SessionTimings, Settings
from saberctl.core.permissions import SPLIT_PERMISSIONS_VERSION

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[Any, Any]:
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def settings_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "saberctl" / "config.yaml"


def default_settings() -> Settings:
    return Settings(
        platform_version=SPLIT_PERMISSIONS_VERSION,
        granted_capabilities=None,
        timings=SessionTimings(),
        module_names=MODULE_NAMES,
    )


def _load_schema_validator() -> Any:
    schema_text = resources.files("saberctl.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _normalize_uuid(value: Any, *, context: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value).strip())
    except ValueError as exc:
        raise SettingsValidationError(f"{context} must be a 128-bit UUID string") from exc


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = SessionTimings()
    timings = SessionTimings(
        scan_period_s=float(doc.get("scan_period_s", defaults.scan_period_s)),
        poll_interval_s=float(doc.get("poll_interval_s", defaults.poll_interval_s)),
        poll_attempts=int(doc.get("poll_attempts", defaults.poll_attempts)),
    )

    warnings: list[str] = []
    extra_names: dict[uuid.UUID, str] = {}
    for raw_uuid, name in doc.get("module_names", {}).items():
        service_uuid = _normalize_uuid(raw_uuid, context=f"module_names.{raw_uuid}")
        if service_uuid in MODULE_NAMES:
            warning = f"Settings rename builtin module {service_uuid} to '{name}'"
            LOGGER.warning(warning)
            warnings.append(warning)
        extra_names[service_uuid] = name

    granted = doc.get("granted_capabilities")
    return Settings(
        platform_version=int(doc.get("platform_version", SPLIT_PERMISSIONS_VERSION)),
        granted_capabilities=frozenset(granted) if granted is not None else None,
        timings=timings,
        module_names=merge_names(extra_names),
        warnings=tuple(warnings),
    )


def load_settings(path: Path | None = None) -> Settings:
    source = path or settings_path()
    if path is None and not source.exists():
        LOGGER.debug("No settings file at %s; using defaults", source)
        return default_settings()
    return _build_settings(_read_yaml(source), source)
