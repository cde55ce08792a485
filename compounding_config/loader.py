"""
Configuration Loader (``compounding_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``compounding_config.schema`` dataclasses.  The single public entry point
for runtime config is ``compounding_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown sections and unknown keys are rejected; a typo never silently
  falls back to a default.
* Values are type-checked against the dataclass field defaults.

Failure modes
-------------
* Missing YAML file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` chained from ``yaml.YAMLError``.
* Unknown key or wrong type  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from compounding_config.schema import (
    AuditSettings,
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    OrderSettings,
)
from compounding_kernel.exceptions import ConfigurationError

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "audit": AuditSettings,
    "orders": OrderSettings,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        Returns a ``dict`` (empty if the YAML document is empty).
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"settings file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"malformed YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def _parse_section(name: str, cls: type, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"section '{name}' must be a mapping")

    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(
            f"unknown key(s) in section '{name}': {', '.join(unknown)}"
        )

    values = {}
    for key, value in raw.items():
        expected = type(getattr(defaults, key))
        # bool is an int subclass; keep them apart
        if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConfigurationError(f"{name}.{key} must be an integer, got {value!r}")
        if expected is not int and not isinstance(value, expected):
            raise ConfigurationError(
                f"{name}.{key} must be {expected.__name__}, got {value!r}"
            )
        if expected is int and value < 0:
            raise ConfigurationError(f"{name}.{key} must not be negative")
        values[key] = value
    return cls(**values)


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    """Build KernelSettings from an already-loaded mapping."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"unknown section(s): {', '.join(unknown)}")
    return KernelSettings(
        **{name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    )


def load_settings(path: Path | str) -> KernelSettings:
    return parse_settings(load_yaml_file(Path(path)))


def compute_checksum(settings: KernelSettings) -> str:
    """Deterministic SHA-256 over the settings content."""
    canonical = json.dumps(asdict(settings), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
