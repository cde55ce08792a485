"""
compounding_config -- single public entrypoint for kernel settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  Settings come from the packaged
    ``defaults.yaml``, optionally overlaid by the file named in the
    ``COMPOUNDING_CONFIG`` environment variable (or an explicit path).

Architecture position:
    Configuration -- sits above ``compounding_kernel``.  The kernel MUST
    NEVER import from ``compounding_config``; ``bridges`` translates
    settings into kernel constructor arguments.

Failure modes:
    - ``ConfigurationError`` -- missing file, malformed YAML, unknown
      section or key, or a value of the wrong type.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from compounding_config.loader import (
    compute_checksum,
    load_settings,
    load_yaml_file,
    parse_settings,
)
from compounding_config.schema import (
    AuditSettings,
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    OrderSettings,
)

_logger = logging.getLogger("compounding_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
ENV_VAR = "COMPOUNDING_CONFIG"


def _overlay(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def get_active_config(path: Path | str | None = None) -> KernelSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Override file.  Defaults to ``$COMPOUNDING_CONFIG`` when set.

    Returns:
        Frozen ``KernelSettings``: packaged defaults overlaid by the
        override file, if any.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    source = path or os.environ.get(ENV_VAR)
    if source:
        data = _overlay(data, load_yaml_file(Path(source)))

    settings = parse_settings(data)
    _logger.info(
        "COMPOUNDING_CONFIG_TRACE",
        extra={
            "config_source": str(source) if source else "defaults",
            "config_checksum": compute_checksum(settings),
        },
    )
    return settings


__all__ = [
    "AuditSettings",
    "DatabaseSettings",
    "KernelSettings",
    "LoggingSettings",
    "OrderSettings",
    "compute_checksum",
    "get_active_config",
    "load_settings",
]
