"""
Configuration schema (``compounding_config.schema``).

Frozen dataclasses describing kernel settings.  Every field has a default
so an empty YAML document yields a working development configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class AuditSettings:
    # Caps applied to unpaged audit queries
    history_limit: int = 100
    actor_actions_limit: int = 100
    entity_type_limit: int = 100
    page_size: int = 50


@dataclass(frozen=True)
class OrderSettings:
    order_code_prefix: str = "PROD"
    lot_code_prefix: str = "LOT"
    mix_lot_prefix: str = "HG"
    code_retry_attempts: int = 5
    list_default_limit: int = 50
    list_max_limit: int = 200


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    """Root settings object returned by ``get_active_config()``."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    audit: AuditSettings = field(default_factory=AuditSettings)
    orders: OrderSettings = field(default_factory=OrderSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def section_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))
