"""
Bridges from settings to kernel objects.

The kernel never imports this package; these helpers translate
``KernelSettings`` into the plain constructor arguments kernel classes take.
"""

from __future__ import annotations

import random

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from compounding_config.schema import KernelSettings
from compounding_kernel.db.engine import init_engine_from_url
from compounding_kernel.db.immutability import register_immutability_listeners
from compounding_kernel.domain.clock import Clock, SystemClock
from compounding_kernel.domain.codes import CodeGenerator
from compounding_kernel.logging_config import configure_logging
from compounding_kernel.services.production_service import ProductionService


def engine_from_settings(settings: KernelSettings) -> Engine:
    """Configure logging, switch on ORM immutability, then build the engine."""
    db = settings.database
    configure_logging(level=settings.logging.level)
    register_immutability_listeners()
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )


def code_generator_from_settings(
    settings: KernelSettings,
    clock: Clock,
    rng: random.Random | None = None,
) -> CodeGenerator:
    orders = settings.orders
    return CodeGenerator(
        clock,
        rng=rng,
        order_prefix=orders.order_code_prefix,
        lot_prefix=orders.lot_code_prefix,
        mix_lot_prefix=orders.mix_lot_prefix,
    )


def production_service_from_settings(
    session: Session,
    settings: KernelSettings,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> ProductionService:
    clock = clock or SystemClock()
    return ProductionService(
        session,
        clock=clock,
        codes=code_generator_from_settings(settings, clock, rng),
        code_retry_attempts=settings.orders.code_retry_attempts,
        list_default_limit=settings.orders.list_default_limit,
        list_max_limit=settings.orders.list_max_limit,
        history_limit=settings.audit.history_limit,
        actor_actions_limit=settings.audit.actor_actions_limit,
        entity_type_limit=settings.audit.entity_type_limit,
        audit_page_size=settings.audit.page_size,
    )
