"""
Pytest fixtures for the compounding kernel test suite.

Provides:
- An in-memory SQLite database per test (tables created, immutability
  listeners registered)
- A DeterministicClock and a seeded random source
- A seeded reference catalog (medicines, labs, vehicles, containers,
  stabilities, users)
- Order request builders
- Captured structured logs

Environment Variables:
- DATABASE_URL: PostgreSQL URL for tests marked ``postgres``.  Those tests
  are skipped when it is unset or not PostgreSQL.
"""

import json
import logging
import os
import random
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Callable
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from compounding_kernel.db.engine import build_engine, create_tables, drop_tables
from compounding_kernel.db.immutability import register_immutability_listeners
from compounding_kernel.domain.clock import DeterministicClock
from compounding_kernel.domain.dtos import CreateOrderRequest, MixRequest, PatientInfo
from compounding_kernel.domain.values import ProductionLine
from compounding_kernel.domain.workflow import Role
from compounding_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compounding_kernel.models.catalog import (
    Container,
    Laboratory,
    Medicine,
    MedicinePresentation,
    Stability,
    User,
    Vehicle,
)
from compounding_kernel.services.production_service import ProductionService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compounding_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_order(...)
            logs = captured_logs()
            assert any(r["message"] == "order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compounding_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def postgres_url() -> str | None:
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    register_immutability_listeners()
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


# =============================================================================
# Catalog
# =============================================================================


@dataclass
class SeededCatalog:
    """Ids of the reference rows every service test can rely on."""

    medicine_id: UUID           # 50mg/ml, 2ml x1 vial, STERILE, enabled
    onco_medicine_id: UUID      # 100UI/ml, 5ml x1 vial, ONCO, enabled
    disabled_medicine_id: UUID  # enabled=False
    bare_medicine_id: UUID      # no presentations
    lab_id: UUID
    disabled_lab_id: UUID
    saline_id: UUID             # compatible with ONCO and STERILE
    onco_only_vehicle_id: UUID  # compatible with ONCO only
    bag_id: UUID
    syringe_id: UUID
    auxiliary_id: UUID
    pharmacist_id: UUID
    coordinator_id: UUID
    auditor_id: UUID


def seed_catalog(session: Session) -> SeededCatalog:
    medicine = Medicine(
        name="Cyclophosphamide",
        active_ingredient="cyclophosphamide",
        concentration="50mg/ml",
        route="IV",
        production_line=ProductionLine.STERILE.value,
        enabled=True,
        presentations=[
            MedicinePresentation(position=0, volume=Decimal("2"), unit="ml", count=1, container_type="vial"),
            MedicinePresentation(position=1, volume=Decimal("10"), unit="ml", count=1, container_type="vial"),
        ],
    )
    onco = Medicine(
        name="Interferon",
        active_ingredient="interferon alfa",
        concentration="100UI/ml",
        route="SC",
        production_line=ProductionLine.ONCO.value,
        enabled=True,
        presentations=[
            MedicinePresentation(position=0, volume=Decimal("5"), unit="ml", count=1, container_type="vial"),
        ],
    )
    disabled = Medicine(
        name="Withdrawn",
        active_ingredient="withdrawn",
        concentration="10mg/ml",
        route="IV",
        production_line=ProductionLine.STERILE.value,
        enabled=False,
        presentations=[
            MedicinePresentation(position=0, volume=Decimal("1"), unit="ml", count=1, container_type="ampoule"),
        ],
    )
    bare = Medicine(
        name="Unlisted",
        active_ingredient="unlisted",
        concentration="20mg/ml",
        route="IV",
        production_line=ProductionLine.STERILE.value,
        enabled=True,
    )
    lab = Laboratory(name="Acme Pharma", country="CO", enabled=True)
    disabled_lab = Laboratory(name="Closed Labs", country="CO", enabled=False)
    saline = Vehicle(name="Saline 0.9%", compatible_lines=["ONCO", "STERILE"])
    onco_only = Vehicle(name="Dextrose 5%", compatible_lines=["ONCO"])
    bag = Container(container_type="bag", max_volume=Decimal("250"), material="PVC-free")
    syringe = Container(container_type="syringe", max_volume=Decimal("60"), material="PP")

    users = {
        role: User(name=f"{role.value.title()} User", email=f"{role.value.lower()}@example.org", role=role.value)
        for role in Role
    }

    session.add_all([medicine, onco, disabled, bare, lab, disabled_lab, saline, onco_only, bag, syringe, *users.values()])
    session.flush()

    stabilities = [
        Stability(medicine_id=medicine.id, laboratory_id=lab.id, vehicle_id=saline.id, container_id=bag.id, hours=Decimal("24")),
        Stability(medicine_id=medicine.id, laboratory_id=lab.id, vehicle_id=saline.id, container_id=syringe.id, hours=Decimal("12")),
        Stability(medicine_id=onco.id, laboratory_id=lab.id, vehicle_id=saline.id, container_id=bag.id, hours=Decimal("48")),
        Stability(medicine_id=onco.id, laboratory_id=lab.id, vehicle_id=onco_only.id, container_id=bag.id, hours=Decimal("8")),
        Stability(medicine_id=bare.id, laboratory_id=lab.id, vehicle_id=saline.id, container_id=bag.id, hours=Decimal("24")),
        Stability(medicine_id=disabled.id, laboratory_id=lab.id, vehicle_id=onco_only.id, container_id=bag.id, hours=Decimal("24")),
    ]
    session.add_all(stabilities)
    session.flush()

    return SeededCatalog(
        medicine_id=medicine.id,
        onco_medicine_id=onco.id,
        disabled_medicine_id=disabled.id,
        bare_medicine_id=bare.id,
        lab_id=lab.id,
        disabled_lab_id=disabled_lab.id,
        saline_id=saline.id,
        onco_only_vehicle_id=onco_only.id,
        bag_id=bag.id,
        syringe_id=syringe.id,
        auxiliary_id=users[Role.AUXILIARY].id,
        pharmacist_id=users[Role.PHARMACIST].id,
        coordinator_id=users[Role.COORDINATOR].id,
        auditor_id=users[Role.AUDITOR].id,
    )


@pytest.fixture
def catalog(session) -> SeededCatalog:
    return seed_catalog(session)


# =============================================================================
# Services and request builders
# =============================================================================


@pytest.fixture
def service(session, clock, rng, catalog) -> ProductionService:
    return ProductionService(session, clock=clock, rng=rng)


@pytest.fixture
def mix_request(catalog) -> Callable[..., MixRequest]:
    """Build a valid STERILE mix; override any field by keyword."""

    def _build(**overrides) -> MixRequest:
        values = dict(
            patient=PatientInfo(name="Jane Roe", document="CC-1001", insurer="EPS Salud", diagnosis="C50.9"),
            medicine_id=catalog.medicine_id,
            laboratory_id=catalog.lab_id,
            vehicle_id=catalog.saline_id,
            container_id=catalog.bag_id,
            dose=Decimal("100"),
            dose_unit="mg",
            vehicle_volume=Decimal("50"),
        )
        values.update(overrides)
        return MixRequest(**values)

    return _build


@pytest.fixture
def order_request(catalog, mix_request) -> Callable[..., CreateOrderRequest]:
    """Build a CreateOrderRequest with ``mix_count`` default mixes."""

    def _build(mix_count: int = 1, mixes=None, **overrides) -> CreateOrderRequest:
        values = dict(
            production_line=ProductionLine.STERILE,
            mixes=tuple(mixes) if mixes is not None else tuple(mix_request() for _ in range(mix_count)),
            actor_id=catalog.pharmacist_id,
            actor_role=Role.PHARMACIST,
        )
        values.update(overrides)
        return CreateOrderRequest(**values)

    return _build


@pytest.fixture
def created_order(service, order_request):
    """A persisted order in CREATED with one mix."""
    return service.create_order(order_request())
