"""
ProductionService -- the kernel's exposed operations.

Responsibility:
    Order creation (validate and calculate every mix, persist the order in
    CREATED, audit CREATE), validate_and_calculate, transitions, order
    reads and listing, and the audit queries.  Wires the validator,
    calculation engine, workflow state machine and audit log around one
    caller-owned session.

Architecture position:
    Kernel > Services -- imperative shell facade.  Outer layers (HTTP,
    CLI) call this class inside ``db.engine.session_scope``.

Invariants enforced:
    - An order is never persisted with a mix that failed validation or
      calculation; creation is all-or-nothing.
    - Order codes are unique; a collision is retried with a fresh code
      inside a savepoint, a bounded number of times.
    - ``mix_count == len(mixes)``; ``calculation_engine_version`` records
      the engine that produced the volumes.

Failure modes:
    - InvalidOrderRequestError: no mixes, bad quantity, unknown production
      line, naive production date, a row the database rejects, or code
      retries exhausted.
    - ForbiddenTransitionError: creator role not admitted to CREATED.
    - DomainValidationError / CalculationError subclasses from the mixes.
    - OrderNotFoundError / IllegalTransitionError from reads and
      transitions.
"""

from __future__ import annotations

import random
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from compounding_kernel.domain.calculation import CALCULATION_ENGINE_VERSION
from compounding_kernel.domain.clock import Clock, SystemClock
from compounding_kernel.domain.codes import CodeGenerator
from compounding_kernel.domain.dtos import (
    ActorIdentity,
    AuditEntry,
    AuditPage,
    CreateOrderRequest,
    EntitySummary,
    MixRequest,
    OrderFilters,
    OrderPage,
    OrderSnapshot,
)
from compounding_kernel.domain.entity_registry import EntityType
from compounding_kernel.domain.values import ProductionLine, ValidationInput, to_decimal
from compounding_kernel.domain.workflow import (
    ORDER_WORKFLOW,
    OrderState,
    Role,
    allowed_roles,
    is_role_allowed,
    parse_role,
)
from compounding_kernel.exceptions import (
    EntityNotFoundError,
    ForbiddenTransitionError,
    InvalidOrderRequestError,
    OrderNotFoundError,
)
from compounding_kernel.logging_config import LogContext, get_logger
from compounding_kernel.models.audit_record import AuditAction
from compounding_kernel.models.production_order import Mix, ProductionOrder
from compounding_kernel.selectors.order_selector import OrderSelector
from compounding_kernel.services.audit_log import AuditLog
from compounding_kernel.services.calculation_engine import CalculationEngine
from compounding_kernel.services.catalog_lookup import CatalogLookup
from compounding_kernel.services.domain_validator import DomainValidator
from compounding_kernel.services.order_repository import OrderRepository
from compounding_kernel.services.workflow_service import WorkflowService

logger = get_logger("services.production")


class ProductionService:
    """
    Contract:
        Every method runs inside the caller's transaction and only flushes.

    Usage:
        with session_scope() as session:
            service = ProductionService(session, clock=SystemClock())
            order = service.create_order(request)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        codes: CodeGenerator | None = None,
        audit_log: AuditLog | None = None,
        repository: OrderRepository | None = None,
        code_retry_attempts: int = 5,
        list_default_limit: int = 50,
        list_max_limit: int = 200,
        history_limit: int = 100,
        actor_actions_limit: int = 100,
        entity_type_limit: int = 100,
        audit_page_size: int = 50,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._codes = codes or CodeGenerator(self._clock, rng=rng)
        self._catalog = CatalogLookup(session)
        self._validator = DomainValidator(self._catalog)
        self._engine = CalculationEngine(self._catalog, self._clock, self._codes)
        self._repository = repository or OrderRepository(session)
        self._audit = audit_log or AuditLog(
            session,
            self._clock,
            self._catalog,
            history_limit=history_limit,
            actor_actions_limit=actor_actions_limit,
            entity_type_limit=entity_type_limit,
            page_size=audit_page_size,
        )
        self._workflow = WorkflowService(self._repository, self._audit, self._clock)
        self._orders = OrderSelector(session)
        self._code_retry_attempts = max(1, code_retry_attempts)
        self._list_default_limit = list_default_limit
        self._list_max_limit = list_max_limit

    @property
    def workflow(self) -> WorkflowService:
        return self._workflow

    @property
    def audit_log(self) -> AuditLog:
        return self._audit

    @property
    def validator(self) -> DomainValidator:
        return self._validator

    @property
    def calculation_engine(self) -> CalculationEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(self, request: CreateOrderRequest) -> OrderSnapshot:
        """
        Validate and calculate every mix, then persist the order in CREATED.

        Postconditions:
            The order, its mixes and a CREATE audit record are flushed in
            the caller's transaction.  CREATED actor and timestamp are set.
        """
        if not request.mixes:
            raise InvalidOrderRequestError("an order needs at least one mix")

        role = parse_role(request.actor_role)
        if not is_role_allowed(ORDER_WORKFLOW.initial_state, role):
            raise ForbiddenTransitionError(
                str(getattr(request.actor_role, "value", request.actor_role)),
                ORDER_WORKFLOW.initial_state.value,
                tuple(sorted(r.value for r in allowed_roles(ORDER_WORKFLOW.initial_state))),
            )

        line = _parse_line(request.production_line)
        if request.production_date is not None and request.production_date.tzinfo is None:
            raise InvalidOrderRequestError("production_date must be timezone-aware")
        now = self._clock.now()
        production_date = request.production_date or now

        with LogContext.bind(actor_id=str(request.actor_id)):
            mixes = [
                self._build_mix(position, mix_request, line, production_date)
                for position, mix_request in enumerate(request.mixes)
            ]

            order = self._insert_with_fresh_code(
                lambda code: ProductionOrder(
                    code=code,
                    production_line=line.value,
                    state=OrderState.CREATED.value,
                    production_date=production_date,
                    mix_count=len(mixes),
                    calculation_engine_version=CALCULATION_ENGINE_VERSION,
                    interpretation_pharmacist=request.interpretation_pharmacist,
                    production_pharmacist=request.production_pharmacist,
                    quality_pharmacist=request.quality_pharmacist,
                    created_at=now,
                    created_by_id=request.actor_id,
                    mixes=list(mixes),
                )
            )

            self._audit.append(
                EntityType.PRODUCTION_ORDER,
                order.id,
                AuditAction.CREATE,
                {
                    "code": order.code,
                    "mix_count": order.mix_count,
                    "production_line": line.value,
                },
                request.actor_id,
            )
            logger.info(
                "order_created",
                extra={
                    "order_id": str(order.id),
                    "code": order.code,
                    "mix_count": order.mix_count,
                    "production_line": line.value,
                },
            )
        return self._orders.get(order.id)

    def _build_mix(
        self,
        position: int,
        mix_request: MixRequest,
        line: ProductionLine,
        production_date: datetime,
    ) -> Mix:
        if mix_request.quantity < 1:
            raise InvalidOrderRequestError(
                f"mix {position}: quantity must be at least 1"
            )

        self._validator.validate_all(
            ValidationInput(
                medicine_id=mix_request.medicine_id,
                laboratory_id=mix_request.laboratory_id,
                vehicle_id=mix_request.vehicle_id,
                container_id=mix_request.container_id,
                production_line=line,
            )
        )
        result = self._engine.calculate_from_catalog(
            mix_request.medicine_id,
            mix_request.laboratory_id,
            mix_request.vehicle_id,
            mix_request.container_id,
            mix_request.dose,
            mix_request.dose_unit,
            vehicle_volume=mix_request.vehicle_volume,
            start=production_date,
        )

        # Validation guarantees these exist
        medicine = self._catalog.find_medicine(mix_request.medicine_id)
        vehicle = self._catalog.find_vehicle(mix_request.vehicle_id)
        container = self._catalog.find_container(mix_request.container_id)

        patient = mix_request.patient
        return Mix(
            position=position,
            patient_name=patient.name,
            patient_document=patient.document,
            patient_insurer=patient.insurer,
            patient_diagnosis=patient.diagnosis,
            medicine_id=medicine.id,
            medicine_name=medicine.name,
            concentration=medicine.concentration,
            route=medicine.route,
            prescribed_dose=to_decimal(mix_request.dose, "dose"),
            dose_unit=mix_request.dose_unit,
            laboratory_id=mix_request.laboratory_id,
            container_id=container.id,
            container_type=container.container_type,
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.name,
            vehicle_volume=to_decimal(mix_request.vehicle_volume, "vehicle volume"),
            extraction_volume=result.extraction_volume,
            total_volume=result.final_volume,
            supply_units=result.supply_units,
            quantity=mix_request.quantity,
            lot_code=self._codes.mix_lot_code(line),
            expires_at=result.expires_at,
        )

    def _insert_with_fresh_code(self, build) -> ProductionOrder:
        """
        Insert ``build(code)``; when ``code`` is already taken retry with a
        new one.  Any other failure rolls the savepoint back and propagates.
        """
        for attempt in range(1, self._code_retry_attempts + 1):
            code = self._codes.order_code()
            order = build(code)
            savepoint = self._session.begin_nested()
            try:
                self._repository.insert_order(order)
            except IntegrityError as exc:
                self._discard(savepoint, order)
                if not self._repository.code_taken(code):
                    raise InvalidOrderRequestError(
                        f"order rejected by storage: {exc.orig}"
                    ) from exc
                logger.warning(
                    "order_code_collision",
                    extra={"code": code, "attempt": attempt},
                )
                continue
            except Exception:
                self._discard(savepoint, order)
                raise
            savepoint.commit()
            return order

        raise InvalidOrderRequestError(
            f"could not allocate a unique order code after "
            f"{self._code_retry_attempts} attempts"
        )

    def _discard(self, savepoint, order: ProductionOrder) -> None:
        savepoint.rollback()
        # Drop the rejected rows so the next attempt starts clean
        for mix in order.mixes:
            if mix in self._session:
                self._session.expunge(mix)
        if order in self._session:
            self._session.expunge(order)

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def validate_and_calculate(
        self, order_id: UUID, actor_id: UUID, actor_role: Role | str
    ) -> OrderSnapshot:
        """
        Re-validate every mix against the current catalog, then advance the
        order to CALCULATED (through VALIDATED when still CREATED).

        Raises:
            DomainValidationError: a mix no longer validates; the order is
                left untouched.
            IllegalTransitionError: the order is past VALIDATED.
        """
        order = self._repository.load_order(order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))

        line = ProductionLine(order.production_line)
        for mix in order.mixes:
            self._validator.validate_all(
                ValidationInput(
                    medicine_id=mix.medicine_id,
                    laboratory_id=mix.laboratory_id,
                    vehicle_id=mix.vehicle_id,
                    container_id=mix.container_id,
                    production_line=line,
                )
            )

        if OrderState(order.state) == OrderState.CREATED:
            self._workflow.validate(order_id, actor_id, actor_role)
        return self._workflow.calculate(order_id, actor_id, actor_role)

    def transition(
        self,
        order_id: UUID,
        target_state: OrderState | str,
        actor_id: UUID,
        actor_role: Role | str,
    ) -> OrderSnapshot:
        return self._workflow.transition(order_id, target_state, actor_id, actor_role)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID) -> OrderSnapshot:
        return self._orders.get(order_id)

    def get_order_by_code(self, code: str) -> OrderSnapshot:
        order_id = self._orders.id_for_code(code)
        if order_id is None:
            raise EntityNotFoundError("ProductionOrder", code)
        return self._orders.get(order_id)

    def list_orders(self, filters: OrderFilters | None = None) -> OrderPage:
        filters = filters or OrderFilters(limit=self._list_default_limit)
        return self._orders.list(filters, max_limit=self._list_max_limit)

    def get_audit_history(
        self, entity_type: EntityType | str, entity_id: UUID
    ) -> list[AuditEntry]:
        return self._audit.history(entity_type, entity_id)

    def get_actor_actions(self, actor_id: UUID) -> list[AuditEntry]:
        return self._audit.actor_actions(actor_id)

    def get_audit_by_entity_type(self, entity_type: EntityType | str) -> list[AuditEntry]:
        return self._audit.by_entity_type(entity_type)

    def list_audit(self, limit: int | None = None, skip: int = 0) -> AuditPage:
        return self._audit.list_all(limit, skip)

    def list_entity_types_with_audit(self) -> list[str]:
        return self._audit.entity_types_with_audit()

    def list_actors_with_audit(self) -> list[ActorIdentity]:
        return self._audit.actors_with_audit()

    def list_entities_with_audit(self, entity_type: EntityType | str) -> list[EntitySummary]:
        return self._audit.entities_with_audit(entity_type)


def _parse_line(value: ProductionLine | str) -> ProductionLine:
    try:
        return ProductionLine(value)
    except ValueError as exc:
        allowed = ", ".join(line.value for line in ProductionLine)
        raise InvalidOrderRequestError(
            f"unknown production line {value!r} (expected one of {allowed})"
        ) from exc
