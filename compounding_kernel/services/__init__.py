"""Kernel services: validator, calculation engine, workflow, audit log."""

from compounding_kernel.services.audit_log import AuditLog
from compounding_kernel.services.calculation_engine import CalculationEngine
from compounding_kernel.services.catalog_lookup import CatalogLookup
from compounding_kernel.services.domain_validator import DomainValidator
from compounding_kernel.services.order_repository import OrderRepository
from compounding_kernel.services.production_service import ProductionService
from compounding_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AuditLog",
    "CalculationEngine",
    "CatalogLookup",
    "DomainValidator",
    "OrderRepository",
    "ProductionService",
    "WorkflowService",
]
