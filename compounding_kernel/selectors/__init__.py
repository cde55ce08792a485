"""Read-only query selectors returning frozen DTOs."""

from compounding_kernel.selectors.audit_selector import AuditSelector
from compounding_kernel.selectors.base import BaseSelector
from compounding_kernel.selectors.order_selector import OrderSelector

__all__ = ["AuditSelector", "BaseSelector", "OrderSelector"]
