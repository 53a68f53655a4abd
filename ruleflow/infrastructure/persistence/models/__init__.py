"""Persistence models: ORM entities and mixins."""

from ruleflow.infrastructure.persistence.models.mixins import (
    AuditedMultiTenantModel,
    CuidMixin,
    MultiTenantModel,
    TenantMixin,
    TimestampMixin,
    UserAuditMixin,
)
from ruleflow.infrastructure.persistence.models.workflow import (
    EntityWorkflowState,
    ScheduledAction,
    WorkflowExecution,
    WorkflowRule,
)

__all__ = [
    "AuditedMultiTenantModel",
    "CuidMixin",
    "MultiTenantModel",
    "TenantMixin",
    "TimestampMixin",
    "UserAuditMixin",
    "EntityWorkflowState",
    "ScheduledAction",
    "WorkflowExecution",
    "WorkflowRule",
]
