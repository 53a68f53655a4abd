"""Domain layer: rule entities and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from ruleflow.domain.entities import (
    Action,
    Condition,
    WorkflowRuleEntity,
)
from ruleflow.domain.exceptions import (
    InactiveRuleException,
    InvalidExecutionStateException,
    ResourceNotFoundException,
    RuleConfigurationException,
    RuleflowException,
    SqlNotConfiguredException,
    TenantRequiredException,
    ValidationException,
)

__all__ = [
    # Entities
    "Action",
    "Condition",
    "WorkflowRuleEntity",
    # Exceptions
    "InactiveRuleException",
    "InvalidExecutionStateException",
    "ResourceNotFoundException",
    "RuleConfigurationException",
    "RuleflowException",
    "SqlNotConfiguredException",
    "TenantRequiredException",
    "ValidationException",
]
