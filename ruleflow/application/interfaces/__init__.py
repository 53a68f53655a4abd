"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from ruleflow.infrastructure or ruleflow.api.
"""

from ruleflow.application.interfaces.repositories import (
    IEntityStore,
    IEntityWorkflowStateRepository,
    IScheduledActionRepository,
    ITaskRepository,
    IWorkflowExecutionRepository,
    IWorkflowRuleRepository,
)
from ruleflow.application.interfaces.services import (
    IEmailBodyRenderer,
    IEmailQueue,
    INotificationService,
    IPendingNotificationStore,
    IWebhookClient,
)

__all__ = [
    "IEmailBodyRenderer",
    "IEmailQueue",
    "IEntityStore",
    "IEntityWorkflowStateRepository",
    "INotificationService",
    "IPendingNotificationStore",
    "IScheduledActionRepository",
    "ITaskRepository",
    "IWebhookClient",
    "IWorkflowExecutionRepository",
    "IWorkflowRuleRepository",
]
