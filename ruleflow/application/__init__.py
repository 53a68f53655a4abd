"""Application layer: interfaces, services, use cases.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (repos, entity store, email queue, etc.).
"""

from ruleflow.application.interfaces import (
    IEmailBodyRenderer,
    IEmailQueue,
    IEntityStore,
    IEntityWorkflowStateRepository,
    INotificationService,
    IPendingNotificationStore,
    IScheduledActionRepository,
    ITaskRepository,
    IWebhookClient,
    IWorkflowExecutionRepository,
    IWorkflowRuleRepository,
)
from ruleflow.application.services import ActionExecutor, ExecutionLimiter, RuleMatcher
from ruleflow.application.use_cases.workflows import (
    EngineRegistry,
    ScheduledActionProcessor,
    WorkflowEngine,
)

__all__ = [
    "ActionExecutor",
    "EngineRegistry",
    "ExecutionLimiter",
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
    "RuleMatcher",
    "ScheduledActionProcessor",
    "WorkflowEngine",
]
