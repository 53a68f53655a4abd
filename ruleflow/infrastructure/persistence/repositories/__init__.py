"""Persistence repositories. Re-exports for dependency injection."""

from ruleflow.infrastructure.persistence.repositories.base import BaseRepository
from ruleflow.infrastructure.persistence.repositories.email_queue_repo import (
    EmailQueueRepository,
)
from ruleflow.infrastructure.persistence.repositories.entity_repo import (
    ENTITY_TABLES,
    EntityRepository,
)
from ruleflow.infrastructure.persistence.repositories.entity_workflow_state_repo import (
    EntityWorkflowStateRepository,
)
from ruleflow.infrastructure.persistence.repositories.notification_repo import (
    NotificationRepository,
)
from ruleflow.infrastructure.persistence.repositories.pending_notification_repo import (
    PendingNotificationRepository,
)
from ruleflow.infrastructure.persistence.repositories.scheduled_action_repo import (
    ScheduledActionRepository,
)
from ruleflow.infrastructure.persistence.repositories.task_repo import TaskRepository
from ruleflow.infrastructure.persistence.repositories.workflow_repo import (
    WorkflowExecutionRepository,
    WorkflowRuleRepository,
)

__all__ = [
    "BaseRepository",
    "ENTITY_TABLES",
    "EmailQueueRepository",
    "EntityRepository",
    "EntityWorkflowStateRepository",
    "NotificationRepository",
    "PendingNotificationRepository",
    "ScheduledActionRepository",
    "TaskRepository",
    "WorkflowExecutionRepository",
    "WorkflowRuleRepository",
]
