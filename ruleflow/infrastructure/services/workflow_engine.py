"""Builds a WorkflowEngine wired to SQLAlchemy repositories for one session.

Shared by the API dependencies and the cron scripts so both run the same
collaborators. The engine and every repository share ``db``; the caller owns
the transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.application.services.template_interpolator import TemplateInterpolator
from ruleflow.application.use_cases.workflows import WorkflowEngine
from ruleflow.core.config import get_settings
from ruleflow.infrastructure.persistence.repositories import (
    EmailQueueRepository,
    EntityRepository,
    EntityWorkflowStateRepository,
    NotificationRepository,
    PendingNotificationRepository,
    ScheduledActionRepository,
    TaskRepository,
    WorkflowExecutionRepository,
    WorkflowRuleRepository,
)
from ruleflow.infrastructure.services.webhook_client import HttpxWebhookClient
from ruleflow.infrastructure.services.workflow_template_renderer import (
    WorkflowTemplateRenderer,
)

if TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession

    from ruleflow.application.use_cases.workflows import EngineRegistry
    from ruleflow.core.config import Settings


def build_workflow_engine(
    db: AsyncSession,
    tenant_id: str,
    *,
    http_client: httpx.AsyncClient | None = None,
    registry: EngineRegistry | None = None,
    settings: Settings | None = None,
) -> WorkflowEngine:
    """Return an engine for ``tenant_id`` whose repositories all use ``db``.

    Without ``http_client`` the webhook action fails with "not configured".
    """
    settings = settings or get_settings()
    entity_store = EntityRepository(db)
    scheduled_action_repo = ScheduledActionRepository(db)
    action_executor = ActionExecutor(
        entity_store,
        interpolator=TemplateInterpolator(settings.admin_base_url),
        email_queue=EmailQueueRepository(db),
        email_renderer=WorkflowTemplateRenderer(),
        notification_service=NotificationRepository(db),
        pending_store=PendingNotificationRepository(db),
        task_repo=TaskRepository(db),
        scheduled_action_repo=scheduled_action_repo,
        webhook_client=HttpxWebhookClient(http_client) if http_client is not None else None,
    )
    return WorkflowEngine(
        tenant_id,
        rule_repo=WorkflowRuleRepository(db),
        execution_repo=WorkflowExecutionRepository(db),
        state_repo=EntityWorkflowStateRepository(db),
        scheduled_action_repo=scheduled_action_repo,
        entity_store=entity_store,
        action_executor=action_executor,
        registry=registry,
        scheduled_action_batch_size=settings.scheduled_action_batch_size,
    )
