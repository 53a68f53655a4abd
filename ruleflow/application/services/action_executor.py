"""Runs workflow actions and turns every outcome into an ActionResult.

Handlers report configuration and recipient problems by returning a failed
result. Anything a handler raises (database errors, network errors) is caught
at the dispatch boundary and converted as well, so running a rule's actions
never raises.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ruleflow.application.dtos.workflow import ActionResult
from ruleflow.application.services.template_interpolator import TemplateInterpolator
from ruleflow.domain.entities.workflow import (
    AssignToConfig,
    CreateTaskConfig,
    GenerateReportConfig,
    ScheduleFollowupConfig,
    SendMessageConfig,
    SendNotificationConfig,
    SlackNotifyConfig,
    SuggestActionConfig,
    UpdateFieldConfig,
    UpdateStatusConfig,
    WebhookConfig,
)
from ruleflow.shared.enums import ActionType
from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.datetime import utc_now

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from ruleflow.application.dtos.workflow import ExecutionContext
    from ruleflow.application.interfaces.repositories import (
        IEntityStore,
        IScheduledActionRepository,
        ITaskRepository,
    )
    from ruleflow.application.interfaces.services import (
        IEmailBodyRenderer,
        IEmailQueue,
        INotificationService,
        IPendingNotificationStore,
        IWebhookClient,
    )
    from ruleflow.domain.entities.workflow import Action

logger = get_logger(__name__)

PREVIEW_LENGTH = 100
METADATA_COLUMN = "metadata"

_COLUMN_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _preview(text: str) -> str:
    return text[:PREVIEW_LENGTH]


class ActionExecutor:
    """Dispatches each action kind to its handler.

    Collaborators are optional so that a partially wired executor (tests,
    scripts) still runs; an action whose collaborator is missing fails with a
    descriptive error.
    """

    def __init__(
        self,
        entity_store: IEntityStore,
        *,
        interpolator: TemplateInterpolator | None = None,
        email_queue: IEmailQueue | None = None,
        email_renderer: IEmailBodyRenderer | None = None,
        notification_service: INotificationService | None = None,
        pending_store: IPendingNotificationStore | None = None,
        task_repo: ITaskRepository | None = None,
        scheduled_action_repo: IScheduledActionRepository | None = None,
        webhook_client: IWebhookClient | None = None,
    ) -> None:
        self._entity_store = entity_store
        self._interpolator = interpolator or TemplateInterpolator()
        self._email_queue = email_queue
        self._email_renderer = email_renderer
        self._notification_service = notification_service
        self._pending_store = pending_store
        self._task_repo = task_repo
        self._scheduled_action_repo = scheduled_action_repo
        self._webhook_client = webhook_client
        self._handlers: dict[
            ActionType, Callable[[Action, Any, ExecutionContext], Awaitable[ActionResult]]
        ] = {
            ActionType.SEND_MESSAGE: self._send_message,
            ActionType.SEND_NOTIFICATION: self._send_notification,
            ActionType.SLACK_NOTIFY: self._slack_notify,
            ActionType.SUGGEST_ACTION: self._suggest_action,
            ActionType.SCHEDULE_FOLLOWUP: self._schedule_followup,
            ActionType.UPDATE_STATUS: self._update_status,
            ActionType.UPDATE_FIELD: self._update_field,
            ActionType.CREATE_TASK: self._create_task,
            ActionType.ASSIGN_TO: self._assign_to,
            ActionType.WEBHOOK: self._webhook,
            ActionType.GENERATE_REPORT: self._generate_report,
        }

    async def execute_action(self, action: Action, context: ExecutionContext) -> ActionResult:
        """Run one action. Never raises."""
        handler = self._handlers.get(action.type)
        if handler is None:
            return ActionResult(action, False, error=f"Unknown action type: {action.type}")
        try:
            return await handler(action, action.config, context)
        except Exception as e:
            logger.exception(
                "Workflow action %s failed (tenant_id=%s, rule_id=%s, entity=%s:%s)",
                action.type.value,
                context.tenant_id,
                context.rule_id,
                context.entity_type,
                context.entity_id,
            )
            return ActionResult(action, False, error=str(e) or e.__class__.__name__)

    async def execute_actions(
        self, actions: Sequence[Action], context: ExecutionContext
    ) -> list[ActionResult]:
        """Run actions in order. A failed update_status stops the remaining actions."""
        results: list[ActionResult] = []
        for action in actions:
            result = await self.execute_action(action, context)
            results.append(result)
            if not result.success and action.type == ActionType.UPDATE_STATUS:
                logger.info(
                    "Stopping actions for rule %s after failed status update: %s",
                    context.rule_id,
                    result.error,
                )
                break
        return results

    def _interpolate(self, template: str, context: ExecutionContext) -> str:
        return self._interpolator.interpolate(template, context)

    def _role_user(self, role: str | None, context: ExecutionContext) -> Any:
        """Resolve owner / coordinator role names to the entity's user id columns."""
        if role == "owner":
            return context.entity.get("ownerId")
        if role == "coordinator":
            return context.entity.get("coordinatorId")
        return None

    # -- messaging -----------------------------------------------------------

    async def _send_message(
        self, action: Action, config: SendMessageConfig, context: ExecutionContext
    ) -> ActionResult:
        body = self._interpolate(config.template, context)
        subject = self._interpolate(config.subject, context)

        to_address: Any = None
        if config.to == "contact":
            to_address = context.entity.get("email")
        elif config.to == "assignee":
            to_address = context.entity.get("assigneeEmail")
        elif config.to and "@" in config.to:
            to_address = config.to
        if not to_address:
            return ActionResult(action, False, error="No recipient email address found")
        if self._email_queue is None:
            return ActionResult(action, False, error="Email queue is not configured")

        body_html = self._email_renderer.render_html(body) if self._email_renderer else body
        await self._email_queue.enqueue(
            context.tenant_id,
            to_address=str(to_address),
            subject=subject,
            body_text=body,
            body_html=body_html,
            variables=context.entity,
            source_id=context.rule_id,
        )
        return ActionResult(
            action,
            True,
            result={"channel": config.channel, "to": str(to_address), "subject": subject},
        )

    async def _send_notification(
        self, action: Action, config: SendNotificationConfig, context: ExecutionContext
    ) -> ActionResult:
        title = self._interpolate(config.title, context)
        message = self._interpolate(config.message, context)

        if config.to == "assignee":
            user_id = context.entity.get("assignedTo")
        elif config.to == "owner":
            user_id = context.entity.get("ownerId")
        else:
            user_id = config.to
        if not user_id:
            return ActionResult(action, False, error="No recipient user found")
        if self._notification_service is None:
            return ActionResult(action, False, error="Notification service is not configured")

        await self._notification_service.create_notification(
            context.tenant_id,
            user_id=str(user_id),
            title=title,
            message=message,
            priority=config.priority,
            source_id=context.rule_id,
            entity_type=context.entity_type,
            entity_id=context.entity_id,
        )
        return ActionResult(action, True, result={"to": str(user_id), "title": title})

    async def _slack_notify(
        self, action: Action, config: SlackNotifyConfig, context: ExecutionContext
    ) -> ActionResult:
        message = self._interpolate(config.message, context)
        logger.info("Workflow Slack notification to %s: %s", config.channel, _preview(message))
        stored = False
        if self._pending_store is not None:
            stored = await self._pending_store.add_slack_notification(
                context.tenant_id,
                rule_id=context.rule_id,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                channel=config.channel,
                message=message,
                mention=config.mention,
            )
        return ActionResult(
            action,
            True,
            result={"channel": config.channel, "message": _preview(message), "stored": stored},
        )

    async def _suggest_action(
        self, action: Action, config: SuggestActionConfig, context: ExecutionContext
    ) -> ActionResult:
        message = self._interpolate(config.message, context)
        options = list(config.options)
        stored = False
        if self._pending_store is not None:
            stored = await self._pending_store.add_suggestion(
                context.tenant_id,
                rule_id=context.rule_id,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                channel=config.channel,
                message=message,
                options=options,
            )
        return ActionResult(
            action,
            True,
            result={"message": _preview(message), "options": options, "stored": stored},
        )

    # -- scheduling ----------------------------------------------------------

    async def _schedule_followup(
        self, action: Action, config: ScheduleFollowupConfig, context: ExecutionContext
    ) -> ActionResult:
        if self._scheduled_action_repo is None:
            return ActionResult(action, False, error="Scheduled action store is not configured")
        scheduled_for = utc_now() + timedelta(hours=config.delay_total_hours)
        nested = config.action
        scheduled = await self._scheduled_action_repo.create_scheduled_action(
            context.tenant_id,
            rule_id=context.rule_id,
            execution_id=context.execution_id,
            entity_type=context.entity_type,
            entity_id=context.entity_id,
            action_type=nested.type.value,
            action_config=dict(nested.raw_config),
            scheduled_for=scheduled_for,
            cancel_if=[condition.to_dict() for condition in config.cancel_if],
        )
        return ActionResult(
            action,
            True,
            result={
                "scheduled_action_id": scheduled.id,
                "scheduled_for": scheduled_for.isoformat(),
            },
        )

    # -- entity updates ------------------------------------------------------

    def _unsupported_entity(self, action: Action, context: ExecutionContext) -> ActionResult | None:
        if self._entity_store.supports(context.entity_type):
            return None
        return ActionResult(
            action, False, error=f"No backing table for entity type '{context.entity_type}'"
        )

    async def _update_status(
        self, action: Action, config: UpdateStatusConfig, context: ExecutionContext
    ) -> ActionResult:
        if not config.new_status:
            return ActionResult(action, False, error="No status specified")
        unsupported = self._unsupported_entity(action, context)
        if unsupported:
            return unsupported
        await self._entity_store.update_status(
            context.tenant_id, context.entity_type, context.entity_id, config.new_status
        )
        return ActionResult(action, True, result={"new_status": config.new_status})

    async def _update_field(
        self, action: Action, config: UpdateFieldConfig, context: ExecutionContext
    ) -> ActionResult:
        if not config.field:
            return ActionResult(action, False, error="No field specified")
        path = config.field.split(".")
        if not all(_COLUMN_NAME.match(segment) for segment in path):
            return ActionResult(action, False, error=f"Invalid field name: {config.field}")
        unsupported = self._unsupported_entity(action, context)
        if unsupported:
            return unsupported

        value = config.value
        if isinstance(value, str):
            value = self._interpolate(value, context)
        if len(path) > 1:
            # "metadata.a.b" and "a.b" both address metadata["a"]["b"]
            if path[0] == METADATA_COLUMN:
                path = path[1:]
            await self._entity_store.merge_metadata(
                context.tenant_id, context.entity_type, context.entity_id, path, value
            )
        else:
            await self._entity_store.update_column(
                context.tenant_id, context.entity_type, context.entity_id, config.field, value
            )
        return ActionResult(action, True, result={"field": config.field, "value": value})

    async def _assign_to(
        self, action: Action, config: AssignToConfig, context: ExecutionContext
    ) -> ActionResult:
        if config.role == "round_robin":
            return ActionResult(
                action, False, error="Round-robin assignment is not supported; use userId or a role"
            )
        assignee_id: Any = config.user_id
        if config.role in ("owner", "coordinator"):
            assignee_id = self._role_user(config.role, context)
        if not assignee_id:
            return ActionResult(action, False, error="No assignee found")
        unsupported = self._unsupported_entity(action, context)
        if unsupported:
            return unsupported
        await self._entity_store.assign(
            context.tenant_id, context.entity_type, context.entity_id, str(assignee_id)
        )
        return ActionResult(action, True, result={"assigned_to": str(assignee_id)})

    async def _create_task(
        self, action: Action, config: CreateTaskConfig, context: ExecutionContext
    ) -> ActionResult:
        if self._task_repo is None:
            return ActionResult(action, False, error="Task service is not configured")
        title = self._interpolate(config.title, context)
        description = self._interpolate(config.description, context)
        if config.assign_to in ("owner", "coordinator"):
            assignee_id = self._role_user(config.assign_to, context)
        else:
            assignee_id = config.assign_to
        due_date = (
            utc_now() + timedelta(days=config.due_in_days) if config.due_in_days else None
        )
        task_id = await self._task_repo.create_task(
            context.tenant_id,
            title=title,
            description=description,
            priority=config.priority,
            assigned_to=str(assignee_id) if assignee_id else None,
            due_date=due_date,
            source_ref=context.rule_id,
            project_id=context.entity_id if context.entity_type == "project" else None,
            created_by=(context.user or {}).get("id"),
        )
        return ActionResult(action, True, result={"task_id": task_id, "title": title})

    # -- outbound ------------------------------------------------------------

    async def _webhook(
        self, action: Action, config: WebhookConfig, context: ExecutionContext
    ) -> ActionResult:
        if not config.url:
            return ActionResult(action, False, error="No webhook URL specified")
        if self._webhook_client is None:
            return ActionResult(action, False, error="Webhook client is not configured")

        if config.include_entity:
            payload: dict[str, Any] = {
                "entityType": context.entity_type,
                "entityId": context.entity_id,
                "entity": context.entity,
                "triggerData": context.trigger_data,
                "ruleId": context.rule_id,
            }
        else:
            payload = {
                "entityType": context.entity_type,
                "entityId": context.entity_id,
                "ruleId": context.rule_id,
            }
        headers = {"Content-Type": "application/json"}
        headers.update({str(k): str(v) for k, v in config.headers.items()})

        status_code = await self._webhook_client.send(
            config.url, method=config.method.upper(), headers=headers, payload=payload
        )
        if not 200 <= status_code < 300:
            return ActionResult(action, False, error=f"Webhook returned {status_code}")
        return ActionResult(action, True, result={"status": status_code})

    async def _generate_report(
        self, action: Action, config: GenerateReportConfig, context: ExecutionContext
    ) -> ActionResult:
        logger.info(
            "Workflow report requested: %s for %s (rule_id=%s)",
            config.report_type,
            list(config.recipients),
            context.rule_id,
        )
        return ActionResult(
            action,
            True,
            result={
                "report_type": config.report_type,
                "recipients": list(config.recipients),
                "format": config.format,
            },
        )
