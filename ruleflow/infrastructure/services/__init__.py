"""Infrastructure implementations of application service interfaces."""

from ruleflow.infrastructure.services.webhook_client import HttpxWebhookClient
from ruleflow.infrastructure.services.workflow_engine import build_workflow_engine
from ruleflow.infrastructure.services.workflow_template_renderer import (
    WorkflowTemplateRenderer,
)

__all__ = [
    "HttpxWebhookClient",
    "WorkflowTemplateRenderer",
    "build_workflow_engine",
]
