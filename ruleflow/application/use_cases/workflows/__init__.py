"""Workflow use cases: rule engine, per-tenant rule registry, scheduled actions."""

from ruleflow.application.use_cases.workflows.engine_registry import (
    EngineRegistry,
    get_engine_registry,
)
from ruleflow.application.use_cases.workflows.scheduled_actions import ScheduledActionProcessor
from ruleflow.application.use_cases.workflows.workflow_engine import WorkflowEngine

__all__ = [
    "EngineRegistry",
    "ScheduledActionProcessor",
    "WorkflowEngine",
    "get_engine_registry",
]
