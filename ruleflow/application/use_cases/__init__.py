"""Application use cases: one entry point per workflow."""

from ruleflow.application.use_cases.workflows import (
    EngineRegistry,
    ScheduledActionProcessor,
    WorkflowEngine,
    get_engine_registry,
)

__all__ = [
    "EngineRegistry",
    "ScheduledActionProcessor",
    "WorkflowEngine",
    "get_engine_registry",
]
