"""Domain entities.

Pure domain models; no ORM or persistence concerns.
"""

from ruleflow.domain.entities.workflow import (
    Action,
    Condition,
    EventTrigger,
    ManualTrigger,
    StatusChangeTrigger,
    TimeElapsedTrigger,
    WorkflowRuleEntity,
    decode_actions,
    decode_conditions,
    decode_trigger,
    encode_config,
)

__all__ = [
    "Action",
    "Condition",
    "EventTrigger",
    "ManualTrigger",
    "StatusChangeTrigger",
    "TimeElapsedTrigger",
    "WorkflowRuleEntity",
    "decode_actions",
    "decode_conditions",
    "decode_trigger",
    "encode_config",
]
