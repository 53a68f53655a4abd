"""Workflow rule domain model.

A rule reads "when <trigger> happens and <conditions> hold, run <actions>".
Stored rule JSON (trigger config, condition list, action list) is decoded once,
when a tenant's rules are loaded, into the immutable types below. Matchers,
the evaluator and action handlers only ever see these typed values.

Rule authors write config keys in camelCase (``newStatus``, ``delayHours``);
the typed configs expose them as snake_case attributes.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, ClassVar, TypeVar

from ruleflow.domain.exceptions import RuleConfigurationException
from ruleflow.shared.enums import ActionType, TriggerType

_KINDS: dict[str, tuple[type, ...]] = {
    "str": (str,),
    "number": (int, float),
    "bool": (bool,),
    "list": (list, tuple),
    "dict": (dict,),
}


def _config_field(key: str, kind: str | None = None, default: Any = None) -> Any:
    """Declare a config attribute read from ``key`` in the stored JSON."""
    if isinstance(default, dict):
        return field(default_factory=dict, metadata={"key": key, "kind": kind})
    return field(default=default, metadata={"key": key, "kind": kind})


def _matches_kind(value: Any, kind: str) -> bool:
    if kind == "number" and isinstance(value, bool):
        return False
    return isinstance(value, _KINDS[kind])


ConfigType = TypeVar("ConfigType")


def _decode_config(cls: type[ConfigType], raw: Any, context: str) -> ConfigType:
    """Build a typed config from a stored dict, checking declared value kinds.

    Missing and null keys fall back to the dataclass default. Presence of
    semantically required keys (a webhook url, a new status) is checked by the
    action handlers so that a missing value becomes a failed action result.

    Raises:
        ValueError: If the config is not an object or a value has the wrong kind.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"{context} config must be an object")
    values: dict[str, Any] = {}
    for config_field in fields(cls):  # type: ignore[arg-type]
        key = config_field.metadata.get("key")
        if key is None or raw.get(key) is None:
            continue
        value = raw[key]
        kind = config_field.metadata.get("kind")
        if kind is not None and not _matches_kind(value, kind):
            raise ValueError(f"{context}.{key} must be a {kind}")
        if isinstance(value, list):
            value = tuple(value)
        values[config_field.name] = value
    return cls(**values)


def encode_config(config: Any) -> dict[str, Any]:
    """Inverse of _decode_config: the typed config back in its stored JSON shape."""
    encoded: dict[str, Any] = {}
    for config_field in fields(config):
        key = config_field.metadata.get("key")
        if key is None:
            continue
        value = getattr(config, config_field.name)
        encoded[key] = list(value) if isinstance(value, tuple) else value
    return encoded


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Condition:
    """A single predicate: ``<field> <operator> <value>``.

    The operator is kept as a plain string; an operator the evaluator does not
    know simply evaluates to false.
    """

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Condition":
        if not isinstance(raw, dict):
            raise ValueError("condition must be an object")
        field_path = raw.get("field")
        operator = raw.get("operator")
        if not isinstance(field_path, str) or not field_path:
            raise ValueError("condition.field must be a non-empty string")
        if not isinstance(operator, str) or not operator:
            raise ValueError("condition.operator must be a non-empty string")
        return cls(field=field_path, operator=operator, value=raw.get("value"))

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


def decode_conditions(raw: Any) -> tuple[Condition, ...]:
    """Decode a stored condition list (None means no conditions)."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("conditions must be a list")
    return tuple(Condition.from_dict(item) for item in raw)


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatusChangeTrigger:
    """Fires on a status transition. Empty/absent sets match any status."""

    trigger_type: ClassVar[TriggerType] = TriggerType.STATUS_CHANGE

    from_statuses: tuple[str, ...] = _config_field("from", "list", ())
    to_statuses: tuple[str, ...] = _config_field("to", "list", ())


@dataclass(frozen=True)
class TimeElapsedTrigger:
    """Fires when an entity has sat in ``status`` for hours + 24 * days."""

    trigger_type: ClassVar[TriggerType] = TriggerType.TIME_ELAPSED

    status: str | None = _config_field("status", "str")
    hours: float = _config_field("hours", "number", 0)
    days: float = _config_field("days", "number", 0)

    @property
    def threshold_hours(self) -> float:
        return self.hours + self.days * 24


@dataclass(frozen=True)
class EventTrigger:
    """Fires on a named domain event."""

    trigger_type: ClassVar[TriggerType] = TriggerType.EVENT

    event_type: str | None = _config_field("eventType", "str")


@dataclass(frozen=True)
class ManualTrigger:
    """Only fires when a caller triggers the rule by id."""

    trigger_type: ClassVar[TriggerType] = TriggerType.MANUAL


TriggerConfig = StatusChangeTrigger | TimeElapsedTrigger | EventTrigger | ManualTrigger

_TRIGGER_CONFIGS: dict[TriggerType, type] = {
    TriggerType.STATUS_CHANGE: StatusChangeTrigger,
    TriggerType.TIME_ELAPSED: TimeElapsedTrigger,
    TriggerType.EVENT: EventTrigger,
    TriggerType.MANUAL: ManualTrigger,
}


def decode_trigger(trigger_type: str, raw: Any) -> TriggerConfig:
    """Decode a stored trigger config for the rule's trigger type.

    A ``type`` key inside the config is optional; when present it must agree
    with the rule's trigger type.
    """
    try:
        kind = TriggerType(trigger_type)
    except ValueError:
        raise ValueError(f"unknown trigger type {trigger_type!r}") from None
    if isinstance(raw, dict) and raw.get("type") not in (None, kind.value):
        raise ValueError(f"trigger_config.type {raw.get('type')!r} does not match {kind.value!r}")
    return _decode_config(_TRIGGER_CONFIGS[kind], raw, "trigger_config")


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendMessageConfig:
    channel: str = _config_field("channel", "str", "email")
    template: str = _config_field("template", "str", "")
    subject: str = _config_field("subject", "str", "")
    to: str | None = _config_field("to", "str")


@dataclass(frozen=True)
class SendNotificationConfig:
    to: str | None = _config_field("to", "str")
    title: str = _config_field("title", "str", "")
    message: str = _config_field("message", "str", "")
    priority: str = _config_field("priority", "str", "normal")


@dataclass(frozen=True)
class SlackNotifyConfig:
    channel: str = _config_field("channel", "str", "#general")
    message: str = _config_field("message", "str", "")
    mention: str | None = _config_field("mention", "str")


@dataclass(frozen=True)
class SuggestActionConfig:
    channel: str = _config_field("channel", "str", "#ops")
    message: str = _config_field("message", "str", "")
    options: tuple[Any, ...] = _config_field("options", "list", ())


@dataclass(frozen=True)
class ScheduleFollowupConfig:
    """Deferred action: run ``action`` after the delay unless ``cancel_if`` holds."""

    action: "Action"
    delay_hours: float = 0
    delay_days: float = 0
    cancel_if: tuple[Condition, ...] = ()

    @property
    def delay_total_hours(self) -> float:
        return self.delay_hours + self.delay_days * 24


@dataclass(frozen=True)
class UpdateStatusConfig:
    new_status: str | None = _config_field("newStatus", "str")


@dataclass(frozen=True)
class UpdateFieldConfig:
    field: str | None = _config_field("field", "str")
    value: Any = _config_field("value")


@dataclass(frozen=True)
class CreateTaskConfig:
    title: str = _config_field("title", "str", "")
    description: str = _config_field("description", "str", "")
    priority: str = _config_field("priority", "str", "medium")
    assign_to: str | None = _config_field("assignTo", "str")
    due_in_days: float | None = _config_field("dueInDays", "number")


@dataclass(frozen=True)
class AssignToConfig:
    user_id: str | None = _config_field("userId", "str")
    role: str | None = _config_field("role", "str")


@dataclass(frozen=True)
class WebhookConfig:
    url: str | None = _config_field("url", "str")
    method: str = _config_field("method", "str", "POST")
    headers: dict[str, Any] = _config_field("headers", "dict", {})
    include_entity: bool = _config_field("includeEntity", "bool", False)


@dataclass(frozen=True)
class GenerateReportConfig:
    report_type: str | None = _config_field("reportType", "str")
    recipients: tuple[Any, ...] = _config_field("recipients", "list", ())
    format: str = _config_field("format", "str", "pdf")


ActionConfig = (
    SendMessageConfig
    | SendNotificationConfig
    | SlackNotifyConfig
    | SuggestActionConfig
    | ScheduleFollowupConfig
    | UpdateStatusConfig
    | UpdateFieldConfig
    | CreateTaskConfig
    | AssignToConfig
    | WebhookConfig
    | GenerateReportConfig
)

_ACTION_CONFIGS: dict[ActionType, type] = {
    ActionType.SEND_MESSAGE: SendMessageConfig,
    ActionType.SEND_NOTIFICATION: SendNotificationConfig,
    ActionType.SLACK_NOTIFY: SlackNotifyConfig,
    ActionType.SUGGEST_ACTION: SuggestActionConfig,
    ActionType.UPDATE_STATUS: UpdateStatusConfig,
    ActionType.UPDATE_FIELD: UpdateFieldConfig,
    ActionType.CREATE_TASK: CreateTaskConfig,
    ActionType.ASSIGN_TO: AssignToConfig,
    ActionType.WEBHOOK: WebhookConfig,
    ActionType.GENERATE_REPORT: GenerateReportConfig,
}


@dataclass(frozen=True)
class Action:
    """One side effect of a rule. ``raw_config`` is the config as stored."""

    type: ActionType
    config: ActionConfig
    raw_config: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: Any) -> "Action":
        if not isinstance(raw, dict):
            raise ValueError("action must be an object")
        try:
            action_type = ActionType(raw.get("type"))
        except ValueError:
            raise ValueError(f"unknown action type {raw.get('type')!r}") from None
        raw_config = raw.get("config") or {}
        if not isinstance(raw_config, dict):
            raise ValueError(f"{action_type.value} config must be an object")
        if action_type == ActionType.SCHEDULE_FOLLOWUP:
            config: ActionConfig = _decode_followup(raw_config)
        else:
            config = _decode_config(_ACTION_CONFIGS[action_type], raw_config, action_type.value)
        return cls(type=action_type, config=config, raw_config=dict(raw_config))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "config": dict(self.raw_config)}


def _decode_followup(raw: dict[str, Any]) -> ScheduleFollowupConfig:
    nested = raw.get("action")
    if nested is None:
        raise ValueError("schedule_followup requires a nested action")
    values: dict[str, Any] = {"action": Action.from_dict(nested)}
    for key, name in (("delayHours", "delay_hours"), ("delayDays", "delay_days")):
        if raw.get(key) is None:
            continue
        if not _matches_kind(raw[key], "number"):
            raise ValueError(f"schedule_followup.{key} must be a number")
        values[name] = raw[key]
    values["cancel_if"] = decode_conditions(raw.get("cancelIf"))
    return ScheduleFollowupConfig(**values)


def decode_actions(raw: Any) -> tuple[Action, ...]:
    """Decode a stored action list (None means no actions)."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("actions must be a list")
    return tuple(Action.from_dict(item) for item in raw)


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


def _positive_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    return value if value > 0 else None


@dataclass(frozen=True)
class WorkflowRuleEntity:
    """Immutable, fully decoded workflow rule.

    ``config_error`` is set when the stored JSON could not be decoded; such a
    rule is always inactive and carries no conditions or actions.
    """

    id: str
    tenant_id: str
    name: str
    trigger: TriggerConfig
    description: str | None = None
    is_active: bool = True
    priority: int = 10
    conditions: tuple[Condition, ...] = ()
    actions: tuple[Action, ...] = ()
    cooldown_hours: float | None = None
    max_executions: int | None = None
    requires_approval: bool = False
    approver_role: str | None = None
    entity_types: tuple[str, ...] = ()
    created_at: datetime | None = None
    config_error: str | None = None

    @property
    def trigger_type(self) -> TriggerType:
        return self.trigger.trigger_type

    def applies_to(self, entity_type: str) -> bool:
        """Return whether the rule targets ``entity_type`` (no types means all)."""
        return not self.entity_types or entity_type in self.entity_types

    @classmethod
    def decode(
        cls,
        *,
        id: str,
        tenant_id: str,
        name: str,
        trigger_type: str,
        trigger_config: Any,
        conditions: Any,
        actions: Any,
        entity_types: Any = None,
        cooldown_hours: Any = None,
        max_executions: Any = None,
        **attributes: Any,
    ) -> "WorkflowRuleEntity":
        """Decode a stored rule into a typed entity.

        Non-positive cooldown and max-execution values mean "no limit".

        Raises:
            RuleConfigurationException: If any part of the stored JSON is malformed.
        """
        try:
            trigger = decode_trigger(trigger_type, trigger_config)
            decoded_conditions = decode_conditions(conditions)
            decoded_actions = decode_actions(actions)
            if entity_types is not None and not isinstance(entity_types, list):
                raise ValueError("entity_types must be a list")
        except ValueError as exc:
            raise RuleConfigurationException(id, str(exc)) from exc
        return cls(
            id=id,
            tenant_id=tenant_id,
            name=name,
            trigger=trigger,
            conditions=decoded_conditions,
            actions=decoded_actions,
            entity_types=tuple(entity_types or ()),
            cooldown_hours=_positive_or_none(cooldown_hours),
            max_executions=_positive_or_none(max_executions),
            **attributes,
        )

    @classmethod
    def invalid(
        cls,
        *,
        id: str,
        tenant_id: str,
        name: str,
        error: str,
        **attributes: Any,
    ) -> "WorkflowRuleEntity":
        """Build the inactive placeholder for a rule whose JSON did not decode."""
        attributes.pop("is_active", None)
        return cls(
            id=id,
            tenant_id=tenant_id,
            name=name,
            trigger=ManualTrigger(),
            is_active=False,
            config_error=error,
            **attributes,
        )
