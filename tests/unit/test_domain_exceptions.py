"""Tests for domain exceptions (error_code, message, details)."""

from ruleflow.domain.exceptions import (
    InactiveRuleException,
    InvalidExecutionStateException,
    ResourceNotFoundException,
    RuleConfigurationException,
    RuleflowException,
    SqlNotConfiguredException,
    TenantRequiredException,
    ValidationException,
)


def test_ruleflow_exception_default_error_code() -> None:
    """Base RuleflowException uses class name as error_code when not provided."""
    exc = RuleflowException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "RuleflowException"
    assert exc.details == {}


def test_ruleflow_exception_to_dict() -> None:
    exc = RuleflowException("Oops", error_code="CUSTOM", details={"key": "value"})
    assert exc.to_dict() == {"error": "CUSTOM", "message": "Oops", "details": {"key": "value"}}


def test_validation_exception() -> None:
    """ValidationException sets VALIDATION_ERROR and optional field in details."""
    exc = ValidationException("Invalid format", field="entity_type")
    assert exc.error_code == "VALIDATION_ERROR"
    assert exc.details == {"field": "entity_type"}


def test_resource_not_found_exception() -> None:
    exc = ResourceNotFoundException("workflow_rule", "r1")
    assert exc.error_code == "RESOURCE_NOT_FOUND"
    assert exc.message == "workflow_rule not found: r1"
    assert exc.details == {"resource_type": "workflow_rule", "resource_id": "r1"}


def test_invalid_execution_state_exception() -> None:
    exc = InvalidExecutionStateException(
        "s1", "executed", "pending", resource_type="scheduled_action"
    )
    assert exc.error_code == "INVALID_EXECUTION_STATE"
    assert exc.message == "scheduled_action s1 is executed, expected pending"


def test_inactive_rule_exception() -> None:
    exc = InactiveRuleException("r1")
    assert exc.error_code == "INACTIVE_RULE"
    assert exc.message == "Cannot manually trigger inactive rule"


def test_rule_configuration_exception() -> None:
    exc = RuleConfigurationException("r1", "actions must be a list")
    assert exc.error_code == "RULE_CONFIGURATION_ERROR"
    assert exc.details["reason"] == "actions must be a list"


def test_sql_not_configured_and_tenant_required() -> None:
    assert SqlNotConfiguredException().error_code == "SERVICE_UNAVAILABLE"
    exc = TenantRequiredException("X-Tenant-ID")
    assert exc.error_code == "TENANT_REQUIRED"
    assert "X-Tenant-ID" in exc.message
