"""Domain exceptions for the ruleflow application.

Defines domain-level exceptions that represent caller misuse or business
rule violations. Action-level failures are never raised; they are returned
as structured ActionResult values. Presentation layer maps these
exceptions to HTTP responses in exception handlers.
"""

from typing import Any


class RuleflowException(Exception):
    """Base exception for all ruleflow application errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging. Presentation layer maps
    these to HTTP responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the HTTP exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(RuleflowException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(RuleflowException):
    """Raised when a requested resource (rule, execution, scheduled action) is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'workflow_rule', 'workflow_execution').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidExecutionStateException(RuleflowException):
    """Raised when an execution or scheduled action is not in the state an operation requires."""

    def __init__(
        self,
        resource_id: str,
        current: str,
        expected: str,
        resource_type: str = "workflow_execution",
    ) -> None:
        super().__init__(
            f"{resource_type} {resource_id} is {current}, expected {expected}",
            "INVALID_EXECUTION_STATE",
            {
                "resource_type": resource_type,
                "resource_id": resource_id,
                "current": current,
                "expected": expected,
            },
        )


class InactiveRuleException(RuleflowException):
    """Raised when an inactive rule is triggered manually without bypass."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(
            "Cannot manually trigger inactive rule",
            "INACTIVE_RULE",
            {"rule_id": rule_id},
        )


class RuleConfigurationException(RuleflowException):
    """Raised when stored rule JSON cannot be decoded into a typed rule."""

    def __init__(self, rule_id: str, reason: str) -> None:
        """Initialize with the offending rule and the decode failure.

        Args:
            rule_id: Rule whose trigger, condition or action config is malformed.
            reason: Human-readable decode failure.
        """
        super().__init__(
            f"Invalid configuration for rule {rule_id}: {reason}",
            "RULE_CONFIGURATION_ERROR",
            {"rule_id": rule_id, "reason": reason},
        )


class SqlNotConfiguredException(RuleflowException):
    """Raised when an operation requires Postgres but DATABASE_URL is not configured."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )


class TenantRequiredException(RuleflowException):
    """Raised when a tenant-scoped operation is called without a tenant id."""

    def __init__(self, header_name: str) -> None:
        super().__init__(
            f"Missing required header: {header_name}",
            "TENANT_REQUIRED",
            {"header": header_name},
        )
