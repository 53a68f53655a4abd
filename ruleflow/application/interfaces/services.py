"""Service interfaces (ports) for the application layer.

Protocols define contracts for collaborator services the action handlers
call out to (DIP).
"""

from __future__ import annotations

from typing import Any, Protocol


# Email queue interface
class IEmailQueue(Protocol):
    """Protocol for the outbound email/communications queue."""

    async def enqueue(
        self,
        tenant_id: str,
        *,
        to_address: str,
        subject: str,
        body_text: str,
        body_html: str,
        variables: dict[str, Any],
        source_id: str,
        priority: str = "normal",
    ) -> str | None:
        """Queue a message with source 'workflow'. Returns the queue row id when known."""


# Email body renderer interface
class IEmailBodyRenderer(Protocol):
    """Protocol for turning an interpolated plain-text body into HTML."""

    def render_html(self, body_text: str) -> str:
        """Return escaped HTML for the text body."""


# Internal notification interface
class INotificationService(Protocol):
    """Protocol for creating in-app notifications."""

    async def create_notification(
        self,
        tenant_id: str,
        *,
        user_id: str,
        title: str,
        message: str,
        priority: str,
        source_id: str,
        entity_type: str,
        entity_id: str,
    ) -> None:
        """Create a notification with source 'workflow'."""


# Pending (human-facing) notification store interface
class IPendingNotificationStore(Protocol):
    """Protocol for Slack notifications and suggestions awaiting delivery.

    Implementations are best-effort: a missing or failing store must not raise.
    """

    async def add_slack_notification(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        channel: str,
        message: str,
        mention: str | None,
    ) -> bool:
        """Queue a Slack message. Returns False when it could not be stored."""

    async def add_suggestion(
        self,
        tenant_id: str,
        *,
        rule_id: str,
        entity_type: str,
        entity_id: str,
        channel: str,
        message: str,
        options: list[Any],
    ) -> bool:
        """Queue a suggestion with options. Returns False when it could not be stored."""


# Webhook client interface
class IWebhookClient(Protocol):
    """Protocol for outbound webhook calls."""

    async def send(
        self,
        url: str,
        *,
        method: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> int:
        """Send the JSON payload and return the HTTP status code.

        Network errors propagate; the action dispatcher turns them into failures.
        """
