"""Outbound webhook client for the workflow webhook action."""

from __future__ import annotations

from typing import Any

import httpx

from ruleflow.shared.telemetry.logging import get_logger
from ruleflow.shared.utils.serialization import to_jsonable

logger = get_logger(__name__)


class HttpxWebhookClient:
    """IWebhookClient over a shared httpx.AsyncClient (created in the app lifespan).

    Transport errors propagate to the action dispatcher, which records them
    as a failed action.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(
        self,
        url: str,
        *,
        method: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> int:
        response = await self._client.request(
            method, url, headers=headers, json=to_jsonable(payload)
        )
        logger.info("Workflow webhook %s %s returned %d", method, url, response.status_code)
        return response.status_code
