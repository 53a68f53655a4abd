"""Run due scheduled (follow-up) workflow actions.

Usage:
    uv run python -m scripts.process_scheduled_actions [tenant_id]
If tenant_id is omitted, processes every tenant with at least one active rule.
Requires Postgres (DATABASE_URL). Meant to run from cron every few minutes.
"""

import asyncio
import sys

import httpx

from ruleflow.core.config import get_settings
from ruleflow.core.request_context import set_tenant_id
import ruleflow.infrastructure.persistence.database as database
from ruleflow.infrastructure.persistence.repositories import WorkflowRuleRepository
from ruleflow.infrastructure.services import build_workflow_engine
from ruleflow.shared.telemetry.logging import setup_logging


async def main() -> None:
    """For each tenant, execute or cancel its due scheduled actions."""
    setup_logging()
    settings = get_settings()
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        print("AsyncSessionLocal not configured (set DATABASE_URL)", file=sys.stderr)
        sys.exit(1)

    tenant_filter = sys.argv[1] if len(sys.argv) > 1 else None
    if tenant_filter:
        tenant_ids = [tenant_filter]
    else:
        async with database.AsyncSessionLocal() as session:
            async with session.begin():
                tenant_ids = await WorkflowRuleRepository(session).get_tenant_ids_with_active_rules()

    totals = {"processed": 0, "executed": 0, "cancelled": 0, "failed": 0, "skipped": 0}
    async with httpx.AsyncClient(timeout=settings.webhook_timeout_seconds) as http_client:
        for tenant_id in tenant_ids:
            async with database.AsyncSessionLocal() as session:
                async with session.begin():
                    set_tenant_id(tenant_id)
                    await database.set_tenant_context(session, tenant_id)
                    engine = build_workflow_engine(
                        session, tenant_id, http_client=http_client, settings=settings
                    )
                    summary = await engine.process_scheduled_actions()
            for key, value in summary.to_dict().items():
                totals[key] += value
            if summary.processed:
                print(f"Tenant {tenant_id}: {summary.to_dict()}")

    await database.dispose_engine()
    print(f"Done. Totals: {totals}")


if __name__ == "__main__":
    asyncio.run(main())
