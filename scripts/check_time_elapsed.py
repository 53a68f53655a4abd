"""Fire time_elapsed workflow rules for entities that have sat in a status too long.

Usage:
    uv run python -m scripts.check_time_elapsed [tenant_id]
If tenant_id is omitted, sweeps every tenant with at least one active rule.
Requires Postgres (DATABASE_URL). Meant to run from cron, e.g. hourly.
Entities are read from the host tables; the status-changed time falls back to
updated_at when a table has no status_changed_at column.
"""

import asyncio
import sys

import httpx

from ruleflow.application.dtos.workflow import TimeElapsedEntity
from ruleflow.core.config import get_settings
from ruleflow.core.request_context import set_tenant_id
from ruleflow.domain.entities.workflow import TimeElapsedTrigger
import ruleflow.infrastructure.persistence.database as database
from ruleflow.infrastructure.persistence.repositories import (
    ENTITY_TABLES,
    EntityRepository,
    WorkflowRuleRepository,
)
from ruleflow.infrastructure.services import build_workflow_engine
from ruleflow.shared.telemetry.logging import setup_logging


async def _candidates(
    entity_repo: EntityRepository, tenant_id: str, watched: dict[str, set[str]], limit: int
) -> list[TimeElapsedEntity]:
    candidates = []
    for entity_type, statuses in watched.items():
        rows = await entity_repo.list_in_statuses(tenant_id, entity_type, sorted(statuses), limit)
        for row in rows:
            candidates.append(
                TimeElapsedEntity(
                    entity_type=entity_type,
                    entity_id=str(row["id"]),
                    status=row["status"],
                    status_changed_at=row.get("status_changed_at") or row.get("updated_at"),
                    entity=row,
                )
            )
    return candidates


async def main() -> None:
    """For each tenant, collect entities in watched statuses and run the sweep."""
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

    total_executions = 0
    async with httpx.AsyncClient(timeout=settings.webhook_timeout_seconds) as http_client:
        for tenant_id in tenant_ids:
            async with database.AsyncSessionLocal() as session:
                async with session.begin():
                    set_tenant_id(tenant_id)
                    await database.set_tenant_context(session, tenant_id)
                    engine = build_workflow_engine(
                        session, tenant_id, http_client=http_client, settings=settings
                    )
                    await engine.load_rules()
                    entity_repo = EntityRepository(session)
                    watched: dict[str, set[str]] = {}
                    for rule in engine.get_active_rules():
                        if not isinstance(rule.trigger, TimeElapsedTrigger):
                            continue
                        for entity_type in rule.entity_types or tuple(ENTITY_TABLES):
                            if entity_repo.supports(entity_type):
                                watched.setdefault(entity_type, set()).add(rule.trigger.status)
                    if not watched:
                        continue
                    candidates = await _candidates(
                        entity_repo, tenant_id, watched, settings.time_elapsed_batch_size
                    )
                    executions = await engine.check_time_elapsed_triggers(candidates)
            total_executions += len(executions)
            if executions:
                print(
                    f"Tenant {tenant_id}: {len(candidates)} candidate(s), "
                    f"{len(executions)} execution(s)"
                )

    await database.dispose_engine()
    print(f"Done. Total executions: {total_executions}")


if __name__ == "__main__":
    asyncio.run(main())
