"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for the tenant id and the workflow engine.
Engines are built per request around that request's session; the rule
snapshots they read live in the process-wide registry on app.state.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.application.use_cases.workflows import WorkflowEngine, get_engine_registry
from ruleflow.core.config import get_settings
from ruleflow.domain.exceptions import TenantRequiredException
from ruleflow.infrastructure.persistence.database import get_db, get_db_transactional
from ruleflow.infrastructure.services import build_workflow_engine


async def get_tenant_id(request: Request) -> str:
    """Resolve tenant ID from the tenant header (X-Tenant-ID by default)."""
    name = get_settings().tenant_header_name
    value = (request.headers.get(name) or "").strip()
    if not value:
        raise TenantRequiredException(name)
    return value


def _engine_for(request: Request, db: AsyncSession, tenant_id: str) -> WorkflowEngine:
    return build_workflow_engine(
        db,
        tenant_id,
        http_client=getattr(request.app.state, "webhook_http_client", None),
        registry=getattr(request.app.state, "engine_registry", None) or get_engine_registry(),
    )


async def get_workflow_engine(
    request: Request,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowEngine:
    """Workflow engine for read operations (rules, executions, scheduled actions)."""
    return _engine_for(request, db, tenant_id)


async def get_workflow_engine_for_write(
    request: Request,
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> WorkflowEngine:
    """Workflow engine for triggers and state changes (one transaction per request)."""
    return _engine_for(request, db, tenant_id)
