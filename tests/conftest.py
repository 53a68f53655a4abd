"""Pytest configuration and fixtures for ruleflow.

Uses ruleflow.main:app for HTTP tests and ruleflow.infrastructure.persistence.database
for DB-dependent fixtures. Unit tests run the engine against the in-memory
repositories from tests.fakes.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ruleflow.application.services.action_executor import ActionExecutor
from ruleflow.application.use_cases.workflows import EngineRegistry, WorkflowEngine
from ruleflow.infrastructure.persistence import database
from ruleflow.main import app
from tests.fakes import (
    TENANT,
    FakeEmailQueue,
    FakeEntityStore,
    FakeExecutionRepository,
    FakeRuleRepository,
    FakeScheduledActionRepository,
    FakeStateRepository,
)


@pytest.fixture
def rule_repo() -> FakeRuleRepository:
    return FakeRuleRepository()


@pytest.fixture
def execution_repo() -> FakeExecutionRepository:
    return FakeExecutionRepository()


@pytest.fixture
def state_repo() -> FakeStateRepository:
    return FakeStateRepository()


@pytest.fixture
def scheduled_action_repo() -> FakeScheduledActionRepository:
    return FakeScheduledActionRepository()


@pytest.fixture
def entity_store() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture
def email_queue() -> FakeEmailQueue:
    return FakeEmailQueue()


@pytest.fixture
def action_executor(entity_store, scheduled_action_repo, email_queue) -> ActionExecutor:
    return ActionExecutor(
        entity_store,
        email_queue=email_queue,
        scheduled_action_repo=scheduled_action_repo,
    )


@pytest.fixture
def engine(
    rule_repo, execution_repo, state_repo, scheduled_action_repo, entity_store, action_executor
) -> WorkflowEngine:
    """Engine over the in-memory repositories with its own (empty) registry."""
    return WorkflowEngine(
        TENANT,
        rule_repo=rule_repo,
        execution_repo=execution_repo,
        state_repo=state_repo,
        scheduled_action_repo=scheduled_action_repo,
        entity_store=entity_store,
        action_executor=action_executor,
        registry=EngineRegistry(),
    )


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session() -> AsyncSession:
    """Database session for repository/integration tests. Rolls back after test.

    Requires DATABASE_URL and an up-to-date schema (alembic upgrade head).
    Skips when Postgres is not configured. Use @pytest.mark.requires_db to mark
    tests that need this fixture; run without DB via: pytest -m 'not requires_db'.
    """
    database._ensure_engine()
    if database.AsyncSessionLocal is None:
        pytest.skip(
            "Postgres not configured: set DATABASE_URL, then run: alembic upgrade head"
        )
    async with database.AsyncSessionLocal() as session:
        yield session
        await session.rollback()
