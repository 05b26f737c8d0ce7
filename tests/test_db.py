"""Integration tests for the database persistence layer.

Tests the SQLAlchemy models, repositories and stores, and runs the execution
service over them using an async SQLite in-memory database.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_approvals.core.models import NodeExecution, Task, TaskAssignee, WorkflowInstance
from litestar_approvals.core.types import ApprovalType, Decision, InstanceStatus, NodeType, TaskStatus, TaskType
from litestar_approvals.db.models import TaskAssigneeModel, WorkflowDefinitionModel
from litestar_approvals.db.repositories import WorkflowDefinitionRepository
from litestar_approvals.db.stores import SQLAlchemyDefinitionStore, SQLAlchemyInstanceStore, SQLAlchemyTaskStore
from litestar_approvals.engine.aggregator import add_assignee, record_decision
from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.service import ExecutionService
from litestar_approvals.exceptions import ConcurrentUpdateError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from litestar_approvals.config import ApprovalsConfig
    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.directory import InMemoryDirectory
    from litestar_approvals.engine.memory import InMemoryEventBus


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def async_engine():
    """Create an async SQLite in-memory engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(WorkflowDefinitionModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    session_maker = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sql_definitions(async_session: AsyncSession) -> SQLAlchemyDefinitionStore:
    return SQLAlchemyDefinitionStore(async_session)


@pytest.fixture
def sql_instances(async_session: AsyncSession) -> SQLAlchemyInstanceStore:
    return SQLAlchemyInstanceStore(async_session)


@pytest.fixture
def sql_tasks(async_session: AsyncSession) -> SQLAlchemyTaskStore:
    return SQLAlchemyTaskStore(async_session)


@pytest.fixture
def sql_service(
    sql_definitions: SQLAlchemyDefinitionStore,
    sql_instances: SQLAlchemyInstanceStore,
    sql_tasks: SQLAlchemyTaskStore,
    directory: InMemoryDirectory,
    approvals_config: ApprovalsConfig,
    event_bus: InMemoryEventBus,
) -> ExecutionService:
    """Execution service over the SQLAlchemy stores."""
    return ExecutionService(sql_definitions, sql_instances, sql_tasks, directory, approvals_config, event_bus)


def make_instance(**kwargs: object) -> WorkflowInstance:
    return WorkflowInstance(
        id=uuid4(),
        workflow_id=uuid4(),
        workflow_version=1,
        initiator_id="alice",
        current_node_name="manager",
        **kwargs,  # type: ignore[arg-type]
    )


def make_task(instance: WorkflowInstance, *user_ids: str, **kwargs: object) -> Task:
    return Task(
        id=uuid4(),
        instance_id=instance.id,
        workflow_id=instance.workflow_id,
        node_name="finance",
        task_type=TaskType.APPROVAL,
        initiator_id=instance.initiator_id,
        assignees=[TaskAssignee(user_id=u) for u in user_ids],
        **kwargs,  # type: ignore[arg-type]
    )


# =============================================================================
# Definition Store Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLAlchemyDefinitionStore:
    """Tests for versioned definition rows."""

    async def test_add_and_get(
        self, sql_definitions: SQLAlchemyDefinitionStore, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that the stored tree survives the JSON column."""
        stored = await sql_definitions.add(expense_definition)

        loaded = await sql_definitions.get(expense_definition.id)

        assert stored.id == expense_definition.id
        assert loaded is not None
        assert loaded.version == 1
        assert loaded.name == "Expense"
        assert loaded.root_node == expense_definition.root_node
        assert loaded.form_fields == expense_definition.form_fields
        assert loaded.created_at.tzinfo is not None

    async def test_versions(
        self, sql_definitions: SQLAlchemyDefinitionStore, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that every version keeps its own row."""
        await sql_definitions.add(expense_definition)
        await sql_definitions.add(replace(expense_definition, version=2, name="Expense v2"))

        assert (await sql_definitions.get(expense_definition.id)).version == 2
        assert (await sql_definitions.get(expense_definition.id, 1)).name == "Expense"
        assert await sql_definitions.get(expense_definition.id, 3) is None
        assert await sql_definitions.get(uuid4()) is None

    async def test_duplicate_version(
        self, sql_definitions: SQLAlchemyDefinitionStore, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that writing an existing version is reported as a concurrent update."""
        await sql_definitions.add(expense_definition)

        with pytest.raises(ConcurrentUpdateError):
            await sql_definitions.add(replace(expense_definition, name="Other"))

    async def test_list_latest(
        self,
        sql_definitions: SQLAlchemyDefinitionStore,
        expense_definition: WorkflowDefinition,
        review_definition: WorkflowDefinition,
    ) -> None:
        """Test that only the newest version of each workflow is listed."""
        await sql_definitions.add(expense_definition)
        await sql_definitions.add(replace(expense_definition, version=2))
        await sql_definitions.add(review_definition)

        latest = await sql_definitions.list_latest()

        assert {(d.id, d.version) for d in latest} == {(expense_definition.id, 2), (review_definition.id, 1)}
        assert [d.id for d in await sql_definitions.list_latest("finance")] == [expense_definition.id]

    async def test_set_active(
        self, sql_definitions: SQLAlchemyDefinitionStore, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that the flag is written on every version."""
        await sql_definitions.add(expense_definition)
        await sql_definitions.add(replace(expense_definition, version=2))

        await sql_definitions.set_active(expense_definition.id, False)

        assert (await sql_definitions.get(expense_definition.id)).active is False
        assert (await sql_definitions.get(expense_definition.id, 1)).active is False

    async def test_repository_get_version(
        self, async_session: AsyncSession, expense_definition: WorkflowDefinition
    ) -> None:
        """Test the repository query directly."""
        await SQLAlchemyDefinitionStore(async_session).add(expense_definition)
        repo = WorkflowDefinitionRepository(session=async_session)

        row = await repo.get_version(expense_definition.id)

        assert row is not None
        assert row.group_id == "finance"
        assert row.definition_json["name"] == "Expense"


# =============================================================================
# Instance Store Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLAlchemyInstanceStore:
    """Tests for instance rows and compare-and-set updates."""

    async def test_add_and_get(self, sql_instances: SQLAlchemyInstanceStore) -> None:
        """Test that values round-trip through the row."""
        due = datetime(2026, 12, 31, 17, 0, tzinfo=timezone.utc)
        instance = make_instance(title="Laptop", form_data={"amount": 1200}, priority=3, due_date=due)

        stored = await sql_instances.add(instance)
        loaded = await sql_instances.get(instance.id)

        assert stored.revision == 1
        assert loaded is not None
        assert loaded.title == "Laptop"
        assert loaded.form_data == {"amount": 1200}
        assert loaded.status is InstanceStatus.RUNNING
        assert loaded.due_date == due
        assert await sql_instances.get(uuid4()) is None

    async def test_update_bumps_revision(self, sql_instances: SQLAlchemyInstanceStore) -> None:
        """Test that an update from the current revision is applied."""
        stored = await sql_instances.add(make_instance())
        history = [NodeExecution("manager", NodeType.APPROVAL, "task_created")]

        updated = await sql_instances.update(replace(stored, current_node_name="finance", node_history=history))

        assert updated.revision == 2
        loaded = await sql_instances.get(stored.id)
        assert loaded.current_node_name == "finance"
        assert [(h.node_name, h.outcome) for h in loaded.node_history] == [("manager", "task_created")]

    async def test_stale_update_rejected(self, sql_instances: SQLAlchemyInstanceStore) -> None:
        """Test that an update from an old revision is rejected."""
        stored = await sql_instances.add(make_instance())
        await sql_instances.update(replace(stored, title="First"))

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await sql_instances.update(replace(stored, title="Second"))

        assert exc_info.value.expected_revision == 1
        assert (await sql_instances.get(stored.id)).title == "First"

    async def test_update_missing(self, sql_instances: SQLAlchemyInstanceStore) -> None:
        """Test that updating an unknown instance fails."""
        with pytest.raises(ConcurrentUpdateError):
            await sql_instances.update(replace(make_instance(), revision=1))

    async def test_find_by_initiator(self, sql_instances: SQLAlchemyInstanceStore) -> None:
        """Test filtering by initiator and status."""
        running = await sql_instances.add(make_instance())
        done = await sql_instances.add(make_instance(status=InstanceStatus.COMPLETED))
        await sql_instances.add(replace(make_instance(), initiator_id="bob"))

        assert {i.id for i in await sql_instances.find_by_initiator("alice")} == {running.id, done.id}
        completed = await sql_instances.find_by_initiator("alice", InstanceStatus.COMPLETED)
        assert [i.id for i in completed] == [done.id]


# =============================================================================
# Task Store Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLAlchemyTaskStore:
    """Tests for task rows and their assignee entries."""

    @pytest.fixture
    async def instance(self, sql_instances: SQLAlchemyInstanceStore) -> WorkflowInstance:
        return await sql_instances.add(make_instance())

    async def test_add_with_entries(
        self, sql_tasks: SQLAlchemyTaskStore, async_session: AsyncSession, instance: WorkflowInstance
    ) -> None:
        """Test that each entry gets its own ordered row."""
        stored = await sql_tasks.add(make_task(instance, "bob", "erin", approval_type=ApprovalType.ANY))

        assert stored.revision == 1
        assert stored.approval_type is ApprovalType.ANY
        assert [a.user_id for a in stored.assignees] == ["bob", "erin"]

        stmt = (
            select(TaskAssigneeModel)
            .where(TaskAssigneeModel.task_id == stored.id)
            .order_by(TaskAssigneeModel.position)
        )
        rows = (await async_session.execute(stmt)).scalars().all()
        assert [(r.position, r.user_id) for r in rows] == [(0, "bob"), (1, "erin")]

    async def test_update_records_decision(self, sql_tasks: SQLAlchemyTaskStore, instance: WorkflowInstance) -> None:
        """Test that a decision is written to the entry row."""
        stored = await sql_tasks.add(make_task(instance, "bob", "erin"))
        decided, _ = record_decision(stored, "bob", Decision.APPROVE, "ok")

        updated = await sql_tasks.update(decided)

        assert updated.revision == 2
        loaded = await sql_tasks.get(stored.id)
        assert loaded.entry_for("bob").status is TaskStatus.APPROVED
        assert loaded.entry_for("bob").comment == "ok"
        assert loaded.entry_for("bob").handled_at is not None
        assert loaded.status is TaskStatus.PENDING

    async def test_update_appends_entry(self, sql_tasks: SQLAlchemyTaskStore, instance: WorkflowInstance) -> None:
        """Test that reassignment adds a row and an audit comment."""
        stored = await sql_tasks.add(make_task(instance, "bob"))

        await sql_tasks.update(add_assignee(stored, "erin", "bob"))

        loaded = await sql_tasks.get(stored.id)
        assert [a.user_id for a in loaded.assignees] == ["bob", "erin"]
        assert loaded.entry_for("erin").added_by == "bob"
        assert loaded.comments[-1].content == "Task reassigned to user erin"

    async def test_racing_decisions(self, sql_tasks: SQLAlchemyTaskStore, instance: WorkflowInstance) -> None:
        """Test that two decisions read from the same revision cannot both be applied."""
        stored = await sql_tasks.add(make_task(instance, "bob", "erin", approval_type=ApprovalType.ANY))
        seen_by_bob = await sql_tasks.get(stored.id)
        seen_by_erin = await sql_tasks.get(stored.id)

        await sql_tasks.update(record_decision(seen_by_bob, "bob", Decision.APPROVE)[0])

        with pytest.raises(ConcurrentUpdateError):
            await sql_tasks.update(record_decision(seen_by_erin, "erin", Decision.REJECT)[0])

        final = await sql_tasks.get(stored.id)
        assert final.status is TaskStatus.APPROVED
        assert final.entry_for("erin").status is TaskStatus.PENDING

    async def test_queries(self, sql_tasks: SQLAlchemyTaskStore, instance: WorkflowInstance) -> None:
        """Test ordering by priority and pending-entry filtering."""
        low = await sql_tasks.add(make_task(instance, "bob", priority=1))
        high = await sql_tasks.add(make_task(instance, "bob", "erin", priority=9))
        approved = await sql_tasks.add(make_task(instance, "erin", status=TaskStatus.APPROVED))

        assert [t.id for t in await sql_tasks.find_by_instance(instance.id)] == [high.id, low.id, approved.id]
        assert [t.id for t in await sql_tasks.find_by_instance(instance.id, TaskStatus.APPROVED)] == [approved.id]
        assert [t.id for t in await sql_tasks.find_pending_for_user("erin")] == [high.id]
        assert [t.id for t in await sql_tasks.find_pending_for_user("bob")] == [high.id, low.id]
        assert await sql_tasks.find_pending_for_user("carol") == []


# =============================================================================
# Execution Over The Database
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestExecutionServiceWithDatabase:
    """End-to-end runs of the engine over the SQLAlchemy stores."""

    @pytest.fixture
    async def expense(
        self, sql_definitions: SQLAlchemyDefinitionStore, expense_definition: WorkflowDefinition
    ) -> WorkflowDefinition:
        return await DefinitionService(sql_definitions).create_definition(expense_definition)

    async def test_large_amount_completes(
        self, sql_service: ExecutionService, expense: WorkflowDefinition, event_bus: InMemoryEventBus
    ) -> None:
        """Test the manager, finance and copy steps through to completion."""
        instance = await sql_service.start_workflow(expense.id, {"amount": 5000}, "alice", title="Laptop")

        (manager_task,) = await sql_service.get_tasks(instance.id)
        assert manager_task.pending_user_ids == ["dave"]
        await sql_service.approve_task(manager_task.id, "dave")

        (finance_task,) = await sql_service.get_tasks(instance.id)
        assert finance_task.pending_user_ids == ["bob", "erin"]
        assert [t.id for t in await sql_service.get_user_tasks("bob")] == [finance_task.id]
        await sql_service.approve_task(finance_task.id, "bob")

        (copy_task,) = await sql_service.get_tasks(instance.id)
        assert copy_task.task_type is TaskType.COPY
        await sql_service.approve_task(copy_task.id, "erin")

        instance = await sql_service.get_instance_by_id(instance.id)
        assert instance.status is InstanceStatus.COMPLETED
        assert instance.title == "Laptop"
        assert [h.outcome for h in instance.node_history][-1] == "approved"
        assert await sql_service.get_tasks(instance.id) == []
        assert event_bus.names[-1] == "workflow.completed"

    async def test_rejection(self, sql_service: ExecutionService, expense: WorkflowDefinition) -> None:
        """Test that a rejection ends the instance."""
        instance = await sql_service.start_workflow(expense.id, {"amount": 50}, "alice")
        (task,) = await sql_service.get_tasks(instance.id)

        await sql_service.reject_task(task.id, "dave", comment="no")

        instance = await sql_service.get_instance_by_id(instance.id)
        assert instance.status is InstanceStatus.REJECTED
        stored_task = await sql_service.get_task(task.id)
        assert stored_task.status is TaskStatus.REJECTED
        assert stored_task.entry_for("dave").comment == "no"

    async def test_reassign_and_cancel(self, sql_service: ExecutionService, expense: WorkflowDefinition) -> None:
        """Test that reassignment and cancellation are persisted."""
        instance = await sql_service.start_workflow(expense.id, {"amount": 50}, "alice")
        (task,) = await sql_service.get_tasks(instance.id)

        await sql_service.reassign_task(task.id, "erin", "dave")
        assert [t.id for t in await sql_service.get_user_tasks("erin")] == [task.id]

        canceled = await sql_service.cancel_instance(instance.id, "alice", "duplicate")

        assert canceled.status is InstanceStatus.CANCELED
        assert canceled.cancel_reason == "duplicate"
        stored_task = await sql_service.get_task(task.id)
        assert stored_task.status is TaskStatus.CANCELED
        assert {a.status for a in stored_task.assignees} == {TaskStatus.CANCELED}
        assert await sql_service.get_user_tasks("erin") == []
        assert [i.id for i in await sql_service.get_user_instances("alice")] == [instance.id]
