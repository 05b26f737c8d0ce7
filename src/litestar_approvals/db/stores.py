"""Database-backed stores.

These classes implement the engine's store protocols on top of the
repositories in :mod:`litestar_approvals.db.repositories`, translating
between ORM rows and engine values. ``update`` is a compare-and-set on the
``revision`` column: the stored revision is checked before any change is
applied, and SQLAlchemy's version counter rejects a flush that raced with
another writer.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from advanced_alchemy.exceptions import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from litestar_approvals.core.definition import WorkflowDefinition
from litestar_approvals.core.models import NodeExecution, Task, TaskAssignee, TaskComment, WorkflowInstance, utcnow
from litestar_approvals.core.types import ApprovalType, NodeType
from litestar_approvals.db.models import TaskAssigneeModel, TaskModel, WorkflowDefinitionModel, WorkflowInstanceModel
from litestar_approvals.db.repositories import (
    TaskRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from litestar_approvals.exceptions import ConcurrentUpdateError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_approvals.core.types import InstanceStatus, TaskStatus

__all__ = [
    "SQLAlchemyDefinitionStore",
    "SQLAlchemyInstanceStore",
    "SQLAlchemyTaskStore",
]

logger = logging.getLogger(__name__)


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Definitions
# =============================================================================


class SQLAlchemyDefinitionStore:
    """Versioned definition storage, one row per version.

    Attributes:
        session: SQLAlchemy async session.
    """

    def __init__(self, session: AsyncSession, *, auto_commit: bool = False) -> None:
        self.session = session
        self.auto_commit = auto_commit
        self._repo = WorkflowDefinitionRepository(session=session)

    @staticmethod
    def _to_definition(model: WorkflowDefinitionModel) -> WorkflowDefinition:
        definition = WorkflowDefinition.from_dict(model.definition_json)
        return replace(
            definition,
            id=model.workflow_id,
            version=model.version,
            active=model.is_active,
            created_at=model.created_at,
        )

    async def add(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        if await self._repo.get_version(definition.id, definition.version) is not None:
            raise ConcurrentUpdateError("workflow", definition.id, definition.version - 1)

        model = WorkflowDefinitionModel(
            workflow_id=definition.id,
            version=definition.version,
            name=definition.name,
            group_id=definition.group_id,
            description=definition.description,
            is_active=definition.active,
            definition_json=definition.to_dict(),
            created_at=definition.created_at,
        )
        try:
            model = await self._repo.add(model, auto_commit=self.auto_commit)
        except IntegrityError as e:
            raise ConcurrentUpdateError("workflow", definition.id, definition.version - 1) from e
        return self._to_definition(model)

    async def get(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        model = await self._repo.get_version(workflow_id, version)
        return self._to_definition(model) if model is not None else None

    async def list_latest(self, group_id: str | None = None) -> list[WorkflowDefinition]:
        return [self._to_definition(m) for m in await self._repo.list_latest(group_id)]

    async def set_active(self, workflow_id: UUID, active: bool) -> None:
        await self._repo.set_active(workflow_id, active)
        if self.auto_commit:
            await self.session.commit()


# =============================================================================
# Instances
# =============================================================================


def _history_to_json(history: list[NodeExecution]) -> list[dict[str, Any]]:
    return [
        {
            "node_name": h.node_name,
            "node_type": str(h.node_type),
            "outcome": h.outcome,
            "task_id": str(h.task_id) if h.task_id else None,
            "at": h.at.isoformat(),
        }
        for h in history
    ]


def _history_from_json(data: list[dict[str, Any]]) -> list[NodeExecution]:
    return [
        NodeExecution(
            node_name=h["node_name"],
            node_type=NodeType(h["node_type"]),
            outcome=h["outcome"],
            task_id=UUID(h["task_id"]) if h.get("task_id") else None,
            at=_parse_datetime(h.get("at")) or utcnow(),
        )
        for h in data or []
    ]


class SQLAlchemyInstanceStore:
    """Workflow instance storage.

    Attributes:
        session: SQLAlchemy async session.
    """

    def __init__(self, session: AsyncSession, *, auto_commit: bool = False) -> None:
        self.session = session
        self.auto_commit = auto_commit
        self._repo = WorkflowInstanceRepository(session=session)

    @staticmethod
    def _to_instance(model: WorkflowInstanceModel) -> WorkflowInstance:
        return WorkflowInstance(
            id=model.id,
            workflow_id=model.workflow_id,
            workflow_version=model.workflow_version,
            initiator_id=model.initiator_id,
            current_node_name=model.current_node_name,
            title=model.title,
            status=model.status,
            form_data=dict(model.form_data or {}),
            variables=dict(model.variables or {}),
            node_history=_history_from_json(model.node_history),
            priority=model.priority,
            due_date=model.due_date,
            cancel_reason=model.cancel_reason,
            created_at=model.created_at,
            completed_at=model.completed_at,
            revision=model.revision,
        )

    @staticmethod
    def _apply(model: WorkflowInstanceModel, instance: WorkflowInstance) -> None:
        model.title = instance.title
        model.status = instance.status
        model.current_node_name = instance.current_node_name
        model.form_data = dict(instance.form_data)
        model.variables = dict(instance.variables)
        model.node_history = _history_to_json(instance.node_history)
        model.priority = instance.priority
        model.due_date = instance.due_date
        model.cancel_reason = instance.cancel_reason
        model.completed_at = instance.completed_at

    async def add(self, instance: WorkflowInstance) -> WorkflowInstance:
        model = WorkflowInstanceModel(
            id=instance.id,
            workflow_id=instance.workflow_id,
            workflow_version=instance.workflow_version,
            initiator_id=instance.initiator_id,
            created_at=instance.created_at,
        )
        self._apply(model, instance)
        model = await self._repo.add(model, auto_commit=self.auto_commit)
        return self._to_instance(model)

    async def get(self, instance_id: UUID) -> WorkflowInstance | None:
        model = await self.session.get(WorkflowInstanceModel, instance_id, populate_existing=True)
        return self._to_instance(model) if model is not None else None

    async def update(self, instance: WorkflowInstance) -> WorkflowInstance:
        model = await self.session.get(WorkflowInstanceModel, instance.id, populate_existing=True)
        if model is None or model.revision != instance.revision:
            raise ConcurrentUpdateError("instance", instance.id, instance.revision)

        self._apply(model, instance)
        model.updated_at = utcnow()
        try:
            await self.session.flush()
        except StaleDataError as e:
            logger.warning("Instance %s was modified concurrently", instance.id)
            raise ConcurrentUpdateError("instance", instance.id, instance.revision) from e
        if self.auto_commit:
            await self.session.commit()
        return self._to_instance(model)

    async def find_by_initiator(
        self, initiator_id: str, status: InstanceStatus | None = None
    ) -> list[WorkflowInstance]:
        return [self._to_instance(m) for m in await self._repo.find_by_initiator(initiator_id, status)]


# =============================================================================
# Tasks
# =============================================================================


def _comments_to_json(comments: list[TaskComment]) -> list[dict[str, Any]]:
    return [{"user_id": c.user_id, "content": c.content, "created_at": c.created_at.isoformat()} for c in comments]


def _comments_from_json(data: list[dict[str, Any]]) -> list[TaskComment]:
    return [
        TaskComment(
            user_id=c["user_id"],
            content=c["content"],
            created_at=_parse_datetime(c.get("created_at")) or utcnow(),
        )
        for c in data or []
    ]


class SQLAlchemyTaskStore:
    """Task storage with one row per assignee entry.

    Attributes:
        session: SQLAlchemy async session.
    """

    def __init__(self, session: AsyncSession, *, auto_commit: bool = False) -> None:
        self.session = session
        self.auto_commit = auto_commit
        self._repo = TaskRepository(session=session)

    @staticmethod
    def _to_task(model: TaskModel) -> Task:
        return Task(
            id=model.id,
            instance_id=model.instance_id,
            workflow_id=model.workflow_id,
            node_name=model.node_name,
            task_type=model.task_type,
            initiator_id=model.initiator_id,
            title=model.title,
            approval_type=ApprovalType(model.approval_type),
            status=model.status,
            assignees=[
                TaskAssignee(
                    user_id=a.user_id,
                    status=a.status,
                    assignee_type=a.assignee_type,
                    comment=a.comment,
                    handled_at=a.handled_at,
                    added_by=a.added_by,
                )
                for a in model.assignees
            ],
            comments=_comments_from_json(model.comments),
            priority=model.priority,
            due_date=model.due_date,
            created_at=model.created_at,
            completed_at=model.completed_at,
            revision=model.revision,
        )

    @staticmethod
    def _apply(model: TaskModel, task: Task) -> None:
        model.title = task.title
        model.approval_type = int(task.approval_type)
        model.status = task.status
        model.comments = _comments_to_json(task.comments)
        model.priority = task.priority
        model.due_date = task.due_date
        model.completed_at = task.completed_at

        # Entries are append-only, so positions line up with the stored rows.
        for position, entry in enumerate(task.assignees):
            if position < len(model.assignees):
                row = model.assignees[position]
            else:
                row = TaskAssigneeModel(position=position, user_id=entry.user_id)
                model.assignees.append(row)
            row.status = entry.status
            row.assignee_type = entry.assignee_type
            row.comment = entry.comment
            row.handled_at = entry.handled_at
            row.added_by = entry.added_by

    async def add(self, task: Task) -> Task:
        model = TaskModel(
            id=task.id,
            instance_id=task.instance_id,
            workflow_id=task.workflow_id,
            node_name=task.node_name,
            task_type=task.task_type,
            initiator_id=task.initiator_id,
            created_at=task.created_at,
            assignees=[],
        )
        self._apply(model, task)
        model = await self._repo.add(model, auto_commit=self.auto_commit)
        return self._to_task(model)

    async def get(self, task_id: UUID) -> Task | None:
        model = await self.session.get(TaskModel, task_id, populate_existing=True)
        return self._to_task(model) if model is not None else None

    async def update(self, task: Task) -> Task:
        model = await self.session.get(TaskModel, task.id, populate_existing=True)
        if model is None or model.revision != task.revision:
            raise ConcurrentUpdateError("task", task.id, task.revision)

        self._apply(model, task)
        model.updated_at = utcnow()
        try:
            await self.session.flush()
        except StaleDataError as e:
            logger.warning("Task %s was modified concurrently", task.id)
            raise ConcurrentUpdateError("task", task.id, task.revision) from e
        if self.auto_commit:
            await self.session.commit()
        return self._to_task(model)

    async def find_by_instance(self, instance_id: UUID, status: TaskStatus | None = None) -> list[Task]:
        return [self._to_task(m) for m in await self._repo.find_by_instance(instance_id, status)]

    async def find_pending_for_user(self, user_id: str) -> list[Task]:
        return [self._to_task(m) for m in await self._repo.find_pending_for_user(user_id)]
