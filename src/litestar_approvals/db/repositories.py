"""Repository implementations for approval persistence.

This module provides async repositories for the approval models using
advanced-alchemy's repository pattern. Queries return ORM models; mapping to
engine values happens in :mod:`litestar_approvals.db.stores`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import select, update

from litestar_approvals.core.types import InstanceStatus, TaskStatus
from litestar_approvals.db.models import (
    TaskAssigneeModel,
    TaskModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "TaskRepository",
    "WorkflowDefinitionRepository",
    "WorkflowInstanceRepository",
]


class WorkflowDefinitionRepository(SQLAlchemyAsyncRepository[WorkflowDefinitionModel]):
    """Repository for versioned workflow definitions."""

    model_type = WorkflowDefinitionModel

    async def get_version(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinitionModel | None:
        """Get one version of a workflow.

        Args:
            workflow_id: The workflow identifier.
            version: The version number. If None, returns the latest version.

        Returns:
            The definition row or None if not found.
        """
        stmt = select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.workflow_id == workflow_id)
        if version is not None:
            stmt = stmt.where(WorkflowDefinitionModel.version == version)
        stmt = stmt.order_by(WorkflowDefinitionModel.version.desc()).limit(1)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_latest(self, group_id: str | None = None) -> Sequence[WorkflowDefinitionModel]:
        """List the latest version of every workflow.

        Args:
            group_id: Optional group filter.

        Returns:
            The newest row per workflow, ordered by when that version was written.
        """
        stmt = select(WorkflowDefinitionModel)
        if group_id is not None:
            stmt = stmt.where(WorkflowDefinitionModel.group_id == group_id)

        result = await self.session.execute(stmt)
        latest: dict[UUID, WorkflowDefinitionModel] = {}
        for row in result.scalars().all():
            current = latest.get(row.workflow_id)
            if current is None or row.version > current.version:
                latest[row.workflow_id] = row
        return sorted(latest.values(), key=lambda m: m.created_at)

    async def set_active(self, workflow_id: UUID, active: bool) -> None:
        """Set the activation flag on every version of a workflow."""
        await self.session.execute(
            update(WorkflowDefinitionModel)
            .where(WorkflowDefinitionModel.workflow_id == workflow_id)
            .values(is_active=active)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()


class WorkflowInstanceRepository(SQLAlchemyAsyncRepository[WorkflowInstanceModel]):
    """Repository for workflow instances."""

    model_type = WorkflowInstanceModel

    async def find_by_initiator(
        self,
        initiator_id: str,
        status: InstanceStatus | None = None,
    ) -> Sequence[WorkflowInstanceModel]:
        """Find instances launched by a user, newest first.

        Args:
            initiator_id: The initiator.
            status: Optional status filter.

        Returns:
            Matching instances.
        """
        stmt = select(WorkflowInstanceModel).where(WorkflowInstanceModel.initiator_id == initiator_id)
        if status is not None:
            stmt = stmt.where(WorkflowInstanceModel.status == status)
        stmt = stmt.order_by(WorkflowInstanceModel.created_at.desc()).execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalars().all()


class TaskRepository(SQLAlchemyAsyncRepository[TaskModel]):
    """Repository for tasks and their assignee entries."""

    model_type = TaskModel

    async def find_by_instance(
        self,
        instance_id: UUID,
        status: TaskStatus | None = None,
    ) -> Sequence[TaskModel]:
        """Find the tasks of an instance.

        Args:
            instance_id: The owning instance.
            status: Optional status filter.

        Returns:
            Tasks by priority (highest first), then creation time.
        """
        stmt = select(TaskModel).where(TaskModel.instance_id == instance_id)
        if status is not None:
            stmt = stmt.where(TaskModel.status == status)
        stmt = stmt.order_by(TaskModel.priority.desc(), TaskModel.created_at).execution_options(
            populate_existing=True
        )

        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_pending_for_user(self, user_id: str) -> Sequence[TaskModel]:
        """Find pending tasks on which the user holds a pending entry.

        Args:
            user_id: The assignee.

        Returns:
            Tasks by priority (highest first), then creation time.
        """
        pending_for_user = select(TaskAssigneeModel.task_id).where(
            TaskAssigneeModel.user_id == user_id,
            TaskAssigneeModel.status == TaskStatus.PENDING,
        )
        stmt = (
            select(TaskModel)
            .where(TaskModel.status == TaskStatus.PENDING, TaskModel.id.in_(pending_for_user))
            .order_by(TaskModel.priority.desc(), TaskModel.created_at)
            .execution_options(populate_existing=True)
        )

        result = await self.session.execute(stmt)
        return result.scalars().all()
