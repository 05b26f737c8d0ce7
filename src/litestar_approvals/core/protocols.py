"""Store and event protocols for litestar-approvals.

The engine reaches persistence only through these structural interfaces.
:mod:`litestar_approvals.engine.memory` implements them with dictionaries and
:mod:`litestar_approvals.db.repositories` with SQLAlchemy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.models import Task, WorkflowInstance
    from litestar_approvals.core.types import InstanceStatus, TaskStatus


__all__ = ["DefinitionStore", "EventBus", "InstanceStore", "TaskStore"]


@runtime_checkable
class DefinitionStore(Protocol):
    """Versioned storage for workflow definitions.

    Each ``(id, version)`` pair is written once and never modified, except for
    the ``active`` flag toggled by :meth:`set_active`.
    """

    async def add(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Persist a new definition version.

        Raises:
            ConcurrentUpdateError: If that version already exists.
        """
        ...

    async def get(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        """Return the requested version, or the latest one when ``version`` is None."""
        ...

    async def list_latest(self, group_id: str | None = None) -> list[WorkflowDefinition]:
        """Return the latest version of every workflow, optionally filtered by group."""
        ...

    async def set_active(self, workflow_id: UUID, active: bool) -> None:
        """Toggle the ``active`` flag on every version of a workflow."""
        ...


@runtime_checkable
class InstanceStore(Protocol):
    """Storage for workflow instances with revision-checked updates."""

    async def add(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Persist a new instance."""
        ...

    async def get(self, instance_id: UUID) -> WorkflowInstance | None:
        """Return the instance, or None."""
        ...

    async def update(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Write the instance if the stored revision equals ``instance.revision``.

        Returns:
            The stored instance with its revision incremented.

        Raises:
            ConcurrentUpdateError: If the stored revision differs.
        """
        ...

    async def find_by_initiator(
        self, initiator_id: str, status: InstanceStatus | None = None
    ) -> list[WorkflowInstance]:
        """Return the user's instances, newest first."""
        ...


@runtime_checkable
class TaskStore(Protocol):
    """Storage for tasks with revision-checked updates."""

    async def add(self, task: Task) -> Task:
        """Persist a new task."""
        ...

    async def get(self, task_id: UUID) -> Task | None:
        """Return the task, or None."""
        ...

    async def update(self, task: Task) -> Task:
        """Write the task if the stored revision equals ``task.revision``.

        Raises:
            ConcurrentUpdateError: If the stored revision differs.
        """
        ...

    async def find_by_instance(self, instance_id: UUID, status: TaskStatus | None = None) -> list[Task]:
        """Return the instance's tasks ordered by priority (desc) then creation."""
        ...

    async def find_pending_for_user(self, user_id: str) -> list[Task]:
        """Return PENDING tasks holding a PENDING entry for the user."""
        ...


@runtime_checkable
class EventBus(Protocol):
    """Receiver for lifecycle events such as ``workflow.started`` or ``task.approved``."""

    async def emit(self, event: str, **payload: Any) -> None:
        """Publish an event."""
        ...
