"""Execution service: the public operation set of the approval engine.

The service loads what an operation needs, delegates the decision to the task
aggregator and the instance state machine, persists the result and triggers
follow-up transitions. It performs no retries: an operation that cannot be
applied is reported so the caller can re-fetch and resubmit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_approvals.config import ApprovalsConfig
from litestar_approvals.core.forms import validate_form_data
from litestar_approvals.core.types import (
    AssigneeType,
    Decision,
    InstanceStatus,
    StrEnum,
    TaskOutcome,
    TaskStatus,
    TaskType,
)
from litestar_approvals.engine import aggregator
from litestar_approvals.engine.resolver import AssigneeResolver
from litestar_approvals.engine.state_machine import InstanceStateMachine
from litestar_approvals.exceptions import (
    AssigneeResolutionError,
    InitiatorNotPermittedError,
    InvalidStateError,
    NotAssigneeError,
    TaskNotFoundError,
    WorkflowInstanceNotFoundError,
    WorkflowNotFoundError,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.directory import Directory
    from litestar_approvals.core.models import Task, WorkflowInstance
    from litestar_approvals.core.protocols import DefinitionStore, EventBus, InstanceStore, TaskStore

__all__ = ["ExecutionService", "ReassignMode"]

logger = logging.getLogger(__name__)


class ReassignMode(StrEnum):
    """How a reassignment changes a task's assignee set.

    Attributes:
        ADD: Append the new assignee; existing pending entries stay actionable.
        REPLACE: Cancel the acting assignee's pending entry and hand it to the new one.
    """

    ADD = "ADD"
    REPLACE = "REPLACE"


class ExecutionService:
    """Orchestrates workflow instances and their tasks.

    Attributes:
        definitions: Definition store.
        instances: Instance store.
        tasks: Task store.
        directory: Organization directory.
        config: Engine configuration.
        event_bus: Optional receiver for lifecycle events.
        resolver: Assignee resolver built on ``directory``.
        state_machine: The instance state machine.

    Example:
        >>> service = ExecutionService(definitions, instances, tasks, directory)
        >>> instance = await service.start_workflow(workflow.id, {"amount": 120}, "alice")
        >>> [task] = await service.get_tasks(instance.id)
        >>> await service.approve_task(task.id, "carol", comment="fine")
    """

    def __init__(
        self,
        definitions: DefinitionStore,
        instances: InstanceStore,
        tasks: TaskStore,
        directory: Directory,
        config: ApprovalsConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.definitions = definitions
        self.instances = instances
        self.tasks = tasks
        self.directory = directory
        self.config = config or ApprovalsConfig()
        self.event_bus = event_bus
        self.resolver = AssigneeResolver(directory)
        self.state_machine = InstanceStateMachine(instances, tasks, self.resolver, self.config, event_bus)

    async def _emit(self, event: str, **payload: Any) -> None:
        if self.event_bus:
            await self.event_bus.emit(event, **payload)

    # =========================================================================
    # Loading
    # =========================================================================

    async def get_task(self, task_id: UUID) -> Task:
        """Return a task.

        Raises:
            TaskNotFoundError: If the task does not exist.
        """
        task = await self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def get_instance_by_id(self, instance_id: UUID) -> WorkflowInstance:
        """Return an instance.

        Raises:
            WorkflowInstanceNotFoundError: If the instance does not exist.
        """
        instance = await self.instances.get(instance_id)
        if instance is None:
            raise WorkflowInstanceNotFoundError(instance_id)
        return instance

    async def _pinned_definition(self, instance: WorkflowInstance) -> WorkflowDefinition:
        definition = await self.definitions.get(instance.workflow_id, instance.workflow_version)
        if definition is None:
            raise WorkflowNotFoundError(instance.workflow_id, instance.workflow_version)
        return definition

    async def _running_instance(self, task: Task) -> WorkflowInstance:
        instance = await self.get_instance_by_id(task.instance_id)
        if instance.status is not InstanceStatus.RUNNING:
            raise InvalidStateError(instance.id, instance.status)
        return instance

    # =========================================================================
    # Operations
    # =========================================================================

    async def start_workflow(
        self,
        workflow_id: UUID,
        form_data: dict[str, Any],
        initiator_id: str,
        *,
        title: str | None = None,
        priority: int | None = None,
        due_date: datetime | None = None,
        variables: dict[str, Any] | None = None,
    ) -> WorkflowInstance:
        """Launch an instance of the latest version of a workflow.

        Args:
            workflow_id: The workflow to run.
            form_data: Data submitted by the initiator.
            initiator_id: The launching user.
            title: Display title.
            priority: Sort priority for the instance and its tasks.
            due_date: Advisory deadline.
            variables: Extra condition variables overriding ``form_data``.

        Returns:
            The new instance.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist.
            InvalidStateError: If the workflow is inactive.
            InitiatorNotPermittedError: If the user may not launch the workflow.
            FormValidationError: If a required form value is missing.
            AssigneeResolutionError: If the first task cannot be assigned.
        """
        definition = await self.definitions.get(workflow_id)
        if definition is None:
            raise WorkflowNotFoundError(workflow_id)
        if not definition.active:
            raise InvalidStateError(workflow_id, "inactive", f"Workflow '{definition.name}' is inactive")

        initiator = await self.directory.get_user(initiator_id)
        if not definition.permission.allows(initiator_id, initiator):
            raise InitiatorNotPermittedError(workflow_id, initiator_id)
        if self.config.enforce_required_fields and definition.form_fields:
            validate_form_data(definition.form_fields, form_data)

        return await self.state_machine.start(
            definition,
            form_data,
            initiator_id,
            title=title,
            priority=priority,
            due_date=due_date,
            variables=variables,
        )

    async def _decide(self, task_id: UUID, user_id: str, decision: Decision, comment: str | None) -> Task:
        task = await self.get_task(task_id)
        updated, outcome = aggregator.record_decision(task, user_id, decision, comment)
        instance = await self._running_instance(task)

        # The next node is resolved before the decision is written, so a
        # resolution failure leaves the task pending for a resubmission.
        definition: WorkflowDefinition | None = None
        prepared = None
        if outcome is TaskOutcome.RESOLVED_APPROVED:
            definition = await self._pinned_definition(instance)
            prepared = await self.state_machine.prepare_advance(instance, definition, task.node_name, task.id)

        stored = await self.tasks.update(updated)
        logger.info("User %s decided %s on task %s: %s", user_id, decision, task_id, outcome)

        event = "task.approved" if decision is Decision.APPROVE else "task.rejected"
        await self._emit(event, task_id=stored.id, instance_id=stored.instance_id, user_id=user_id, outcome=outcome)

        if definition is not None:
            await self.state_machine.advance(instance, definition, stored.node_name, stored.id, prepared=prepared)
        elif outcome is TaskOutcome.RESOLVED_REJECTED:
            await self.state_machine.reject_cascade(instance, stored)
        return stored

    async def approve_task(self, task_id: UUID, user_id: str, comment: str | None = None) -> Task:
        """Approve (or, for a copy task, acknowledge) a task.

        Raises:
            TaskNotFoundError: If the task does not exist.
            NotAssigneeError: If the user is not assigned to the task.
            AlreadyHandledError: If the user's entry or the task is no longer pending,
                including when a concurrent decision won.
            InvalidStateError: If the instance is no longer running.
            AssigneeResolutionError: If the next node cannot be assigned. The task stays pending.
        """
        return await self._decide(task_id, user_id, Decision.APPROVE, comment)

    async def reject_task(self, task_id: UUID, user_id: str, comment: str | None = None) -> Task:
        """Reject an approval task, which rejects the whole instance.

        Raises:
            TaskNotFoundError: If the task does not exist.
            NotAssigneeError: If the user is not assigned to the task.
            AlreadyHandledError: If the user's entry or the task is no longer pending.
            InvalidStateError: If the instance is no longer running or the task is a copy task.
        """
        task = await self.get_task(task_id)
        if task.task_type is TaskType.COPY:
            raise InvalidStateError(task.instance_id, task.status, "Copy tasks can only be acknowledged")
        return await self._decide(task_id, user_id, Decision.REJECT, comment)

    async def add_task_comment(self, task_id: UUID, user_id: str, content: str) -> Task:
        """Append a comment to a task."""
        task = await self.get_task(task_id)
        return await self.tasks.update(aggregator.add_comment(task, user_id, content))

    async def reassign_task(
        self,
        task_id: UUID,
        new_assignee_id: str,
        actor_id: str,
        mode: ReassignMode = ReassignMode.ADD,
    ) -> Task:
        """Give a pending task to another user.

        The actor must hold a pending entry on the task or be one of the
        workflow's flow administrators. With ``REPLACE`` the actor's own
        pending entry is handed over, so a flow administrator without an entry
        can only ``ADD``.

        Raises:
            TaskNotFoundError: If the task does not exist.
            NotAssigneeError: If the actor may not reassign the task.
            AssigneeResolutionError: If the new assignee is unknown or inactive.
            AlreadyHandledError: If the task is no longer pending.
            InvalidStateError: If the instance is no longer running.
        """
        task = await self.get_task(task_id)
        instance = await self._running_instance(task)
        if task.entry_for(actor_id, pending_only=True) is None:
            definition = await self._pinned_definition(instance)
            if actor_id not in definition.flow_admin_ids:
                raise NotAssigneeError(task.id, actor_id)

        new_assignee = await self.directory.get_user(new_assignee_id)
        if new_assignee is None or not new_assignee.active:
            raise AssigneeResolutionError(AssigneeType.SPECIFIC_USER, new_assignee_id, "user not found or inactive")

        if mode is ReassignMode.REPLACE:
            updated = aggregator.replace_assignee(task, actor_id, new_assignee_id, actor_id)
        else:
            updated = aggregator.add_assignee(task, new_assignee_id, actor_id)
            if updated is task:
                logger.info("User %s already holds a pending entry on task %s", new_assignee_id, task_id)
                return task
        stored = await self.tasks.update(updated)
        logger.info("Task %s reassigned to %s by %s (%s)", task_id, new_assignee_id, actor_id, mode)
        await self._emit(
            "task.reassigned", task_id=stored.id, actor_id=actor_id, new_assignee_id=new_assignee_id, mode=mode
        )
        return stored

    async def cancel_instance(self, instance_id: UUID, actor_id: str, reason: str = "") -> WorkflowInstance:
        """Cancel a running instance and its pending tasks.

        Raises:
            WorkflowInstanceNotFoundError: If the instance does not exist.
            InvalidStateError: If the instance is terminal or its workflow is not cancelable.
        """
        instance = await self.get_instance_by_id(instance_id)
        if instance.status is not InstanceStatus.RUNNING:
            raise InvalidStateError(instance.id, instance.status)
        definition = await self._pinned_definition(instance)
        return await self.state_machine.cancel(instance, definition, reason, actor_id)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_tasks(self, instance_id: UUID, status: TaskStatus | None = TaskStatus.PENDING) -> list[Task]:
        """Return an instance's tasks, pending ones by default. Pass ``status=None`` for all."""
        await self.get_instance_by_id(instance_id)
        return await self.tasks.find_by_instance(instance_id, status)

    async def get_user_tasks(self, user_id: str) -> list[Task]:
        """Return the tasks waiting on the user."""
        return await self.tasks.find_pending_for_user(user_id)

    async def get_user_instances(self, user_id: str, status: InstanceStatus | None = None) -> list[WorkflowInstance]:
        """Return the instances the user launched, newest first."""
        return await self.instances.find_by_initiator(user_id, status)
