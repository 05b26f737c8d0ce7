"""Data Transfer Objects for the approvals web API.

This module defines DTOs for serializing and deserializing approval data
in REST API requests and responses. Workflow definitions travel in their
wire form (see :meth:`WorkflowDefinition.to_dict`) and have no DTO here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from litestar_approvals.engine.service import ReassignMode

if TYPE_CHECKING:
    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.models import Task, WorkflowInstance

__all__ = [
    "CancelInstanceDTO",
    "CommentDTO",
    "DecisionDTO",
    "DefinitionSummaryDTO",
    "GraphDTO",
    "NodeExecutionDTO",
    "ReassignTaskDTO",
    "StartWorkflowDTO",
    "TaskAssigneeDTO",
    "TaskCommentDTO",
    "TaskDTO",
    "WorkflowInstanceDTO",
    "WorkflowInstanceDetailDTO",
]


# =============================================================================
# Requests
# =============================================================================


@dataclass
class StartWorkflowDTO:
    """DTO for starting a new workflow instance.

    Attributes:
        workflow_id: The workflow to run; its latest version is used.
        initiator_id: The launching user.
        form_data: Data submitted with the workflow's form.
        title: Optional display title.
        priority: Optional sort priority.
        due_date: Optional advisory deadline.
        variables: Extra condition variables overriding ``form_data``.
    """

    workflow_id: UUID
    initiator_id: str
    form_data: dict[str, Any] = field(default_factory=dict)
    title: str | None = None
    priority: int | None = None
    due_date: datetime | None = None
    variables: dict[str, Any] | None = None


@dataclass
class DecisionDTO:
    """DTO for approving or rejecting a task.

    Attributes:
        user_id: The deciding assignee.
        comment: Optional comment stored on the assignee entry.
    """

    user_id: str
    comment: str | None = None


@dataclass
class CommentDTO:
    """DTO for commenting on a task."""

    user_id: str
    content: str


@dataclass
class ReassignTaskDTO:
    """DTO for task reassignment.

    Attributes:
        actor_id: The user performing the reassignment.
        new_assignee_id: The user receiving the task.
        mode: ``ADD`` keeps existing assignees, ``REPLACE`` hands over the actor's entry.
    """

    actor_id: str
    new_assignee_id: str
    mode: ReassignMode = ReassignMode.ADD


@dataclass
class CancelInstanceDTO:
    """DTO for canceling an instance."""

    actor_id: str
    reason: str = ""


# =============================================================================
# Responses
# =============================================================================


@dataclass
class DefinitionSummaryDTO:
    """DTO for listing workflow definitions.

    Attributes:
        id: Workflow identifier.
        name: Workflow name.
        version: Latest version.
        group_id: Workflow group.
        description: Human-readable description.
        active: Whether new instances may be started.
        created_at: When the latest version was written.
    """

    id: UUID
    name: str
    version: int
    group_id: str | None
    description: str
    active: bool
    created_at: datetime

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> DefinitionSummaryDTO:
        return cls(
            id=definition.id,
            name=definition.name,
            version=definition.version,
            group_id=definition.group_id,
            description=definition.description,
            active=definition.active,
            created_at=definition.created_at,
        )


@dataclass
class GraphDTO:
    """DTO for workflow graph visualization.

    Attributes:
        mermaid_source: MermaidJS graph definition.
    """

    mermaid_source: str


@dataclass
class NodeExecutionDTO:
    """DTO for one entry of an instance's node history."""

    node_name: str
    node_type: str
    outcome: str
    task_id: UUID | None
    at: datetime


@dataclass
class WorkflowInstanceDTO:
    """DTO for workflow instance summary.

    Attributes:
        id: Instance ID.
        workflow_id: Workflow the instance runs.
        workflow_version: Pinned definition version.
        title: Display title.
        initiator_id: The launching user.
        status: Current lifecycle status.
        current_node_name: The node the instance waits at.
        priority: Sort priority.
        due_date: Advisory deadline.
        created_at: When the instance was started.
        completed_at: When the instance reached a terminal status.
    """

    id: UUID
    workflow_id: UUID
    workflow_version: int
    title: str
    initiator_id: str
    status: str
    current_node_name: str
    priority: int
    due_date: datetime | None
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_instance(cls, instance: WorkflowInstance) -> WorkflowInstanceDTO:
        return cls(
            id=instance.id,
            workflow_id=instance.workflow_id,
            workflow_version=instance.workflow_version,
            title=instance.title,
            initiator_id=instance.initiator_id,
            status=str(instance.status),
            current_node_name=instance.current_node_name,
            priority=instance.priority,
            due_date=instance.due_date,
            created_at=instance.created_at,
            completed_at=instance.completed_at,
        )


@dataclass
class WorkflowInstanceDetailDTO(WorkflowInstanceDTO):
    """DTO for detailed workflow instance information.

    Extends WorkflowInstanceDTO with the submitted data and the node history.

    Attributes:
        form_data: Submitted form data.
        variables: Extra condition variables.
        cancel_reason: Reason given on cancellation.
        node_history: Visited nodes in order.
    """

    form_data: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    cancel_reason: str | None = None
    node_history: list[NodeExecutionDTO] = field(default_factory=list)

    @classmethod
    def from_instance(cls, instance: WorkflowInstance) -> WorkflowInstanceDetailDTO:
        summary = WorkflowInstanceDTO.from_instance(instance)
        return cls(
            **vars(summary),
            form_data=instance.form_data,
            variables=instance.variables,
            cancel_reason=instance.cancel_reason,
            node_history=[
                NodeExecutionDTO(
                    node_name=h.node_name,
                    node_type=str(h.node_type),
                    outcome=h.outcome,
                    task_id=h.task_id,
                    at=h.at,
                )
                for h in instance.node_history
            ],
        )


@dataclass
class TaskAssigneeDTO:
    """DTO for one assignee entry of a task."""

    user_id: str
    status: str
    assignee_type: str | None
    comment: str | None
    handled_at: datetime | None
    added_by: str | None


@dataclass
class TaskCommentDTO:
    """DTO for a task comment."""

    user_id: str
    content: str
    created_at: datetime


@dataclass
class TaskDTO:
    """DTO for a task.

    Attributes:
        id: Task ID.
        instance_id: Owning instance.
        workflow_id: Workflow the instance runs.
        node_name: The node the task belongs to.
        task_type: APPROVAL or COPY.
        approval_type: ``ANY`` or ``ALL``.
        title: Display title.
        initiator_id: The instance's initiator.
        status: Aggregate status.
        assignees: Assignee entries.
        comments: Comments and audit notes.
        priority: Sort priority.
        due_date: Advisory deadline.
        created_at: When the task was created.
        completed_at: When the task left PENDING.
    """

    id: UUID
    instance_id: UUID
    workflow_id: UUID
    node_name: str
    task_type: str
    approval_type: str
    title: str
    initiator_id: str
    status: str
    assignees: list[TaskAssigneeDTO]
    comments: list[TaskCommentDTO]
    priority: int
    due_date: datetime | None
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_task(cls, task: Task) -> TaskDTO:
        return cls(
            id=task.id,
            instance_id=task.instance_id,
            workflow_id=task.workflow_id,
            node_name=task.node_name,
            task_type=str(task.task_type),
            approval_type=task.approval_type.name,
            title=task.title,
            initiator_id=task.initiator_id,
            status=str(task.status),
            assignees=[
                TaskAssigneeDTO(
                    user_id=a.user_id,
                    status=str(a.status),
                    assignee_type=str(a.assignee_type) if a.assignee_type else None,
                    comment=a.comment,
                    handled_at=a.handled_at,
                    added_by=a.added_by,
                )
                for a in task.assignees
            ],
            comments=[
                TaskCommentDTO(user_id=c.user_id, content=c.content, created_at=c.created_at) for c in task.comments
            ],
            priority=task.priority,
            due_date=task.due_date,
            created_at=task.created_at,
            completed_at=task.completed_at,
        )
