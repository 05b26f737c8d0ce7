"""Runtime data models for litestar-approvals.

These dataclasses are the values the engine reads and writes through its
stores. Engine components never mutate a loaded value in place; they build a
new one with :func:`dataclasses.replace` and hand it back to the store, whose
``update`` only succeeds when the stored ``revision`` still matches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from litestar_approvals.core.types import (
    ApprovalType,
    AssigneeType,
    InstanceStatus,
    NodeType,
    TaskStatus,
    TaskType,
)

__all__ = [
    "NodeExecution",
    "Task",
    "TaskAssignee",
    "TaskComment",
    "WorkflowInstance",
    "utcnow",
]


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class NodeExecution:
    """One entry of an instance's append-only node history.

    Attributes:
        node_name: Name of the visited node.
        node_type: Type of the visited node.
        outcome: What happened at the node, e.g. ``entered``, ``matched``,
            ``not_matched``, ``skipped``, ``approved`` or ``rejected``.
        task_id: The task created for the node, if any.
        at: When the entry was recorded.
    """

    node_name: str
    node_type: NodeType
    outcome: str
    task_id: UUID | None = None
    at: datetime = field(default_factory=utcnow)


@dataclass
class TaskAssignee:
    """A concrete user's entry on a task.

    Attributes:
        user_id: The assigned user.
        status: The entry's own decision status.
        assignee_type: Descriptor type the user was resolved from.
        comment: Comment given with the decision.
        handled_at: When the decision was recorded.
        added_by: User who added the entry through reassignment.
    """

    user_id: str
    status: TaskStatus = TaskStatus.PENDING
    assignee_type: AssigneeType | None = None
    comment: str | None = None
    handled_at: datetime | None = None
    added_by: str | None = None


@dataclass
class TaskComment:
    """A comment on a task, including audit comments written by the engine."""

    user_id: str
    content: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Task:
    """A unit of human work created when an instance reaches an APPROVAL or COPY node.

    Attributes:
        id: Unique identifier.
        instance_id: Owning workflow instance.
        workflow_id: Definition the instance runs.
        node_name: The node this task belongs to.
        task_type: APPROVAL or COPY.
        approval_type: Aggregation policy snapshotted from the node.
        title: Display title, copied from the instance.
        initiator_id: The instance's initiator.
        status: Aggregate status.
        assignees: Resolved assignee entries, a snapshot taken at creation.
        comments: Comments and audit notes, append only.
        priority: Sort priority copied from the instance.
        due_date: Advisory deadline.
        created_at: Creation time.
        completed_at: When the task left PENDING.
        revision: Optimistic concurrency token.
    """

    id: UUID
    instance_id: UUID
    workflow_id: UUID
    node_name: str
    task_type: TaskType
    initiator_id: str
    title: str = ""
    approval_type: ApprovalType = ApprovalType.ALL
    status: TaskStatus = TaskStatus.PENDING
    assignees: list[TaskAssignee] = field(default_factory=list)
    comments: list[TaskComment] = field(default_factory=list)
    priority: int = 0
    due_date: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    revision: int = 0

    def entry_for(self, user_id: str, *, pending_only: bool = False) -> TaskAssignee | None:
        """Return the user's entry, preferring a PENDING one.

        Args:
            user_id: The user to look up.
            pending_only: Only return a PENDING entry.

        Returns:
            The matching entry or None.
        """
        entries = [a for a in self.assignees if a.user_id == user_id]
        pending = next((a for a in entries if a.status is TaskStatus.PENDING), None)
        if pending is not None or pending_only:
            return pending
        return entries[-1] if entries else None

    @property
    def pending_user_ids(self) -> list[str]:
        return [a.user_id for a in self.assignees if a.status is TaskStatus.PENDING]


@dataclass
class WorkflowInstance:
    """A running or finished execution of a workflow definition.

    Attributes:
        id: Unique identifier.
        workflow_id: Definition identifier.
        workflow_version: The definition version this instance is pinned to.
        title: Display title.
        initiator_id: User who launched the instance.
        status: Lifecycle status.
        current_node_name: The node the instance is waiting at.
        form_data: Data submitted by the initiator.
        variables: Extra variables used by condition evaluation; override ``form_data``.
        node_history: Append-only log of visited nodes.
        priority: Sort priority.
        due_date: Advisory deadline.
        cancel_reason: Reason given when the instance was canceled.
        created_at: Creation time.
        completed_at: When the instance reached a terminal status.
        revision: Optimistic concurrency token.
    """

    id: UUID
    workflow_id: UUID
    workflow_version: int
    initiator_id: str
    current_node_name: str
    title: str = ""
    status: InstanceStatus = InstanceStatus.RUNNING
    form_data: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    node_history: list[NodeExecution] = field(default_factory=list)
    priority: int = 0
    due_date: datetime | None = None
    cancel_reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    revision: int = 0

    @property
    def condition_variables(self) -> dict[str, Any]:
        """Form data overlaid with explicit variables."""
        return {**self.form_data, **self.variables}
