"""SQLAlchemy models for approval persistence.

This module defines the database models for persisting approval state:
- WorkflowDefinitionModel: One row per workflow version
- WorkflowInstanceModel: Running and finished instances
- TaskModel: Tasks created for APPROVAL and COPY nodes
- TaskAssigneeModel: Assignee entries of a task, queryable by user

Instances and tasks carry a ``revision`` column used by SQLAlchemy's
optimistic version counter, so a flush whose revision is stale fails instead
of overwriting a concurrent write.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litestar_approvals.core.types import AssigneeType, InstanceStatus, TaskStatus, TaskType

__all__ = [
    "TaskAssigneeModel",
    "TaskModel",
    "WorkflowDefinitionModel",
    "WorkflowInstanceModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class WorkflowDefinitionModel(UUIDAuditBase):
    """One immutable version of a workflow definition.

    Attributes:
        workflow_id: Identifier shared by every version of the workflow.
        version: Version number.
        name: Workflow name.
        group_id: Workflow group.
        description: Human-readable description.
        is_active: Whether new instances may be started.
        definition_json: The full definition in its wire form.
    """

    __tablename__ = "approval_workflow_definitions"
    __table_args__ = (
        Index("ix_approval_definitions_workflow_version", "workflow_id", "version", unique=True),
        Index("ix_approval_definitions_group_id", "group_id"),
    )

    workflow_id: Mapped[UUID] = mapped_column(index=True)
    version: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(255))
    group_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    definition_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)


class WorkflowInstanceModel(UUIDAuditBase):
    """Persisted workflow instance.

    Attributes:
        workflow_id: The workflow this instance runs.
        workflow_version: The pinned definition version.
        title: Display title.
        initiator_id: The launching user.
        status: Lifecycle status.
        current_node_name: The node the instance waits at.
        form_data: Submitted form data.
        variables: Extra condition variables.
        node_history: Append-only visit log.
        priority: Sort priority.
        due_date: Advisory deadline.
        cancel_reason: Reason given on cancellation.
        completed_at: When the instance reached a terminal status.
        revision: Optimistic concurrency counter.
    """

    __tablename__ = "approval_instances"
    __table_args__ = (
        Index("ix_approval_instances_initiator_status", "initiator_id", "status"),
        Index("ix_approval_instances_workflow_status", "workflow_id", "status"),
    )

    workflow_id: Mapped[UUID] = mapped_column()
    workflow_version: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(500), default="")
    initiator_id: Mapped[str] = mapped_column(String(255))
    status: Mapped[InstanceStatus] = mapped_column(
        Enum(InstanceStatus, native_enum=False, length=50),
        default=InstanceStatus.RUNNING,
    )
    current_node_name: Mapped[str] = mapped_column(String(255))
    form_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    variables: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    node_history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    tasks: Mapped[list[TaskModel]] = relationship(back_populates="instance", lazy="noload")

    __mapper_args__ = {"version_id_col": revision}


class TaskModel(UUIDAuditBase):
    """Persisted task.

    Attributes:
        instance_id: Owning instance.
        workflow_id: Denormalized workflow id.
        node_name: The node the task belongs to.
        task_type: APPROVAL or COPY.
        approval_type: Aggregation policy as its integer code.
        title: Display title.
        initiator_id: The instance's initiator.
        status: Aggregate status.
        comments: Comments and audit notes.
        priority: Sort priority.
        due_date: Advisory deadline.
        completed_at: When the task left PENDING.
        revision: Optimistic concurrency counter.
        assignees: Assignee entries in insertion order.
    """

    __tablename__ = "approval_tasks"
    __table_args__ = (
        Index("ix_approval_tasks_instance_status", "instance_id", "status"),
        Index("ix_approval_tasks_status_priority", "status", "priority"),
    )

    instance_id: Mapped[UUID] = mapped_column(ForeignKey("approval_instances.id", ondelete="CASCADE"))
    workflow_id: Mapped[UUID] = mapped_column()
    node_name: Mapped[str] = mapped_column(String(255))
    task_type: Mapped[TaskType] = mapped_column(Enum(TaskType, native_enum=False, length=50))
    approval_type: Mapped[int] = mapped_column(Integer, default=1)
    title: Mapped[str] = mapped_column(String(500), default="")
    initiator_id: Mapped[str] = mapped_column(String(255))
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, native_enum=False, length=50),
        default=TaskStatus.PENDING,
    )
    comments: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    instance: Mapped[WorkflowInstanceModel] = relationship(back_populates="tasks")
    assignees: Mapped[list[TaskAssigneeModel]] = relationship(
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TaskAssigneeModel.position",
    )

    __mapper_args__ = {"version_id_col": revision}


class TaskAssigneeModel(UUIDAuditBase):
    """One assignee entry of a task.

    Attributes:
        task_id: Owning task.
        position: Order of the entry within the task.
        user_id: The assigned user.
        status: The entry's decision status.
        assignee_type: Descriptor type the user was resolved from.
        comment: Decision comment.
        handled_at: When the decision was recorded.
        added_by: User who added the entry through reassignment.
    """

    __tablename__ = "approval_task_assignees"
    __table_args__ = (Index("ix_approval_task_assignees_user_status", "user_id", "status"),)

    task_id: Mapped[UUID] = mapped_column(ForeignKey("approval_tasks.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    user_id: Mapped[str] = mapped_column(String(255))
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, native_enum=False, length=50),
        default=TaskStatus.PENDING,
    )
    assignee_type: Mapped[AssigneeType | None] = mapped_column(
        Enum(AssigneeType, native_enum=False, length=50),
        nullable=True,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    handled_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    added_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    task: Mapped[TaskModel] = relationship(back_populates="assignees")
