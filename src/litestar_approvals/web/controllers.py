"""REST API controllers for approval management.

This module provides three controller classes:
- DefinitionController: Create, version, read and deactivate workflow definitions
- InstanceController: Start, inspect and cancel workflow instances
- TaskController: Approve, reject, comment on and reassign tasks

Actor ids travel in request bodies and query parameters; authenticating them
is left to the application's guards.
"""

from __future__ import annotations

from datetime import timezone
from typing import Any, ClassVar
from uuid import UUID

from litestar import Controller, get, post, put
from litestar.params import Parameter
from litestar.status_codes import HTTP_200_OK

from litestar_approvals.core.definition import WorkflowDefinition
from litestar_approvals.core.types import InstanceStatus, TaskStatus
from litestar_approvals.engine.definitions import DefinitionService  # noqa: TC001 - needed for DI
from litestar_approvals.engine.service import ExecutionService  # noqa: TC001 - needed for DI
from litestar_approvals.web.dto import (
    CancelInstanceDTO,
    CommentDTO,
    DecisionDTO,
    DefinitionSummaryDTO,
    GraphDTO,
    ReassignTaskDTO,
    StartWorkflowDTO,
    TaskDTO,
    WorkflowInstanceDetailDTO,
    WorkflowInstanceDTO,
)

__all__ = [
    "DefinitionController",
    "InstanceController",
    "TaskController",
]


class DefinitionController(Controller):
    """API controller for workflow definitions.

    Definitions are exchanged in their wire form: ``nodeConfig``,
    ``flowWidgets``, ``flowPermission`` and friends.

    Tags: Workflow Definitions
    """

    path = "/definitions"
    tags: ClassVar[list[str]] = ["Workflow Definitions"]

    @get("/")
    async def list_definitions(
        self,
        definition_service: DefinitionService,
        group_id: str | None = Parameter(
            default=None,
            description="Filter by workflow group",
        ),
    ) -> list[DefinitionSummaryDTO]:
        """List the latest version of every workflow definition.

        Args:
            definition_service: Injected definition service.
            group_id: Optional group filter.

        Returns:
            List of definition summaries.
        """
        definitions = await definition_service.list_definitions(group_id)
        return [DefinitionSummaryDTO.from_definition(d) for d in definitions]

    @post("/")
    async def create_definition(
        self,
        data: dict[str, Any],
        definition_service: DefinitionService,
    ) -> dict[str, Any]:
        """Validate and store a new workflow definition.

        Args:
            data: The definition in wire form.
            definition_service: Injected definition service.

        Returns:
            The stored definition, version 1.
        """
        definition = await definition_service.create_definition(WorkflowDefinition.from_dict(data))
        return definition.to_dict()

    @get("/{workflow_id:uuid}")
    async def get_definition(
        self,
        workflow_id: UUID,
        definition_service: DefinitionService,
        version: int | None = Parameter(
            default=None,
            description="Specific version to retrieve. If omitted, returns latest.",
        ),
    ) -> dict[str, Any]:
        """Get a workflow definition.

        Args:
            workflow_id: The workflow ID.
            definition_service: Injected definition service.
            version: Optional specific version to retrieve.

        Returns:
            The definition in wire form.
        """
        definition = await definition_service.get_definition(workflow_id, version)
        return definition.to_dict()

    @put("/{workflow_id:uuid}")
    async def update_definition(
        self,
        workflow_id: UUID,
        data: dict[str, Any],
        definition_service: DefinitionService,
    ) -> dict[str, Any]:
        """Write the next version of a workflow definition.

        Instances already running stay on the version they started with.

        Args:
            workflow_id: The workflow ID.
            data: The new definition content in wire form.
            definition_service: Injected definition service.

        Returns:
            The newly stored version.
        """
        definition = await definition_service.update_definition(workflow_id, WorkflowDefinition.from_dict(data))
        return definition.to_dict()

    @post("/{workflow_id:uuid}/deactivate", status_code=HTTP_200_OK)
    async def deactivate_definition(
        self,
        workflow_id: UUID,
        definition_service: DefinitionService,
    ) -> dict[str, Any]:
        """Close a workflow for new instances."""
        definition = await definition_service.deactivate_definition(workflow_id)
        return definition.to_dict()

    @get("/{workflow_id:uuid}/graph")
    async def get_definition_graph(
        self,
        workflow_id: UUID,
        definition_service: DefinitionService,
        version: int | None = Parameter(
            default=None,
            description="Specific version to render. If omitted, renders latest.",
        ),
    ) -> GraphDTO:
        """Get the MermaidJS rendering of a workflow's node tree.

        Args:
            workflow_id: The workflow ID.
            definition_service: Injected definition service.
            version: Optional specific version to render.

        Returns:
            Graph DTO with the Mermaid source.
        """
        definition = await definition_service.get_definition(workflow_id, version)
        return GraphDTO(mermaid_source=definition.to_mermaid())


class InstanceController(Controller):
    """API controller for workflow instances.

    Tags: Workflow Instances
    """

    path = "/instances"
    tags: ClassVar[list[str]] = ["Workflow Instances"]

    @post("/")
    async def start_workflow(
        self,
        data: StartWorkflowDTO,
        approvals_service: ExecutionService,
    ) -> WorkflowInstanceDTO:
        """Start a new workflow instance.

        Args:
            data: Workflow start parameters.
            approvals_service: Injected execution service.

        Returns:
            Workflow instance DTO.
        """
        due_date = data.due_date
        if due_date is not None and due_date.tzinfo is None:
            due_date = due_date.replace(tzinfo=timezone.utc)

        instance = await approvals_service.start_workflow(
            data.workflow_id,
            data.form_data,
            data.initiator_id,
            title=data.title,
            priority=data.priority,
            due_date=due_date,
            variables=data.variables,
        )
        return WorkflowInstanceDTO.from_instance(instance)

    @get("/")
    async def list_instances(
        self,
        approvals_service: ExecutionService,
        initiator_id: str = Parameter(description="List instances launched by this user"),
        status: InstanceStatus | None = Parameter(
            default=None,
            description="Filter by status",
        ),
    ) -> list[WorkflowInstanceDTO]:
        """List the instances a user launched, newest first.

        Args:
            approvals_service: Injected execution service.
            initiator_id: The initiator.
            status: Optional status filter.

        Returns:
            List of workflow instance DTOs.
        """
        instances = await approvals_service.get_user_instances(initiator_id, status)
        return [WorkflowInstanceDTO.from_instance(i) for i in instances]

    @get("/{instance_id:uuid}")
    async def get_instance(
        self,
        instance_id: UUID,
        approvals_service: ExecutionService,
    ) -> WorkflowInstanceDetailDTO:
        """Get detailed workflow instance information, including node history."""
        instance = await approvals_service.get_instance_by_id(instance_id)
        return WorkflowInstanceDetailDTO.from_instance(instance)

    @get("/{instance_id:uuid}/tasks")
    async def list_instance_tasks(
        self,
        instance_id: UUID,
        approvals_service: ExecutionService,
        include_handled: bool = Parameter(
            default=False,
            description="Include tasks that are no longer pending",
        ),
    ) -> list[TaskDTO]:
        """List an instance's tasks, pending ones unless ``include_handled`` is set.

        Args:
            instance_id: The workflow instance ID.
            approvals_service: Injected execution service.
            include_handled: Whether to include resolved and canceled tasks.

        Returns:
            List of task DTOs.
        """
        status = None if include_handled else TaskStatus.PENDING
        tasks = await approvals_service.get_tasks(instance_id, status)
        return [TaskDTO.from_task(t) for t in tasks]

    @post("/{instance_id:uuid}/cancel", status_code=HTTP_200_OK)
    async def cancel_instance(
        self,
        instance_id: UUID,
        data: CancelInstanceDTO,
        approvals_service: ExecutionService,
    ) -> WorkflowInstanceDTO:
        """Cancel a running workflow instance and its pending tasks.

        Args:
            instance_id: The workflow instance ID.
            data: Cancellation actor and reason.
            approvals_service: Injected execution service.

        Returns:
            Updated workflow instance DTO.
        """
        instance = await approvals_service.cancel_instance(instance_id, data.actor_id, data.reason)
        return WorkflowInstanceDTO.from_instance(instance)


class TaskController(Controller):
    """API controller for approval and copy tasks.

    Tags: Approval Tasks
    """

    path = "/tasks"
    tags: ClassVar[list[str]] = ["Approval Tasks"]

    @get("/")
    async def list_user_tasks(
        self,
        approvals_service: ExecutionService,
        user_id: str = Parameter(description="List tasks waiting on this user"),
    ) -> list[TaskDTO]:
        """List the pending tasks on which a user holds a pending entry."""
        tasks = await approvals_service.get_user_tasks(user_id)
        return [TaskDTO.from_task(t) for t in tasks]

    @get("/{task_id:uuid}")
    async def get_task(
        self,
        task_id: UUID,
        approvals_service: ExecutionService,
    ) -> TaskDTO:
        """Get a task."""
        return TaskDTO.from_task(await approvals_service.get_task(task_id))

    @post("/{task_id:uuid}/approve", status_code=HTTP_200_OK)
    async def approve_task(
        self,
        task_id: UUID,
        data: DecisionDTO,
        approvals_service: ExecutionService,
    ) -> TaskDTO:
        """Approve a task, or acknowledge a copy task.

        Args:
            task_id: The task ID.
            data: The deciding user and an optional comment.
            approvals_service: Injected execution service.

        Returns:
            The updated task DTO.
        """
        task = await approvals_service.approve_task(task_id, data.user_id, data.comment)
        return TaskDTO.from_task(task)

    @post("/{task_id:uuid}/reject", status_code=HTTP_200_OK)
    async def reject_task(
        self,
        task_id: UUID,
        data: DecisionDTO,
        approvals_service: ExecutionService,
    ) -> TaskDTO:
        """Reject a task, which rejects its instance.

        Args:
            task_id: The task ID.
            data: The deciding user and an optional comment.
            approvals_service: Injected execution service.

        Returns:
            The updated task DTO.
        """
        task = await approvals_service.reject_task(task_id, data.user_id, data.comment)
        return TaskDTO.from_task(task)

    @post("/{task_id:uuid}/comments")
    async def add_comment(
        self,
        task_id: UUID,
        data: CommentDTO,
        approvals_service: ExecutionService,
    ) -> TaskDTO:
        """Append a comment to a task."""
        task = await approvals_service.add_task_comment(task_id, data.user_id, data.content)
        return TaskDTO.from_task(task)

    @post("/{task_id:uuid}/reassign", status_code=HTTP_200_OK)
    async def reassign_task(
        self,
        task_id: UUID,
        data: ReassignTaskDTO,
        approvals_service: ExecutionService,
    ) -> TaskDTO:
        """Reassign a task to a different user.

        Args:
            task_id: The task ID.
            data: Reassignment data.
            approvals_service: Injected execution service.

        Returns:
            The updated task DTO.
        """
        task = await approvals_service.reassign_task(task_id, data.new_assignee_id, data.actor_id, data.mode)
        return TaskDTO.from_task(task)
