"""Workflow instance state machine.

Owns the lifecycle of an instance: RUNNING until it completes, is rejected or
is canceled, after which no transition is accepted. Every transition first
computes the new instance value without side effects, then writes it with a
revision-checked update, and only then creates the task for the node the
instance landed on.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from litestar_approvals.config import ApprovalsConfig, ResolutionFallback
from litestar_approvals.core.models import NodeExecution, Task, TaskAssignee, WorkflowInstance, utcnow
from litestar_approvals.core.nodes import ApprovalNode, CopyNode
from litestar_approvals.core.types import ApprovalType, AssigneeType, InstanceStatus, NodeType, TaskStatus, TaskType
from litestar_approvals.engine.aggregator import cancel_task
from litestar_approvals.engine.graph import FlowGraph
from litestar_approvals.engine.resolver import ResolutionContext, ResolvedAssignee
from litestar_approvals.exceptions import (
    AssigneeResolutionError,
    ConcurrentUpdateError,
    CorruptStateError,
    InvalidStateError,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.nodes import Node
    from litestar_approvals.core.protocols import EventBus, InstanceStore, TaskStore
    from litestar_approvals.engine.resolver import AssigneeResolver

__all__ = ["InstanceStateMachine"]

logger = logging.getLogger(__name__)

_SETTLED_OUTCOMES = frozenset({"approved", "rejected"})


class InstanceStateMachine:
    """Drives workflow instances through their definition's node tree.

    Attributes:
        instances: Instance store.
        tasks: Task store.
        resolver: Assignee resolver used when a task is created.
        config: Engine configuration.
        event_bus: Optional receiver for lifecycle events.
    """

    def __init__(
        self,
        instances: InstanceStore,
        tasks: TaskStore,
        resolver: AssigneeResolver,
        config: ApprovalsConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.instances = instances
        self.tasks = tasks
        self.resolver = resolver
        self.config = config or ApprovalsConfig()
        self.event_bus = event_bus

    async def _emit(self, event: str, **payload: Any) -> None:
        if self.event_bus:
            await self.event_bus.emit(event, **payload)

    # =========================================================================
    # Walking
    # =========================================================================

    async def _resolve_node(
        self,
        node: ApprovalNode | CopyNode,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
    ) -> list[ResolvedAssignee] | None:
        """Resolve a node's people, applying the fallback policy. None means skip the node."""
        descriptors = node.assignees if isinstance(node, ApprovalNode) else node.ccs
        context = ResolutionContext(initiator_id=instance.initiator_id, instance_id=instance.id)
        try:
            return await self.resolver.resolve_all(descriptors, context)
        except AssigneeResolutionError as e:
            match self.config.resolution_fallback:
                case ResolutionFallback.SKIP_NODE:
                    logger.warning("Skipping node '%s' of instance %s: %s", node.name, instance.id, e)
                    return None
                case ResolutionFallback.FLOW_ADMINS if definition.flow_admin_ids:
                    logger.warning(
                        "Assigning flow admins to node '%s' of instance %s: %s", node.name, instance.id, e
                    )
                    return [
                        ResolvedAssignee(user_id=admin_id, assignee_type=AssigneeType.SPECIFIC_USER)
                        for admin_id in dict.fromkeys(definition.flow_admin_ids)
                    ]
            raise

    async def _walk(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        graph: FlowGraph,
        start: Node | None,
    ) -> tuple[WorkflowInstance, Task | None]:
        """Walk from ``start`` to the next node with people, or to the end of the tree.

        Returns:
            The new instance value and the task to create, if any. Nothing is persisted.
        """
        history = list(instance.node_history)
        node = start
        while True:
            landing = graph.walk(node, instance.condition_variables)
            history.extend(NodeExecution(v.node.name, v.node.node_type, v.outcome) for v in landing.visits)

            if landing.node is None:
                completed = replace(
                    instance, status=InstanceStatus.COMPLETED, completed_at=utcnow(), node_history=history
                )
                return completed, None

            target = landing.node
            resolved = await self._resolve_node(target, instance, definition)
            if resolved is None:
                history.append(NodeExecution(target.name, target.node_type, "skipped"))
                node = graph.successor(target)
                continue

            is_approval = isinstance(target, ApprovalNode)
            task = Task(
                id=uuid4(),
                instance_id=instance.id,
                workflow_id=instance.workflow_id,
                node_name=target.name,
                task_type=TaskType.APPROVAL if is_approval else TaskType.COPY,
                initiator_id=instance.initiator_id,
                title=instance.title,
                approval_type=target.approval_type if isinstance(target, ApprovalNode) else ApprovalType.ALL,
                assignees=[TaskAssignee(user_id=r.user_id, assignee_type=r.assignee_type) for r in resolved],
                priority=instance.priority,
                due_date=instance.due_date,
            )
            history.append(NodeExecution(target.name, target.node_type, "task_created", task_id=task.id))
            return replace(instance, current_node_name=target.name, node_history=history), task

    async def _open_task(self, task: Task | None) -> None:
        if task is None:
            return
        await self.tasks.add(task)
        logger.info("Created %s task %s at node '%s'", task.task_type, task.id, task.node_name)
        await self._emit(
            "task.created",
            task_id=task.id,
            instance_id=task.instance_id,
            node_name=task.node_name,
            assignees=[a.user_id for a in task.assignees],
        )

    def _graph(self, instance: WorkflowInstance, definition: WorkflowDefinition) -> FlowGraph:
        graph = FlowGraph.from_definition(definition)
        if instance.current_node_name not in graph:
            logger.error(
                "Instance %s points at node '%s' missing from workflow %s v%s",
                instance.id,
                instance.current_node_name,
                definition.id,
                definition.version,
            )
            raise CorruptStateError(instance.id, instance.current_node_name)
        return graph

    @staticmethod
    def _require_running(instance: WorkflowInstance) -> None:
        if instance.status is not InstanceStatus.RUNNING:
            raise InvalidStateError(instance.id, instance.status)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start(
        self,
        definition: WorkflowDefinition,
        form_data: dict[str, Any],
        initiator_id: str,
        *,
        title: str | None = None,
        priority: int | None = None,
        due_date: datetime | None = None,
        variables: dict[str, Any] | None = None,
    ) -> WorkflowInstance:
        """Create an instance and walk it to its first task.

        The instance is stored only once the walk succeeded, so a resolution
        failure leaves nothing behind.

        Args:
            definition: The definition version to run.
            form_data: Data submitted by the initiator.
            initiator_id: The launching user.
            title: Display title. Defaults to ``form_data['title']`` or the workflow name.
            priority: Sort priority for the instance and its tasks.
            due_date: Advisory deadline.
            variables: Extra condition variables overriding ``form_data``.

        Returns:
            The stored instance, RUNNING at its first task or already COMPLETED.

        Raises:
            AssigneeResolutionError: If the first task's assignees cannot be resolved.
        """
        root = definition.root_node
        instance = WorkflowInstance(
            id=uuid4(),
            workflow_id=definition.id,
            workflow_version=definition.version,
            initiator_id=initiator_id,
            current_node_name=root.name,
            title=title or form_data.get("title") or definition.name,
            form_data=dict(form_data),
            variables=dict(variables or {}),
            priority=self.config.default_priority if priority is None else priority,
            due_date=due_date,
            node_history=[NodeExecution(root.name, root.node_type, "started")],
        )
        graph = FlowGraph.from_definition(definition)
        walked, task = await self._walk(instance, definition, graph, graph.successor(root))

        stored = await self.instances.add(walked)
        logger.info("Started instance %s of workflow %s v%s", stored.id, definition.id, definition.version)
        await self._emit(
            "workflow.started", instance_id=stored.id, workflow_id=definition.id, initiator_id=initiator_id
        )
        await self._open_task(task)
        if stored.status is InstanceStatus.COMPLETED:
            logger.info("Instance %s completed", stored.id)
            await self._emit("workflow.completed", instance_id=stored.id)
        return stored

    async def _save(self, instance: WorkflowInstance) -> WorkflowInstance | None:
        """Write an instance value. Returns None when the instance went terminal concurrently."""
        try:
            return await self.instances.update(instance)
        except ConcurrentUpdateError:
            current = await self.instances.get(instance.id)
            if current is not None and current.status.is_terminal:
                logger.warning(
                    "Instance %s became %s concurrently; dropping transition", instance.id, current.status
                )
                return None
            raise

    async def prepare_advance(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        completed_node_name: str,
        task_id: UUID | None = None,
    ) -> tuple[WorkflowInstance, Task | None] | None:
        """Compute where an instance lands once ``completed_node_name`` is approved.

        Nothing is written, so a resolution failure leaves the instance and
        the deciding task untouched.

        Returns:
            The new instance value and the task to open, or None if the
            instance already left the node.

        Raises:
            InvalidStateError: If the instance is not RUNNING.
            CorruptStateError: If the node is missing from the definition.
            AssigneeResolutionError: If the next node's assignees cannot be resolved.
        """
        self._require_running(instance)
        graph = self._graph(instance, definition)
        completed = graph.get(completed_node_name)
        if completed is None:
            logger.error("Instance %s completed unknown node '%s'", instance.id, completed_node_name)
            raise CorruptStateError(instance.id, completed_node_name)
        if instance.current_node_name != completed_node_name:
            logger.warning(
                "Instance %s already moved from '%s' to '%s'",
                instance.id,
                completed_node_name,
                instance.current_node_name,
            )
            return None

        marked = replace(
            instance,
            node_history=[
                *instance.node_history,
                NodeExecution(completed.name, completed.node_type, "approved", task_id=task_id),
            ],
        )
        return await self._walk(marked, definition, graph, graph.successor(completed))

    async def advance(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        completed_node_name: str,
        task_id: UUID | None = None,
        *,
        prepared: tuple[WorkflowInstance, Task | None] | None = None,
    ) -> WorkflowInstance:
        """Move an instance past a node whose task was approved.

        Called exactly once per node, by the decision that resolved the task.

        Args:
            instance: The instance as loaded.
            definition: The definition version the instance is pinned to.
            completed_node_name: The node whose task was approved.
            task_id: The approved task, recorded in the node history.
            prepared: Result of :meth:`prepare_advance` for ``instance``, used
                on the first attempt instead of walking again.

        Returns:
            The stored instance, or the current one if it went terminal concurrently.

        Raises:
            CorruptStateError: If the node is missing from the definition.
            ConcurrentUpdateError: If the instance kept changing underneath.
        """
        for _ in range(max(1, self.config.max_advance_attempts)):
            step = prepared or await self.prepare_advance(instance, definition, completed_node_name, task_id)
            prepared = None
            if step is None:
                return instance

            walked, task = step
            try:
                stored = await self._save(walked)
            except ConcurrentUpdateError:
                reloaded = await self.instances.get(instance.id)
                if reloaded is None:
                    raise
                logger.warning("Instance %s changed during advance; retrying", instance.id)
                instance = reloaded
                continue
            if stored is None:
                current = await self.instances.get(instance.id)
                return current or instance

            await self._open_task(task)
            if stored.status is InstanceStatus.COMPLETED:
                logger.info("Instance %s completed", stored.id)
                await self._emit("workflow.completed", instance_id=stored.id)
            return stored
        raise ConcurrentUpdateError("instance", instance.id, instance.revision)

    async def reject_cascade(self, instance: WorkflowInstance, task: Task) -> WorkflowInstance:
        """Reject the instance because one of its approval tasks was rejected.

        Returns:
            The stored instance, or the current one if it went terminal concurrently.
        """
        self._require_running(instance)
        rejected = replace(
            instance,
            status=InstanceStatus.REJECTED,
            completed_at=utcnow(),
            node_history=[
                *instance.node_history,
                NodeExecution(task.node_name, NodeType.APPROVAL, "rejected", task_id=task.id),
            ],
        )
        stored = await self._save(rejected)
        if stored is None:
            return await self.instances.get(instance.id) or instance
        logger.info("Instance %s rejected at node '%s'", stored.id, task.node_name)
        await self._emit("workflow.rejected", instance_id=stored.id, task_id=task.id, node_name=task.node_name)
        return stored

    async def cancel(
        self,
        instance: WorkflowInstance,
        definition: WorkflowDefinition,
        reason: str,
        actor_id: str,
    ) -> WorkflowInstance:
        """Cancel a running instance and every one of its open tasks.

        The instance is marked first, then each task is canceled with its own
        revision-checked update. A decision whose follow-up transition was
        never written to the instance lost against the cancellation, so its
        task is canceled too. Only tasks the node history records as approved
        or rejected keep their decision.

        Raises:
            InvalidStateError: If the instance is not RUNNING or the workflow
                is not cancelable.
        """
        self._require_running(instance)
        if not definition.cancelable:
            raise InvalidStateError(
                instance.id, instance.status, f"Workflow '{definition.name}' does not allow cancellation"
            )

        history = list(instance.node_history)
        current = FlowGraph.from_definition(definition).get(instance.current_node_name)
        if current is not None:
            history.append(NodeExecution(current.name, current.node_type, "canceled"))
        canceled = replace(
            instance,
            status=InstanceStatus.CANCELED,
            cancel_reason=reason,
            completed_at=utcnow(),
            node_history=history,
        )
        try:
            stored = await self.instances.update(canceled)
        except ConcurrentUpdateError:
            reloaded = await self.instances.get(instance.id)
            if reloaded is not None and reloaded.status.is_terminal:
                raise InvalidStateError(instance.id, reloaded.status) from None
            raise

        settled = {h.task_id for h in stored.node_history if h.task_id and h.outcome in _SETTLED_OUTCOMES}
        for task in await self.tasks.find_by_instance(instance.id, status=None):
            if task.id not in settled:
                await self._cancel_task(task, reason, actor_id)

        logger.info("Instance %s canceled by %s", stored.id, actor_id)
        await self._emit("workflow.canceled", instance_id=stored.id, actor_id=actor_id, reason=reason)
        return stored

    async def _cancel_task(self, task: Task, reason: str, actor_id: str) -> None:
        current: Task | None = task
        while current is not None and current.status is not TaskStatus.CANCELED:
            if current.status is not TaskStatus.PENDING:
                logger.warning("Task %s was %s after its instance was canceled; canceling", current.id, current.status)
            try:
                await self.tasks.update(cancel_task(current, reason, actor_id, force=True))
                return
            except ConcurrentUpdateError:
                logger.warning("Task %s changed during cancellation; reloading", current.id)
                current = await self.tasks.get(current.id)
