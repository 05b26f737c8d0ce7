"""In-memory stores and event bus.

These implementations keep everything in dictionaries. They are suitable for
development, testing and single-process deployments. Values are deep-copied
on the way in and out so callers can never mutate stored state without going
through ``update``.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from copy import deepcopy
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from litestar_approvals.core.types import TaskStatus
from litestar_approvals.exceptions import ConcurrentUpdateError

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.models import Task, WorkflowInstance
    from litestar_approvals.core.types import InstanceStatus

__all__ = [
    "InMemoryDefinitionStore",
    "InMemoryEventBus",
    "InMemoryInstanceStore",
    "InMemoryTaskStore",
]


class InMemoryDefinitionStore:
    """Versioned definition storage keyed by ``(id, version)``."""

    def __init__(self) -> None:
        self._versions: dict[UUID, dict[int, WorkflowDefinition]] = {}

    async def add(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        versions = self._versions.setdefault(definition.id, {})
        if definition.version in versions:
            raise ConcurrentUpdateError("workflow", definition.id, definition.version - 1)
        versions[definition.version] = deepcopy(definition)
        return deepcopy(definition)

    async def get(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        versions = self._versions.get(workflow_id)
        if not versions:
            return None
        key = max(versions) if version is None else version
        found = versions.get(key)
        return deepcopy(found) if found is not None else None

    async def list_latest(self, group_id: str | None = None) -> list[WorkflowDefinition]:
        latest = [versions[max(versions)] for versions in self._versions.values() if versions]
        if group_id is not None:
            latest = [d for d in latest if d.group_id == group_id]
        return [deepcopy(d) for d in sorted(latest, key=lambda d: d.created_at)]

    async def set_active(self, workflow_id: UUID, active: bool) -> None:
        versions = self._versions.get(workflow_id, {})
        for number, definition in versions.items():
            versions[number] = replace(definition, active=active)


class _RevisionedStore:
    """Dictionary storage whose ``update`` is a compare-and-set on ``revision``."""

    entity = "entity"

    def __init__(self) -> None:
        self._items: dict[UUID, Any] = {}
        self._lock = asyncio.Lock()

    async def add(self, item: Any) -> Any:
        async with self._lock:
            stored = replace(deepcopy(item), revision=1)
            self._items[item.id] = stored
            return deepcopy(stored)

    async def get(self, item_id: UUID) -> Any:
        item = self._items.get(item_id)
        return deepcopy(item) if item is not None else None

    async def update(self, item: Any) -> Any:
        async with self._lock:
            current = self._items.get(item.id)
            if current is None or current.revision != item.revision:
                raise ConcurrentUpdateError(self.entity, item.id, item.revision)
            stored = replace(deepcopy(item), revision=item.revision + 1)
            self._items[item.id] = stored
            return deepcopy(stored)


class InMemoryInstanceStore(_RevisionedStore):
    """Workflow instance storage."""

    entity = "instance"

    async def find_by_initiator(
        self, initiator_id: str, status: InstanceStatus | None = None
    ) -> list[WorkflowInstance]:
        found = [
            i
            for i in self._items.values()
            if i.initiator_id == initiator_id and (status is None or i.status is status)
        ]
        return [deepcopy(i) for i in sorted(found, key=lambda i: i.created_at, reverse=True)]


class InMemoryTaskStore(_RevisionedStore):
    """Task storage."""

    entity = "task"

    @staticmethod
    def _ordered(tasks: list[Task]) -> list[Task]:
        return [deepcopy(t) for t in sorted(tasks, key=lambda t: (-t.priority, t.created_at))]

    async def find_by_instance(self, instance_id: UUID, status: TaskStatus | None = None) -> list[Task]:
        return self._ordered(
            [t for t in self._items.values() if t.instance_id == instance_id and (status is None or t.status is status)]
        )

    async def find_pending_for_user(self, user_id: str) -> list[Task]:
        return self._ordered(
            [
                t
                for t in self._items.values()
                if t.status is TaskStatus.PENDING and user_id in t.pending_user_ids
            ]
        )


EventHandler = Callable[..., Awaitable[None]]


class InMemoryEventBus:
    """Records emitted events and forwards them to subscribed handlers.

    Example:
        >>> bus = InMemoryEventBus()
        >>> bus.subscribe("task.created", notify_assignees)
        >>> await bus.emit("task.created", task_id=task.id)
        >>> bus.names
        ['task.created']
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        self._handlers[event].append(handler)

    async def emit(self, event: str, **payload: Any) -> None:
        self.events.append((event, payload))
        for handler in self._handlers.get(event, []):
            await handler(**payload)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]
