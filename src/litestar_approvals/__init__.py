"""Litestar Approvals - Organizational approval workflows for Litestar.

This package provides an approval workflow engine for Litestar applications:
administrators define workflows as trees of typed nodes with an attached form,
users launch instances, and tasks are routed to assignees resolved from the
organization directory.

Key Features:
    - Node trees with approval, copy, condition and router nodes
    - Assignee resolution by user, department leader, superior chain and role
    - ANY/ALL approval policies with reassignment and comments
    - Versioned definitions; running instances stay on their version
    - Optimistic concurrency on instances and tasks
    - In-memory and SQLAlchemy stores, REST API via ApprovalsPlugin

Example:
    >>> from litestar_approvals import ExecutionService, WorkflowDefinition
    >>>
    >>> definition = WorkflowDefinition.from_dict(
    ...     {
    ...         "name": "Leave request",
    ...         "nodeConfig": {
    ...             "name": "start",
    ...             "type": "INITIATOR",
    ...             "childNode": {
    ...                 "name": "manager",
    ...                 "type": "APPROVAL",
    ...                 "assignees": [{"assigneeType": "SUPERIOR", "layer": 1, "layerType": 0}],
    ...             },
    ...         },
    ...     }
    ... )
    >>> definition = await definition_service.create_definition(definition)
    >>> instance = await service.start_workflow(definition.id, {"days": 3}, "alice")
"""

from __future__ import annotations

from litestar_approvals.__metadata__ import __project__, __version__
from litestar_approvals.config import ApprovalsConfig, ResolutionFallback
from litestar_approvals.core.definition import FlowPermission, PermittedInitiator, WorkflowDefinition
from litestar_approvals.core.directory import Department, Directory, DirectoryUser, InMemoryDirectory
from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.memory import (
    InMemoryDefinitionStore,
    InMemoryEventBus,
    InMemoryInstanceStore,
    InMemoryTaskStore,
)
from litestar_approvals.engine.service import ExecutionService, ReassignMode
from litestar_approvals.exceptions import (
    AlreadyHandledError,
    ApprovalsError,
    AssigneeResolutionError,
    ConcurrentUpdateError,
    CorruptStateError,
    FormValidationError,
    InitiatorNotPermittedError,
    InvalidStateError,
    NotAssigneeError,
    NotFoundError,
    TaskNotFoundError,
    WorkflowInstanceNotFoundError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from litestar_approvals.plugin import ApprovalsPlugin, ApprovalsPluginConfig

__all__ = (
    "AlreadyHandledError",
    "ApprovalsConfig",
    "ApprovalsError",
    "ApprovalsPlugin",
    "ApprovalsPluginConfig",
    "AssigneeResolutionError",
    "ConcurrentUpdateError",
    "CorruptStateError",
    "DefinitionService",
    "Department",
    "Directory",
    "DirectoryUser",
    "ExecutionService",
    "FlowPermission",
    "FormValidationError",
    "InMemoryDefinitionStore",
    "InMemoryDirectory",
    "InMemoryEventBus",
    "InMemoryInstanceStore",
    "InMemoryTaskStore",
    "InitiatorNotPermittedError",
    "InvalidStateError",
    "NotAssigneeError",
    "NotFoundError",
    "PermittedInitiator",
    "ReassignMode",
    "ResolutionFallback",
    "TaskNotFoundError",
    "WorkflowDefinition",
    "WorkflowInstanceNotFoundError",
    "WorkflowNotFoundError",
    "WorkflowValidationError",
    "__project__",
    "__version__",
)
