"""Core domain module for litestar-approvals.

This module exports the building blocks of approval workflows: the node tree,
definitions, forms, the directory protocol, runtime models and store protocols.
"""

from __future__ import annotations

from litestar_approvals.core.conditions import evaluate_condition, evaluate_group, evaluate_groups
from litestar_approvals.core.definition import FlowPermission, PermittedInitiator, WorkflowDefinition
from litestar_approvals.core.directory import Department, Directory, DirectoryUser, InMemoryDirectory
from litestar_approvals.core.forms import FieldType, FormField, validate_form, validate_form_fields
from litestar_approvals.core.models import NodeExecution, Task, TaskAssignee, TaskComment, WorkflowInstance
from litestar_approvals.core.nodes import (
    ApprovalNode,
    Assignee,
    Condition,
    ConditionGroup,
    ConditionNode,
    CopyNode,
    InitiatorNode,
    Node,
    RouterNode,
    find_node,
    iter_nodes,
    node_from_dict,
    node_to_dict,
)
from litestar_approvals.core.protocols import DefinitionStore, EventBus, InstanceStore, TaskStore
from litestar_approvals.core.types import (
    ApprovalType,
    AssigneeType,
    ConditionOperator,
    Decision,
    FlowPermissionType,
    InitiatorType,
    InstanceStatus,
    LayerType,
    NodeType,
    TaskOutcome,
    TaskStatus,
    TaskType,
    Variables,
)

__all__ = [
    "ApprovalNode",
    "ApprovalType",
    "Assignee",
    "AssigneeType",
    "Condition",
    "ConditionGroup",
    "ConditionNode",
    "ConditionOperator",
    "CopyNode",
    "Decision",
    "DefinitionStore",
    "Department",
    "Directory",
    "DirectoryUser",
    "EventBus",
    "FieldType",
    "FlowPermission",
    "FlowPermissionType",
    "FormField",
    "InMemoryDirectory",
    "InitiatorNode",
    "InitiatorType",
    "InstanceStatus",
    "InstanceStore",
    "LayerType",
    "Node",
    "NodeExecution",
    "NodeType",
    "PermittedInitiator",
    "RouterNode",
    "Task",
    "TaskAssignee",
    "TaskComment",
    "TaskOutcome",
    "TaskStatus",
    "TaskStore",
    "TaskType",
    "Variables",
    "WorkflowDefinition",
    "WorkflowInstance",
    "evaluate_condition",
    "evaluate_group",
    "evaluate_groups",
    "find_node",
    "iter_nodes",
    "node_from_dict",
    "node_to_dict",
    "validate_form",
    "validate_form_fields",
]
