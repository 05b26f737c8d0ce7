"""Approval execution engine.

This module provides the definition validator, assignee resolver, task
aggregator, instance state machine and the services composing them.
"""

from __future__ import annotations

from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.graph import FlowGraph, Landing, Visit
from litestar_approvals.engine.memory import (
    InMemoryDefinitionStore,
    InMemoryEventBus,
    InMemoryInstanceStore,
    InMemoryTaskStore,
)
from litestar_approvals.engine.resolver import AssigneeResolver, ResolutionContext, ResolvedAssignee
from litestar_approvals.engine.service import ExecutionService, ReassignMode
from litestar_approvals.engine.state_machine import InstanceStateMachine
from litestar_approvals.engine.validator import validate_assignee, validate_definition, validate_node_tree

__all__ = [
    "AssigneeResolver",
    "DefinitionService",
    "ExecutionService",
    "FlowGraph",
    "InMemoryDefinitionStore",
    "InMemoryEventBus",
    "InMemoryInstanceStore",
    "InMemoryTaskStore",
    "InstanceStateMachine",
    "Landing",
    "ReassignMode",
    "ResolutionContext",
    "ResolvedAssignee",
    "Visit",
    "validate_assignee",
    "validate_definition",
    "validate_node_tree",
]
