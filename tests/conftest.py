"""Shared test fixtures for litestar-approvals test suite.

The organization used throughout::

    hq (leader: ceo)
    └── eng (leader: carol)
        └── platform (leader: dave)

    alice -> dave -> carol -> ceo   (manager chain)
    bob, erin: finance role; frank: finance role but inactive
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from litestar_approvals.config import ApprovalsConfig
from litestar_approvals.core.definition import WorkflowDefinition
from litestar_approvals.core.directory import Department, DirectoryUser, InMemoryDirectory
from litestar_approvals.core.forms import FieldType, FormField
from litestar_approvals.core.nodes import (
    ApprovalNode,
    Assignee,
    Condition,
    ConditionGroup,
    ConditionNode,
    CopyNode,
    InitiatorNode,
    RouterNode,
)
from litestar_approvals.core.types import ApprovalType, AssigneeType, ConditionOperator, LayerType
from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.memory import (
    InMemoryDefinitionStore,
    InMemoryEventBus,
    InMemoryInstanceStore,
    InMemoryTaskStore,
)
from litestar_approvals.engine.service import ExecutionService

if TYPE_CHECKING:
    from collections.abc import Callable


def user(user_id: str, **kwargs: Any) -> Assignee:
    """A SPECIFIC_USER assignee descriptor."""
    return Assignee(reference_id=user_id, assignee_type=AssigneeType.SPECIFIC_USER, **kwargs)


def amount_branch(name: str, priority: int, operator: ConditionOperator, *values: Any, **kwargs: Any) -> ConditionNode:
    """A router branch testing the ``amount`` variable."""
    return ConditionNode(
        name=name,
        condition_groups=[ConditionGroup(conditions=[Condition("amount", operator, list(values))])],
        priority_level=priority,
        **kwargs,
    )


# =============================================================================
# Directory
# =============================================================================


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Organization directory with a three-level department tree."""
    return InMemoryDirectory(
        departments=[
            Department(id="hq", name="Headquarters", leader_id="ceo"),
            Department(id="eng", name="Engineering", parent_id="hq", leader_id="carol"),
            Department(id="platform", name="Platform", parent_id="eng", leader_id="dave"),
        ],
        users=[
            DirectoryUser(id="ceo", name="Chief", department_id="hq"),
            DirectoryUser(id="carol", name="Carol", department_id="eng", manager_id="ceo"),
            DirectoryUser(id="dave", name="Dave", department_id="platform", manager_id="carol"),
            DirectoryUser(id="alice", name="Alice", department_id="platform", manager_id="dave", roles=["staff"]),
            DirectoryUser(id="bob", name="Bob", department_id="platform", manager_id="dave", roles=["finance"]),
            DirectoryUser(id="erin", name="Erin", department_id="hq", manager_id="ceo", roles=["finance"]),
            DirectoryUser(id="frank", name="Frank", department_id="hq", roles=["finance"], active=False),
            DirectoryUser(id="admin", name="Flow Admin"),
        ],
    )


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def definition_store() -> InMemoryDefinitionStore:
    return InMemoryDefinitionStore()


@pytest.fixture
def instance_store() -> InMemoryInstanceStore:
    return InMemoryInstanceStore()


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def approvals_config() -> ApprovalsConfig:
    return ApprovalsConfig()


@pytest.fixture
def service(
    definition_store: InMemoryDefinitionStore,
    instance_store: InMemoryInstanceStore,
    task_store: InMemoryTaskStore,
    directory: InMemoryDirectory,
    approvals_config: ApprovalsConfig,
    event_bus: InMemoryEventBus,
) -> ExecutionService:
    """Execution service over in-memory stores."""
    return ExecutionService(definition_store, instance_store, task_store, directory, approvals_config, event_bus)


@pytest.fixture
def definition_service(definition_store: InMemoryDefinitionStore) -> DefinitionService:
    return DefinitionService(definition_store)


# =============================================================================
# Definitions
# =============================================================================


@pytest.fixture
def expense_definition() -> WorkflowDefinition:
    """Manager approval, then a finance approval for large amounts, then a copy to erin.

    ::

        start -> manager (superior of the initiator)
              -> amount_router
                   P1 big (amount > 1000) -> finance (finance role, ANY)
                   P2 small (amount <= 1000)
              -> notify (copy to erin)
    """
    return WorkflowDefinition(
        name="Expense",
        group_id="finance",
        flow_admin_ids=["admin"],
        form_fields=[FormField(name="amount", label="Amount", type=FieldType.MONEY, required=True)],
        root_node=InitiatorNode(
            name="start",
            child_node=ApprovalNode(
                name="manager",
                assignees=[
                    Assignee(reference_id=None, assignee_type=AssigneeType.SUPERIOR, layer=1, layer_type=LayerType.UP)
                ],
                child_node=RouterNode(
                    name="amount_router",
                    condition_nodes=[
                        amount_branch(
                            "big",
                            1,
                            ConditionOperator.GT,
                            1000,
                            child_node=ApprovalNode(
                                name="finance",
                                assignees=[Assignee(reference_id="finance", assignee_type=AssigneeType.ROLE)],
                                approval_type=ApprovalType.ANY,
                            ),
                        ),
                        amount_branch("small", 2, ConditionOperator.LE, 1000),
                    ],
                    child_node=CopyNode(name="notify", ccs=[user("erin")]),
                ),
            ),
        ),
    )


@pytest.fixture
def review_definition() -> WorkflowDefinition:
    """A single ALL approval by bob and carol."""
    return WorkflowDefinition(
        name="Review",
        root_node=InitiatorNode(
            name="start",
            child_node=ApprovalNode(
                name="review",
                assignees=[
                    Assignee(reference_id=None, assignee_type=AssigneeType.SPECIFIC_USERS, member_ids=["bob", "carol"])
                ],
            ),
        ),
    )


@pytest.fixture
def make_definition(definition_service: DefinitionService) -> Callable[..., Any]:
    """Store a definition through the definition service and return it."""

    async def _make(definition: WorkflowDefinition) -> WorkflowDefinition:
        return await definition_service.create_definition(definition)

    return _make


def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers.

    Args:
        config: Pytest config object.
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
