"""Core type definitions for litestar-approvals.

This module defines the enums and type aliases shared by the node model, the
execution engine and the persistence layer.
"""

from __future__ import annotations

import sys
from enum import Enum, IntEnum
from typing import Any

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)


from typing import TypeAlias

__all__ = [
    "ApprovalType",
    "AssigneeType",
    "ConditionOperator",
    "Decision",
    "FlowPermissionType",
    "InitiatorType",
    "InstanceStatus",
    "LayerType",
    "NodeType",
    "TaskOutcome",
    "TaskStatus",
    "TaskType",
    "Variables",
]


class NodeType(StrEnum):
    """Classification of nodes within a workflow definition tree.

    Attributes:
        INITIATOR: Root node representing the user who launches the workflow.
        APPROVAL: Requires a decision from one or more assignees.
        COPY: Notifies carbon-copy recipients, who acknowledge the task.
        CONDITION: Gate evaluated against instance variables.
        ROUTER: Branching point choosing one condition branch by priority.
    """

    INITIATOR = "INITIATOR"
    APPROVAL = "APPROVAL"
    COPY = "COPY"
    CONDITION = "CONDITION"
    ROUTER = "ROUTER"


class AssigneeType(StrEnum):
    """How an assignee descriptor is turned into concrete users.

    Attributes:
        SPECIFIC_USER: A single referenced user.
        SPECIFIC_USERS: An explicit member list.
        DEPARTMENT_LEADER: Leader of a department in the initiator's hierarchy.
        SUPERIOR: A manager in the initiator's reporting chain.
        ROLE: All active holders of a role.
    """

    SPECIFIC_USER = "SPECIFIC_USER"
    SPECIFIC_USERS = "SPECIFIC_USERS"
    DEPARTMENT_LEADER = "DEPARTMENT_LEADER"
    SUPERIOR = "SUPERIOR"
    ROLE = "ROLE"


class LayerType(IntEnum):
    """Direction in which hierarchy layers are counted.

    Attributes:
        UP: Layer 1 is closest to the initiator, counting toward the top.
        DOWN: Layer 1 is the top of the hierarchy, counting toward the initiator.
    """

    UP = 0
    DOWN = 1


class ApprovalType(IntEnum):
    """Aggregation policy for a node with several assignees.

    Attributes:
        ANY: The first approval resolves the node.
        ALL: Every assignee must approve.
    """

    ANY = 0
    ALL = 1


class ConditionOperator(IntEnum):
    """Comparison operators used in condition groups."""

    EQ = 1
    NE = 2
    GT = 3
    GE = 4
    LT = 5
    LE = 6
    IN = 7
    NOT_IN = 8
    BETWEEN = 9
    CONTAINS = 10


class FlowPermissionType(IntEnum):
    """Who may launch a workflow.

    Attributes:
        ALL: Any user.
        SPECIFIC: Only the listed initiators.
        NONE: Nobody; the workflow is closed for new instances.
    """

    ALL = 0
    SPECIFIC = 1
    NONE = 2


class InitiatorType(IntEnum):
    """Kind of entry in a workflow's initiator list."""

    USER = 0
    DEPARTMENT = 1
    ROLE = 2


class InstanceStatus(StrEnum):
    """Overall status of a workflow instance.

    Attributes:
        RUNNING: The instance is waiting on a task.
        COMPLETED: Every node was passed.
        REJECTED: An approval node was rejected.
        CANCELED: The instance was canceled.
    """

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are allowed."""
        return self is not InstanceStatus.RUNNING


class TaskStatus(StrEnum):
    """Status of a task and of each of its assignee entries."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class TaskType(StrEnum):
    """Kind of task created for a user-facing node."""

    APPROVAL = "APPROVAL"
    COPY = "COPY"


class Decision(StrEnum):
    """A single assignee's decision on a task."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


class TaskOutcome(StrEnum):
    """Aggregate outcome of a task after recording a decision.

    Attributes:
        PENDING: More decisions are needed.
        RESOLVED_APPROVED: The node is approved and the instance may advance.
        RESOLVED_REJECTED: The node is rejected and the instance is rejected.
    """

    PENDING = "PENDING"
    RESOLVED_APPROVED = "RESOLVED_APPROVED"
    RESOLVED_REJECTED = "RESOLVED_REJECTED"


Variables: TypeAlias = dict[str, Any]
"""Type alias for the variables a condition is evaluated against."""
