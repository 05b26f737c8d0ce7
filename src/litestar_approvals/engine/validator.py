"""Structural validation of workflow node trees.

Validation runs before every definition write. All violations are collected
so the designer can show them together; the first one is the error's
``reason``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from litestar_approvals.core.nodes import ApprovalNode, ConditionNode, CopyNode, InitiatorNode, RouterNode
from litestar_approvals.core.types import AssigneeType
from litestar_approvals.exceptions import WorkflowValidationError

if TYPE_CHECKING:
    from litestar_approvals.core.nodes import Assignee, Node

__all__ = ["validate_assignee", "validate_definition", "validate_node_tree"]


def validate_assignee(assignee: Assignee, where: str) -> list[str]:
    """Check that an assignee descriptor carries the fields its type needs.

    Args:
        assignee: The descriptor to check.
        where: Location used in error messages.

    Returns:
        Error messages, empty when valid.
    """
    errors: list[str] = []
    match assignee.assignee_type:
        case AssigneeType.SPECIFIC_USER | AssigneeType.ROLE:
            if not assignee.reference_id:
                errors.append(f"{where}: {assignee.assignee_type} assignee requires a referenceId")
        case AssigneeType.SPECIFIC_USERS:
            if not assignee.member_ids:
                errors.append(f"{where}: SPECIFIC_USERS assignee requires memberIds")
        case AssigneeType.DEPARTMENT_LEADER | AssigneeType.SUPERIOR:
            if not isinstance(assignee.layer, int) or isinstance(assignee.layer, bool) or assignee.layer < 1:
                errors.append(f"{where}: {assignee.assignee_type} assignee requires a layer of at least 1")
            if assignee.layer_type is None:
                errors.append(f"{where}: {assignee.assignee_type} assignee requires a layerType")
    return errors


def _validate_node(node: Node, *, is_root: bool, seen: set[str], errors: list[str]) -> None:
    where = f"Node '{node.name}'" if node.name else "Node"

    if not node.name:
        errors.append(f"{where} ({node.node_type}): name is required")
    elif node.name in seen:
        errors.append(f"{where}: duplicate node name")
    seen.add(node.name)

    match node:
        case InitiatorNode():
            if not is_root:
                errors.append(f"{where}: only the root node may be an INITIATOR")
        case ApprovalNode(assignees=assignees):
            if not assignees:
                errors.append(f"{where}: approval node requires at least one assignee")
            for i, assignee in enumerate(assignees):
                errors.extend(validate_assignee(assignee, f"{where} assignee {i}"))
        case CopyNode(ccs=ccs):
            if not ccs:
                errors.append(f"{where}: copy node requires at least one cc")
            for i, cc in enumerate(ccs):
                errors.extend(validate_assignee(cc, f"{where} cc {i}"))
        case ConditionNode(condition_groups=groups):
            if not groups:
                errors.append(f"{where}: condition node requires at least one condition group")
            for i, group in enumerate(groups):
                if not group.conditions:
                    errors.append(f"{where}: condition group {i} requires at least one condition")
        case RouterNode(condition_nodes=branches):
            if not branches:
                errors.append(f"{where}: router node requires at least one condition node")
            priorities: dict[int, str] = {}
            for branch in branches:
                if not isinstance(branch, ConditionNode):
                    errors.append(f"{where}: router branch '{branch.name}' must be a CONDITION node")
                    continue
                if branch.priority_level is None:
                    errors.append(f"{where}: router branch '{branch.name}' requires a priorityLevel")
                elif branch.priority_level in priorities:
                    errors.append(
                        f"{where}: branches '{priorities[branch.priority_level]}' and '{branch.name}' "
                        f"share priority level {branch.priority_level}"
                    )
                else:
                    priorities[branch.priority_level] = branch.name
            for branch in branches:
                _validate_node(branch, is_root=False, seen=seen, errors=errors)

    if node.child_node is not None:
        _validate_node(node.child_node, is_root=False, seen=seen, errors=errors)


def validate_node_tree(root: Node) -> list[str]:
    """Collect every structural violation in a node tree.

    Args:
        root: Root of the tree.

    Returns:
        List of validation error messages. Empty list if valid.

    Example:
        >>> errors = validate_node_tree(definition.root_node)
        >>> if errors:
        ...     print("Validation errors:", errors)
    """
    errors: list[str] = []
    if not isinstance(root, InitiatorNode):
        errors.append(f"Root node '{root.name}' must be an INITIATOR node, got {root.node_type}")
    _validate_node(root, is_root=True, seen=set(), errors=errors)
    return errors


def validate_definition(root: Node) -> None:
    """Validate a node tree, raising on the first batch of violations.

    Raises:
        WorkflowValidationError: If any rule is violated.
    """
    errors = validate_node_tree(root)
    if errors:
        raise WorkflowValidationError(errors)
