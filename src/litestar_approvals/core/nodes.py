"""Workflow definition node tree.

A definition's control flow is a tree of typed nodes. Each node type is its
own dataclass carrying only the fields that type needs, and code that behaves
differently per type dispatches with ``match`` over the variant.

The designer submits trees in a camelCase wire form; :func:`node_from_dict`
and :func:`node_to_dict` convert between that form and the dataclasses.
Designer ids on nodes, condition groups and conditions are carried through
unchanged so a stored tree reads back as it was submitted.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeAlias, Union

from litestar_approvals.core.types import ApprovalType, AssigneeType, ConditionOperator, LayerType, NodeType
from litestar_approvals.exceptions import WorkflowValidationError

__all__ = [
    "ApprovalNode",
    "Assignee",
    "Condition",
    "ConditionGroup",
    "ConditionNode",
    "CopyNode",
    "InitiatorNode",
    "Node",
    "RouterNode",
    "assignee_from_dict",
    "assignee_to_dict",
    "find_node",
    "iter_nodes",
    "node_from_dict",
    "node_to_dict",
]


@dataclass(frozen=True)
class Assignee:
    """Abstract description of who should act on a task.

    Attributes:
        reference_id: User, department or role id depending on ``assignee_type``.
        assignee_type: How the descriptor is resolved to concrete users.
        layer: Number of hierarchy levels to walk (leader and superior types).
        layer_type: Direction in which ``layer`` is counted.
        member_ids: Explicit members for ``SPECIFIC_USERS``.
    """

    reference_id: str | None
    assignee_type: AssigneeType
    layer: int | None = None
    layer_type: LayerType | None = None
    member_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Condition:
    """A single comparison of an instance variable against operand values.

    ``operators`` lists the operators the designer offered for the variable.
    It is kept for the designer and plays no part in evaluation.
    """

    var_name: str
    operator: ConditionOperator
    values: list[Any] = field(default_factory=list)
    id: str | None = None
    operators: list[ConditionOperator] = field(default_factory=list)


@dataclass(frozen=True)
class ConditionGroup:
    """Conditions that must all hold for the group to match."""

    conditions: list[Condition]
    id: str | None = None


@dataclass(frozen=True)
class InitiatorNode:
    """Root of every definition. Holds no task."""

    node_type: ClassVar[NodeType] = NodeType.INITIATOR

    name: str
    child_node: Node | None = None
    id: str | None = None


@dataclass(frozen=True)
class ApprovalNode:
    """Requires a decision from the resolved assignees."""

    node_type: ClassVar[NodeType] = NodeType.APPROVAL

    name: str
    assignees: list[Assignee]
    approval_type: ApprovalType = ApprovalType.ALL
    child_node: Node | None = None
    id: str | None = None


@dataclass(frozen=True)
class CopyNode:
    """Carbon-copies the resolved recipients, who acknowledge the task."""

    node_type: ClassVar[NodeType] = NodeType.COPY

    name: str
    ccs: list[Assignee]
    child_node: Node | None = None
    id: str | None = None


@dataclass(frozen=True)
class ConditionNode:
    """Gate on instance variables; groups are OR-ed, conditions within a group AND-ed."""

    node_type: ClassVar[NodeType] = NodeType.CONDITION

    name: str
    condition_groups: list[ConditionGroup]
    priority_level: int | None = None
    child_node: Node | None = None
    id: str | None = None


@dataclass(frozen=True)
class RouterNode:
    """Chooses the first matching condition branch in priority order."""

    node_type: ClassVar[NodeType] = NodeType.ROUTER

    name: str
    condition_nodes: list[Node]
    child_node: Node | None = None
    id: str | None = None


Node: TypeAlias = Union[InitiatorNode, ApprovalNode, CopyNode, ConditionNode, RouterNode]
"""Any node variant."""


def iter_nodes(root: Node) -> Iterator[Node]:
    """Yield every node of the tree, depth first.

    Router branches are visited before the router's own child.

    Args:
        root: The node to start from.

    Yields:
        Each node reachable through ``child_node`` and ``condition_nodes``.
    """
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        yield node
        if node.child_node is not None:
            stack.append(node.child_node)
        if isinstance(node, RouterNode):
            stack.extend(reversed(node.condition_nodes))


def find_node(root: Node, name: str) -> Node | None:
    """Find a node by name anywhere in the tree.

    Args:
        root: Root of the tree.
        name: Node name to look up.

    Returns:
        The node, or None if no node has that name.
    """
    return next((node for node in iter_nodes(root) if node.name == name), None)


# =============================================================================
# Wire format
# =============================================================================


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise WorkflowValidationError([f"{where}: missing '{key}'"])
    return data[key]


def _enum(enum_type: Any, value: Any, where: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as e:
        raise WorkflowValidationError([f"{where}: invalid {enum_type.__name__} {value!r}"]) from e


def assignee_from_dict(data: dict[str, Any], where: str = "assignee") -> Assignee:
    """Parse an assignee descriptor from its wire form.

    Args:
        data: The camelCase descriptor.
        where: Location used in error messages.

    Returns:
        The parsed Assignee.

    Raises:
        WorkflowValidationError: If the descriptor is malformed.
    """
    if not isinstance(data, dict):
        raise WorkflowValidationError([f"{where}: expected an object"])
    layer = data.get("layer")
    layer_type = data.get("layerType")
    return Assignee(
        reference_id=data.get("referenceId"),
        assignee_type=_enum(AssigneeType, _require(data, "assigneeType", where), where),
        layer=layer,
        layer_type=_enum(LayerType, layer_type, where) if layer_type is not None else None,
        member_ids=list(data.get("memberIds") or []),
    )


def assignee_to_dict(assignee: Assignee) -> dict[str, Any]:
    """Serialize an assignee descriptor to its wire form."""
    data: dict[str, Any] = {
        "referenceId": assignee.reference_id,
        "assigneeType": assignee.assignee_type.value,
    }
    if assignee.layer is not None:
        data["layer"] = assignee.layer
    if assignee.layer_type is not None:
        data["layerType"] = int(assignee.layer_type)
    if assignee.member_ids:
        data["memberIds"] = list(assignee.member_ids)
    return data


def _condition_group_from_dict(data: dict[str, Any], where: str) -> ConditionGroup:
    conditions = []
    for i, raw in enumerate(data.get("conditions") or []):
        cond_where = f"{where}.conditions[{i}]"
        conditions.append(
            Condition(
                var_name=_require(raw, "varName", cond_where),
                operator=_enum(ConditionOperator, _require(raw, "operator", cond_where), cond_where),
                values=list(raw.get("val") or []),
                id=raw.get("id"),
                operators=[_enum(ConditionOperator, op, cond_where) for op in raw.get("operators") or []],
            )
        )
    return ConditionGroup(conditions=conditions, id=data.get("id"))


def _condition_group_to_dict(group: ConditionGroup) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if group.id is not None:
        data["id"] = group.id
    conditions = []
    for condition in group.conditions:
        raw: dict[str, Any] = {}
        if condition.id is not None:
            raw["id"] = condition.id
        raw.update(varName=condition.var_name, operator=int(condition.operator), val=list(condition.values))
        if condition.operators:
            raw["operators"] = [int(op) for op in condition.operators]
        conditions.append(raw)
    data["conditions"] = conditions
    return data


def node_from_dict(data: dict[str, Any], where: str = "root") -> Node:
    """Parse a node tree from the designer's wire form.

    Only structure is checked here; per-type required fields are enforced by
    the definition validator so that every violation can be reported at once.

    Args:
        data: The camelCase node object.
        where: Location used in error messages.

    Returns:
        The parsed node with its whole subtree.

    Raises:
        WorkflowValidationError: If the node type is unknown or the structure is malformed.
    """
    if not isinstance(data, dict):
        raise WorkflowValidationError([f"{where}: expected an object"])

    name = data.get("name") or ""
    node_id = data.get("id")
    node_type = _enum(NodeType, _require(data, "type", where), where)
    child = data.get("childNode")
    child_node = node_from_dict(child, f"{where}.childNode") if child else None

    match node_type:
        case NodeType.INITIATOR:
            return InitiatorNode(name=name, child_node=child_node, id=node_id)
        case NodeType.APPROVAL:
            approval_type = data.get("approvalType")
            return ApprovalNode(
                name=name,
                assignees=[
                    assignee_from_dict(a, f"{where}.assignees[{i}]") for i, a in enumerate(data.get("assignees") or [])
                ],
                approval_type=(
                    _enum(ApprovalType, approval_type, where) if approval_type is not None else ApprovalType.ALL
                ),
                child_node=child_node,
                id=node_id,
            )
        case NodeType.COPY:
            return CopyNode(
                name=name,
                ccs=[assignee_from_dict(a, f"{where}.ccs[{i}]") for i, a in enumerate(data.get("ccs") or [])],
                child_node=child_node,
                id=node_id,
            )
        case NodeType.CONDITION:
            return ConditionNode(
                name=name,
                condition_groups=[
                    _condition_group_from_dict(g, f"{where}.conditionGroups[{i}]")
                    for i, g in enumerate(data.get("conditionGroups") or [])
                ],
                priority_level=data.get("priorityLevel"),
                child_node=child_node,
                id=node_id,
            )
        case NodeType.ROUTER:
            return RouterNode(
                name=name,
                condition_nodes=[
                    node_from_dict(n, f"{where}.conditionNodes[{i}]")
                    for i, n in enumerate(data.get("conditionNodes") or [])
                ],
                child_node=child_node,
                id=node_id,
            )
    raise WorkflowValidationError([f"{where}: unsupported node type {node_type!r}"])  # pragma: no cover


def node_to_dict(node: Node) -> dict[str, Any]:
    """Serialize a node tree to the designer's wire form.

    Args:
        node: Root of the (sub)tree to serialize.

    Returns:
        A JSON-compatible dict; ``node_from_dict`` restores an equal tree.
    """
    data: dict[str, Any] = {} if node.id is None else {"id": node.id}
    data.update(name=node.name, type=node.node_type.value)

    match node:
        case InitiatorNode():
            pass
        case ApprovalNode(assignees=assignees, approval_type=approval_type):
            data["assignees"] = [assignee_to_dict(a) for a in assignees]
            data["approvalType"] = int(approval_type)
        case CopyNode(ccs=ccs):
            data["ccs"] = [assignee_to_dict(a) for a in ccs]
        case ConditionNode(condition_groups=groups, priority_level=priority_level):
            data["conditionGroups"] = [_condition_group_to_dict(g) for g in groups]
            if priority_level is not None:
                data["priorityLevel"] = priority_level
        case RouterNode(condition_nodes=condition_nodes):
            data["conditionNodes"] = [node_to_dict(n) for n in condition_nodes]

    if node.child_node is not None:
        data["childNode"] = node_to_dict(node.child_node)
    return data
