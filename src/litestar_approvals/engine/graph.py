"""Flow navigation over a definition's node tree.

The node tree only stores forward ``child_node`` links and router branches.
:class:`FlowGraph` adds what navigation needs on top: lookup by name and the
rejoin point of every router branch. When a branch runs out of nodes, flow
continues at the successor of the router that owns the branch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar_approvals.core.conditions import evaluate_groups
from litestar_approvals.core.nodes import ApprovalNode, ConditionNode, CopyNode, RouterNode

if TYPE_CHECKING:
    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.nodes import Node
    from litestar_approvals.core.types import Variables

__all__ = ["FlowGraph", "Landing", "Visit"]


@dataclass(frozen=True)
class Visit:
    """A pass-through node evaluated during a walk."""

    node: Node
    outcome: str


@dataclass
class Landing:
    """Result of walking the tree until a node that needs people.

    Attributes:
        node: The APPROVAL or COPY node reached, or None when the walk ran
            past the end of the tree.
        visits: Pass-through nodes evaluated on the way, in order.
    """

    node: ApprovalNode | CopyNode | None
    visits: list[Visit] = field(default_factory=list)


class FlowGraph:
    """Navigation helper for a node tree.

    Attributes:
        root: The root node.

    Example:
        >>> graph = FlowGraph.from_definition(definition)
        >>> landing = graph.walk(graph.successor(graph.root), {"amount": 5000})
        >>> landing.node.name
        'finance'
    """

    def __init__(self, root: Node) -> None:
        self.root = root
        self._nodes: dict[str, Node] = {}
        self._exit: dict[str, RouterNode | None] = {}
        self._index(root, None)

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> FlowGraph:
        """Create a flow graph from a definition.

        Args:
            definition: The workflow definition.

        Returns:
            A FlowGraph instance.
        """
        return cls(definition.root_node)

    def _index(self, start: Node, exit_router: RouterNode | None) -> None:
        """Record every node of a chain together with the router it rejoins."""
        node: Node | None = start
        while node is not None:
            self._nodes.setdefault(node.name, node)
            self._exit[node.name] = exit_router
            if isinstance(node, RouterNode):
                for branch in node.condition_nodes:
                    self._index(branch, node)
            node = node.child_node

    def get(self, name: str) -> Node | None:
        """Return the node with the given name, or None."""
        return self._nodes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def successor(self, node: Node) -> Node | None:
        """Return the node that follows ``node`` once it is done.

        This is ``node.child_node`` when present. Otherwise the branch ends and
        flow rejoins after the enclosing router; None means the end of the tree.
        """
        current: Node | None = node
        while current is not None:
            if current.child_node is not None:
                return current.child_node
            current = self._exit.get(current.name)
        return None

    def exit_of(self, node: Node) -> Node | None:
        """Return where flow continues when the branch containing ``node`` is abandoned."""
        router = self._exit.get(node.name)
        return self.successor(router) if router is not None else None

    @staticmethod
    def select_branch(router: RouterNode, variables: Variables) -> ConditionNode | None:
        """Pick the first branch whose conditions match, in ascending priority order."""
        branches = sorted(
            (b for b in router.condition_nodes if isinstance(b, ConditionNode)),
            key=lambda b: b.priority_level if b.priority_level is not None else 0,
        )
        return next((b for b in branches if evaluate_groups(b.condition_groups, variables)), None)

    def walk(self, start: Node | None, variables: Variables) -> Landing:
        """Walk forward from ``start`` to the next node that needs people.

        CONDITION and ROUTER nodes are evaluated on the way. A condition that
        does not match abandons its branch; a router with no matching branch
        continues after itself.

        Args:
            start: First node to consider, or None.
            variables: Variables the conditions are evaluated against.

        Returns:
            The landing node and the pass-through visits that led to it.
        """
        landing = Landing(node=None)
        node = start
        while node is not None:
            match node:
                case ApprovalNode() | CopyNode():
                    landing.node = node
                    return landing
                case ConditionNode(condition_groups=groups):
                    if evaluate_groups(groups, variables):
                        landing.visits.append(Visit(node, "matched"))
                        node = self.successor(node)
                    else:
                        landing.visits.append(Visit(node, "not_matched"))
                        node = self.exit_of(node)
                case RouterNode():
                    branch = self.select_branch(node, variables)
                    if branch is None:
                        landing.visits.append(Visit(node, "no_branch_matched"))
                        node = self.successor(node)
                    else:
                        landing.visits.append(Visit(node, f"routed:{branch.name}"))
                        landing.visits.append(Visit(branch, "matched"))
                        node = self.successor(branch)
                case _:
                    landing.visits.append(Visit(node, "passed"))
                    node = self.successor(node)
        return landing
