"""Tests for FlowGraph navigation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from conftest import amount_branch, user
from litestar_approvals.core.definition import WorkflowDefinition
from litestar_approvals.core.nodes import (
    ApprovalNode,
    Condition,
    ConditionGroup,
    ConditionNode,
    InitiatorNode,
    RouterNode,
)
from litestar_approvals.core.types import ConditionOperator
from litestar_approvals.engine.graph import FlowGraph

if TYPE_CHECKING:
    from litestar_approvals.engine.graph import Landing


def outcomes(landing: Landing) -> list[tuple[str, str]]:
    return [(v.node.name, v.outcome) for v in landing.visits]


@pytest.fixture
def graph(expense_definition: WorkflowDefinition) -> FlowGraph:
    return FlowGraph.from_definition(expense_definition)


@pytest.mark.unit
class TestFlowGraphLookup:
    """Tests for name lookup and successors."""

    def test_contains_every_node(self, graph: FlowGraph) -> None:
        """Test that branch nodes are indexed alongside the main chain."""
        for name in ("start", "manager", "amount_router", "big", "finance", "small", "notify"):
            assert name in graph
        assert "missing" not in graph
        assert graph.get("missing") is None

    def test_successor_follows_child(self, graph: FlowGraph) -> None:
        """Test that a node with a child continues there."""
        assert graph.successor(graph.get("start")).name == "manager"
        assert graph.successor(graph.get("manager")).name == "amount_router"

    def test_branch_end_rejoins_after_router(self, graph: FlowGraph) -> None:
        """Test that the last node of a branch continues at the router's child."""
        assert graph.successor(graph.get("finance")).name == "notify"
        assert graph.successor(graph.get("small")).name == "notify"

    def test_end_of_tree(self, graph: FlowGraph) -> None:
        """Test that the last node has no successor."""
        assert graph.successor(graph.get("notify")) is None


@pytest.mark.unit
class TestFlowGraphWalk:
    """Tests for walking to the next node that needs people."""

    def test_walk_stops_at_approval(self, graph: FlowGraph) -> None:
        """Test that an approval node is returned without visits."""
        landing = graph.walk(graph.get("manager"), {})

        assert landing.node.name == "manager"
        assert landing.visits == []

    def test_router_takes_matching_branch(self, graph: FlowGraph) -> None:
        """Test routing a large amount into the finance branch."""
        landing = graph.walk(graph.get("amount_router"), {"amount": 5000})

        assert landing.node.name == "finance"
        assert outcomes(landing) == [("amount_router", "routed:big"), ("big", "matched")]

    def test_empty_branch_rejoins(self, graph: FlowGraph) -> None:
        """Test that a branch without nodes continues after the router."""
        landing = graph.walk(graph.get("amount_router"), {"amount": 500})

        assert landing.node.name == "notify"
        assert outcomes(landing) == [("amount_router", "routed:small"), ("small", "matched")]

    def test_no_branch_matched(self, graph: FlowGraph) -> None:
        """Test that a router with no matching branch continues to its own child."""
        landing = graph.walk(graph.get("amount_router"), {})

        assert landing.node.name == "notify"
        assert outcomes(landing) == [("amount_router", "no_branch_matched")]

    def test_branch_priority_order(self) -> None:
        """Test that the lowest priority level wins regardless of declaration order."""
        router = RouterNode(
            name="r",
            condition_nodes=[
                amount_branch("second", 2, ConditionOperator.GT, 0),
                amount_branch("first", 1, ConditionOperator.GT, 0),
            ],
        )

        assert FlowGraph.select_branch(router, {"amount": 10}).name == "first"
        assert FlowGraph.select_branch(router, {"amount": -1}) is None

    def test_top_level_condition_not_matched_ends_flow(self) -> None:
        """Test that a failing gate outside any router ends the walk."""
        gate = ConditionNode(
            name="gate",
            condition_groups=[ConditionGroup(conditions=[Condition("urgent", ConditionOperator.EQ, [True])])],
            child_node=ApprovalNode(name="approve", assignees=[user("bob")]),
        )
        graph = FlowGraph(InitiatorNode(name="start", child_node=gate))

        landing = graph.walk(gate, {"urgent": False})
        assert landing.node is None
        assert outcomes(landing) == [("gate", "not_matched")]

        landing = graph.walk(gate, {"urgent": True})
        assert landing.node.name == "approve"
        assert outcomes(landing) == [("gate", "matched")]

    def test_nested_condition_not_matched_abandons_branch(self) -> None:
        """Test that a failing condition inside a branch continues after the router."""
        vip = ConditionNode(
            name="vip",
            condition_groups=[ConditionGroup(conditions=[Condition("vip", ConditionOperator.EQ, ["yes"])])],
            child_node=ApprovalNode(name="ceo_approval", assignees=[user("ceo")]),
        )
        router = RouterNode(
            name="r",
            condition_nodes=[amount_branch("big", 1, ConditionOperator.GT, 1000, child_node=vip)],
            child_node=ApprovalNode(name="after", assignees=[user("bob")]),
        )
        graph = FlowGraph(InitiatorNode(name="start", child_node=router))

        landing = graph.walk(router, {"amount": 5000, "vip": "no"})

        assert landing.node.name == "after"
        assert outcomes(landing) == [("r", "routed:big"), ("big", "matched"), ("vip", "not_matched")]

    def test_walk_past_end(self, graph: FlowGraph) -> None:
        """Test that walking from None lands nowhere."""
        assert graph.walk(None, {}).node is None


@pytest.mark.unit
class TestMermaid:
    """Tests for the MermaidJS rendering of a definition."""

    def test_to_mermaid(self, expense_definition: WorkflowDefinition) -> None:
        """Test that every node and the router branches are rendered."""
        source = expense_definition.to_mermaid()

        assert source.startswith("graph TD")
        assert "([start])" in source
        assert "{{manager}}" in source
        assert "{amount_router}" in source
        assert "[/notify/]" in source
        assert "-->|P1|" in source
        assert "-->|P2|" in source
        assert "-->|otherwise|" in source
        assert "END((end))" in source
