"""Tests for condition evaluation."""

from __future__ import annotations

import pytest

from litestar_approvals.core.conditions import evaluate_condition, evaluate_group, evaluate_groups
from litestar_approvals.core.nodes import Condition, ConditionGroup
from litestar_approvals.core.types import ConditionOperator as Op


@pytest.mark.unit
class TestEvaluateCondition:
    """Tests for single conditions."""

    @pytest.mark.parametrize(
        ("operator", "values", "expected"),
        [
            (Op.EQ, [100], True),
            (Op.NE, [100], False),
            (Op.GT, [99], True),
            (Op.GT, [100], False),
            (Op.GE, [100], True),
            (Op.LT, [101], True),
            (Op.LE, [99], False),
            (Op.IN, [1, 100, 1000], True),
            (Op.NOT_IN, [1, 10], True),
            (Op.BETWEEN, [50, 100], True),
            (Op.BETWEEN, [101, 200], False),
        ],
    )
    def test_numeric_operators(self, operator: Op, values: list, expected: bool) -> None:
        """Test each comparison operator against a numeric variable."""
        condition = Condition("amount", operator, values)

        assert evaluate_condition(condition, {"amount": 100}) is expected

    def test_numeric_strings_compare_as_numbers(self) -> None:
        """Test that form values submitted as text compare numerically."""
        condition = Condition("amount", Op.GT, ["1000"])

        assert evaluate_condition(condition, {"amount": "5000"}) is True
        assert evaluate_condition(condition, {"amount": "999.5"}) is False
        # Lexicographic comparison would say "900" > "1000"
        assert evaluate_condition(condition, {"amount": "900"}) is False

    def test_eq_across_int_and_decimal_text(self) -> None:
        """Test that 100 and '100.0' are equal."""
        assert evaluate_condition(Condition("amount", Op.EQ, ["100.0"]), {"amount": 100}) is True

    def test_string_equality(self) -> None:
        """Test equality on plain strings."""
        condition = Condition("dept", Op.EQ, ["eng"])

        assert evaluate_condition(condition, {"dept": "eng"}) is True
        assert evaluate_condition(condition, {"dept": "ops"}) is False

    def test_missing_variable_never_matches(self) -> None:
        """Test that conditions on missing variables evaluate to False, even NE."""
        assert evaluate_condition(Condition("amount", Op.NE, [1]), {}) is False
        assert evaluate_condition(Condition("amount", Op.GT, [1]), {"amount": None}) is False

    def test_incomparable_values_do_not_match(self) -> None:
        """Test that ordering operators on mixed types return False instead of raising."""
        assert evaluate_condition(Condition("amount", Op.GT, [10]), {"amount": "lots"}) is False

    def test_contains_string_and_list(self) -> None:
        """Test CONTAINS on substrings and list membership."""
        assert evaluate_condition(Condition("reason", Op.CONTAINS, ["trip"]), {"reason": "business trip"}) is True
        assert evaluate_condition(Condition("tags", Op.CONTAINS, ["urgent"]), {"tags": ["urgent", "it"]}) is True
        assert evaluate_condition(Condition("tags", Op.CONTAINS, ["urgent"]), {"tags": ["it"]}) is False

    def test_between_requires_two_operands(self) -> None:
        """Test that BETWEEN with a single operand never matches."""
        assert evaluate_condition(Condition("amount", Op.BETWEEN, [1]), {"amount": 5}) is False

    def test_no_operands(self) -> None:
        """Test that a comparison without operands never matches."""
        assert evaluate_condition(Condition("amount", Op.EQ, []), {"amount": 5}) is False


@pytest.mark.unit
class TestConditionGroups:
    """Tests for AND within groups and OR across groups."""

    def test_group_requires_all_conditions(self) -> None:
        """Test that a group is an AND of its conditions."""
        group = ConditionGroup(
            conditions=[Condition("amount", Op.GT, [100]), Condition("dept", Op.EQ, ["eng"])],
        )

        assert evaluate_group(group, {"amount": 500, "dept": "eng"}) is True
        assert evaluate_group(group, {"amount": 500, "dept": "ops"}) is False

    def test_empty_group_never_matches(self) -> None:
        """Test that a group without conditions does not match."""
        assert evaluate_group(ConditionGroup(conditions=[]), {"amount": 1}) is False

    def test_groups_are_ored(self) -> None:
        """Test that any matching group matches the node."""
        groups = [
            ConditionGroup(conditions=[Condition("amount", Op.GT, [1000])]),
            ConditionGroup(conditions=[Condition("dept", Op.EQ, ["finance"])]),
        ]

        assert evaluate_groups(groups, {"amount": 10, "dept": "finance"}) is True
        assert evaluate_groups(groups, {"amount": 10, "dept": "eng"}) is False
        assert evaluate_groups([], {"amount": 10}) is False
