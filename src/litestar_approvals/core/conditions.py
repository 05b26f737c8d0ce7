"""Condition evaluation against instance variables.

Condition groups on a CONDITION node are OR-ed together; the conditions
inside a single group are AND-ed. A condition that references a variable the
instance does not carry never matches.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from litestar_approvals.core.types import ConditionOperator

if TYPE_CHECKING:
    from litestar_approvals.core.nodes import Condition, ConditionGroup
    from litestar_approvals.core.types import Variables

__all__ = ["evaluate_condition", "evaluate_group", "evaluate_groups"]

_MISSING = object()


def _as_number(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _compare(left: Any, right: Any) -> int | None:
    """Three-way compare numerically when possible, else as strings of the same type."""
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return (left_num > right_num) - (left_num < right_num)
    if isinstance(left, str) and isinstance(right, str):
        return (left > right) - (left < right)
    return None


def _equals(left: Any, right: Any) -> bool:
    if left == right:
        return True
    return _compare(left, right) == 0


def _contains(collection: Iterable[Any], value: Any) -> bool:
    return any(_equals(item, value) for item in collection)


def evaluate_condition(condition: Condition, variables: Variables) -> bool:
    """Evaluate one condition.

    Numeric strings compare numerically, so form values submitted as text
    still satisfy ``GT``/``LT`` style operators.

    Args:
        condition: The condition to evaluate.
        variables: Instance variables keyed by name.

    Returns:
        True if the condition holds.
    """
    value = variables.get(condition.var_name, _MISSING)
    if value is _MISSING or value is None:
        return False

    operands = condition.values
    op = condition.operator

    if op in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        found = _contains(operands, value)
        return found if op is ConditionOperator.IN else not found

    if op is ConditionOperator.BETWEEN:
        if len(operands) < 2:
            return False
        low, high = _compare(value, operands[0]), _compare(value, operands[1])
        return low is not None and high is not None and low >= 0 and high <= 0

    if op is ConditionOperator.CONTAINS:
        if not operands:
            return False
        if isinstance(value, str):
            return str(operands[0]) in value
        if isinstance(value, (list, tuple, set)):
            return _contains(value, operands[0])
        return False

    if not operands:
        return False
    operand = operands[0]

    if op is ConditionOperator.EQ:
        return _equals(value, operand)
    if op is ConditionOperator.NE:
        return not _equals(value, operand)

    result = _compare(value, operand)
    if result is None:
        return False
    match op:
        case ConditionOperator.GT:
            return result > 0
        case ConditionOperator.GE:
            return result >= 0
        case ConditionOperator.LT:
            return result < 0
        case ConditionOperator.LE:
            return result <= 0
    return False


def evaluate_group(group: ConditionGroup, variables: Variables) -> bool:
    """Return True if every condition in the group holds. An empty group never matches."""
    return bool(group.conditions) and all(evaluate_condition(c, variables) for c in group.conditions)


def evaluate_groups(groups: list[ConditionGroup], variables: Variables) -> bool:
    """Return True if any group matches."""
    return any(evaluate_group(group, variables) for group in groups)
