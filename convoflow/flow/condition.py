"""Condition evaluation for branch nodes."""

from typing import Optional

from convoflow.flow.node import Condition, ConditionOperator


def evaluate(condition: Optional[Condition], user_input: str) -> bool:
    """
    Evaluate a condition against raw user input.

    Both sides are lower-cased before comparing; whitespace is significant.
    Missing conditions and unknown operators evaluate to False instead of
    raising, so a run always has a branch to take.
    """
    if condition is None:
        return False

    input_lower = user_input.lower()
    value_lower = condition.value.lower()

    if condition.operator == ConditionOperator.EQUALS.value:
        return input_lower == value_lower
    if condition.operator == ConditionOperator.CONTAINS.value:
        return value_lower in input_lower

    return False
