"""Enumerations shared by the response schemas."""

from enum import Enum


class Direction(str, Enum):
    """Net flow of a transaction relative to an address."""
    IN = "in"
    OUT = "out"
    SELF = "self"
    UNKNOWN = "unknown"


def classify_direction(value_in: int, value_out: int) -> Direction:
    """Direction of a transaction from the address's input and output sums.

    Rules are evaluated in order: positive delta is ``in``, negative delta is
    ``out``, a zero delta with both sides funded is ``self``, anything else is
    ``unknown``.
    """
    delta = value_out - value_in
    if delta > 0:
        return Direction.IN
    if delta < 0:
        return Direction.OUT
    if value_in > 0 and value_out > 0:
        return Direction.SELF
    return Direction.UNKNOWN
