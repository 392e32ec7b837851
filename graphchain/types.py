"""
Type definitions for traversal directions and chain link kinds.
"""

from enum import Enum
from typing import Union


class Direction(str, Enum):
    """Direction of an association relative to the node it is declared on."""

    OUT = "out"
    IN = "in"
    BOTH = "both"


class LinkKind(str, Enum):
    """Primitive fragment operations a chain link can apply."""

    MATCH = "match"
    WHERE = "where"
    ORDER = "order"
    SKIP = "skip"
    LIMIT = "limit"


ARROWS = {
    Direction.OUT: ("-", "->"),
    Direction.IN: ("<-", "-"),
    Direction.BOTH: ("-", "-"),
}


def validate_direction(direction: Union[str, Direction]) -> bool:
    """Check if a direction is valid."""
    try:
        Direction(direction)
        return True
    except ValueError:
        return False


def arrow_ends(direction: Direction) -> tuple[str, str]:
    """Get the (left, right) arrow pieces for a direction."""
    return ARROWS[Direction(direction)]
