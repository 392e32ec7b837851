"""
Validation utilities to reject malformed query arguments at the call site.
"""

import re
from typing import Any, Optional, Union

from .types import Direction, validate_direction


class QueryValidationError(Exception):
    """Raised when query validation fails."""
    pass


class InvalidParameterError(QueryValidationError):
    """Raised when a filter, count, exists or includes argument is malformed."""
    pass


class InvalidAssociationError(QueryValidationError):
    """Raised when an association operation is used on the wrong proxy or model."""
    pass


COUNT_QUALIFIERS = (None, "distinct")


class QueryValidator:
    """Validates query components before any Cypher is built."""

    def __init__(self, max_limit: Optional[int] = None):
        self.max_limit = max_limit

    def validate_direction(self, direction: Union[str, Direction]) -> Direction:
        """Validate and return Direction enum."""
        if not validate_direction(direction):
            raise QueryValidationError(f"Invalid direction: {direction}")
        return Direction(direction)

    def validate_limit(self, limit: Optional[int]):
        """Validate limit parameter."""
        if limit is not None:
            if not _is_integer(limit):
                raise InvalidParameterError("Limit must be an integer")
            if limit < 0:
                raise InvalidParameterError("Limit must be non-negative")
            if self.max_limit is not None and limit > self.max_limit:
                raise InvalidParameterError(f"Limit cannot exceed {self.max_limit}")

    def validate_skip(self, skip: Optional[int]):
        """Validate skip parameter."""
        if skip is not None:
            if not _is_integer(skip):
                raise InvalidParameterError("Skip must be an integer")
            if skip < 0:
                raise InvalidParameterError("Skip must be non-negative")

    def validate_count_qualifier(self, distinct: Optional[str]):
        """Only `distinct` or nothing may qualify a count."""
        if distinct not in COUNT_QUALIFIERS:
            raise InvalidParameterError("count accepts 'distinct' or None as a parameter")

    def validate_node_id(self, node_id: Any, operation: str = "exists"):
        """Validate a raw node identity."""
        if node_id is not None and not _is_integer(node_id):
            raise InvalidParameterError(f"{operation} only accepts neo_ids")

    def validate_entity(self, entity: Any, operation: str = "includes"):
        """Validate that an argument exposes a node identity."""
        if not hasattr(entity, "neo_id"):
            raise InvalidParameterError(f"{operation} only accepts nodes")

    def identity_of(self, value: Any, key: str) -> int:
        """
        Resolve the identity used when filtering by a related node.

        Accepts an entity exposing `neo_id` or a raw integer id.
        """
        neo_id = getattr(value, "neo_id", value)
        if not _is_integer(neo_id):
            raise InvalidParameterError(f"Invalid value for '{key}' condition")
        return neo_id

    def validate_parameters(self, params: Any):
        """Validate a mapping of query parameters."""
        if not isinstance(params, dict):
            raise InvalidParameterError("Parameters must be a dictionary")
        for name in params:
            if not validate_parameter_name(name):
                raise InvalidParameterError(f"Invalid parameter name: {name}")


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_parameter_name(name: str) -> bool:
    """Validate that a parameter name is safe to use."""
    pattern = r'^[a-zA-Z_][a-zA-Z0-9_]*$'
    return isinstance(name, str) and bool(re.match(pattern, name))


def parameter_stem(expression: str) -> str:
    """
    Derive a parameter name stem from a Cypher expression.

    Example:
        'ID(n1)' -> 'id_n1'
        'result.age' -> 'result_age'
    """
    stem = re.sub(r'\W+', '_', str(expression)).strip('_').lower()
    if not stem or stem[0].isdigit():
        stem = f"param_{stem}" if stem else "param"
    return stem
