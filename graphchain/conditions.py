"""
Boolean logic implementation for query conditions.
Supports Q objects and And/Or/Not combinators similar to Django ORM.

Field names without a variable prefix (Q('age')) are qualified with the
proxy's live variable when the condition is folded into a query.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, replace

from .validators import InvalidParameterError


def next_param_name(param_counter: Dict[str, int], stem: str = "param") -> str:
    """Reserve and return a parameter name not yet present in param_counter."""
    index = len(param_counter)
    name = f"{stem}_{index}"
    while name in param_counter:
        index += 1
        name = f"{stem}_{index}"
    param_counter[name] = index
    return name


class Condition(ABC):
    """Base class for all conditions."""

    @abstractmethod
    def to_cypher(self, param_counter: Dict[str, int]) -> tuple[str, Dict[str, Any]]:
        """
        Convert condition to Cypher WHERE clause.
        Returns (cypher_string, parameters_dict).
        """
        pass

    @abstractmethod
    def qualify(self, variable: str) -> 'Condition':
        """Return a copy whose unqualified fields are prefixed with variable."""
        pass

    def __and__(self, other: 'Condition') -> 'And':
        """Support & operator for combining conditions."""
        return And(self, other)

    def __or__(self, other: 'Condition') -> 'Or':
        """Support | operator for combining conditions."""
        return Or(self, other)

    def __invert__(self) -> 'Not':
        """Support ~ operator for negating conditions."""
        return Not(self)


@dataclass(eq=False)
class Q(Condition):
    """
    Query condition for a single field comparison.

    Examples:
        Q('age') > 30
        Q('friend.name').in_(['Ann', 'Bob'])
        Q('ID(result)') == 12
    """

    field: str
    operator: Optional[str] = None
    value: Any = None

    def __eq__(self, other: Any) -> 'Q':
        """Equality comparison."""
        return Q(self.field, '=', other)

    def __ne__(self, other: Any) -> 'Q':
        """Inequality comparison."""
        return Q(self.field, '<>', other)

    def __lt__(self, other: Any) -> 'Q':
        return Q(self.field, '<', other)

    def __le__(self, other: Any) -> 'Q':
        return Q(self.field, '<=', other)

    def __gt__(self, other: Any) -> 'Q':
        return Q(self.field, '>', other)

    def __ge__(self, other: Any) -> 'Q':
        return Q(self.field, '>=', other)

    __hash__ = object.__hash__

    def in_(self, values: List[Any]) -> 'Q':
        """Check if field value is in list."""
        return Q(self.field, 'IN', values)

    def not_in(self, values: List[Any]) -> 'Q':
        """Check if field value is not in list."""
        return Q(self.field, 'NOT IN', values)

    def contains(self, substring: str) -> 'Q':
        return Q(self.field, 'CONTAINS', substring)

    def starts_with(self, prefix: str) -> 'Q':
        return Q(self.field, 'STARTS WITH', prefix)

    def ends_with(self, suffix: str) -> 'Q':
        return Q(self.field, 'ENDS WITH', suffix)

    def is_null(self) -> 'Q':
        return Q(self.field, 'IS NULL', None)

    def is_not_null(self) -> 'Q':
        return Q(self.field, 'IS NOT NULL', None)

    def regex(self, pattern: str) -> 'Q':
        """Match field against regex pattern."""
        return Q(self.field, '=~', pattern)

    def qualify(self, variable: str) -> 'Q':
        if '.' in self.field or '(' in self.field:
            return self
        return replace(self, field=f"{variable}.{self.field}")

    def to_cypher(self, param_counter: Dict[str, int]) -> tuple[str, Dict[str, Any]]:
        """Convert Q condition to Cypher."""
        if self.operator is None:
            raise ValueError(f"Q condition for field '{self.field}' has no operator")

        params = {}

        if self.operator in ['IS NULL', 'IS NOT NULL']:
            cypher = f"{self.field} {self.operator}"
        else:
            param_name = next_param_name(param_counter)
            params[param_name] = self.value
            cypher = f"{self.field} {self.operator} ${param_name}"

        return cypher, params


@dataclass
class And(Condition):
    """Combine multiple conditions with AND logic."""

    conditions: List[Condition] = field(default_factory=list)

    def __init__(self, *conditions: Condition):
        self.conditions = list(conditions)

    def qualify(self, variable: str) -> 'And':
        return And(*(c.qualify(variable) for c in self.conditions))

    def to_cypher(self, param_counter: Dict[str, int]) -> tuple[str, Dict[str, Any]]:
        """Convert AND condition to Cypher."""
        if not self.conditions:
            return "true", {}

        cypher_parts = []
        all_params = {}

        for condition in self.conditions:
            part, params = condition.to_cypher(param_counter)
            cypher_parts.append(f"({part})")
            all_params.update(params)

        cypher = " AND ".join(cypher_parts)
        return cypher, all_params


@dataclass
class Or(Condition):
    """Combine multiple conditions with OR logic."""

    conditions: List[Condition] = field(default_factory=list)

    def __init__(self, *conditions: Condition):
        self.conditions = list(conditions)

    def qualify(self, variable: str) -> 'Or':
        return Or(*(c.qualify(variable) for c in self.conditions))

    def to_cypher(self, param_counter: Dict[str, int]) -> tuple[str, Dict[str, Any]]:
        """Convert OR condition to Cypher."""
        if not self.conditions:
            return "false", {}

        cypher_parts = []
        all_params = {}

        for condition in self.conditions:
            part, params = condition.to_cypher(param_counter)
            cypher_parts.append(f"({part})")
            all_params.update(params)

        cypher = " OR ".join(cypher_parts)
        return f"({cypher})", all_params


@dataclass
class Not(Condition):
    """Negate a condition."""

    condition: Condition

    def qualify(self, variable: str) -> 'Not':
        return Not(self.condition.qualify(variable))

    def to_cypher(self, param_counter: Dict[str, int]) -> tuple[str, Dict[str, Any]]:
        cypher, params = self.condition.to_cypher(param_counter)
        return f"NOT ({cypher})", params


OPERATORS = {
    '=': lambda q, v: q == v,
    '!=': lambda q, v: q != v,
    '<': lambda q, v: q < v,
    '<=': lambda q, v: q <= v,
    '>': lambda q, v: q > v,
    '>=': lambda q, v: q >= v,
    'in': lambda q, v: q.in_(v),
    'not_in': lambda q, v: q.not_in(v),
    'contains': lambda q, v: q.contains(v),
    'starts_with': lambda q, v: q.starts_with(v),
    'ends_with': lambda q, v: q.ends_with(v),
    'regex': lambda q, v: q.regex(v),
}


def dict_to_condition(condition_dict: Dict[str, Any]) -> Condition:
    """
    Convert dictionary-based condition to Condition object.

    Example:
        {
            'AND': [
                {'name': 'Ann'},
                {'OR': [
                    {'age': {'>': 30}},
                    {'age': {'<': 18}}
                ]}
            ]
        }
    """
    if 'AND' in condition_dict:
        conditions = [dict_to_condition(c) for c in condition_dict['AND']]
        return And(*conditions)

    elif 'OR' in condition_dict:
        conditions = [dict_to_condition(c) for c in condition_dict['OR']]
        return Or(*conditions)

    elif 'NOT' in condition_dict:
        return Not(dict_to_condition(condition_dict['NOT']))

    conditions = []
    for field_name, value in condition_dict.items():
        if isinstance(value, dict):
            for op, val in value.items():
                if op not in OPERATORS:
                    raise InvalidParameterError(f"Unknown operator {op!r} for field {field_name!r}")
                conditions.append(OPERATORS[op](Q(field_name), val))
        else:
            conditions.append(Q(field_name) == value)

    if not conditions:
        raise InvalidParameterError(f"Invalid condition dictionary: {condition_dict}")
    return conditions[0] if len(conditions) == 1 else And(*conditions)
