"""
Immutable representation of a Cypher query under construction.

Every builder method returns a new QueryFragment with the clause appended, so
a fragment can be shared and extended from several places without copying.
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Union

from .conditions import Condition, next_param_name
from .config import settings
from .validators import (
    InvalidParameterError,
    QueryValidationError,
    QueryValidator,
    parameter_stem,
)

if TYPE_CHECKING:
    from .executors import QueryExecutor

_validator = QueryValidator(max_limit=settings.max_query_limit)


@dataclass(frozen=True)
class QueryFragment:
    """Clauses of a single Cypher statement plus its bound parameters."""

    executor: Optional['QueryExecutor'] = field(default=None, compare=False, repr=False)
    context: Optional[str] = None
    match_clauses: Tuple[str, ...] = ()
    where_clauses: Tuple[str, ...] = ()
    create_clauses: Tuple[str, ...] = ()
    set_clauses: Tuple[str, ...] = ()
    return_fields: Tuple[str, ...] = ()
    order_by: Tuple[str, ...] = ()
    skip_count: Optional[int] = None
    limit_count: Optional[int] = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def match(self, pattern: Union[str, Mapping[str, str]]) -> 'QueryFragment':
        """
        Append a MATCH pattern.

        Args:
            pattern: Raw pattern ('(n)-->(m)'), a bare variable ('n') or a
                mapping of variable to label ({'n': 'Person'})
        """
        if isinstance(pattern, Mapping):
            patterns = tuple(
                f"({var}:`{label}`)" if label else f"({var})"
                for var, label in pattern.items()
            )
        elif isinstance(pattern, str):
            pattern = pattern.strip()
            patterns = (pattern if pattern.startswith('(') else f"({pattern})",)
        else:
            raise InvalidParameterError(f"Invalid match pattern: {pattern!r}")
        return replace(self, match_clauses=self.match_clauses + patterns)

    def where(self, predicate: Union[str, Condition, Mapping[str, Any]]) -> 'QueryFragment':
        """
        Append a WHERE predicate.

        Raw strings are used verbatim. Conditions and mappings are rendered
        with every value bound as a parameter:

            {'n': {'age': 30}}  ->  n.age = $n_age_0
            {'ID(n1)': 12}      ->  ID(n1) = $id_n1_0
        """
        if isinstance(predicate, str):
            return replace(self, where_clauses=self.where_clauses + (predicate,))

        param_counter = {name: i for i, name in enumerate(self.parameters)}

        if isinstance(predicate, Condition):
            cypher, params = predicate.to_cypher(param_counter)
            return self._with_predicates([cypher], params)

        if isinstance(predicate, Mapping):
            predicates = []
            params = {}
            for key, value in predicate.items():
                if isinstance(value, Mapping):
                    for prop, prop_value in value.items():
                        expression = f"{key}.{prop}"
                        name = next_param_name(param_counter, parameter_stem(expression))
                        predicates.append(f"{expression} = ${name}")
                        params[name] = prop_value
                else:
                    name = next_param_name(param_counter, parameter_stem(key))
                    predicates.append(f"{key} = ${name}")
                    params[name] = value
            return self._with_predicates(predicates, params)

        raise InvalidParameterError(f"Invalid where predicate: {predicate!r}")

    def _with_predicates(self, predicates: List[str], params: Dict[str, Any]) -> 'QueryFragment':
        return replace(
            self,
            where_clauses=self.where_clauses + tuple(predicates),
            parameters={**self.parameters, **params},
        )

    def start(self, bindings: Mapping[str, int]) -> 'QueryFragment':
        """Bind each variable to the node with the given identity."""
        fragment = self
        for var, neo_id in bindings.items():
            fragment = fragment.match(var).where({f"ID({var})": neo_id})
        return fragment

    def order(self, ordering: Union[str, Mapping[str, Any]]) -> 'QueryFragment':
        """
        Append ORDER BY expressions.

        Mappings order a variable by one or more fields; a '-' prefix or a
        'desc' direction sorts descending:

            {'n': 'name'}, {'n': ['-age', 'name']}, {'n': {'age': 'desc'}}
        """
        if isinstance(ordering, str):
            return replace(self, order_by=self.order_by + (ordering,))
        if not isinstance(ordering, Mapping):
            raise InvalidParameterError(f"Invalid order specification: {ordering!r}")

        orders = []
        for var, fields in ordering.items():
            if isinstance(fields, Mapping):
                items = list(fields.items())
            elif isinstance(fields, (list, tuple)):
                items = [(f, None) for f in fields]
            else:
                items = [(fields, None)]
            for field_name, direction in items:
                field_name = str(field_name)
                if direction is None and field_name.startswith('-'):
                    field_name, direction = field_name[1:], 'desc'
                suffix = " DESC" if str(direction or '').lower() == 'desc' else ""
                orders.append(f"{var}.{field_name}{suffix}")
        return replace(self, order_by=self.order_by + tuple(orders))

    def skip(self, count: int) -> 'QueryFragment':
        _validator.validate_skip(count)
        return replace(self, skip_count=count)

    def limit(self, count: int) -> 'QueryFragment':
        _validator.validate_limit(count)
        return replace(self, limit_count=count)

    def unordered(self) -> 'QueryFragment':
        """Copy without ORDER BY, for aggregating over the matched rows."""
        return replace(self, order_by=())

    def return_(self, *fields: str) -> 'QueryFragment':
        """Append RETURN expressions."""
        return replace(self, return_fields=self.return_fields + tuple(str(f) for f in fields))

    def create(self, pattern: str) -> 'QueryFragment':
        return replace(self, create_clauses=self.create_clauses + (pattern,))

    def set_(self, assignment: str) -> 'QueryFragment':
        """Append a SET assignment, e.g. 'n = $props'."""
        return replace(self, set_clauses=self.set_clauses + (assignment,))

    def params(self, params: Mapping[str, Any]) -> 'QueryFragment':
        """Merge bound parameters; new values win on name collisions."""
        return replace(self, parameters={**self.parameters, **params})

    def render(self) -> str:
        """Serialize the fragment to Cypher text."""
        cypher_parts = [f"MATCH {clause}" for clause in self.match_clauses]

        if self.where_clauses:
            if len(self.where_clauses) == 1:
                cypher_parts.append(f"WHERE {self.where_clauses[0]}")
            else:
                cypher_parts.append("WHERE " + " AND ".join(f"({w})" for w in self.where_clauses))

        cypher_parts.extend(f"CREATE {clause}" for clause in self.create_clauses)

        if self.set_clauses:
            cypher_parts.append(f"SET {', '.join(self.set_clauses)}")

        if self.return_fields:
            cypher_parts.append(f"RETURN {', '.join(self.return_fields)}")

        if self.order_by:
            cypher_parts.append(f"ORDER BY {', '.join(self.order_by)}")

        if self.skip_count is not None:
            cypher_parts.append(f"SKIP {self.skip_count}")

        if self.limit_count is not None:
            cypher_parts.append(f"LIMIT {self.limit_count}")

        return "\n".join(cypher_parts)

    def to_cypher(self) -> Tuple[str, Dict[str, Any]]:
        """
        Generate the final Cypher query and parameters.

        Returns:
            Tuple of (cypher_query, parameters)
        """
        return self.render(), dict(self.parameters)

    def _require_executor(self) -> 'QueryExecutor':
        if self.executor is None:
            raise QueryValidationError("Fragment is not bound to a session")
        return self.executor

    def exec(self) -> List[Dict[str, Any]]:
        """Execute the query and return results as list of dictionaries."""
        cypher, params = self.to_cypher()
        return self._require_executor().execute(cypher, params, context=self.context)

    def records(self) -> List[Any]:
        """Execute the query and return raw records."""
        cypher, params = self.to_cypher()
        return self._require_executor().execute_raw(cypher, params, context=self.context)

    def pluck(self, *columns: str) -> List[Any]:
        """
        Return the values of the given columns for every record.

        Uses the columns as the RETURN clause unless one is already set.
        A single column yields plain values, several yield tuples.
        """
        if not columns:
            raise InvalidParameterError("pluck requires at least one column")
        fragment = self if self.return_fields else self.return_(*columns)
        rows = fragment.records()
        if len(columns) == 1:
            return [row[columns[0]] for row in rows]
        return [tuple(row[c] for c in columns) for row in rows]

    def first(self) -> Optional[Any]:
        """Execute the query and return the first record, or None."""
        rows = self.records()
        return rows[0] if rows else None

    def to_df(self):
        """Execute the query and return results as pandas DataFrame."""
        cypher, params = self.to_cypher()
        return self._require_executor().execute_df(cypher, params, context=self.context)

    def count(self) -> int:
        """Execute a query returning one count and return it as an integer."""
        cypher, params = self.to_cypher()
        return self._require_executor().count(cypher, params, context=self.context)

    def to_table(self) -> str:
        """Execute the query and render the rows as a text table."""
        from .executors import format_results

        return format_results(self.exec(), 'table')

    def to_json(self) -> str:
        cypher, params = self.to_cypher()
        return self._require_executor().execute_json(cypher, params, context=self.context)

    def __str__(self) -> str:
        return self.render()
