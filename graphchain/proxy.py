"""
Chainable, immutable query proxies.

A QueryProxy stands for "the nodes of a model reachable this way". Chain
methods return new proxies with links appended; no Cypher is produced until
a terminal operation (iteration, count, first, create_edge, ...) assembles
the proxy and its ancestors into one fragment.

Example:
    adults_known_by_ann = (ann.friends
                           .friends
                           .where(Q('age') > 30)
                           .order(['name']))
    for person in adults_known_by_ann:
        ...
"""

import functools
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, List, Mapping, Optional, Tuple, Union

from .association import Association
from .executors import QueryExecutor
from .fragment import QueryFragment
from .links import LinkOperation, resolve
from .types import LinkKind
from .validators import (
    InvalidAssociationError,
    InvalidParameterError,
    QueryValidationError,
    QueryValidator,
)

logger = logging.getLogger(__name__)

_validator = QueryValidator()


@dataclass(frozen=True, eq=False)
class QueryProxy:
    """
    Deferred query over the nodes of a model.

    Args:
        model: Model class of the nodes (any label when None)
        association: Association this proxy was reached through
        node_var: Fixed variable name for this proxy's nodes
        rel_var: Fixed variable name for the association's relationship
        parent: Proxy this one hops from
        start_object: Persisted entity this one hops from
        session: Executor used for terminal operations (model's by default)
        context: Tag attached to the queries this proxy runs
    """

    model: Optional[type] = None
    association: Optional[Association] = None
    node_var: Optional[str] = None
    rel_var: Optional[str] = None
    parent: Optional['QueryProxy'] = field(default=None, repr=False)
    start_object: Any = None
    session: Optional[QueryExecutor] = field(default=None, repr=False)
    context: Optional[str] = None
    chain: Tuple[LinkOperation, ...] = ()
    bound_params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.association is not None and self.parent is None and self.start_object is None:
            raise InvalidAssociationError("An association proxy needs a parent proxy or a start object")

    # Naming

    @property
    def identity(self) -> str:
        return self.node_var or "result"

    @property
    def chain_level(self) -> int:
        if self.start_object is not None or self.parent is None:
            return 1
        return self.parent.chain_level + 1

    @property
    def relationship_var(self) -> str:
        return self.rel_var or f"rel{self.chain_level - 1}"

    def _association_chain_var(self) -> str:
        if self.start_object is not None:
            return f"{type(self.start_object).__name__.lower()}{self.start_object.neo_id}"
        return self.parent.node_var or f"node{self.chain_level}"

    # Chaining

    def where(self, *args, **filters) -> 'QueryProxy':
        """
        Filter the nodes.

        Accepts raw Cypher strings, Condition objects (Q('age') > 30) and
        dictionaries. Dictionary keys naming a declared association filter by
        the related node: where(employer=acme).
        """
        if filters:
            args = args + (filters,)
        return self._build_deeper(LinkKind.WHERE, args)

    def order(self, *args) -> 'QueryProxy':
        """Order by raw Cypher ('result.name DESC') or by fields (['name'], ['-age'], {'age': 'desc'})."""
        return self._build_deeper(LinkKind.ORDER, args)

    order_by = order

    def skip(self, *args) -> 'QueryProxy':
        return self._build_deeper(LinkKind.SKIP, args)

    offset = skip

    def limit(self, *args) -> 'QueryProxy':
        return self._build_deeper(LinkKind.LIMIT, args)

    def with_link(self, kind: Union[str, LinkKind], *args) -> 'QueryProxy':
        """Append links for any fragment operation, e.g. with_link('return_', 'result.name')."""
        return self._build_deeper(kind, args)

    def params(self, params: Mapping[str, Any]) -> 'QueryProxy':
        """Bind parameters referenced by raw Cypher in the chain."""
        _validator.validate_parameters(dict(params))
        return replace(self, bound_params={**self.bound_params, **params})

    def as_(self, var: str) -> 'QueryProxy':
        """Name this proxy's nodes, e.g. to reference them from later hops."""
        return replace(self, node_var=var)

    def traverse(self, name: str, node_var: Optional[str] = None,
                 rel_var: Optional[str] = None) -> 'QueryProxy':
        """Hop across the association declared under name on this proxy's model."""
        if self.model is None:
            raise InvalidAssociationError(f"Cannot traverse '{name}' without a model")
        association = self.model.association_for(name)
        return QueryProxy(
            model=association.model,
            association=association,
            node_var=node_var,
            rel_var=rel_var,
            parent=self,
            session=self.session,
            context=self.context,
        )

    def _build_deeper(self, kind: Union[str, LinkKind], args: tuple) -> 'QueryProxy':
        new_query = replace(self)
        for arg in args:
            new_query = replace(new_query, chain=new_query.chain + resolve(kind, arg, new_query))
        return new_query

    def __getattr__(self, name: str):
        if name.startswith('_'):
            raise AttributeError(name)
        model = self.__dict__.get('model')
        if model is not None:
            if name in getattr(model, 'query_methods', ()):
                return functools.partial(getattr(model, name), self)
            if model.has_association(name):
                return self.traverse(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    # Assembly

    def _session(self) -> QueryExecutor:
        session = self.session or getattr(self.model, 'session', None)
        if session is None:
            raise QueryValidationError("No session available for query")
        return session

    def _query_model_as(self, var: str) -> QueryFragment:
        fragment = self._session().query(self.context)
        if self.model is not None:
            return fragment.match({var: self.model.mapped_label_name()})
        return fragment.match(var)

    def _association_query_start(self, var: str) -> QueryFragment:
        if self.start_object is not None:
            if getattr(self.start_object, 'neo_id', None) is None:
                raise QueryValidationError(f"Cannot query from an unsaved {type(self.start_object).__name__}")
            return self._session().query(self.context).start({var: self.start_object.neo_id})
        return self.parent.query_as(var)

    def _association_arrow(self, properties: Optional[Mapping[str, Any]] = None, create: bool = False) -> str:
        return self.association.arrow_cypher(self.relationship_var, dict(properties or {}), create)

    def query_as(self, var: str) -> QueryFragment:
        """Assemble the chain into a fragment, naming this proxy's nodes var."""
        var = self.node_var or var
        if self.association is not None:
            chain_var = self._association_chain_var()
            label = f":`{self.model.mapped_label_name()}`" if self.model is not None else ""
            fragment = self._association_query_start(chain_var).match(
                f"({chain_var}){self._association_arrow()}({var}{label})"
            )
        else:
            fragment = self._query_model_as(var)

        fragment = fragment.params(self.bound_params)
        for link in self.chain:
            fragment = link.apply(fragment, var)
        return fragment

    def query(self) -> QueryFragment:
        return self.query_as(self.identity)

    def render(self) -> str:
        """Cypher text for this proxy's query."""
        return self.query().render()

    def to_cypher(self) -> Tuple[str, dict]:
        return self.query().to_cypher()

    def pluck(self, *columns: str) -> List[Any]:
        """Values of variables defined anywhere along the chain."""
        return self.query().pluck(*columns)

    # Enumeration

    def _wrap(self, node: Any) -> Any:
        if self.model is not None and hasattr(self.model, 'from_node'):
            return self.model.from_node(node)
        return node

    def each(self, node: bool = True, rel: bool = False) -> Iterator[Any]:
        """
        Iterate nodes, relationships, or (node, relationship) pairs.

        Every iteration runs the query again.
        """
        if rel and self.association is None:
            raise InvalidAssociationError("Relationships can only be iterated on associations")

        def generate():
            if node and rel:
                for obj, relationship in self.pluck(self.identity, self.relationship_var):
                    yield self._wrap(obj), relationship
            elif rel:
                yield from self.pluck(self.relationship_var)
            else:
                for obj in self.pluck(self.identity):
                    yield self._wrap(obj)

        return generate()

    def __iter__(self) -> Iterator[Any]:
        return self.each()

    def each_rel(self) -> Iterator[Any]:
        return self.each(node=False, rel=True)

    def each_with_rel(self) -> Iterator[Tuple[Any, Any]]:
        return self.each(node=True, rel=True)

    def to_list(self) -> List[Any]:
        return list(self.each())

    def __getitem__(self, index):
        # Realizes the whole result; there is no server-side random access.
        return self.to_list()[index]

    def to_df(self):
        """Node properties as a pandas DataFrame."""
        import pandas as pd

        return pd.DataFrame([dict(node.items()) for node in self.pluck(self.identity)])

    # Aggregates

    def first(self) -> Optional[Any]:
        return self._first_ordered("ASC")

    def last(self) -> Optional[Any]:
        return self._first_ordered("DESC")

    def _first_ordered(self, direction: str) -> Optional[Any]:
        results = self.order(f"ID({self.identity}) {direction}").limit(1).pluck(self.identity)
        return self._wrap(results[0]) if results else None

    def _count(self, fragment: QueryFragment, expression: str) -> int:
        return fragment.unordered().return_(f"count({expression}) AS count").count()

    def count(self, distinct: Optional[str] = None) -> int:
        """
        Number of matching nodes.

        Args:
            distinct: 'distinct' to count each node once
        """
        _validator.validate_count_qualifier(distinct)
        var = self.node_var or "n"
        expression = var if distinct is None else f"DISTINCT {var}"
        return self._count(self.query_as(var), expression)

    def exists(self, node_id: Optional[int] = None) -> bool:
        """Whether any node matches, or whether the node with node_id does."""
        _validator.validate_node_id(node_id, "exists")
        var = self.node_var or "n"
        fragment = self.query_as(var)
        if node_id is not None:
            fragment = fragment.where({f"ID({var})": node_id})
        return self._count(fragment, var) > 0

    def empty(self) -> bool:
        return not self.exists()

    def includes(self, other: Any) -> bool:
        """Whether other is among the matching nodes."""
        _validator.validate_entity(other, "includes")
        var = self.node_var or "n"
        fragment = self.query_as(var).where({f"ID({var})": other.neo_id})
        return self._count(fragment, var) > 0

    __contains__ = includes

    # Side effects

    def create_edge(self, other_nodes: Any, properties: Optional[Mapping[str, Any]] = None) -> bool:
        """
        Create this association's relationship from the start object to each node.

        Args:
            other_nodes: Entity, neo_id, or a list of them
            properties: Relationship properties, bound as parameters

        Returns:
            False if a before_create callback vetoed a creation, else True
        """
        if self.association is None:
            raise InvalidAssociationError("Can only create associations on associations")
        if self.start_object is None or getattr(self.start_object, 'neo_id', None) is None:
            raise InvalidAssociationError("Can only create associations from a persisted start node")

        nodes = [self._lookup(n) for n in _flatten(other_nodes)]
        if self.model is not None and any(not isinstance(n, self.model) for n in nodes):
            raise InvalidAssociationError("Node must be of the association's class when model is specified")

        properties = dict(properties or {})
        arrow = self._association_arrow(properties, create=True)
        rel_params = self.association.property_params(self.relationship_var, properties)

        for other_node in nodes:
            if not other_node.persisted:
                other_node.save()

            if self.association.perform_callback(self.start_object, other_node, 'before') is False:
                logger.info("Creation of '%s' to %r vetoed by callback", self.association.name, other_node)
                return False

            (self._session().query(self.context)
             .start({'source': self.start_object.neo_id, 'target': other_node.neo_id})
             .create(f"(source){arrow}(target)")
             .params(rel_params)
             .exec())

            self.association.perform_callback(self.start_object, other_node, 'after')
        return True

    def _lookup(self, node: Any) -> Any:
        if isinstance(node, (int, str)) and not isinstance(node, bool):
            if self.model is None:
                raise InvalidParameterError(f"Cannot look up node {node!r} without a model")
            found = self.model.find(node)
            if found is None:
                raise InvalidParameterError(f"No {self.model.__name__} with id {node!r}")
            return found
        return node


def _flatten(items: Any) -> List[Any]:
    if not isinstance(items, (list, tuple)):
        return [items]
    flat = []
    for item in items:
        flat.extend(_flatten(item))
    return flat
