"""
Chain links and the resolver that turns chain calls into them.

A link is a deferred (kind, argument) pair. Its argument is either a literal
or a function of the variable name the owning proxy is queried as; that name
is only known once the whole chain, ancestors included, is assembled.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Tuple, Union

from .conditions import Condition, dict_to_condition
from .config import settings
from .types import LinkKind
from .validators import InvalidParameterError, QueryValidator

if TYPE_CHECKING:
    from .fragment import QueryFragment
    from .proxy import QueryProxy

logger = logging.getLogger(__name__)

_validator = QueryValidator(max_limit=settings.max_query_limit)


@dataclass(frozen=True)
class Literal:
    """Argument used as is."""

    value: Any

    def resolve(self, variable: str) -> Any:
        return self.value


@dataclass(frozen=True)
class Deferred:
    """Argument computed from the live variable name at assembly time."""

    function: Callable[[str], Any]

    def resolve(self, variable: str) -> Any:
        return self.function(variable)


LinkArgument = Union[Literal, Deferred]


@dataclass(frozen=True)
class LinkOperation:
    """One primitive fragment operation in a proxy's chain."""

    kind: str
    argument: LinkArgument

    def apply(self, fragment: 'QueryFragment', variable: str) -> 'QueryFragment':
        return getattr(fragment, self.kind)(self.argument.resolve(variable))


Links = Tuple[LinkOperation, ...]
Resolver = Callable[['QueryProxy', Any], Links]


def _kind(kind: Union[str, LinkKind]) -> str:
    return kind.value if isinstance(kind, LinkKind) else str(kind)


def default_links(kind: Union[str, LinkKind], argument: Any) -> Links:
    """Pass the call through unchanged as a single link."""
    return (LinkOperation(_kind(kind), Literal(argument)),)


def _synthetic_start(proxy: 'QueryProxy') -> int:
    return 1 + sum(1 for link in proxy.chain if link.kind == LinkKind.MATCH.value)


def links_for_where_arg(proxy: 'QueryProxy', arg: Any) -> Links:
    """
    Links for a `where` call.

    Mapping keys naming a declared association filter by the related node:
    a fresh variable is matched across the association and constrained to the
    given node's identity. Other keys filter on a property of the node.
    """
    if isinstance(arg, str):
        return (LinkOperation(LinkKind.WHERE.value, Literal(arg)),)

    if isinstance(arg, Condition):
        return (LinkOperation(LinkKind.WHERE.value, Deferred(lambda v, c=arg: c.qualify(v))),)

    if not isinstance(arg, Mapping):
        raise InvalidParameterError(f"where accepts a string, a Condition or a dictionary, got {type(arg).__name__}")

    model = proxy.model
    node_num = _synthetic_start(proxy)
    result = []
    for key, value in arg.items():
        if model is not None and model.has_association(key):
            neo_id = _validator.identity_of(value, key)
            arrow = model.association_for(key).arrow_cypher()
            n_suffix = f"n{node_num}"
            result.append(LinkOperation(
                LinkKind.MATCH.value,
                Deferred(lambda v, a=arrow, n=n_suffix: f"({v}){a}({v}_{n})"),
            ))
            result.append(LinkOperation(
                LinkKind.WHERE.value,
                Deferred(lambda v, n=n_suffix, i=neo_id: {f"ID({v}_{n})": i}),
            ))
            node_num += 1
        elif isinstance(value, Mapping):
            condition = dict_to_condition({key: value})
            result.append(LinkOperation(LinkKind.WHERE.value, Deferred(lambda v, c=condition: c.qualify(v))))
        else:
            result.append(LinkOperation(LinkKind.WHERE.value, Deferred(lambda v, k=key, val=value: {v: {k: val}})))
    return tuple(result)


def links_for_order_arg(proxy: 'QueryProxy', arg: Any) -> Links:
    if isinstance(arg, str):
        return (LinkOperation(LinkKind.ORDER.value, Literal(arg)),)
    return (LinkOperation(LinkKind.ORDER.value, Deferred(lambda v, a=arg: {v: a})),)


def links_for_skip_arg(proxy: 'QueryProxy', arg: Any) -> Links:
    _validator.validate_skip(arg)
    return default_links(LinkKind.SKIP, arg)


def links_for_limit_arg(proxy: 'QueryProxy', arg: Any) -> Links:
    _validator.validate_limit(arg)
    return default_links(LinkKind.LIMIT, arg)


RESOLVERS: Dict[str, Resolver] = {
    LinkKind.WHERE.value: links_for_where_arg,
    LinkKind.ORDER.value: links_for_order_arg,
    LinkKind.SKIP.value: links_for_skip_arg,
    LinkKind.LIMIT.value: links_for_limit_arg,
}


def resolve(kind: Union[str, LinkKind], argument: Any, proxy: 'QueryProxy') -> Links:
    """
    Convert one chain call into the links to append to a proxy's chain.

    Kinds without a registered resolver pass through as a single link. A
    registered resolver that breaks on an unexpected argument shape also
    falls back to the passthrough link; validation errors are raised.
    """
    kind = _kind(kind)
    resolver = RESOLVERS.get(kind)
    if resolver is None:
        return default_links(kind, argument)
    try:
        return resolver(proxy, argument)
    except (AttributeError, TypeError) as e:
        logger.warning("Resolver for %r failed on %r, passing through: %s", kind, argument, e)
        return default_links(kind, argument)
