"""
Association descriptors: how one model reaches another across a relationship.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from .types import Direction, arrow_ends
from .validators import InvalidAssociationError, QueryValidator, parameter_stem

Callback = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class Association:
    """
    Read-only metadata for one traversal edge.

    Args:
        name: Name the association is declared under on its model
        direction: 'out', 'in' or 'both'
        relationship_type: Relationship type (any type when None)
        target: Target model class or registered model name
        before_create: Called with (start, end) before an edge is created;
            returning False vetoes the creation
        after_create: Called with (start, end) after an edge is created
    """

    name: str = ""
    direction: Direction = Direction.OUT
    relationship_type: Optional[str] = None
    target: Union[type, str, None] = None
    before_create: Optional[Callback] = None
    after_create: Optional[Callback] = None

    def __post_init__(self):
        object.__setattr__(self, 'direction', QueryValidator().validate_direction(self.direction))

    @property
    def model(self) -> Optional[type]:
        """The target model class, resolving registered names."""
        if isinstance(self.target, str):
            from .model import Model
            return Model.lookup(self.target)
        return self.target

    def arrow_cypher(self, rel_var: Optional[str] = None,
                     properties: Optional[Dict[str, Any]] = None,
                     create: bool = False) -> str:
        """
        Render the relationship part of a pattern.

        Examples:
            '-->'                          no variable, type or properties
            '-[rel0:`FRIEND`]->'           with a variable and a type
            '-[rel:`FRIEND` {since: $rel_since}]->'

        Property values are never inlined; bind them with `property_params`.
        Creation patterns need a direction, so 'both' renders outgoing.
        """
        direction = self.direction
        if create and direction == Direction.BOTH:
            direction = Direction.OUT
        left, right = arrow_ends(direction)

        if not rel_var and not self.relationship_type and not properties:
            return f"{left}{right}"

        type_cypher = f":`{self.relationship_type}`" if self.relationship_type else ""
        properties_cypher = ""
        if properties:
            prefix = rel_var or "rel"
            pairs = ", ".join(f"{key}: ${self._property_param(prefix, key)}" for key in properties)
            properties_cypher = f" {{{pairs}}}"

        return f"{left}[{rel_var or ''}{type_cypher}{properties_cypher}]{right}"

    def property_params(self, rel_var: Optional[str], properties: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Parameter bindings for the placeholders rendered by `arrow_cypher`."""
        prefix = rel_var or "rel"
        return {self._property_param(prefix, key): value for key, value in (properties or {}).items()}

    @staticmethod
    def _property_param(prefix: str, key: str) -> str:
        return parameter_stem(f"{prefix}_{key}")

    def perform_callback(self, start: Any, end: Any, when: str) -> Any:
        """Run the 'before' or 'after' creation callback, if any."""
        if when not in ('before', 'after'):
            raise InvalidAssociationError(f"Unknown callback: {when}")
        callback = self.before_create if when == 'before' else self.after_create
        if callback is None:
            return None
        return callback(start, end)
