"""
Model base class: the descriptor a QueryProxy reads its label, associations
and delegated query methods from, plus a minimal persisted entity.

Example:
    class Person(Model):
        label = 'Person'
        associations = {
            'friends': Association(direction='out', relationship_type='FRIEND', target='Person'),
            'employer': Association(direction='out', relationship_type='WORKS_AT', target='Company'),
        }
        query_methods = ('adults',)

        @classmethod
        def adults(cls, proxy):
            return proxy.where(Q('age') >= 18)

    Person.session = executor
    Person.all().adults().friends.count()
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from .association import Association
from .executors import QueryExecutor
from .proxy import QueryProxy
from .validators import InvalidAssociationError, InvalidParameterError, QueryValidationError

logger = logging.getLogger(__name__)


class Model:
    """Base class for node models."""

    label: Optional[str] = None
    associations: Dict[str, Association] = {}
    query_methods: Tuple[str, ...] = ()
    session: Optional[QueryExecutor] = None

    _registry: Dict[str, type] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.associations = {
            name: association if association.name == name else replace(association, name=name)
            for name, association in cls.associations.items()
        }
        Model._registry[cls.__name__] = cls

    def __init__(self, neo_id: Optional[int] = None, **properties):
        self.neo_id = neo_id
        self.properties = dict(properties)

    # Descriptor interface

    @classmethod
    def lookup(cls, name: str) -> type:
        """Find a model class by name."""
        try:
            return Model._registry[name]
        except KeyError:
            raise InvalidAssociationError(f"Unknown model: {name}") from None

    @classmethod
    def mapped_label_name(cls) -> str:
        return cls.label or cls.__name__

    @classmethod
    def has_association(cls, key: str) -> bool:
        return key in cls.associations

    @classmethod
    def association_for(cls, key: str) -> Association:
        if not cls.has_association(key):
            raise InvalidAssociationError(f"{cls.__name__} has no association '{key}'")
        return cls.associations[key]

    @classmethod
    def _session(cls) -> QueryExecutor:
        if cls.session is None:
            raise QueryValidationError(f"No session configured for {cls.__name__}")
        return cls.session

    @classmethod
    def from_node(cls, node: Any) -> Any:
        """Build an entity from a driver node (anything with `id` and `items()`)."""
        if node is None or isinstance(node, cls):
            return node
        properties = dict(node.items()) if hasattr(node, 'items') else {}
        properties.pop('neo_id', None)
        return cls(neo_id=getattr(node, 'id', None), **properties)

    @classmethod
    def find(cls, neo_id: Any) -> Optional['Model']:
        """Load the node with the given identity, or None."""
        if isinstance(neo_id, str):
            if not neo_id.isdigit():
                raise InvalidParameterError(f"Invalid id: {neo_id!r}")
            neo_id = int(neo_id)
        row = (cls._session().query()
               .match({'n': cls.mapped_label_name()})
               .where({'ID(n)': neo_id})
               .return_('n')
               .first())
        return cls.from_node(row['n']) if row else None

    # Query entry points

    @classmethod
    def all(cls) -> QueryProxy:
        return QueryProxy(model=cls, session=cls.session)

    @classmethod
    def where(cls, *args, **filters) -> QueryProxy:
        return cls.all().where(*args, **filters)

    @classmethod
    def count(cls, distinct: Optional[str] = None) -> int:
        return cls.all().count(distinct)

    # Entity interface

    @property
    def persisted(self) -> bool:
        return self.neo_id is not None

    def save(self) -> 'Model':
        """Create the node, or overwrite its properties if it already exists."""
        fragment = self._session().query()
        if self.persisted:
            fragment = fragment.start({'n': self.neo_id}).set_("n = $props")
        else:
            fragment = fragment.create(f"(n:`{self.mapped_label_name()}` $props)")
        row = fragment.params({'props': self.properties}).return_('ID(n) AS neo_id').first()
        if row is None:
            raise QueryValidationError(f"{type(self).__name__} {self.neo_id} no longer exists")
        self.neo_id = row['neo_id']
        logger.debug("Saved %s %s", type(self).__name__, self.neo_id)
        return self

    def query_as(self, var: str):
        """Fragment matching this node under var."""
        if not self.persisted:
            raise QueryValidationError(f"Cannot query an unsaved {type(self).__name__}")
        return self._session().query().start({var: self.neo_id})

    def traverse(self, name: str, rel_var: Optional[str] = None) -> QueryProxy:
        """Hop from this entity across the association declared under name."""
        association = self.association_for(name)
        return QueryProxy(
            model=association.model,
            association=association,
            rel_var=rel_var,
            start_object=self,
            session=type(self).session,
        )

    def __getattr__(self, name: str):
        if name.startswith('_'):
            raise AttributeError(name)
        properties = self.__dict__.get('properties', {})
        if name in properties:
            return properties[name]
        if type(self).has_association(name):
            return self.traverse(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __eq__(self, other: Any) -> bool:
        if type(self) is not type(other) or not self.persisted:
            return self is other
        return self.neo_id == other.neo_id

    def __hash__(self) -> int:
        return hash((type(self), self.neo_id)) if self.persisted else id(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} neo_id={self.neo_id} {self.properties}>"
