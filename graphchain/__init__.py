"""
graphchain - chainable, deferred Cypher queries over Neo4j models

Queries are built by chaining calls on immutable QueryProxy values. Nothing
is sent to the database until a terminal operation (iteration, count, first,
exists, create_edge, ...) assembles the chain into a single Cypher statement.

Example usage:

    from graphchain import Association, Model, Q, connect

    class Person(Model):
        associations = {
            'friends': Association(direction='out', relationship_type='FRIEND', target='Person'),
        }

    Person.session = connect('bolt://localhost:7687', 'neo4j', 'password')

    ann = Person.where(name='Ann').first()

    # Friends of Ann's friends who are older than 30
    for person in ann.friends.friends.where(Q('age') > 30).order(['name']):
        print(person.name)

    # Cypher without running it
    print(Person.all().where(age=30).render())
"""

from typing import Optional

from .types import Direction, LinkKind
from .conditions import Q, And, Or, Not, Condition, dict_to_condition
from .validators import (
    QueryValidator,
    QueryValidationError,
    InvalidParameterError,
    InvalidAssociationError,
)
from .config import Settings, settings
from .log import setup_logging
from .executors import Neo4jDatabase, QueryExecutor, format_results
from .fragment import QueryFragment
from .association import Association
from .links import Literal, Deferred, LinkOperation, resolve
from .proxy import QueryProxy
from .model import Model

__version__ = "0.1.0"
__description__ = "Chainable, deferred Cypher query builder for Neo4j models"

__all__ = [
    # Core classes
    'QueryProxy',
    'QueryFragment',
    'Model',
    'Association',
    'Neo4jDatabase',
    'QueryExecutor',

    # Condition classes
    'Q',
    'And',
    'Or',
    'Not',
    'Condition',
    'dict_to_condition',

    # Chain links
    'Literal',
    'Deferred',
    'LinkOperation',
    'resolve',

    # Type definitions
    'Direction',
    'LinkKind',

    # Validation
    'QueryValidator',
    'QueryValidationError',
    'InvalidParameterError',
    'InvalidAssociationError',

    # Configuration
    'Settings',
    'settings',
    'setup_logging',

    # Utility functions
    'format_results',
    'connect',
]


def connect(uri: Optional[str] = None, username: Optional[str] = None,
            password: Optional[str] = None, database: Optional[str] = None,
            bind: bool = False) -> QueryExecutor:
    """
    Convenience function to connect to Neo4j and return an executor.

    Args:
        uri: Neo4j connection URI (settings.neo4j_uri by default)
        username: Database username (settings.neo4j_user by default)
        password: Database password (settings.neo4j_password by default)
        database: Database name (settings.neo4j_database by default)
        bind: Make the executor the default session of every Model

    Returns:
        QueryExecutor instance ready for use

    Example:
        Person.session = connect('bolt://localhost:7687', 'neo4j', 'password')
    """
    neo4j_database = Neo4jDatabase(
        uri or settings.neo4j_uri,
        username or settings.neo4j_user,
        password if password is not None else settings.neo4j_password,
        database or settings.neo4j_database,
    )
    executor = QueryExecutor(neo4j_database, default_context=settings.default_context)
    if bind:
        Model.session = executor
    return executor
