"""
Neo4j execution and result formatting utilities.

QueryExecutor is the session collaborator of the query builder: proxies ask it
for an empty fragment via `query()` and every terminal operation funnels
through its execute methods. Driver errors propagate unchanged.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

from .fragment import QueryFragment

logger = logging.getLogger(__name__)


class Neo4jDatabase:
    """Neo4j database connection and query execution."""

    def __init__(self, uri: str, username: str, password: str, database: Optional[str] = None):
        """
        Initialize connection to Neo4j database.

        Args:
            uri: Neo4j connection URI (e.g., 'bolt://localhost:7687')
            username: Database username
            password: Database password
            database: Database name (server default when None)
        """
        from neo4j import GraphDatabase

        self.driver = GraphDatabase.driver(uri, auth=(username, password))
        self.database = database

        self._test_connection()

    def _test_connection(self):
        """Test the database connection."""
        try:
            with self.session() as session:
                session.run("RETURN 1")
        except Exception as e:
            raise ConnectionError(f"Failed to connect to Neo4j: {e}") from e

    @contextmanager
    def session(self):
        """Context manager for database sessions."""
        session = self.driver.session(database=self.database)
        try:
            yield session
        finally:
            session.close()

    def execute_query(self, cypher: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a Cypher query and return results as list of dictionaries.

        Args:
            cypher: Cypher query string
            params: Query parameters

        Returns:
            List of dictionaries containing query results
        """
        with self.session() as session:
            result = session.run(cypher, params or {})
            return [record.data() for record in result]

    def execute_query_raw(self, cypher: str, params: Optional[Dict[str, Any]] = None):
        """
        Execute a Cypher query and return raw Neo4j records.

        Node and relationship values keep their identities, unlike
        `execute_query` which flattens them to property dictionaries.
        """
        with self.session() as session:
            return list(session.run(cypher, params or {}))

    def close(self):
        """Close the database connection."""
        if self.driver:
            self.driver.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class QueryExecutor:
    """Executes queries and formats results."""

    def __init__(self, database: Neo4jDatabase, default_context: Optional[str] = None):
        """
        Initialize query executor.

        Args:
            database: Neo4jDatabase instance (or any object with the same
                execute_query / execute_query_raw methods)
            default_context: Tag attached to queries that do not carry one
        """
        self.database = database
        self.default_context = default_context

    def query(self, context: Optional[str] = None) -> QueryFragment:
        """Start an empty fragment bound to this executor."""
        return QueryFragment(executor=self, context=context or self.default_context)

    def _log(self, cypher: str, params: Optional[Dict[str, Any]], context: Optional[str]):
        logger.debug("[%s] %s params=%s", context or self.default_context or "-", cypher.replace("\n", " "), params)

    def execute(self, cypher: str, params: Optional[Dict[str, Any]] = None,
                context: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            cypher: Cypher query string
            params: Query parameters
            context: Tag for logging

        Returns:
            List of dictionaries
        """
        self._log(cypher, params, context)
        return self.database.execute_query(cypher, params)

    def execute_raw(self, cypher: str, params: Optional[Dict[str, Any]] = None,
                    context: Optional[str] = None):
        """Execute query and return raw Neo4j records."""
        self._log(cypher, params, context)
        return self.database.execute_query_raw(cypher, params)

    def execute_df(self, cypher: str, params: Optional[Dict[str, Any]] = None,
                   context: Optional[str] = None):
        """
        Execute query and return results as pandas DataFrame.

        Returns:
            pandas DataFrame
        """
        import pandas as pd

        results = self.execute(cypher, params, context=context)
        if not results:
            return pd.DataFrame()

        return pd.DataFrame(results)

    def execute_json(self, cypher: str, params: Optional[Dict[str, Any]] = None,
                     context: Optional[str] = None) -> str:
        """Execute query and return results as JSON string."""
        results = self.execute(cypher, params, context=context)
        return json.dumps(results, indent=2, default=str)

    def execute_single(self, cypher: str, params: Optional[Dict[str, Any]] = None,
                       context: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Execute query and return single result.

        Returns:
            Single dictionary or None if no results
        """
        results = self.execute(cypher, params, context=context)
        return results[0] if results else None

    def count(self, cypher: str, params: Optional[Dict[str, Any]] = None,
              context: Optional[str] = None) -> int:
        """
        Execute count query and return integer result.

        Args:
            cypher: Cypher query string (should return COUNT)
            params: Query parameters

        Returns:
            Count as integer
        """
        result = self.execute_single(cypher, params, context=context)
        if result:
            for value in result.values():
                return int(value)
        return 0


def format_results(results: List[Dict[str, Any]], format_type: str = 'dict') -> Union[List[Dict], str]:
    """
    Format query results in different formats.

    Args:
        results: Query results
        format_type: Output format ('dict', 'json', 'table')

    Returns:
        Formatted results
    """
    if format_type == 'dict':
        return results

    elif format_type == 'json':
        return json.dumps(results, indent=2, default=str)

    elif format_type == 'table':
        if not results:
            return "No results"

        from tabulate import tabulate

        headers = list(results[0].keys())
        rows = [[row.get(h, '') for h in headers] for row in results]
        return tabulate(rows, headers=headers, tablefmt='grid')

    else:
        raise ValueError(f"Unknown format type: {format_type}")
