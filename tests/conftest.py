"""Pytest fixtures for graphchain tests."""

import pytest

from graphchain import Model, QueryExecutor

from tests.fakes import Company, FakeDatabase, Person


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def executor(database) -> QueryExecutor:
    return QueryExecutor(database)


@pytest.fixture(autouse=True)
def bound_session(monkeypatch, executor):
    """Every model runs its queries against the fake database."""
    monkeypatch.setattr(Model, 'session', executor)
    return executor


@pytest.fixture
def ann() -> Person:
    return Person(neo_id=7, name='Ann', age=34)


@pytest.fixture
def bob() -> Person:
    return Person(neo_id=8, name='Bob', age=29)


@pytest.fixture
def acme() -> Company:
    return Company(neo_id=42, name='Acme')
