"""Tests for QueryProxy chaining, assembly and terminal operations."""

import threading

import pandas as pd
import pytest

from graphchain import (
    Association,
    InvalidAssociationError,
    InvalidParameterError,
    Model,
    Q,
    QueryProxy,
    QueryValidationError,
)

from tests.fakes import Company, FakeNode, Person


def prefix_of(shorter, longer):
    return all(
        getattr(longer, name)[:len(getattr(shorter, name))] == getattr(shorter, name)
        for name in ('match_clauses', 'where_clauses', 'order_by')
    )


class TestChaining:
    def test_every_chain_call_returns_a_new_proxy(self):
        base = Person.all()
        for chained in (base.where(age=30), base.order(['name']), base.skip(1),
                        base.limit(1), base.params({'x': 1}), base.where()):
            assert chained is not base
        assert base.chain == ()

    def test_parent_assembly_is_a_prefix(self):
        base = Person.all().where(age=30).order(['name'])
        chained = base.where(Q('name') == 'Ann').skip(2)
        assert prefix_of(base.query(), chained.query())
        assert chained.chain[:len(base.chain)] == base.chain

    def test_forks_are_isolated(self):
        base = Person.all().where(age=30)
        by_name = base.where(name='Ann')
        ordered = base.order(['name'])
        assert "name" not in by_name.render().split("WHERE")[0]
        assert "ORDER BY" not in by_name.render()
        assert "result.name =" not in ordered.render()
        assert "ORDER BY result.name" in ordered.render()
        assert len(base.chain) == 1

    def test_forking_from_threads(self):
        base = Person.all().where(age=30)
        results = {}

        def fork(n):
            results[n] = base.limit(n).render()

        threads = [threading.Thread(target=fork, args=(n,)) for n in range(1, 6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        for n, cypher in results.items():
            assert cypher.endswith(f"LIMIT {n}")
        assert len(base.chain) == 1

    def test_aliases(self):
        proxy = Person.all().order_by(['name']).offset(3)
        assert "ORDER BY result.name" in proxy.render()
        assert "SKIP 3" in proxy.render()

    def test_call_site_validation(self):
        with pytest.raises(InvalidParameterError):
            Person.all().limit(-1)
        with pytest.raises(InvalidParameterError):
            Person.all().where(employer='acme')
        with pytest.raises(InvalidParameterError):
            Person.all().params({'not a name': 1})

    def test_association_proxy_needs_an_anchor(self):
        with pytest.raises(InvalidAssociationError):
            QueryProxy(Person, Person.association_for('friends'))


class TestAssembly:
    def test_root_query(self):
        assert Person.all().render() == "MATCH (result:`Person`)"

    def test_property_filter_binds_parameter(self):
        cypher, params = Person.all().where(age=30).to_cypher()
        assert cypher == "MATCH (result:`Person`)\nWHERE result.age = $result_age_0"
        assert params == {'result_age_0': 30}

    def test_association_filter(self, acme):
        cypher, params = Person.all().where(employer=acme).to_cypher()
        assert cypher == (
            "MATCH (result:`Person`)\n"
            "MATCH (result)-[:`WORKS_AT`]->(result_n1)\n"
            "WHERE ID(result_n1) = $id_result_n1_0"
        )
        assert params == {'id_result_n1_0': 42}

    def test_hop_from_entity(self, ann):
        cypher, params = ann.friends.to_cypher()
        assert cypher == (
            "MATCH (person7)\n"
            "MATCH (person7)-[rel0:`FRIEND`]->(result:`Person`)\n"
            "WHERE ID(person7) = $id_person7_0"
        )
        assert params == {'id_person7_0': 7}

    def test_friends_of_friends_over_30(self, ann):
        cypher, params = ann.friends.friends.where(Q('age') > 30).to_cypher()
        assert cypher == (
            "MATCH (person7)\n"
            "MATCH (person7)-[rel0:`FRIEND`]->(node2:`Person`)\n"
            "MATCH (node2)-[rel1:`FRIEND`]->(result:`Person`)\n"
            "WHERE (ID(person7) = $id_person7_0) AND (result.age > $param_1)"
        )
        assert params == {'id_person7_0': 7, 'param_1': 30}

    def test_multi_hop_from_model(self):
        proxy = Person.all().friends.employer
        assert proxy.render() == (
            "MATCH (node2:`Person`)\n"
            "MATCH (node2)-[rel1:`FRIEND`]->(node3:`Person`)\n"
            "MATCH (node3)-[rel2:`WORKS_AT`]->(result:`Company`)"
        )

    def test_filters_stay_on_their_hop(self):
        proxy = Person.all().where(age=30).friends.where(name='Bob')
        cypher, params = proxy.to_cypher()
        assert "node2.age = $node2_age_0" in cypher
        assert "result.name = $result_name_1" in cypher
        assert params == {'node2_age_0': 30, 'result_name_1': 'Bob'}

    def test_named_variables(self):
        proxy = Person.all().as_('p').traverse('friends', node_var='f', rel_var='k').where(age=3)
        assert proxy.render() == (
            "MATCH (p:`Person`)\n"
            "MATCH (p)-[k:`FRIEND`]->(f:`Person`)\n"
            "WHERE f.age = $f_age_0"
        )

    def test_bound_params_are_carried(self):
        proxy = Person.all().where("result.age > $min_age").params({'min_age': 21})
        assert proxy.to_cypher()[1] == {'min_age': 21}

    def test_passthrough_link(self):
        proxy = Person.all().with_link('return_', 'result.name')
        assert proxy.render().endswith("RETURN result.name")

    def test_incoming_hop(self, acme):
        assert acme.employees.render() == (
            "MATCH (company42)\n"
            "MATCH (company42)<-[rel0:`WORKS_AT`]-(result:`Person`)\n"
            "WHERE ID(company42) = $id_company42_0"
        )

    def test_delegated_query_method(self):
        assert Person.all().adults().render() == (
            "MATCH (result:`Person`)\nWHERE result.age >= $param_0"
        )

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            Person.all().colleagues

    def test_traverse_unknown_association(self):
        with pytest.raises(InvalidAssociationError):
            Person.all().traverse('colleagues')

    def test_missing_session(self, monkeypatch):
        monkeypatch.setattr(Model, 'session', None)
        with pytest.raises(QueryValidationError):
            Person.all().render()

    def test_hop_from_unsaved_entity(self, database):
        with pytest.raises(QueryValidationError):
            Person(name='Dave').friends.to_cypher()
        assert database.queries == []

    def test_explicit_session_and_context(self, executor, database):
        proxy = QueryProxy(Company, session=executor, context='audit')
        assert proxy.query().context == 'audit'


class TestEnumeration:
    def test_iteration_wraps_nodes(self, database):
        database.respond([{'result': FakeNode(1, name='Ann')}, {'result': FakeNode(2, name='Bob')}])
        people = list(Person.all())
        assert [p.name for p in people] == ['Ann', 'Bob']
        assert [p.neo_id for p in people] == [1, 2]
        assert database.last_query == "MATCH (result:`Person`)\nRETURN result"

    def test_reiteration_reruns_the_query(self, database):
        proxy = Person.all()
        database.respond([{'result': FakeNode(1)}], [{'result': FakeNode(1)}, {'result': FakeNode(2)}])
        assert len(list(proxy)) == 1
        assert len(list(proxy)) == 2
        assert len(database.queries) == 2

    def test_iteration_is_lazy(self, database):
        iterator = iter(Person.all())
        assert database.queries == []
        assert list(iterator) == []
        assert len(database.queries) == 1

    def test_each_rel_and_each_with_rel(self, database, ann):
        friendship = {'since': 2020}
        database.respond(
            [{'rel0': friendship}],
            [{'result': FakeNode(8, name='Bob'), 'rel0': friendship}],
        )
        assert list(ann.friends.each_rel()) == [friendship]
        assert "RETURN rel0" in database.last_query
        [(friend, rel)] = list(ann.friends.each_with_rel())
        assert friend.name == 'Bob'
        assert rel == friendship
        assert "RETURN result, rel0" in database.last_query

    def test_relationship_iteration_needs_association(self):
        with pytest.raises(InvalidAssociationError):
            Person.all().each_rel()

    def test_to_list_and_index(self, database):
        database.respond([{'result': FakeNode(1)}, {'result': FakeNode(2)}], [{'result': FakeNode(1)}, {'result': FakeNode(2)}])
        assert len(Person.all().to_list()) == 2
        assert Person.all()[1].neo_id == 2

    def test_pluck_variables_along_the_chain(self, database, ann):
        database.respond([{'node2': 'a', 'result': 'b'}])
        assert ann.friends.friends.pluck('node2', 'result') == [('a', 'b')]

    def test_to_df(self, database):
        database.respond([{'result': FakeNode(1, name='Ann', age=34)}, {'result': FakeNode(2, name='Bob', age=29)}])
        frame = Person.all().to_df()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame['name']) == ['Ann', 'Bob']


class TestAggregates:
    def test_first(self, database):
        database.respond([{'result': FakeNode(1, name='Ann')}])
        first = Person.all().first()
        assert first.name == 'Ann'
        assert database.last_query == (
            "MATCH (result:`Person`)\nRETURN result\nORDER BY ID(result) ASC\nLIMIT 1"
        )

    def test_last(self, database):
        database.respond([{'result': FakeNode(9)}])
        assert Person.all().last().neo_id == 9
        assert "ORDER BY ID(result) DESC\nLIMIT 1" in database.last_query

    def test_first_and_last_on_empty_results(self):
        assert Person.all().first() is None
        assert Person.all().last() is None

    def test_count(self, database):
        database.respond([{'count': 3}])
        assert Person.all().count() == 3
        assert database.last_query == "MATCH (n:`Person`)\nRETURN count(n) AS count"

    def test_count_distinct(self, database, ann):
        database.respond([{'count': 2}])
        assert ann.friends.friends.count('distinct') == 2
        assert "RETURN count(DISTINCT n) AS count" in database.last_query
        assert "(node2)-[rel1:`FRIEND`]->(n:`Person`)" in database.last_query

    def test_count_rejects_other_qualifiers(self, database):
        with pytest.raises(InvalidParameterError):
            Person.all().count('all')
        assert database.queries == []

    def test_count_respects_node_var(self, database):
        database.respond([{'count': 1}])
        Person.all().as_('p').count()
        assert database.last_query == "MATCH (p:`Person`)\nRETURN count(p) AS count"

    def test_exists(self, database):
        database.respond([{'count': 1}], [{'count': 0}])
        assert Person.all().exists() is True
        assert Person.all().exists(12) is False
        assert "WHERE ID(n) = $id_n_0" in database.last_query
        assert database.last_params == {'id_n_0': 12}

    def test_aggregates_drop_ordering(self, database):
        database.respond([{'count': 2}], [{'count': 1}])
        assert Person.all().order(['name']).count() == 2
        assert database.last_query == "MATCH (n:`Person`)\nRETURN count(n) AS count"
        assert Person.all().order("result.name DESC").exists() is True
        assert "ORDER BY" not in database.last_query

    def test_exists_rejects_non_ids(self):
        with pytest.raises(InvalidParameterError):
            Person.all().exists('12')

    def test_empty(self, database):
        database.respond([{'count': 0}])
        assert Person.all().empty() is True

    def test_includes(self, database, bob, ann):
        database.respond([{'count': 1}])
        assert bob in ann.friends
        assert database.last_params == {'id_person7_0': 7, 'id_n_1': 8}

    def test_includes_rejects_non_nodes(self):
        with pytest.raises(InvalidParameterError):
            Person.all().includes(8)


class Member(Model):
    associations = {
        'mentors': Association(
            direction='out',
            relationship_type='MENTORED_BY',
            target='Member',
            before_create=lambda start, end: end.properties.get('approved', True),
        ),
    }


class TestCreateEdge:
    def test_requires_association(self, database, bob):
        with pytest.raises(InvalidAssociationError):
            Person.all().create_edge(bob)
        assert database.queries == []

    def test_requires_start_object(self, database, bob):
        with pytest.raises(InvalidAssociationError):
            Person.all().friends.create_edge(bob)
        assert database.queries == []

    def test_rejects_other_models(self, database, ann, acme):
        with pytest.raises(InvalidAssociationError):
            ann.friends.create_edge(acme)
        assert database.queries == []

    def test_creates_relationship_with_parameters(self, database, ann, bob):
        assert ann.friends.create_edge(bob, {'since': 2020}) is True
        assert database.last_query == (
            "MATCH (source)\n"
            "MATCH (target)\n"
            "WHERE (ID(source) = $id_source_0) AND (ID(target) = $id_target_1)\n"
            "CREATE (source)-[rel0:`FRIEND` {since: $rel0_since}]->(target)"
        )
        assert database.last_params == {'id_source_0': 7, 'id_target_1': 8, 'rel0_since': 2020}

    def test_creates_one_relationship_per_node(self, database, ann, bob):
        carol = Person(neo_id=9, name='Carol')
        ann.friends.create_edge([bob, [carol]])
        assert len(database.queries) == 2
        assert database.last_params['id_target_1'] == 9

    def test_incoming_association_direction(self, database, acme, bob):
        acme.employees.create_edge(bob)
        assert "CREATE (source)<-[rel0:`WORKS_AT`]-(target)" in database.last_query

    def test_looks_up_ids(self, database, ann):
        database.respond([{'n': FakeNode(8, name='Bob')}])
        ann.friends.create_edge(8)
        assert database.queries[0][0] == "MATCH (n:`Person`)\nWHERE ID(n) = $id_n_0\nRETURN n"
        assert database.last_params['id_target_1'] == 8

    def test_unknown_id(self, ann):
        with pytest.raises(InvalidParameterError):
            ann.friends.create_edge(404)

    def test_saves_new_nodes_first(self, database, ann):
        database.respond([{'neo_id': 11}])
        dave = Person(name='Dave')
        ann.friends.create_edge(dave)
        assert dave.neo_id == 11
        assert database.queries[0][0].startswith("CREATE (n:`Person` $props)")
        assert database.last_params['id_target_1'] == 11

    def test_callbacks_run_around_creation(self, database, ann, bob):
        calls = []
        association = Association(
            relationship_type='FRIEND',
            target='Person',
            before_create=lambda s, e: calls.append(('before', len(database.queries))),
            after_create=lambda s, e: calls.append(('after', len(database.queries))),
        )
        QueryProxy(Person, association, start_object=ann).create_edge(bob)
        assert calls == [('before', 0), ('after', 1)]

    def test_before_callback_can_veto(self, database):
        mentee = Member(neo_id=1)
        rejected = Member(neo_id=2, approved=False)
        assert mentee.mentors.create_edge(rejected) is False
        assert database.queries == []
        assert mentee.mentors.create_edge(Member(neo_id=3)) is True
        assert len(database.queries) == 1
