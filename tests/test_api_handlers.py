"""
Tests for the handler layer: response envelope and failure values.
"""

from netviz import api_handlers
from netviz.runner.session import TopologySession
from conftest import build_three_router_data, build_world_data


def loaded_session(data=None):
    session = TopologySession()
    response = api_handlers.handle_load_topology(session, {'topology': data or build_world_data()})
    assert response['success'], response
    return session


class TestLoad:

    def test_load_returns_summary_and_arrays(self):
        session = TopologySession()
        response = api_handlers.handle_load_topology(session, {'topology': build_three_router_data()})

        assert response['success']
        assert response['generation'] == session.generation
        result = response['result']
        assert result['node_count'] == 4
        assert result['link_count'] == 2
        assert result['simulation'] is False
        assert result['links'][1]['reverse_cost'] == 8

    def test_structural_error_is_failure_value(self):
        response = api_handlers.handle_load_topology(TopologySession(), {'topology': {'nodes': []}})

        assert not response['success']
        assert response['result'] is None
        assert response['error']['error_type'] == 'structural_error'

    def test_missing_topology_field(self):
        response = api_handlers.handle_load_topology(TopologySession(), {})
        assert response['error']['error_type'] == 'validation_error'

    def test_diagnostics_returned(self):
        data = build_three_router_data()
        data['links'].append({'source': 'R1', 'target': 'GHOST', 'cost': 2})
        response = api_handlers.handle_load_topology(TopologySession(), {'topology': data})

        assert response['success']
        assert [d['code'] for d in response['diagnostics']] == ['unknown_endpoint']


class TestPathHandlers:

    def test_shortest_path(self):
        session = loaded_session(build_three_router_data())
        response = api_handlers.handle_shortest_path(session, {'source': 'R3', 'target': 'R1'})

        assert response['success']
        assert response['result']['total_cost'] == 13
        assert response['result']['nodes'] == ['R3', 'R2', 'R1']

    def test_no_path_is_success_with_none(self):
        session = loaded_session(build_three_router_data())
        response = api_handlers.handle_shortest_path(session, {'source': 'R1', 'target': 'R4'})

        assert response['success']
        assert response['result'] is None

    def test_invalid_weight_is_failure_value(self):
        data = build_three_router_data()
        data['links'][0]['forward_cost'] = 0
        session = loaded_session(data)

        response = api_handlers.handle_shortest_path(session, {'source': 'R1', 'target': 'R3'})

        assert not response['success']
        assert response['error']['error_type'] == 'invalid_weight'
        assert response['error']['details']['link_index'] == 0

    def test_missing_source(self):
        session = loaded_session()
        response = api_handlers.handle_shortest_path(session, {'target': 'R1'})
        assert response['error']['error_type'] == 'validation_error'

    def test_all_paths_uses_default_bounds(self):
        session = loaded_session()
        session.settings.default_max_results = 1
        response = api_handlers.handle_all_paths(session, {'source': 'US2', 'target': 'DE1'})

        assert response['success']
        assert len(response['result']) == 1

    def test_all_paths_explicit_bounds(self):
        session = loaded_session()
        response = api_handlers.handle_all_paths(
            session, {'source': 'US2', 'target': 'DE1', 'max_hops': 3, 'max_results': 10}
        )
        assert [p['nodes'] for p in response['result']] == [
            ['US2', 'UK1', 'DE1'],
            ['US2', 'US1', 'FR1', 'DE1'],
        ]

    def test_query_before_load(self):
        response = api_handlers.handle_shortest_path(TopologySession(), {'source': 'A', 'target': 'B'})
        assert not response['success']
        assert response['generation'] is None


class TestSimulation:

    def test_override_applies_only_in_simulation(self):
        session = loaded_session(build_three_router_data())
        response = api_handlers.handle_set_override(session, {'link_index': 1, 'reverse_cost': 2})
        assert response['success']
        assert response['result']['original_reverse_cost'] == 8

        off = api_handlers.handle_shortest_path(session, {'source': 'R3', 'target': 'R1'})
        assert off['result']['total_cost'] == 13

        api_handlers.handle_set_simulation(session, {'enabled': True})
        on = api_handlers.handle_shortest_path(session, {'source': 'R3', 'target': 'R1'})
        assert on['result']['total_cost'] == 7

    def test_out_of_range_override(self):
        session = loaded_session(build_three_router_data())
        response = api_handlers.handle_set_override(session, {'link_index': 9, 'forward_cost': 1})
        assert response['error']['error_type'] == 'validation_error'

    def test_reload_clears_overrides(self):
        session = loaded_session(build_three_router_data())
        api_handlers.handle_set_override(session, {'link_index': 1, 'forward_cost': 100})
        api_handlers.handle_set_simulation(session, {'enabled': True})

        api_handlers.handle_load_topology(session, {'topology': build_world_data()})
        response = api_handlers.handle_get_topology(session)

        assert response['success']
        assert response['result']['links'][1]['forward_cost'] == 10
        assert not response['result']['links'][1]['is_modified']

    def test_clear_overrides(self):
        session = loaded_session(build_three_router_data())
        api_handlers.handle_set_override(session, {'link_index': 0, 'forward_cost': 50})
        api_handlers.handle_clear_overrides(session)
        assert len(session.overrides) == 0

    def test_remove_override(self):
        session = loaded_session(build_three_router_data())
        api_handlers.handle_set_override(session, {'link_index': 0, 'forward_cost': 50})
        api_handlers.handle_set_override(session, {'link_index': 1, 'reverse_cost': 2})
        api_handlers.handle_set_simulation(session, {'enabled': True})

        response = api_handlers.handle_remove_override(session, {'link_index': 0})

        assert response['success']
        assert response['result'] == {'override_count': 1}
        path = api_handlers.handle_shortest_path(session, {'source': 'R1', 'target': 'R3'})
        assert path['result']['total_cost'] == 8

    def test_remove_override_requires_index(self):
        session = loaded_session(build_three_router_data())
        response = api_handlers.handle_remove_override(session, {})
        assert response['error']['error_type'] == 'validation_error'

    def test_scenario_diff_ignores_toggle(self):
        session = loaded_session()
        api_handlers.handle_set_override(session, {'link_index': 1, 'forward_cost': 100, 'reverse_cost': 100})

        response = api_handlers.handle_scenario_diff(session)

        assert response['success']
        assert response['result']['modified_links'] == [1]
        assert len(response['result']['changed_pairs']) == 6

    def test_export(self):
        session = loaded_session(build_three_router_data())
        api_handlers.handle_set_override(session, {'link_index': 0, 'cost': 9})
        api_handlers.handle_set_simulation(session, {'enabled': True})

        response = api_handlers.handle_export(session)
        assert response['result']['links'][0]['forward_cost'] == 9
        assert response['result']['metadata']['edge_count'] == 2


class TestAggregateHandlers:

    def test_country_matrix(self):
        session = loaded_session()
        response = api_handlers.handle_country_matrix(session, {'countries': ['US', 'DE']})

        assert response['success']
        assert response['result']['countries'] == ['DE', 'US']
        assert response['result']['generation'] == session.generation

    def test_transit_exposure_carries_signature(self):
        session = loaded_session()
        response = api_handlers.handle_transit_exposure(session, {'max_pairs': 3})

        assert response['result']['truncated'] is True
        assert len(response['result']['settings_signature']) == 16

    def test_impact(self):
        session = loaded_session()
        response = api_handlers.handle_impact(session, {'failed_links': [2, 42]})

        assert response['success']
        assert response['result']['pairs_recomputed'] == 10
        assert response['result']['impact_percentage'] == 50.0
        assert [d['code'] for d in response['diagnostics']] == ['unknown_element']

    def test_country_pair(self):
        session = loaded_session()
        response = api_handlers.handle_country_pair(session, {'source_country': 'UK', 'dest_country': 'FR'})
        assert response['result']['min_cost'] == 10

    def test_network_health(self):
        session = loaded_session()
        response = api_handlers.handle_network_health(session)
        assert response['result']['single_points_of_failure'] == [5]
        assert response['result']['redundancy_score'] == 90
